"""
User service.

Owns the ``users`` collection: account creation for the auth provider,
profile updates, login tracking and the user's current organization.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from common.utils.exceptions import NotFoundException
from crm.database import collections

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_PREFERENCES = {
    "email": True,
    "browser": True,
    "mobile": False,
}

# Request field -> stored field; anything else in a profile update is dropped
PROFILE_FIELDS = {
    "first_name": "firstName",
    "last_name": "lastName",
    "phone": "phone",
    "mobile": "mobile",
    "title": "title",
    "timezone": "timezone",
    "notification_preferences": "notificationPreferences",
}


class UserService:
    """
    Manages user accounts and profiles.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db
        self._users_collection = db[collections.USERS]

    async def create_user(self, email: str, password_hash: str, data: Dict[str, Any]) -> str:
        """
        Insert a user document.

        Used as the auth provider's storage callback; returns the new id.
        """
        now = datetime.now(timezone.utc)
        first_name = (data.get("first_name") or "").strip()
        last_name = (data.get("last_name") or "").strip()

        user_doc = {
            "email": email.strip().lower(),
            "passwordHash": password_hash,
            "firstName": first_name,
            "lastName": last_name,
            "displayName": f"{first_name} {last_name}".strip() or None,
            "phone": None,
            "mobile": None,
            "title": None,
            "timezone": None,
            "notificationPreferences": dict(DEFAULT_NOTIFICATION_PREFERENCES),
            "currentOrganizationId": None,
            "status": "active",
            "lastLoginAt": None,
            "loginCount": 0,
            "createdAt": now,
            "updatedAt": now,
        }

        result = await self._users_collection.insert_one(user_doc)
        logger.info(f"User created: {result.inserted_id}")
        return str(result.inserted_id)

    async def get_user_by_id(self, user_id: str) -> Optional[dict]:
        try:
            return await self._users_collection.find_one({"_id": ObjectId(user_id)})
        except (InvalidId, TypeError):
            return None

    async def get_user_by_email(self, email: str) -> Optional[dict]:
        return await self._users_collection.find_one({"email": email.strip().lower()})

    async def record_login(self, user_id: str) -> None:
        """Increment the login counter and stamp lastLoginAt."""
        now = datetime.now(timezone.utc)
        await self._users_collection.update_one(
            {"_id": ObjectId(user_id)},
            {
                "$set": {"lastLoginAt": now, "updatedAt": now},
                "$inc": {"loginCount": 1},
            },
        )

    async def update_profile(self, user_id: str, updates: Dict[str, Any]) -> dict:
        """
        Apply a profile update.

        Only the fields in ``PROFILE_FIELDS`` are written; everything else
        (role, status, email, organization) is silently ignored.

        Returns:
            The updated user document
        """
        changes = {
            PROFILE_FIELDS[key]: value
            for key, value in updates.items()
            if key in PROFILE_FIELDS
        }

        if "notificationPreferences" in changes and changes["notificationPreferences"] is not None:
            changes["notificationPreferences"] = {
                **DEFAULT_NOTIFICATION_PREFERENCES,
                **changes["notificationPreferences"],
            }

        user = await self.get_user_by_id(user_id)
        if not user:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        if "firstName" in changes or "lastName" in changes:
            first_name = changes.get("firstName", user.get("firstName")) or ""
            last_name = changes.get("lastName", user.get("lastName")) or ""
            changes["displayName"] = f"{first_name} {last_name}".strip() or None

        changes["updatedAt"] = datetime.now(timezone.utc)

        result = await self._users_collection.find_one_and_update(
            {"_id": user["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

        logger.info(f"Profile updated for user {user_id}: {sorted(changes)}")
        return result

    async def set_current_organization(self, user_id: str, organization_id: ObjectId) -> None:
        await self._users_collection.update_one(
            {"_id": ObjectId(user_id)},
            {
                "$set": {
                    "currentOrganizationId": organization_id,
                    "updatedAt": datetime.now(timezone.utc),
                }
            },
        )

    async def get_display_names(self, user_ids: list) -> Dict[str, str]:
        """Map user id -> "First Last" for the given ids."""
        ids = [uid if isinstance(uid, ObjectId) else ObjectId(uid) for uid in user_ids if uid]
        if not ids:
            return {}

        users = await self._users_collection.find(
            {"_id": {"$in": ids}},
            {"firstName": 1, "lastName": 1, "email": 1},
        ).to_list(length=len(ids))

        return {str(user["_id"]): self.full_name(user) for user in users}

    @staticmethod
    def full_name(user: Optional[dict]) -> str:
        if not user:
            return "Unknown User"
        name = f"{user.get('firstName') or ''} {user.get('lastName') or ''}".strip()
        return name or user.get("email") or "Unknown User"

    def format_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """Public user representation (never includes the password hash)."""
        return {
            "id": str(user["_id"]),
            "email": user.get("email"),
            "firstName": user.get("firstName"),
            "lastName": user.get("lastName"),
            "displayName": user.get("displayName"),
            "phone": user.get("phone"),
            "mobile": user.get("mobile"),
            "title": user.get("title"),
            "timezone": user.get("timezone"),
            "notificationPreferences": user.get(
                "notificationPreferences", DEFAULT_NOTIFICATION_PREFERENCES
            ),
            "status": user.get("status"),
            "currentOrganizationId": (
                str(user["currentOrganizationId"]) if user.get("currentOrganizationId") else None
            ),
            "lastLoginAt": user.get("lastLoginAt"),
            "loginCount": user.get("loginCount", 0),
            "createdAt": user.get("createdAt"),
            "updatedAt": user.get("updatedAt"),
        }
