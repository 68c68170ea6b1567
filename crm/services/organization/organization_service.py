"""
Organization service.

Manages organizations (tenants), memberships and the user's current
organization.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, List, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from common.utils.exceptions import (
    BadRequestException,
    NotFoundException,
    ForbiddenException,
    ConflictException,
)
from crm import permissions
from crm.database import collections, to_object_id, TenantCollection

logger = logging.getLogger(__name__)

USABLE_STATUSES = ("active", "trial")

DEFAULT_SETTINGS = {
    "timezone": "America/New_York",
    "currency": "USD",
    "defaultTaxRate": 0,
    "divisions": ["multi_family", "single_family", "repair_remodel"],
}

UPDATABLE_FIELDS = {
    "name": "name",
    "phone": "phone",
    "addressLine1": "addressLine1",
    "addressLine2": "addressLine2",
    "city": "city",
    "state": "state",
    "zipCode": "zipCode",
    "websiteUrl": "websiteUrl",
    "logoUrl": "logoUrl",
    "taxId": "taxId",
    "settings": "settings",
}


def is_usable(org: Optional[Dict[str, Any]]) -> bool:
    """True if members may work in the organization."""
    return bool(org) and org.get("status") in USABLE_STATUSES


class OrganizationService:
    """
    Manages organizations and their memberships.
    """

    def __init__(self, db: AsyncIOMotorDatabase, trial_period_days: int = 14):
        """
        Args:
            db: MongoDB database connection
            trial_period_days: Length of the trial granted to new organizations
        """
        self._db = db
        self._trial_period = timedelta(days=trial_period_days)
        self._orgs_collection = db[collections.ORGANIZATIONS]
        self._members_collection = db[collections.MEMBERSHIPS]
        self._users_collection = db[collections.USERS]
        self._invitations_collection = db[collections.INVITATIONS]

    # ─────────────────────────────────────────────────────────────────
    # Registration
    # ─────────────────────────────────────────────────────────────────

    async def register_organization(
        self,
        user_id: str,
        organization_name: str,
        organization_slug: str,
        owner_first_name: str,
        owner_last_name: str,
        phone: Optional[str] = None,
        address_line_1: Optional[str] = None,
        city: Optional[str] = None,
        state: Optional[str] = None,
        zip_code: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create an organization with the caller as its owner.

        The organization starts in ``trial`` status, the caller gets an
        active owner membership, and the new organization becomes the
        caller's current one.

        Raises:
            ConflictException: Slug already taken
        """
        owner_id = ObjectId(user_id)
        slug = organization_slug.strip()

        if await self._orgs_collection.find_one({"slug": slug}):
            raise ConflictException(
                message="Organization slug already exists. Please choose a different one.",
                code="SLUG_TAKEN",
            )

        now = datetime.now(timezone.utc)
        org_doc = {
            "name": organization_name.strip(),
            "slug": slug,
            "status": "trial",
            "phone": phone,
            "addressLine1": address_line_1,
            "city": city,
            "state": state,
            "zipCode": zip_code,
            "country": "US",
            "settings": dict(DEFAULT_SETTINGS),
            "trialEndsAt": now + self._trial_period,
            "createdBy": owner_id,
            "createdAt": now,
            "updatedAt": now,
        }

        try:
            result = await self._orgs_collection.insert_one(org_doc)
        except DuplicateKeyError:
            raise ConflictException(
                message="Organization slug already exists. Please choose a different one.",
                code="SLUG_TAKEN",
            )
        org_doc["_id"] = result.inserted_id

        await self._members_collection.insert_one({
            "organizationId": result.inserted_id,
            "userId": owner_id,
            "role": permissions.OWNER,
            "status": "active",
            "invitedBy": None,
            "invitedAt": None,
            "activatedAt": now,
            "createdAt": now,
            "updatedAt": now,
        })

        first_name = owner_first_name.strip()
        last_name = owner_last_name.strip()
        await self._users_collection.update_one(
            {"_id": owner_id},
            {
                "$set": {
                    "firstName": first_name,
                    "lastName": last_name,
                    "displayName": f"{first_name} {last_name}",
                    "phone": phone,
                    "currentOrganizationId": result.inserted_id,
                    "updatedAt": now,
                }
            },
        )

        logger.info(f"Registered organization {slug} ({result.inserted_id}) for user {user_id}")
        return self._format_organization(org_doc)

    # ─────────────────────────────────────────────────────────────────
    # Organization CRUD
    # ─────────────────────────────────────────────────────────────────

    async def get_organization_doc(self, organization_id: Any) -> Optional[Dict[str, Any]]:
        if not isinstance(organization_id, ObjectId):
            organization_id = to_object_id(organization_id, "organizationId")
        return await self._orgs_collection.find_one({"_id": organization_id})

    async def get_organization(self, organization_id: Any) -> Dict[str, Any]:
        org = await self.get_organization_doc(organization_id)
        if not org:
            raise NotFoundException(
                message="Organization not found",
                code="ORGANIZATION_NOT_FOUND",
            )
        return self._format_organization(org)

    async def update_organization(
        self,
        organization_id: ObjectId,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Update organization profile fields.

        ``settings`` is merged into the existing settings. Status, slug and
        trial fields cannot be changed here.
        """
        changes = {
            UPDATABLE_FIELDS[key]: value
            for key, value in updates.items()
            if key in UPDATABLE_FIELDS and value is not None
        }

        if not changes:
            return await self.get_organization(organization_id)

        if "name" in changes:
            name = changes["name"].strip()
            if not 2 <= len(name) <= 100:
                raise BadRequestException(
                    message="Organization name must be 2-100 characters",
                    code="INVALID_NAME",
                )
            changes["name"] = name

        if "settings" in changes:
            current = await self.get_organization_doc(organization_id)
            if not current:
                raise NotFoundException(
                    message="Organization not found",
                    code="ORGANIZATION_NOT_FOUND",
                )
            changes["settings"] = {**current.get("settings", {}), **changes["settings"]}

        changes["updatedAt"] = datetime.now(timezone.utc)

        result = await self._orgs_collection.find_one_and_update(
            {"_id": organization_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

        if not result:
            raise NotFoundException(
                message="Organization not found",
                code="ORGANIZATION_NOT_FOUND",
            )

        logger.info(f"Updated organization {organization_id}: {sorted(changes)}")
        return self._format_organization(result)

    # ─────────────────────────────────────────────────────────────────
    # Membership and switching
    # ─────────────────────────────────────────────────────────────────

    async def get_membership(
        self,
        organization_id: ObjectId,
        user_id: Any,
    ) -> Optional[Dict[str, Any]]:
        """Raw membership document (any status) or None."""
        return await self._members_collection.find_one({
            "organizationId": organization_id,
            "userId": user_id if isinstance(user_id, ObjectId) else ObjectId(user_id),
        })

    async def get_user_org_info(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Every organization the user is an active member of.

        Returns:
            Rows of organization id/name/slug/status, the user's role, and
            whether it is the user's current organization
        """
        user_oid = ObjectId(user_id)
        user = await self._users_collection.find_one(
            {"_id": user_oid}, {"currentOrganizationId": 1}
        )
        current_id = user.get("currentOrganizationId") if user else None

        memberships = await self._members_collection.find({
            "userId": user_oid,
            "status": "active",
        }).to_list(length=100)

        if not memberships:
            return []

        org_ids = [m["organizationId"] for m in memberships]
        orgs = await self._orgs_collection.find({"_id": {"$in": org_ids}}).to_list(length=len(org_ids))
        orgs_by_id = {org["_id"]: org for org in orgs}

        rows = []
        for membership in memberships:
            org = orgs_by_id.get(membership["organizationId"])
            if not org:
                continue
            rows.append({
                "organizationId": str(org["_id"]),
                "organizationName": org.get("name"),
                "organizationSlug": org.get("slug"),
                "organizationStatus": org.get("status"),
                "role": membership["role"],
                "roleLabel": permissions.ROLE_LABELS.get(membership["role"]),
                "isCurrent": org["_id"] == current_id,
            })

        rows.sort(key=lambda row: (row["organizationName"] or "").lower())
        return rows

    async def switch_organization(self, user_id: str, organization_id: str) -> Dict[str, Any]:
        """
        Make ``organization_id`` the user's current organization.

        Raises:
            BadRequestException: Malformed id
            ForbiddenException: Not an active member, or organization unusable
        """
        org_oid = to_object_id(organization_id, "organization_id")

        membership = await self.get_membership(org_oid, user_id)
        if not membership or membership.get("status") != "active":
            raise ForbiddenException(
                message="You do not have access to this organization",
                code="NO_ORGANIZATION_ACCESS",
            )

        org = await self.get_organization_doc(org_oid)
        if not is_usable(org):
            raise ForbiddenException(
                message="Organization is not active",
                code="ORGANIZATION_INACTIVE",
            )

        await self._users_collection.update_one(
            {"_id": ObjectId(user_id)},
            {"$set": {"currentOrganizationId": org_oid, "updatedAt": datetime.now(timezone.utc)}},
        )

        logger.info(f"User {user_id} switched to organization {organization_id}")

        rows = await self.get_user_org_info(user_id)
        current = next((row for row in rows if row["organizationId"] == str(org_oid)), None)
        return {"currentOrganization": current, "allOrganizations": rows}

    # ─────────────────────────────────────────────────────────────────
    # Member Management
    # ─────────────────────────────────────────────────────────────────

    async def get_members(self, organization_id: ObjectId) -> List[Dict[str, Any]]:
        """Members of every status, with user details."""
        members = await self._members_collection.find(
            {"organizationId": organization_id}
        ).to_list(length=1000)

        user_ids = [m["userId"] for m in members]
        users = await self._users_collection.find(
            {"_id": {"$in": user_ids}},
            {"passwordHash": 0},
        ).to_list(length=len(user_ids) or 1)
        users_by_id = {user["_id"]: user for user in users}

        results = []
        for member in members:
            formatted = self._format_membership(member)
            user = users_by_id.get(member["userId"])
            formatted["user"] = {
                "id": str(user["_id"]),
                "email": user.get("email"),
                "firstName": user.get("firstName"),
                "lastName": user.get("lastName"),
                "title": user.get("title"),
                "lastLoginAt": user.get("lastLoginAt"),
            } if user else None
            results.append(formatted)

        return results

    async def count_active_owners(self, organization_id: ObjectId) -> int:
        return await self._members_collection.count_documents({
            "organizationId": organization_id,
            "role": permissions.OWNER,
            "status": "active",
        })

    async def update_member(
        self,
        organization_id: ObjectId,
        target_user_id: str,
        acting_user_id: str,
        acting_role: str,
        role: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Change a member's role and/or status.

        Raises:
            BadRequestException: Invalid role/status or nothing to change
            ForbiddenException: Self-change, owner rules, last owner
            NotFoundException: Not a member of this organization
        """
        if role is None and status is None:
            raise BadRequestException(message="Nothing to update", code="NO_CHANGES")

        if role is not None and not permissions.is_valid_role(role):
            raise BadRequestException(message="Invalid role specified", code="INVALID_ROLE")

        if status is not None and status not in ("active", "inactive", "suspended"):
            raise BadRequestException(message="Invalid status specified", code="INVALID_STATUS")

        target_oid = to_object_id(target_user_id, "userId")
        if str(target_oid) == str(acting_user_id):
            raise ForbiddenException(
                message="You cannot change your own membership",
                code="SELF_MODIFICATION",
            )

        membership = await self.get_membership(organization_id, target_oid)
        if not membership:
            raise NotFoundException(message="Member not found", code="MEMBER_NOT_FOUND")

        touches_owner = role == permissions.OWNER or membership["role"] == permissions.OWNER
        if touches_owner and acting_role != permissions.OWNER:
            raise ForbiddenException(
                message="Only owners can grant or change the owner role",
                code="OWNER_ONLY",
            )

        demoting_owner = membership["role"] == permissions.OWNER and membership["status"] == "active" and (
            (role is not None and role != permissions.OWNER)
            or (status is not None and status != "active")
        )
        if demoting_owner and await self.count_active_owners(organization_id) <= 1:
            raise ForbiddenException(
                message="Cannot remove the last owner of the organization",
                code="LAST_OWNER",
            )

        changes: Dict[str, Any] = {"updatedAt": datetime.now(timezone.utc)}
        if role is not None:
            changes["role"] = role
        if status is not None:
            changes["status"] = status

        result = await self._members_collection.find_one_and_update(
            {"_id": membership["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )

        logger.info(
            f"Member {target_user_id} in org {organization_id} updated by {acting_user_id}: "
            f"role={role} status={status}"
        )
        return self._format_membership(result)

    # ─────────────────────────────────────────────────────────────────
    # Stats
    # ─────────────────────────────────────────────────────────────────

    async def get_organization_stats(self, organization_id: ObjectId) -> Dict[str, int]:
        """Dashboard counters for one organization."""
        now = datetime.now(timezone.utc)
        members = self._members_collection
        scoped = {
            name: TenantCollection(self._db[name], organization_id)
            for name in (collections.CONTACTS, collections.LEADS, collections.JOBS, collections.ESTIMATES)
        }

        return {
            "total_users": await members.count_documents({"organizationId": organization_id}),
            "active_users": await members.count_documents(
                {"organizationId": organization_id, "status": "active"}
            ),
            "pending_invitations": await self._invitations_collection.count_documents({
                "organizationId": organization_id,
                "status": "pending",
                "expiresAt": {"$gt": now},
            }),
            "total_contacts": await scoped[collections.CONTACTS].count_documents({"isActive": True}),
            "total_leads": await scoped[collections.LEADS].count_documents({}),
            "active_leads": await scoped[collections.LEADS].count_documents(
                {"status": {"$nin": ["won", "lost", "inactive"]}}
            ),
            "total_jobs": await scoped[collections.JOBS].count_documents({}),
            "jobs_in_progress": await scoped[collections.JOBS].count_documents({"status": "in_progress"}),
            "total_estimates": await scoped[collections.ESTIMATES].count_documents({}),
            "pending_estimates": await scoped[collections.ESTIMATES].count_documents(
                {"status": {"$in": ["draft", "sent", "viewed"]}}
            ),
        }

    # ─────────────────────────────────────────────────────────────────
    # Formatting
    # ─────────────────────────────────────────────────────────────────

    def _format_organization(self, org: Dict[str, Any]) -> Dict[str, Any]:
        """Format organization for response."""
        return {
            "id": str(org["_id"]),
            "name": org.get("name"),
            "slug": org.get("slug"),
            "status": org.get("status"),
            "phone": org.get("phone"),
            "addressLine1": org.get("addressLine1"),
            "addressLine2": org.get("addressLine2"),
            "city": org.get("city"),
            "state": org.get("state"),
            "zipCode": org.get("zipCode"),
            "country": org.get("country"),
            "websiteUrl": org.get("websiteUrl"),
            "logoUrl": org.get("logoUrl"),
            "settings": org.get("settings", {}),
            "trialEndsAt": org.get("trialEndsAt"),
            "createdBy": str(org["createdBy"]) if org.get("createdBy") else None,
            "createdAt": org.get("createdAt"),
            "updatedAt": org.get("updatedAt"),
        }

    def format_organization(self, org: Dict[str, Any]) -> Dict[str, Any]:
        return self._format_organization(org)

    def _format_membership(self, membership: Dict[str, Any]) -> Dict[str, Any]:
        """Format membership for response."""
        return {
            "id": str(membership["_id"]),
            "organizationId": str(membership["organizationId"]),
            "userId": str(membership["userId"]),
            "role": membership.get("role"),
            "status": membership.get("status"),
            "invitedBy": str(membership["invitedBy"]) if membership.get("invitedBy") else None,
            "invitedAt": membership.get("invitedAt"),
            "activatedAt": membership.get("activatedAt"),
            "createdAt": membership.get("createdAt"),
            "updatedAt": membership.get("updatedAt"),
        }
