"""
Team invitation service.

Covers the whole invitation lifecycle: creation under the invitation
policy, listing, revocation, public lookup by token, acceptance and
expiry.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from common.utils.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    GoneException,
    NotFoundException,
)
from crm import permissions
from crm.database import collections, to_object_id
from crm.services.email.email_service import EmailService
from crm.services.invitation.token_hasher import TokenHasher
from crm.services.organization.organization_service import OrganizationService, is_usable
from crm.services.user.user_service import UserService

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class InvitationService:
    """
    Manages invitations of users into organizations.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        organization_service: OrganizationService,
        user_service: UserService,
        email_service: EmailService,
        expire_days: int = 7,
    ):
        """
        Args:
            db: MongoDB database connection
            organization_service: For organization and membership lookups
            user_service: For invitee/inviter lookups and login tracking
            email_service: Sends the invitation email
            expire_days: Invitation lifetime
        """
        self._db = db
        self._org_service = organization_service
        self._user_service = user_service
        self._email_service = email_service
        self._expire_after = timedelta(days=expire_days)
        self._invitations_collection = db[collections.INVITATIONS]
        self._members_collection = db[collections.MEMBERSHIPS]
        self._users_collection = db[collections.USERS]

    # ─────────────────────────────────────────────────────────────────
    # Creation / listing / revocation
    # ─────────────────────────────────────────────────────────────────

    async def create_invitation(
        self,
        organization: Dict[str, Any],
        inviter: Dict[str, Any],
        inviter_role: str,
        email: str,
        role: str,
    ) -> Tuple[Dict[str, Any], str]:
        """
        Invite ``email`` into ``organization`` with ``role``.

        Args:
            organization: Raw organization document of the inviter's current org
            inviter: Raw user document of the inviter
            inviter_role: Inviter's role in the organization
            email: Normalized invitee email
            role: Role granted on acceptance

        Returns:
            (formatted invitation, raw token)

        Raises:
            BadRequestException: Invalid role
            ForbiddenException: Invitation policy denies it
            ConflictException: Already a member, or an active invitation exists
        """
        permissions.check_can_invite(inviter_role, role)

        org_id = organization["_id"]
        now = datetime.now(timezone.utc)

        invitee = await self._user_service.get_user_by_email(email)
        if invitee:
            membership = await self._org_service.get_membership(org_id, invitee["_id"])
            if membership and membership.get("status") == "active":
                raise ConflictException(
                    message="User is already a member of this organization",
                    code="ALREADY_MEMBER",
                )
            if membership and membership.get("status") == "pending":
                raise ConflictException(
                    message="User already has a pending invitation to this organization",
                    code="INVITATION_EXISTS",
                )

        existing = await self._invitations_collection.find_one({
            "organizationId": org_id,
            "email": email,
            "status": "pending",
        })
        if existing:
            if _as_utc(existing["expiresAt"]) > now:
                raise ConflictException(
                    message="An active invitation already exists for this email",
                    code="INVITATION_EXISTS",
                )
            await self._invitations_collection.update_one(
                {"_id": existing["_id"]},
                {"$set": {"status": "expired", "updatedAt": now}},
            )

        token = TokenHasher.generate_token()
        expires_at = now + self._expire_after

        invitation_doc = {
            "organizationId": org_id,
            "email": email,
            "role": role,
            "tokenHash": TokenHasher.hash_token(token),
            "status": "pending",
            "invitedBy": inviter["_id"],
            "expiresAt": expires_at,
            "acceptedAt": None,
            "acceptedBy": None,
            "createdAt": now,
            "updatedAt": now,
        }

        result = await self._invitations_collection.insert_one(invitation_doc)
        invitation_doc["_id"] = result.inserted_id

        logger.info(f"Invitation {result.inserted_id} created for {email} in org {org_id} as {role}")

        # Invitation stands even if the email fails
        try:
            sent = await self._email_service.send_invitation_email(
                to_email=email,
                token=token,
                organization_name=organization.get("name", ""),
                role_label=permissions.ROLE_LABELS.get(role, role),
                inviter_name=UserService.full_name(inviter),
                expires_at=expires_at.strftime("%B %d, %Y"),
            )
            if not sent.get("success"):
                logger.warning(f"Invitation email to {email} not sent: {sent.get('error')}")
        except Exception as email_error:
            logger.warning(f"Failed to send invitation email to {email}: {email_error}")

        return self._format_invitation(invitation_doc), token

    async def list_pending(self, organization_id: ObjectId) -> List[Dict[str, Any]]:
        """Pending, unexpired invitations, newest first, with inviter names."""
        invitations = await self._invitations_collection.find({
            "organizationId": organization_id,
            "status": "pending",
            "expiresAt": {"$gt": datetime.now(timezone.utc)},
        }).sort("createdAt", -1).to_list(length=500)

        names = await self._user_service.get_display_names([inv.get("invitedBy") for inv in invitations])

        results = []
        for invitation in invitations:
            formatted = self._format_invitation(invitation)
            formatted["invitedByName"] = names.get(formatted["invitedBy"], "Unknown User")
            results.append(formatted)
        return results

    async def revoke_invitation(self, organization_id: ObjectId, invitation_id: str) -> None:
        """
        Raises:
            NotFoundException: No pending invitation with this id in the organization
        """
        result = await self._invitations_collection.update_one(
            {
                "_id": to_object_id(invitation_id, "invitationId"),
                "organizationId": organization_id,
                "status": "pending",
            },
            {"$set": {"status": "revoked", "updatedAt": datetime.now(timezone.utc)}},
        )

        if result.matched_count == 0:
            raise NotFoundException(message="Invitation not found", code="INVITATION_NOT_FOUND")

        logger.info(f"Invitation {invitation_id} revoked in org {organization_id}")

    # ─────────────────────────────────────────────────────────────────
    # Public lookups
    # ─────────────────────────────────────────────────────────────────

    async def _find_by_token(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        if not token or not token.strip():
            raise BadRequestException(message="Invitation token is required", code="TOKEN_REQUIRED")
        return await self._invitations_collection.find_one({"tokenHash": TokenHasher.hash_token(token)})

    @staticmethod
    def _is_expired(invitation: Dict[str, Any]) -> bool:
        if invitation.get("status") == "expired":
            return True
        return _as_utc(invitation["expiresAt"]) <= datetime.now(timezone.utc)

    async def get_invitation_details(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Details shown on the acceptance page.

        Raises:
            NotFoundException: Unknown, accepted or revoked
            GoneException: Expired
        """
        invitation = await self._find_by_token(token)
        if not invitation or invitation.get("status") in ("accepted", "revoked"):
            raise NotFoundException(message="Invalid invitation token", code="INVITATION_NOT_FOUND")

        if self._is_expired(invitation):
            raise GoneException(message="Invitation has expired", code="INVITATION_EXPIRED")

        org = await self._org_service.get_organization_doc(invitation["organizationId"])
        inviter = await self._user_service.get_user_by_id(str(invitation["invitedBy"]))

        return {
            "email": invitation["email"],
            "role": invitation["role"],
            "expiresAt": invitation["expiresAt"],
            "createdAt": invitation.get("createdAt"),
            "organization": {
                "name": org.get("name"),
                "slug": org.get("slug"),
                "logoUrl": org.get("logoUrl"),
            } if org else None,
            "inviter": {
                "firstName": inviter.get("firstName"),
                "lastName": inviter.get("lastName"),
                "email": inviter.get("email"),
            } if inviter else None,
        }

    async def validate_invitation(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Lightweight validity check used before signup.

        Raises:
            NotFoundException: Unknown or revoked token
            BadRequestException: Already accepted, or expired
        """
        invitation = await self._find_by_token(token)
        if not invitation or invitation.get("status") == "revoked":
            raise NotFoundException(message="Invalid invitation token", code="INVITATION_NOT_FOUND")

        if invitation.get("status") == "accepted" or invitation.get("acceptedAt"):
            raise BadRequestException(
                message="This invitation has already been accepted",
                code="INVITATION_ALREADY_ACCEPTED",
            )

        if self._is_expired(invitation):
            raise BadRequestException(message="This invitation has expired", code="INVITATION_EXPIRED")

        org = await self._org_service.get_organization_doc(invitation["organizationId"])
        inviter = await self._user_service.get_user_by_id(str(invitation["invitedBy"]))

        return {
            "email": invitation["email"],
            "role": invitation["role"],
            "organizationName": org.get("name") if org else "Unknown Organization",
            "invitedBy": UserService.full_name(inviter),
            "expiresAt": invitation["expiresAt"],
        }

    # ─────────────────────────────────────────────────────────────────
    # Acceptance
    # ─────────────────────────────────────────────────────────────────

    async def accept_invitation(
        self,
        user: Dict[str, Any],
        token: str,
        first_name: str,
        last_name: str,
        phone: Optional[str] = None,
        mobile: Optional[str] = None,
        timezone_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Accept an invitation as the authenticated ``user``.

        The invitation is claimed atomically, so a token can be accepted
        at most once. The membership is created (or reactivated) with the
        invited role and the organization becomes the user's current one.

        Raises:
            NotFoundException: Unknown, accepted or revoked token
            GoneException: Expired
            ForbiddenException: Email mismatch, or organization not active
            ConflictException: Already an active member
        """
        invitation = await self._find_by_token(token)
        if not invitation or invitation.get("status") in ("accepted", "revoked"):
            raise NotFoundException(
                message="Invalid or expired invitation token",
                code="INVITATION_NOT_FOUND",
            )

        if self._is_expired(invitation):
            raise GoneException(message="Invitation has expired", code="INVITATION_EXPIRED")

        if (user.get("email") or "").lower() != invitation["email"].lower():
            raise ForbiddenException(
                message="Invitation email does not match your authenticated email",
                code="EMAIL_MISMATCH",
            )

        org_id = invitation["organizationId"]
        org = await self._org_service.get_organization_doc(org_id)
        if not is_usable(org):
            raise ForbiddenException(message="Organization is not active", code="ORGANIZATION_INACTIVE")

        membership = await self._org_service.get_membership(org_id, user["_id"])
        if membership and membership.get("status") == "active":
            raise ConflictException(
                message="You are already a member of this organization",
                code="ALREADY_MEMBER",
            )

        now = datetime.now(timezone.utc)

        claimed = await self._invitations_collection.find_one_and_update(
            {"_id": invitation["_id"], "status": "pending"},
            {"$set": {"status": "accepted", "acceptedAt": now, "acceptedBy": user["_id"], "updatedAt": now}},
            return_document=ReturnDocument.AFTER,
        )
        if not claimed:
            raise NotFoundException(
                message="Invalid or expired invitation token",
                code="INVITATION_NOT_FOUND",
            )

        await self._members_collection.update_one(
            {"organizationId": org_id, "userId": user["_id"]},
            {
                "$set": {
                    "role": invitation["role"],
                    "status": "active",
                    "invitedBy": invitation["invitedBy"],
                    "invitedAt": invitation.get("createdAt"),
                    "activatedAt": now,
                    "updatedAt": now,
                },
                "$setOnInsert": {"createdAt": now},
            },
            upsert=True,
        )

        first_name = first_name.strip()
        last_name = last_name.strip()
        await self._users_collection.update_one(
            {"_id": user["_id"]},
            {
                "$set": {
                    "firstName": first_name,
                    "lastName": last_name,
                    "displayName": f"{first_name} {last_name}",
                    "phone": phone or user.get("phone"),
                    "mobile": mobile or user.get("mobile"),
                    "timezone": timezone_name or user.get("timezone"),
                    "currentOrganizationId": org_id,
                    "updatedAt": now,
                }
            },
        )

        await self._user_service.record_login(str(user["_id"]))

        logger.info(f"User {user['_id']} accepted invitation {invitation['_id']} into org {org_id}")

        updated_user = await self._user_service.get_user_by_id(str(user["_id"]))
        return {
            "user": self._user_service.format_user(updated_user or user),
            "organization": self._org_service.format_organization(org),
            "role": invitation["role"],
        }

    # ─────────────────────────────────────────────────────────────────
    # Maintenance
    # ─────────────────────────────────────────────────────────────────

    async def expire_old_invitations(self) -> int:
        """Mark pending invitations past their expiry as expired."""
        now = datetime.now(timezone.utc)
        result = await self._invitations_collection.update_many(
            {"status": "pending", "expiresAt": {"$lte": now}},
            {"$set": {"status": "expired", "updatedAt": now}},
        )
        if result.modified_count:
            logger.info(f"Expired {result.modified_count} invitations")
        return result.modified_count

    def _format_invitation(self, invitation: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "id": str(invitation["_id"]),
            "organizationId": str(invitation["organizationId"]),
            "email": invitation.get("email"),
            "role": invitation.get("role"),
            "status": invitation.get("status"),
            "invitedBy": str(invitation["invitedBy"]) if invitation.get("invitedBy") else None,
            "expiresAt": invitation.get("expiresAt"),
            "acceptedAt": invitation.get("acceptedAt"),
            "createdAt": invitation.get("createdAt"),
        }
