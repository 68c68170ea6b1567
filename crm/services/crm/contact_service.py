"""
Contact service.

Customers, prospects, vendors, crews and internal contacts of an
organization. Contacts are soft-deleted so leads and jobs keep their
references.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from common.utils.exceptions import BadRequestException
from crm.context import AuthContext
from crm.database import collections
from crm.services.crm.base import TenantScopedService

logger = logging.getLogger(__name__)

CONTACT_FIELDS = (
    "type",
    "firstName",
    "lastName",
    "companyName",
    "displayName",
    "email",
    "phone",
    "mobile",
    "addressLine1",
    "addressLine2",
    "city",
    "state",
    "zipCode",
    "country",
    "notes",
    "tags",
    "customFields",
)


def derive_display_name(data: Dict[str, Any]) -> Optional[str]:
    """Explicit display name, else company name, else "First Last"."""
    for candidate in (data.get("displayName"), data.get("companyName")):
        if candidate and candidate.strip():
            return candidate.strip()
    full = f"{data.get('firstName') or ''} {data.get('lastName') or ''}".strip()
    return full or None


class ContactService(TenantScopedService):
    """
    Manages contacts.
    """

    collection_name = collections.CONTACTS
    resource_label = "Contact"
    not_found_code = "CONTACT_NOT_FOUND"

    async def list_contacts(
        self,
        ctx: AuthContext,
        type: Optional[str] = None,
        search: Optional[str] = None,
        include_inactive: bool = False,
        page: int = 1,
        limit: int = 25,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query: Dict[str, Any] = {}
        if not include_inactive:
            query["isActive"] = True
        if type:
            query["type"] = type
        if search:
            pattern = {"$regex": re.escape(search.strip()), "$options": "i"}
            query["$or"] = [
                {"displayName": pattern},
                {"companyName": pattern},
                {"email": pattern},
                {"phone": pattern},
            ]

        docs, total = await self.list_docs(ctx, query, page, limit, sort=("displayName", 1))
        return [self._format_contact(doc) for doc in docs], total

    async def get_contact(self, ctx: AuthContext, contact_id: str) -> Dict[str, Any]:
        return self._format_contact(await self.get_doc(ctx, contact_id))

    async def create_contact(self, ctx: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Raises:
            BadRequestException: No name of any kind
        """
        fields = {key: data.get(key) for key in CONTACT_FIELDS if key in data}
        display_name = derive_display_name(fields)
        if not display_name:
            raise BadRequestException(
                message="A contact needs a display name, company name, or first/last name",
                code="CONTACT_NAME_REQUIRED",
            )

        if fields.get("email"):
            fields["email"] = fields["email"].strip().lower()

        now = datetime.now(timezone.utc)
        contact_doc = {
            "type": "customer",
            "tags": [],
            "customFields": {},
            **fields,
            "displayName": display_name,
            "isActive": True,
            "createdBy": ctx.user_id,
            "updatedBy": ctx.user_id,
            "createdAt": now,
            "updatedAt": now,
        }

        result = await self.collection(ctx).insert_one(contact_doc)
        contact_doc["_id"] = result.inserted_id

        logger.info(f"Contact {result.inserted_id} created in org {ctx.organization_id}")
        return self._format_contact(contact_doc)

    async def update_contact(
        self,
        ctx: AuthContext,
        contact_id: str,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        existing = await self.get_doc(ctx, contact_id)
        changes = {key: updates[key] for key in CONTACT_FIELDS if key in updates}

        if "isActive" in updates and updates["isActive"] is not None:
            changes["isActive"] = bool(updates["isActive"])

        if changes.get("email"):
            changes["email"] = changes["email"].strip().lower()

        if {"displayName", "companyName", "firstName", "lastName"} & changes.keys():
            display_name = derive_display_name({**existing, **changes})
            if not display_name:
                raise BadRequestException(
                    message="A contact needs a display name, company name, or first/last name",
                    code="CONTACT_NAME_REQUIRED",
                )
            changes["displayName"] = display_name

        changes["updatedBy"] = ctx.user_id
        changes["updatedAt"] = datetime.now(timezone.utc)

        result = await self.update_doc(ctx, existing, changes)
        return self._format_contact(result)

    async def deactivate_contact(self, ctx: AuthContext, contact_id: str) -> None:
        """Soft delete."""
        existing = await self.get_doc(ctx, contact_id)
        await self.collection(ctx).update_one(
            {"_id": existing["_id"]},
            {
                "$set": {
                    "isActive": False,
                    "updatedBy": ctx.user_id,
                    "updatedAt": datetime.now(timezone.utc),
                }
            },
        )
        logger.info(f"Contact {contact_id} deactivated in org {ctx.organization_id}")

    def _format_contact(self, contact: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {key: contact.get(key) for key in CONTACT_FIELDS}
        formatted.update({
            "id": str(contact["_id"]),
            "organizationId": str(contact["organizationId"]),
            "isActive": contact.get("isActive", True),
            "tags": contact.get("tags") or [],
            "customFields": contact.get("customFields") or {},
            "createdBy": self.id_or_none(contact.get("createdBy")),
            "updatedBy": self.id_or_none(contact.get("updatedBy")),
            "createdAt": contact.get("createdAt"),
            "updatedAt": contact.get("updatedAt"),
        })
        return formatted
