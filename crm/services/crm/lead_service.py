"""
Lead service.

Sales opportunities. Estimators only see the leads assigned to them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from common.utils.exceptions import ConflictException, ForbiddenException
from crm.context import AuthContext
from crm.database import collections, optional_object_id
from crm.services.crm.base import TenantScopedService, to_datetime

logger = logging.getLogger(__name__)

CLOSED_STATUSES = ("won", "lost")

LEAD_FIELDS = (
    "title",
    "description",
    "source",
    "status",
    "division",
    "estimatedValue",
    "probability",
    "priority",
    "expectedCloseDate",
    "addressLine1",
    "city",
    "state",
    "zipCode",
    "notes",
    "tags",
)


class LeadService(TenantScopedService):
    """
    Manages leads.
    """

    collection_name = collections.LEADS
    resource_label = "Lead"
    not_found_code = "LEAD_NOT_FOUND"

    def visibility_filter(self, ctx: AuthContext) -> Dict[str, Any]:
        if ctx.limited:
            return {"assignedTo": ctx.user_id}
        return {}

    async def list_leads(
        self,
        ctx: AuthContext,
        status: Optional[str] = None,
        division: Optional[str] = None,
        source: Optional[str] = None,
        assigned_to: Optional[str] = None,
        contact_id: Optional[str] = None,
        page: int = 1,
        limit: int = 25,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if division:
            query["division"] = division
        if source:
            query["source"] = source
        if assigned_to:
            query["assignedTo"] = optional_object_id(assigned_to, "assignedTo")
        if contact_id:
            query["contactId"] = optional_object_id(contact_id, "contactId")

        docs, total = await self.list_docs(ctx, query, page, limit)
        return [self._format_lead(doc) for doc in docs], total

    async def get_lead(self, ctx: AuthContext, lead_id: str) -> Dict[str, Any]:
        return self._format_lead(await self.get_doc(ctx, lead_id))

    async def create_lead(self, ctx: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: to_datetime(data[key]) for key in LEAD_FIELDS if key in data}

        contact_id = await self.ensure_reference(ctx, collections.CONTACTS, data.get("contactId"), "contactId")
        assigned_to = await self.ensure_member(ctx, data.get("assignedTo"), "assignedTo")

        now = datetime.now(timezone.utc)
        lead_doc = {
            "status": "new",
            "source": "other",
            "priority": 3,
            "tags": [],
            **fields,
            "contactId": contact_id,
            "assignedTo": assigned_to,
            "jobId": None,
            "closedAt": now if fields.get("status") in CLOSED_STATUSES else None,
            "createdBy": ctx.user_id,
            "updatedBy": ctx.user_id,
            "createdAt": now,
            "updatedAt": now,
        }

        result = await self.collection(ctx).insert_one(lead_doc)
        lead_doc["_id"] = result.inserted_id

        logger.info(f"Lead {result.inserted_id} created in org {ctx.organization_id}")
        return self._format_lead(lead_doc)

    async def update_lead(
        self,
        ctx: AuthContext,
        lead_id: str,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Raises:
            ForbiddenException: A limited role tries to reassign the lead
        """
        existing = await self.get_doc(ctx, lead_id)
        changes = {key: to_datetime(updates[key]) for key in LEAD_FIELDS if key in updates}

        if "contactId" in updates:
            changes["contactId"] = await self.ensure_reference(
                ctx, collections.CONTACTS, updates["contactId"], "contactId"
            )

        if "assignedTo" in updates:
            if ctx.limited:
                raise ForbiddenException(
                    message="You cannot reassign leads",
                    code="REASSIGN_FORBIDDEN",
                )
            changes["assignedTo"] = await self.ensure_member(ctx, updates["assignedTo"], "assignedTo")

        now = datetime.now(timezone.utc)
        new_status = changes.get("status")
        if new_status and new_status != existing.get("status"):
            changes["closedAt"] = now if new_status in CLOSED_STATUSES else None

        changes["updatedBy"] = ctx.user_id
        changes["updatedAt"] = now

        result = await self.update_doc(ctx, existing, changes)
        return self._format_lead(result)

    async def claim_for_conversion(self, ctx: AuthContext, lead: Dict[str, Any], job_id: ObjectId) -> None:
        """
        Mark ``lead`` won and point it at ``job_id`` unless another conversion got there first.

        Raises:
            ConflictException: Lead already converted
        """
        now = datetime.now(timezone.utc)
        claimed = await self.collection(ctx).find_one_and_update(
            {"_id": lead["_id"], "jobId": None},
            {
                "$set": {
                    "status": "won",
                    "jobId": job_id,
                    "closedAt": now,
                    "updatedBy": ctx.user_id,
                    "updatedAt": now,
                }
            },
            return_document=ReturnDocument.AFTER,
        )
        if not claimed:
            raise ConflictException(message="Lead has already been converted", code="LEAD_ALREADY_CONVERTED")

    async def release_conversion(self, ctx: AuthContext, lead: Dict[str, Any], job_id: ObjectId) -> None:
        """Undo :meth:`claim_for_conversion` when the job could not be created."""
        await self.collection(ctx).update_one(
            {"_id": lead["_id"], "jobId": job_id},
            {
                "$set": {
                    "status": lead.get("status"),
                    "jobId": None,
                    "closedAt": lead.get("closedAt"),
                    "updatedAt": datetime.now(timezone.utc),
                }
            },
        )

    async def delete_lead(self, ctx: AuthContext, lead_id: str) -> None:
        await self.delete_doc(ctx, lead_id)

    def _format_lead(self, lead: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {key: lead.get(key) for key in LEAD_FIELDS}
        formatted.update({
            "id": str(lead["_id"]),
            "organizationId": str(lead["organizationId"]),
            "contactId": self.id_or_none(lead.get("contactId")),
            "assignedTo": self.id_or_none(lead.get("assignedTo")),
            "jobId": self.id_or_none(lead.get("jobId")),
            "tags": lead.get("tags") or [],
            "closedAt": lead.get("closedAt"),
            "createdBy": self.id_or_none(lead.get("createdBy")),
            "createdAt": lead.get("createdAt"),
            "updatedAt": lead.get("updatedAt"),
        })
        return formatted
