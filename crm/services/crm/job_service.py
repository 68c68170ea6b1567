"""
Job service.

Contracted work. Job numbers are allocated per organization; field
management users only see jobs they manage and may only change a job's
status and notes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId

from common.utils.exceptions import BadRequestException, ConflictException, ForbiddenException
from crm import permissions
from crm.context import AuthContext
from crm.database import collections, optional_object_id
from crm.services.crm.base import TenantScopedService, to_datetime
from crm.services.crm.lead_service import LeadService
from crm.services.crm.numbering import next_number

logger = logging.getLogger(__name__)

JOB_FIELDS = (
    "title",
    "description",
    "division",
    "status",
    "contractValue",
    "startDate",
    "scheduledCompletion",
    "actualCompletion",
    "addressLine1",
    "city",
    "state",
    "zipCode",
    "notes",
    "tags",
)

FIELD_EDITABLE = frozenset({"status", "notes"})


class JobService(TenantScopedService):
    """
    Manages jobs.
    """

    collection_name = collections.JOBS
    resource_label = "Job"
    not_found_code = "JOB_NOT_FOUND"

    def __init__(self, db, lead_service: LeadService):
        super().__init__(db)
        self._lead_service = lead_service

    def visibility_filter(self, ctx: AuthContext) -> Dict[str, Any]:
        if ctx.limited:
            return {"$or": [{"projectManagerId": ctx.user_id}, {"fieldManagerId": ctx.user_id}]}
        return {}

    async def list_jobs(
        self,
        ctx: AuthContext,
        status: Optional[str] = None,
        division: Optional[str] = None,
        contact_id: Optional[str] = None,
        page: int = 1,
        limit: int = 25,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if division:
            query["division"] = division
        if contact_id:
            query["contactId"] = optional_object_id(contact_id, "contactId")

        docs, total = await self.list_docs(ctx, query, page, limit)
        return [self._format_job(doc) for doc in docs], total

    async def get_job(self, ctx: AuthContext, job_id: str) -> Dict[str, Any]:
        return self._format_job(await self.get_doc(ctx, job_id))

    async def create_job(
        self,
        ctx: AuthContext,
        data: Dict[str, Any],
        job_id: Optional[ObjectId] = None,
    ) -> Dict[str, Any]:
        """
        ``job_id`` preassigns the document id, as lead conversion does.

        Raises:
            BadRequestException: Missing contact or a reference outside the organization
        """
        if not data.get("contactId"):
            raise BadRequestException(message="contactId is required", code="MISSING_FIELDS")

        fields = {key: to_datetime(data[key]) for key in JOB_FIELDS if key in data}
        refs = {
            "contactId": await self.ensure_reference(ctx, collections.CONTACTS, data.get("contactId"), "contactId"),
            "leadId": await self.ensure_reference(ctx, collections.LEADS, data.get("leadId"), "leadId"),
            "projectManagerId": await self.ensure_member(ctx, data.get("projectManagerId"), "projectManagerId"),
            "fieldManagerId": await self.ensure_member(ctx, data.get("fieldManagerId"), "fieldManagerId"),
        }

        now = datetime.now(timezone.utc)
        job_doc = {
            "status": "pending",
            "tags": [],
            **fields,
            **refs,
            "jobNumber": await next_number(self.scoped(ctx, collections.COUNTERS), "J"),
            "createdBy": ctx.user_id,
            "updatedBy": ctx.user_id,
            "createdAt": now,
            "updatedAt": now,
        }
        if job_doc["status"] == "completed" and not job_doc.get("actualCompletion"):
            job_doc["actualCompletion"] = now
        if job_id is not None:
            job_doc["_id"] = job_id

        result = await self.collection(ctx).insert_one(job_doc)
        job_doc["_id"] = result.inserted_id

        logger.info(f"Job {job_doc['jobNumber']} created in org {ctx.organization_id}")
        return self._format_job(job_doc)

    async def create_from_lead(
        self,
        ctx: AuthContext,
        lead_id: str,
        overrides: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Convert a lead into a job and mark the lead won.

        Raises:
            ConflictException: Lead already converted
            BadRequestException: Lead has no contact and none was given
        """
        lead = await self._lead_service.get_doc(ctx, lead_id)
        if lead.get("jobId"):
            raise ConflictException(message="Lead has already been converted", code="LEAD_ALREADY_CONVERTED")

        data = {
            "title": lead.get("title"),
            "description": lead.get("description"),
            "division": lead.get("division"),
            "contractValue": lead.get("estimatedValue"),
            "addressLine1": lead.get("addressLine1"),
            "city": lead.get("city"),
            "state": lead.get("state"),
            "zipCode": lead.get("zipCode"),
            "tags": lead.get("tags") or [],
            "contactId": self.id_or_none(lead.get("contactId")),
            **{key: value for key, value in overrides.items() if value is not None},
            "leadId": str(lead["_id"]),
        }

        job_id = ObjectId()
        await self._lead_service.claim_for_conversion(ctx, lead, job_id)
        try:
            job = await self.create_job(ctx, data, job_id=job_id)
        except Exception:
            await self._lead_service.release_conversion(ctx, lead, job_id)
            raise

        logger.info(f"Lead {lead_id} converted to job {job['jobNumber']}")
        return job

    async def update_job(
        self,
        ctx: AuthContext,
        job_id: str,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Raises:
            ForbiddenException: Field management touching anything but status/notes
        """
        existing = await self.get_doc(ctx, job_id)

        if ctx.role == permissions.FIELD_MANAGEMENT and set(updates) - FIELD_EDITABLE:
            raise ForbiddenException(
                message="Field management can only update job status and notes",
                code="FIELD_UPDATE_RESTRICTED",
            )

        changes = {key: to_datetime(updates[key]) for key in JOB_FIELDS if key in updates}

        if "contactId" in updates:
            if not updates["contactId"]:
                raise BadRequestException(message="contactId is required", code="MISSING_FIELDS")
            changes["contactId"] = await self.ensure_reference(
                ctx, collections.CONTACTS, updates["contactId"], "contactId"
            )
        if "leadId" in updates:
            changes["leadId"] = await self.ensure_reference(ctx, collections.LEADS, updates["leadId"], "leadId")
        for field in ("projectManagerId", "fieldManagerId"):
            if field in updates:
                changes[field] = await self.ensure_member(ctx, updates[field], field)

        now = datetime.now(timezone.utc)
        if (
            changes.get("status") == "completed"
            and existing.get("status") != "completed"
            and not changes.get("actualCompletion")
            and not existing.get("actualCompletion")
        ):
            changes["actualCompletion"] = now

        changes["updatedBy"] = ctx.user_id
        changes["updatedAt"] = now

        result = await self.update_doc(ctx, existing, changes)
        return self._format_job(result)

    async def delete_job(self, ctx: AuthContext, job_id: str) -> None:
        await self.delete_doc(ctx, job_id)

    def _format_job(self, job: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {key: job.get(key) for key in JOB_FIELDS}
        formatted.update({
            "id": str(job["_id"]),
            "organizationId": str(job["organizationId"]),
            "jobNumber": job.get("jobNumber"),
            "contactId": self.id_or_none(job.get("contactId")),
            "leadId": self.id_or_none(job.get("leadId")),
            "projectManagerId": self.id_or_none(job.get("projectManagerId")),
            "fieldManagerId": self.id_or_none(job.get("fieldManagerId")),
            "tags": job.get("tags") or [],
            "createdBy": self.id_or_none(job.get("createdBy")),
            "createdAt": job.get("createdAt"),
            "updatedAt": job.get("updatedAt"),
        })
        return formatted
