"""
FastAPI router for leads, including conversion into jobs.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import paginated_response, success_response
from crm.context import AuthContext
from crm.dependencies import require_permission, get_lead_service, get_job_service
from crm.schemas.leads import CreateLeadRequest, UpdateLeadRequest, ConvertLeadRequest
from crm.services.crm import LeadService, JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leads", tags=["leads"])


@router.get("")
async def list_leads(
    ctx: Annotated[AuthContext, Depends(require_permission("leads", "read"))],
    lead_service: Annotated[LeadService, Depends(get_lead_service)],
    status: Optional[str] = None,
    division: Optional[str] = None,
    source: Optional[str] = None,
    assignedTo: Optional[str] = None,
    contactId: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
):
    """List leads, newest first. Limited roles only see their own."""
    leads, total = await lead_service.list_leads(
        ctx,
        status=status,
        division=division,
        source=source,
        assigned_to=assignedTo,
        contact_id=contactId,
        page=page,
        limit=limit,
    )
    return paginated_response(leads, total, page, limit)


@router.post("", status_code=201)
async def create_lead(
    body: CreateLeadRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("leads", "create"))],
    lead_service: Annotated[LeadService, Depends(get_lead_service)],
):
    lead = await lead_service.create_lead(ctx, body.model_dump(exclude_unset=True))
    return success_response(lead, message="Lead created")


@router.get("/{lead_id}")
async def get_lead(
    lead_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("leads", "read"))],
    lead_service: Annotated[LeadService, Depends(get_lead_service)],
):
    return success_response(await lead_service.get_lead(ctx, lead_id))


@router.patch("/{lead_id}")
async def update_lead(
    lead_id: str,
    body: UpdateLeadRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("leads", "update"))],
    lead_service: Annotated[LeadService, Depends(get_lead_service)],
):
    lead = await lead_service.update_lead(ctx, lead_id, body.model_dump(exclude_unset=True))
    return success_response(lead, message="Lead updated")


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("leads", "delete"))],
    lead_service: Annotated[LeadService, Depends(get_lead_service)],
):
    await lead_service.delete_lead(ctx, lead_id)
    return success_response(message="Lead deleted")


@router.post("/{lead_id}/convert", status_code=201)
async def convert_lead(
    lead_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("jobs", "create"))],
    job_service: Annotated[JobService, Depends(get_job_service)],
    body: Optional[ConvertLeadRequest] = None,
):
    """Create a job from a lead and mark the lead won."""
    overrides = body.model_dump(exclude_unset=True) if body else {}
    job = await job_service.create_from_lead(ctx, lead_id, overrides)
    return success_response(job, message="Lead converted to job")
