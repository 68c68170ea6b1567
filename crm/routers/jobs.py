"""
FastAPI router for jobs.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import paginated_response, success_response
from crm.context import AuthContext
from crm.dependencies import require_permission, get_job_service
from crm.schemas.jobs import CreateJobRequest, UpdateJobRequest
from crm.services.crm import JobService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("")
async def list_jobs(
    ctx: Annotated[AuthContext, Depends(require_permission("jobs", "read"))],
    job_service: Annotated[JobService, Depends(get_job_service)],
    status: Optional[str] = None,
    division: Optional[str] = None,
    contactId: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
):
    """List jobs, newest first. Field management only sees jobs they manage."""
    jobs, total = await job_service.list_jobs(
        ctx,
        status=status,
        division=division,
        contact_id=contactId,
        page=page,
        limit=limit,
    )
    return paginated_response(jobs, total, page, limit)


@router.post("", status_code=201)
async def create_job(
    body: CreateJobRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("jobs", "create"))],
    job_service: Annotated[JobService, Depends(get_job_service)],
):
    job = await job_service.create_job(ctx, body.model_dump(exclude_unset=True))
    return success_response(job, message="Job created")


@router.get("/{job_id}")
async def get_job(
    job_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("jobs", "read"))],
    job_service: Annotated[JobService, Depends(get_job_service)],
):
    return success_response(await job_service.get_job(ctx, job_id))


@router.patch("/{job_id}")
async def update_job(
    job_id: str,
    body: UpdateJobRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("jobs", "update"))],
    job_service: Annotated[JobService, Depends(get_job_service)],
):
    job = await job_service.update_job(ctx, job_id, body.model_dump(exclude_unset=True))
    return success_response(job, message="Job updated")


@router.delete("/{job_id}")
async def delete_job(
    job_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("jobs", "delete"))],
    job_service: Annotated[JobService, Depends(get_job_service)],
):
    await job_service.delete_job(ctx, job_id)
    return success_response(message="Job deleted")
