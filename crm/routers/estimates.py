"""
FastAPI router for estimates.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import paginated_response, success_response
from crm.context import AuthContext
from crm.dependencies import require_permission, get_estimate_service
from crm.schemas.estimates import CreateEstimateRequest, UpdateEstimateRequest, EstimateStatusRequest
from crm.services.crm import EstimateService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/estimates", tags=["estimates"])


@router.get("")
async def list_estimates(
    ctx: Annotated[AuthContext, Depends(require_permission("estimates", "read"))],
    estimate_service: Annotated[EstimateService, Depends(get_estimate_service)],
    status: Optional[str] = None,
    contactId: Optional[str] = None,
    leadId: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
):
    """List estimates, newest first. Estimators only see their own."""
    estimates, total = await estimate_service.list_estimates(
        ctx,
        status=status,
        contact_id=contactId,
        lead_id=leadId,
        page=page,
        limit=limit,
    )
    return paginated_response(estimates, total, page, limit)


@router.post("", status_code=201)
async def create_estimate(
    body: CreateEstimateRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("estimates", "create"))],
    estimate_service: Annotated[EstimateService, Depends(get_estimate_service)],
):
    estimate = await estimate_service.create_estimate(ctx, body.model_dump(exclude_unset=True))
    return success_response(estimate, message="Estimate created")


@router.get("/{estimate_id}")
async def get_estimate(
    estimate_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("estimates", "read"))],
    estimate_service: Annotated[EstimateService, Depends(get_estimate_service)],
):
    return success_response(await estimate_service.get_estimate(ctx, estimate_id))


@router.patch("/{estimate_id}")
async def update_estimate(
    estimate_id: str,
    body: UpdateEstimateRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("estimates", "update"))],
    estimate_service: Annotated[EstimateService, Depends(get_estimate_service)],
):
    """Edit an estimate; accepted and rejected estimates are locked."""
    estimate = await estimate_service.update_estimate(ctx, estimate_id, body.model_dump(exclude_unset=True))
    return success_response(estimate, message="Estimate updated")


@router.post("/{estimate_id}/status")
async def change_estimate_status(
    estimate_id: str,
    body: EstimateStatusRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("estimates", "update"))],
    estimate_service: Annotated[EstimateService, Depends(get_estimate_service)],
):
    estimate = await estimate_service.change_status(ctx, estimate_id, body.status)
    return success_response(estimate, message=f"Estimate marked {body.status}")


@router.delete("/{estimate_id}")
async def delete_estimate(
    estimate_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("estimates", "delete"))],
    estimate_service: Annotated[EstimateService, Depends(get_estimate_service)],
):
    await estimate_service.delete_estimate(ctx, estimate_id)
    return success_response(message="Estimate deleted")
