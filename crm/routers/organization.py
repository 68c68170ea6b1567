"""
FastAPI router for Organization system endpoints.

Provides endpoints for the current organization and its members.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response, list_response
from crm.context import AuthContext
from crm.dependencies import require_organization, require_permission, get_organization_service
from crm.schemas.organization import UpdateOrganizationRequest, UpdateMemberRequest
from crm.services.organization.organization_service import OrganizationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("/current")
async def get_current_organization(
    ctx: Annotated[AuthContext, Depends(require_organization)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Get the caller's current organization."""
    return success_response({
        "organization": org_service.format_organization(ctx.organization),
        "role": ctx.role,
    })


@router.patch("/current")
async def update_current_organization(
    body: UpdateOrganizationRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("organizations", "update"))],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Update organization profile and settings."""
    updates = body.model_dump(exclude_unset=True)
    if body.settings is not None:
        updates["settings"] = body.settings.model_dump(exclude_none=True)

    org = await org_service.update_organization(ctx.organization_id, updates)
    return success_response({"organization": org}, message="Organization updated successfully")


@router.get("/current/stats")
async def get_organization_stats(
    ctx: Annotated[AuthContext, Depends(require_organization)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Dashboard counters for the current organization."""
    stats = await org_service.get_organization_stats(ctx.organization_id)
    return success_response({"stats": stats})


@router.get("/current/members")
async def get_members(
    ctx: Annotated[AuthContext, Depends(require_permission("users", "read"))],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Members of the current organization with user details."""
    members = await org_service.get_members(ctx.organization_id)
    return list_response(members)


@router.patch("/current/members/{user_id}")
async def update_member(
    user_id: str,
    body: UpdateMemberRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("users", "update"))],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Change a member's role or status."""
    member = await org_service.update_member(
        organization_id=ctx.organization_id,
        target_user_id=user_id,
        acting_user_id=str(ctx.user_id),
        acting_role=ctx.role,
        role=body.role,
        status=body.status,
    )
    return success_response({"member": member}, message="Member updated successfully")
