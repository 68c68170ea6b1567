"""
FastAPI router for the caller's own profile.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from common.utils import success_response
from crm import permissions
from crm.dependencies import require_auth, get_user_service, get_organization_service
from crm.schemas.user import UpdateProfileRequest
from crm.services.organization.organization_service import OrganizationService, is_usable
from crm.services.user.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["user"])


async def _profile(user: dict, user_service: UserService, org_service: OrganizationService) -> dict:
    organization = None
    role = None

    org_id = user.get("currentOrganizationId")
    if org_id:
        membership = await org_service.get_membership(org_id, user["_id"])
        org = await org_service.get_organization_doc(org_id)
        if membership and membership.get("status") == "active" and is_usable(org):
            organization = org_service.format_organization(org)
            role = membership["role"]

    return {
        "user": user_service.format_user(user),
        "organization": organization,
        "role": role,
        "roleLabel": permissions.ROLE_LABELS.get(role) if role else None,
        "permissions": permissions.get_permissions(role) if role else [],
    }


@router.get("/user")
async def get_user(
    user: Annotated[dict, Depends(require_auth)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Current user with current organization and role."""
    return success_response(await _profile(user, user_service, org_service))


@router.patch("/user")
async def update_user(
    body: UpdateProfileRequest,
    user: Annotated[dict, Depends(require_auth)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Update the caller's profile."""
    updated = await user_service.update_profile(str(user["_id"]), body.to_updates())
    return success_response(
        await _profile(updated, user_service, org_service),
        message="Profile updated successfully",
    )
