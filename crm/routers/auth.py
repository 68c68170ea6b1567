"""
FastAPI router for Auth system endpoints.

Provides account, organization registration, invitation and
organization-switching endpoints.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.auth import JWTAuth
from common.utils import list_response, success_response, validate_password
from common.utils.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    UnauthorizedException,
    ValidationException,
)
from crm import permissions
from crm.context import AuthContext
from crm.dependencies import (
    auth_rate_limit,
    get_auth_provider,
    get_invitation_service,
    get_organization_service,
    get_settings,
    get_token_claims,
    get_user_service,
    rate_limit,
    require_auth,
    require_organization,
    require_roles,
)
from crm.schemas.auth import (
    AcceptInvitationRequest,
    InviteUserRequest,
    LoginRequest,
    RegisterOrganizationRequest,
    SignupRequest,
    SwitchOrganizationRequest,
)
from crm.services.invitation.invitation_service import InvitationService
from crm.services.organization.organization_service import OrganizationService
from crm.services.user.user_service import UserService
from crm.validation import clean_optional, require_fields, validate_email, validate_slug

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# =============================================================================
# Accounts
# =============================================================================

@router.post("/signup", status_code=201, dependencies=[Depends(auth_rate_limit())])
async def signup(
    body: SignupRequest,
    auth_provider: Annotated[JWTAuth, Depends(get_auth_provider)],
    user_service: Annotated[UserService, Depends(get_user_service)],
):
    """
    Create a user account.

    The account has no organization until it registers one or accepts an
    invitation.
    """
    is_valid, errors = validate_password(body.password)
    if not is_valid:
        raise ValidationException(
            message="Password does not meet requirements",
            code="WEAK_PASSWORD",
            errors=errors,
        )

    email = body.email.lower()

    try:
        user_id = await auth_provider.create_user(
            email,
            body.password,
            first_name=body.firstName,
            last_name=body.lastName,
        )
    except ValueError:
        raise ConflictException(
            message="An account with this email already exists",
            code="EMAIL_EXISTS",
        )

    user = await user_service.get_user_by_id(user_id)
    token = await auth_provider.create_token(user_id, email=email)

    logger.info(f"User signed up: {user_id}")

    return success_response({
        "token": token,
        "user": user_service.format_user(user),
        "organizations": [],
    })


@router.post("/login", dependencies=[Depends(auth_rate_limit())])
async def login(
    body: LoginRequest,
    auth_provider: Annotated[JWTAuth, Depends(get_auth_provider)],
    user_service: Annotated[UserService, Depends(get_user_service)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Exchange email and password for a token."""
    try:
        user = await auth_provider.verify_credentials(body.email.lower(), body.password)
    except ValueError:
        raise UnauthorizedException(
            message="Invalid email or password",
            code="INVALID_CREDENTIALS",
        )

    if user.get("status") in ("suspended", "inactive"):
        raise ForbiddenException(
            message=f"Account {user['status']}",
            code="ACCOUNT_SUSPENDED" if user["status"] == "suspended" else "ACCOUNT_INACTIVE",
        )

    user_id = str(user["_id"])
    await user_service.record_login(user_id)
    token = await auth_provider.create_token(user_id, email=user["email"])
    organizations = await org_service.get_user_org_info(user_id)

    logger.info(f"User logged in: {user_id}")

    return success_response({
        "token": token,
        "user": user_service.format_user(user),
        "organizations": organizations,
    })


@router.post("/logout")
async def logout(
    token_claims: Annotated[tuple, Depends(get_token_claims)],
    auth_provider: Annotated[JWTAuth, Depends(get_auth_provider)],
):
    """Revoke the presented token."""
    token, claims = token_claims
    await auth_provider.revoke_token(token)

    logger.info(f"User logged out: {claims.get('sub')}")

    return success_response(message="Logged out successfully")


# =============================================================================
# Organization registration
# =============================================================================

@router.post("/register-organization", status_code=201)
async def register_organization(
    body: RegisterOrganizationRequest,
    user: Annotated[dict, Depends(require_auth)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """
    Register a new organization with the caller as owner.

    The organization starts in trial and becomes the caller's current one.
    """
    data = body.model_dump()
    require_fields(data, [
        "organizationName",
        "organizationSlug",
        "ownerFirstName",
        "ownerLastName",
        "ownerEmail",
    ])

    slug = validate_slug(body.organizationSlug)
    owner_email = validate_email(body.ownerEmail)

    if owner_email != (user.get("email") or "").lower():
        raise BadRequestException(
            message="Owner email must match your account email",
            code="EMAIL_MISMATCH",
        )

    org = await org_service.register_organization(
        user_id=str(user["_id"]),
        organization_name=body.organizationName,
        organization_slug=slug,
        owner_first_name=body.ownerFirstName,
        owner_last_name=body.ownerLastName,
        phone=clean_optional(body.phone),
        address_line_1=clean_optional(body.addressLine1),
        city=clean_optional(body.city),
        state=clean_optional(body.state),
        zip_code=clean_optional(body.zipCode),
    )

    return success_response(
        {"organizationId": org["id"], "organization": org},
        message="Organization registered successfully",
    )


# =============================================================================
# Invitations
# =============================================================================

@router.post("/invite-user", status_code=201)
async def invite_user(
    body: InviteUserRequest,
    ctx: Annotated[AuthContext, Depends(require_roles(*permissions.INVITER_ROLES))],
    invitation_service: Annotated[InvitationService, Depends(get_invitation_service)],
):
    """
    Invite someone into the current organization.

    Who may invite whom follows the invitation policy; the email is sent
    best-effort.
    """
    require_fields(body.model_dump(), ["email", "role"])
    email = validate_email(body.email)

    invitation, token = await invitation_service.create_invitation(
        organization=ctx.organization,
        inviter=ctx.user,
        inviter_role=ctx.role,
        email=email,
        role=body.role,
    )

    data = {"invitation": invitation}
    if get_settings().is_development():
        data["invitationToken"] = token

    return success_response(data, message="Invitation sent successfully")


@router.get("/invite-user")
async def list_invitations(
    ctx: Annotated[AuthContext, Depends(require_roles(*permissions.INVITER_ROLES))],
    invitation_service: Annotated[InvitationService, Depends(get_invitation_service)],
):
    """Pending invitations of the current organization."""
    invitations = await invitation_service.list_pending(ctx.organization_id)
    return list_response(invitations)


@router.delete("/invite-user/{invitation_id}")
async def revoke_invitation(
    invitation_id: str,
    ctx: Annotated[AuthContext, Depends(require_roles(*permissions.INVITER_ROLES))],
    invitation_service: Annotated[InvitationService, Depends(get_invitation_service)],
):
    """Revoke a pending invitation."""
    await invitation_service.revoke_invitation(ctx.organization_id, invitation_id)
    return success_response(message="Invitation revoked")


@router.get("/accept-invitation", dependencies=[Depends(rate_limit("invitation"))])
async def get_invitation(
    invitation_service: Annotated[InvitationService, Depends(get_invitation_service)],
    token: Optional[str] = Query(None),
):
    """Public invitation details for the acceptance page."""
    details = await invitation_service.get_invitation_details(token)
    return success_response({"invitation": details})


@router.post("/accept-invitation")
async def accept_invitation(
    body: AcceptInvitationRequest,
    user: Annotated[dict, Depends(require_auth)],
    invitation_service: Annotated[InvitationService, Depends(get_invitation_service)],
):
    """Join the inviting organization as the authenticated user."""
    require_fields(body.model_dump(), ["invitationToken", "firstName", "lastName"])

    result = await invitation_service.accept_invitation(
        user=user,
        token=body.invitationToken,
        first_name=body.firstName,
        last_name=body.lastName,
        phone=clean_optional(body.phone),
        mobile=clean_optional(body.mobile),
        timezone_name=clean_optional(body.timezone),
    )

    return success_response(result, message="Invitation accepted successfully")


@router.get("/validate-invitation", dependencies=[Depends(rate_limit("invitation"))])
async def validate_invitation(
    invitation_service: Annotated[InvitationService, Depends(get_invitation_service)],
    token: Optional[str] = Query(None),
):
    """Check an invitation token before signup."""
    details = await invitation_service.validate_invitation(token)
    return success_response({"valid": True, **details})


# =============================================================================
# Organization switching
# =============================================================================

@router.get("/switch-organization")
async def list_organizations(
    user: Annotated[dict, Depends(require_auth)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Every organization the caller belongs to, and the current one."""
    rows = await org_service.get_user_org_info(str(user["_id"]))
    current = next((row for row in rows if row["isCurrent"]), None)

    return success_response({
        "currentOrganization": current,
        "allOrganizations": rows,
    })


@router.post("/switch-organization")
async def switch_organization(
    body: SwitchOrganizationRequest,
    user: Annotated[dict, Depends(require_auth)],
    org_service: Annotated[OrganizationService, Depends(get_organization_service)],
):
    """Make another organization the caller's current one."""
    if not isinstance(body.organization_id, str) or not body.organization_id.strip():
        raise BadRequestException(
            message="organization_id is required and must be a string",
            code="INVALID_ORGANIZATION_ID",
        )

    result = await org_service.switch_organization(str(user["_id"]), body.organization_id.strip())
    return success_response(result, message="Organization switched successfully")
