"""
FastAPI dependencies for the CRM application.

Provides dependency injection for all services.
"""

import logging
from typing import Annotated, Callable, Optional

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorDatabase

from common.auth import JWTAuth, create_auth_dependency
from common.utils.exceptions import ForbiddenException, RateLimitException
from common.utils.rate_limit import RateLimiter
from crm import permissions
from crm.context import AuthContext
from crm.middleware.auth import AuthMiddleware
from crm.services.user.user_service import UserService
from crm.services.organization.organization_service import OrganizationService
from crm.services.email.email_service import EmailService
from crm.services.invitation.invitation_service import InvitationService
from crm.services.crm import ContactService, LeadService, JobService, EstimateService

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────
# Global service instances
# ─────────────────────────────────────────────────────────────────

# Auth
_auth_provider: Optional[JWTAuth] = None
_auth_middleware: Optional[AuthMiddleware] = None
_rate_limiter: Optional[RateLimiter] = None

# Users and organizations
_user_service: Optional[UserService] = None
_organization_service: Optional[OrganizationService] = None
_email_service: Optional[EmailService] = None
_invitation_service: Optional[InvitationService] = None

# CRM records
_contact_service: Optional[ContactService] = None
_lead_service: Optional[LeadService] = None
_job_service: Optional[JobService] = None
_estimate_service: Optional[EstimateService] = None

_settings = None


# ─────────────────────────────────────────────────────────────────
# Initialization functions
# ─────────────────────────────────────────────────────────────────

def init_auth_services(db: AsyncIOMotorDatabase, settings) -> None:
    """Initialize user, organization and auth services."""
    global _user_service, _organization_service, _auth_provider, _auth_middleware, _rate_limiter

    _user_service = UserService(db=db)
    _organization_service = OrganizationService(
        db=db,
        trial_period_days=settings.TRIAL_PERIOD_DAYS,
    )

    _auth_provider = JWTAuth(
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        access_token_expire_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES,
        get_user_by_email=_user_service.get_user_by_email,
        get_user_by_id=_user_service.get_user_by_id,
        create_user_in_db=_user_service.create_user,
    )

    _auth_middleware = AuthMiddleware(
        auth_provider=_auth_provider,
        user_service=_user_service,
        organization_service=_organization_service,
    )

    _rate_limiter = RateLimiter(
        default_limit=settings.RATE_LIMIT_REQUESTS,
        default_window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    )


def init_invitation_services(db: AsyncIOMotorDatabase, settings) -> None:
    """Initialize email and invitation services."""
    global _email_service, _invitation_service

    _email_service = EmailService(
        mode=settings.EMAIL_MODE,
        from_email=settings.SMTP_FROM_EMAIL,
        from_name=settings.SMTP_FROM_NAME,
        app_url=settings.FRONTEND_URL,
        smtp_host=settings.SMTP_HOST,
        smtp_port=settings.SMTP_PORT,
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        resend_api_key=settings.RESEND_API_KEY,
        log_bodies=settings.is_development(),
    )

    _invitation_service = InvitationService(
        db=db,
        organization_service=_organization_service,
        user_service=_user_service,
        email_service=_email_service,
        expire_days=settings.INVITATION_EXPIRE_DAYS,
    )


def init_crm_services(db: AsyncIOMotorDatabase) -> None:
    """Initialize contact, lead, job and estimate services."""
    global _contact_service, _lead_service, _job_service, _estimate_service

    _contact_service = ContactService(db=db)
    _lead_service = LeadService(db=db)
    _job_service = JobService(db=db, lead_service=_lead_service)
    _estimate_service = EstimateService(db=db)


def init_all_services(db: AsyncIOMotorDatabase, settings) -> None:
    """
    Initialize all services at application startup.

    Args:
        db: MongoDB database connection
        settings: Application settings
    """
    global _settings
    _settings = settings

    init_auth_services(db, settings)
    init_invitation_services(db, settings)
    init_crm_services(db)


# ─────────────────────────────────────────────────────────────────
# Auth getters
# ─────────────────────────────────────────────────────────────────

def get_settings():
    """Get application settings."""
    if _settings is None:
        raise RuntimeError("Services not initialized.")
    return _settings


def get_auth_provider() -> JWTAuth:
    """Get auth provider instance."""
    if _auth_provider is None:
        raise RuntimeError("Auth services not initialized.")
    return _auth_provider


def get_auth_middleware() -> AuthMiddleware:
    """Get auth middleware instance."""
    if _auth_middleware is None:
        raise RuntimeError("Auth services not initialized.")
    return _auth_middleware


def get_rate_limiter() -> RateLimiter:
    """Get rate limiter instance."""
    if _rate_limiter is None:
        raise RuntimeError("Auth services not initialized.")
    return _rate_limiter


async def require_auth(
    request: Request,
    auth_middleware: Annotated[AuthMiddleware, Depends(get_auth_middleware)]
) -> dict:
    """Dependency that requires authentication."""
    return await auth_middleware.require_auth(request)


async def require_organization(
    request: Request,
    auth_middleware: Annotated[AuthMiddleware, Depends(get_auth_middleware)]
) -> AuthContext:
    """Dependency that requires authentication inside the current organization."""
    return await auth_middleware.require_organization(request)


# Verified (token, claims) for endpoints that only need the token itself
get_token_claims = create_auth_dependency(get_auth_provider)


def require_permission(resource: str, action: str) -> Callable:
    """
    Build a dependency that requires ``resource:action`` in the current organization.

    Example:
        @router.post("", dependencies=[Depends(require_permission("leads", "create"))])
    """

    async def dependency(ctx: AuthContext = Depends(require_organization)) -> AuthContext:
        if not ctx.can(resource, action):
            logger.info(f"User {ctx.user_id} ({ctx.role}) denied {resource}:{action}")
            raise ForbiddenException(
                message="Insufficient permissions",
                code="INSUFFICIENT_PERMISSIONS",
                details={"required": f"{resource}:{action}"},
            )
        return ctx

    return dependency


def require_roles(*roles: str) -> Callable:
    """Build a dependency that requires one of ``roles`` in the current organization."""

    async def dependency(ctx: AuthContext = Depends(require_organization)) -> AuthContext:
        if not permissions.has_role(ctx.role, roles):
            raise ForbiddenException(
                message="Insufficient permissions",
                code="INSUFFICIENT_PERMISSIONS",
                details={"requiredRoles": list(roles)},
            )
        return ctx

    return dependency


def get_client_ip(request: Request) -> str:
    """Extract client IP address from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip
    if request.client:
        return request.client.host
    return "0.0.0.0"


# Windows are pruned once this many identifiers are tracked
RATE_LIMIT_CLEANUP_THRESHOLD = 10000


def _enforce_rate_limit(limiter: RateLimiter, identifier: str, limit: Optional[int] = None) -> None:
    if len(limiter) > RATE_LIMIT_CLEANUP_THRESHOLD:
        limiter.cleanup()
    if not limiter.check(identifier, limit=limit):
        raise RateLimitException(retry_after=limiter.retry_after(identifier))


def rate_limit(scope: str, limit: Optional[int] = None) -> Callable:
    """
    Build a dependency counting requests per client IP under ``scope``.

    Raises RateLimitException (429 with Retry-After) once the window is full.
    """

    async def dependency(
        request: Request,
        limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    ) -> None:
        _enforce_rate_limit(limiter, f"{scope}:{get_client_ip(request)}", limit)

    return dependency


def auth_rate_limit() -> Callable:
    """Rate limit for credential endpoints, using AUTH_RATE_LIMIT_REQUESTS."""

    async def dependency(
        request: Request,
        limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    ) -> None:
        _enforce_rate_limit(
            limiter,
            f"auth:{get_client_ip(request)}",
            get_settings().AUTH_RATE_LIMIT_REQUESTS,
        )

    return dependency


# ─────────────────────────────────────────────────────────────────
# Service getters
# ─────────────────────────────────────────────────────────────────

def get_user_service() -> UserService:
    """Get user service instance."""
    if _user_service is None:
        raise RuntimeError("User services not initialized.")
    return _user_service


def get_organization_service() -> OrganizationService:
    """Get organization service instance."""
    if _organization_service is None:
        raise RuntimeError("Organization services not initialized.")
    return _organization_service


def get_invitation_service() -> InvitationService:
    """Get invitation service instance."""
    if _invitation_service is None:
        raise RuntimeError("Invitation services not initialized.")
    return _invitation_service


def get_contact_service() -> ContactService:
    if _contact_service is None:
        raise RuntimeError("CRM services not initialized.")
    return _contact_service


def get_lead_service() -> LeadService:
    if _lead_service is None:
        raise RuntimeError("CRM services not initialized.")
    return _lead_service


def get_job_service() -> JobService:
    if _job_service is None:
        raise RuntimeError("CRM services not initialized.")
    return _job_service


def get_estimate_service() -> EstimateService:
    if _estimate_service is None:
        raise RuntimeError("CRM services not initialized.")
    return _estimate_service
