"""
Authentication middleware for protected routes.

Validates bearer tokens, then resolves the caller's current organization
and membership into an AuthContext.
"""

import logging
from typing import Optional

from fastapi import Request

from common.auth import AuthProvider, extract_bearer_token
from common.utils.exceptions import UnauthorizedException, ForbiddenException
from crm.context import AuthContext
from crm.services.organization.organization_service import OrganizationService, is_usable
from crm.services.user.user_service import UserService

logger = logging.getLogger(__name__)

BLOCKED_USER_STATUSES = ("suspended", "inactive")


class AuthMiddleware:
    """
    Middleware that validates the token and attaches user context to request.
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        user_service: UserService,
        organization_service: OrganizationService,
    ):
        """
        Initialize AuthMiddleware.

        Args:
            auth_provider: For token verification
            user_service: For loading the token's user
            organization_service: For current organization and membership
        """
        self._auth_provider = auth_provider
        self._user_service = user_service
        self._org_service = organization_service

    async def require_auth(self, request: Request) -> dict:
        """
        Validate request is authenticated.

        Args:
            request: HTTP request object

        Returns:
            User dict attached to request

        Raises:
            UnauthorizedException: No header, invalid token, or unknown user
            ForbiddenException: User is suspended or inactive

        Side Effects:
            - Attaches user to request.state.user
            - Attaches raw token to request.state.token
        """
        token = self._extract_token(request)

        if not token:
            raise UnauthorizedException(
                message="Authentication required",
                code="AUTH_REQUIRED"
            )

        try:
            claims = await self._auth_provider.verify_token(token)
        except ValueError:
            raise UnauthorizedException(
                message="Invalid or expired token",
                code="INVALID_TOKEN"
            )

        user = await self._user_service.get_user_by_id(claims.get("sub") or "")
        if not user:
            raise UnauthorizedException(
                message="User not found",
                code="INVALID_TOKEN"
            )

        user_status = user.get("status")
        if user_status in BLOCKED_USER_STATUSES:
            raise ForbiddenException(
                message=f"Account {user_status}",
                code="ACCOUNT_SUSPENDED" if user_status == "suspended" else "ACCOUNT_INACTIVE"
            )

        request.state.user = user
        request.state.token = token

        return user

    async def require_organization(self, request: Request) -> AuthContext:
        """
        Validate request is authenticated inside a usable organization.

        Raises:
            UnauthorizedException: As for require_auth
            ForbiddenException: No current organization, inactive membership,
                or organization neither active nor in trial

        Side Effects:
            - Attaches AuthContext to request.state.auth
        """
        user = await self.require_auth(request)

        org_id = user.get("currentOrganizationId")
        if not org_id:
            raise ForbiddenException(
                message="No organization selected",
                code="NO_ORGANIZATION"
            )

        membership = await self._org_service.get_membership(org_id, user["_id"])
        if not membership or membership.get("status") != "active":
            raise ForbiddenException(
                message="You are not an active member of this organization",
                code="MEMBERSHIP_INACTIVE"
            )

        org = await self._org_service.get_organization_doc(org_id)
        if not is_usable(org):
            raise ForbiddenException(
                message="Organization is not active",
                code="ORGANIZATION_INACTIVE"
            )

        ctx = AuthContext(
            user=user,
            organization=org,
            membership=membership,
            token=request.state.token,
        )
        request.state.auth = ctx

        return ctx

    def _extract_token(self, request: Request) -> Optional[str]:
        """Bearer token from the Authorization header, if well formed."""
        return extract_bearer_token(request.headers.get("Authorization"))
