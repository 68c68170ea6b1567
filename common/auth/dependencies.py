"""
Bearer-token helpers for FastAPI.

Example:
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise UnauthorizedException("Authentication required")
"""

from typing import Callable, Optional

from fastapi import Header

from common.auth.base import AuthProvider
from common.utils.exceptions import UnauthorizedException


def extract_bearer_token(authorization: Optional[str], scheme: str = "Bearer") -> Optional[str]:
    """
    Pull the token out of an ``Authorization: Bearer <token>`` header.

    Returns None for a missing header, another scheme or an empty token.
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != scheme.lower():
        return None

    return parts[1] or None


def create_auth_dependency(
    get_auth_provider: Callable[[], AuthProvider],
    header_name: str = "Authorization",
):
    """
    Build a dependency that resolves the verified token claims.

    Args:
        get_auth_provider: Returns the AuthProvider instance

    Returns:
        A FastAPI dependency returning ``(token, claims)``
    """

    async def get_token_claims(
        authorization: Optional[str] = Header(None, alias=header_name),
    ) -> tuple:
        token = extract_bearer_token(authorization)
        if not token:
            raise UnauthorizedException("Authentication required", code="AUTH_REQUIRED")

        try:
            claims = await get_auth_provider().verify_token(token)
        except ValueError as e:
            raise UnauthorizedException(str(e), code="INVALID_TOKEN")

        if not claims.get("sub"):
            raise UnauthorizedException("Token missing user ID", code="INVALID_TOKEN")

        return token, claims

    return get_token_claims
