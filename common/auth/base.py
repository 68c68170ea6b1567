"""
Authentication provider contract.

The CRM only depends on this interface, so the password/JWT provider can
be replaced (for example by a hosted identity service) without touching
the routers.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Any


class AuthProvider(ABC):
    """Abstract authentication provider."""

    @abstractmethod
    async def create_user(self, email: str, password: str, **kwargs: Any) -> str:
        """
        Create a user account.

        Returns:
            The created user's ID

        Raises:
            ValueError: If the email is already registered
        """

    @abstractmethod
    async def verify_credentials(self, email: str, password: str) -> Dict[str, Any]:
        """
        Check an email/password pair.

        Returns:
            The stored user without its password hash

        Raises:
            ValueError: If credentials are invalid
        """

    @abstractmethod
    async def create_token(self, user_id: str, **claims: Any) -> str:
        """Issue an access token for a user."""

    @abstractmethod
    async def verify_token(self, token: str) -> Dict[str, Any]:
        """
        Decode an access token.

        Raises:
            ValueError: If the token is invalid, expired or revoked
        """

    @abstractmethod
    async def revoke_token(self, token: str) -> None:
        """Invalidate a token before its expiry."""

    @abstractmethod
    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Load a user, or None."""
