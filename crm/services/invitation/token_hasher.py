"""
Invitation token generation and hashing.

Only the SHA-256 hash of a token is stored; the raw token travels in the
invitation email link.
"""

import hashlib
import secrets


class TokenHasher:
    """
    Handles token generation and hashing.
    """

    @staticmethod
    def generate_token(length: int = 32) -> str:
        """
        Generate a URL-safe random token.

        Args:
            length: Number of random bytes
        """
        return secrets.token_urlsafe(length)

    @staticmethod
    def hash_token(token: str) -> str:
        """Hex-encoded SHA-256 of a token."""
        return hashlib.sha256(token.strip().encode()).hexdigest()
