"""
JWT + bcrypt authentication provider.

Tokens are signed with python-jose; passwords are SHA-256 pre-hashed and
then bcrypt-hashed. Storage is delegated to async callbacks so the
provider has no database dependency of its own.

Example:
    auth = JWTAuth(
        secret=settings.JWT_SECRET,
        get_user_by_email=user_service.get_user_by_email,
        get_user_by_id=user_service.get_user_by_id,
        create_user_in_db=user_service.create_user,
    )
    token = await auth.create_token(user_id, email=email)
"""

import base64
import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional, Callable, Awaitable

import bcrypt as bcrypt_lib
from jose import jwt, JWTError

from common.auth.base import AuthProvider

logger = logging.getLogger(__name__)

UserLookupCallback = Callable[[str], Awaitable[Optional[Dict[str, Any]]]]
UserCreateCallback = Callable[[str, str, Dict[str, Any]], Awaitable[str]]


class JWTAuth(AuthProvider):
    """JWT + bcrypt authentication provider."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 720,
        get_user_by_email: Optional[UserLookupCallback] = None,
        get_user_by_id: Optional[UserLookupCallback] = None,
        create_user_in_db: Optional[UserCreateCallback] = None,
    ):
        """
        Args:
            secret: Secret key for JWT signing
            algorithm: JWT algorithm
            access_token_expire_minutes: Token lifetime
            get_user_by_email: Returns the stored user (with passwordHash) or None
            get_user_by_id: Returns the stored user or None
            create_user_in_db: Persists a user, returns its id
        """
        if not secret:
            raise ValueError("JWT secret must not be empty")

        self.secret = secret
        self.algorithm = algorithm
        self.access_token_expire = timedelta(minutes=access_token_expire_minutes)

        self._get_user_by_email = get_user_by_email
        self._get_user_by_id_cb = get_user_by_id
        self._create_user_in_db = create_user_in_db

        # Process-local; tokens revoked on one worker stay valid on others until expiry.
        # Maps token to its exp timestamp so expired entries can be dropped.
        self._revoked_tokens: Dict[str, float] = {}

    def _prehash_password(self, password: str) -> str:
        """SHA-256 pre-hash so passwords longer than bcrypt's 72 bytes still count."""
        sha256_hash = hashlib.sha256(password.encode("utf-8")).digest()
        return base64.b64encode(sha256_hash).decode("utf-8")

    def hash_password(self, password: str) -> str:
        prehashed = self._prehash_password(password)
        return bcrypt_lib.hashpw(prehashed.encode("utf-8"), bcrypt_lib.gensalt()).decode("utf-8")

    def verify_password(self, password: str, hashed: str) -> bool:
        prehashed = self._prehash_password(password)
        try:
            return bcrypt_lib.checkpw(prehashed.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    async def create_user(self, email: str, password: str, **kwargs: Any) -> str:
        if not self._create_user_in_db:
            raise NotImplementedError("create_user_in_db callback not provided")

        if self._get_user_by_email:
            existing = await self._get_user_by_email(email)
            if existing:
                raise ValueError("Email already registered")

        password_hash = self.hash_password(password)
        return await self._create_user_in_db(email, password_hash, kwargs)

    async def verify_credentials(self, email: str, password: str) -> Dict[str, Any]:
        if not self._get_user_by_email:
            raise NotImplementedError("get_user_by_email callback not provided")

        user = await self._get_user_by_email(email)
        if not user:
            raise ValueError("Invalid email or password")

        password_hash = user.get("passwordHash", "")
        if not password_hash or not self.verify_password(password, password_hash):
            raise ValueError("Invalid email or password")

        return {k: v for k, v in user.items() if k != "passwordHash"}

    async def create_token(self, user_id: str, **claims: Any) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "exp": now + self.access_token_expire,
            "iat": now,
            **claims,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    async def verify_token(self, token: str) -> Dict[str, Any]:
        if token in self._revoked_tokens:
            raise ValueError("Token has been revoked")

        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as e:
            raise ValueError(f"Invalid token: {e}")

    async def revoke_token(self, token: str) -> None:
        """Deny ``token`` until it would have expired anyway."""
        now = datetime.now(timezone.utc).timestamp()
        try:
            expires_at = float(jwt.get_unverified_claims(token).get("exp"))
        except (JWTError, TypeError, ValueError):
            expires_at = now + self.access_token_expire.total_seconds()

        self._revoked_tokens = {
            revoked: exp for revoked, exp in self._revoked_tokens.items() if exp > now
        }
        self._revoked_tokens[token] = expires_at
        logger.debug(f"Token revoked, {len(self._revoked_tokens)} revocations tracked")

    async def get_user_by_id(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not self._get_user_by_id_cb:
            raise NotImplementedError("get_user_by_id callback not provided")
        return await self._get_user_by_id_cb(user_id)
