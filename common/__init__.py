"""
Shared infrastructure for the CRM service.

- database: async MongoDB connection (Motor)
- auth: authentication provider contract and JWT implementation
- utils: response envelopes, exceptions, password rules, rate limiting
- config: base settings class
"""

from common.database import MongoDB
from common.auth import AuthProvider, JWTAuth, create_auth_dependency
from common.utils import (
    success_response,
    error_response,
    APIException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    validate_password,
    RateLimiter,
)
from common.config import BaseAppSettings

__all__ = [
    "MongoDB",
    "AuthProvider",
    "JWTAuth",
    "create_auth_dependency",
    "success_response",
    "error_response",
    "APIException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "validate_password",
    "RateLimiter",
    "BaseAppSettings",
]
