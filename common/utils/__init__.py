"""
Utilities module - response envelopes, exceptions, password rules, rate limiting.
"""

from common.utils.responses import (
    success_response,
    error_response,
    paginated_response,
    list_response,
)
from common.utils.exceptions import (
    APIException,
    BadRequestException,
    UnauthorizedException,
    ForbiddenException,
    NotFoundException,
    ConflictException,
    GoneException,
    ValidationException,
    RateLimitException,
    ServerException,
    InternalServerException,
)
from common.utils.password import validate_password
from common.utils.rate_limit import RateLimiter

__all__ = [
    "success_response",
    "error_response",
    "paginated_response",
    "list_response",
    "APIException",
    "BadRequestException",
    "UnauthorizedException",
    "ForbiddenException",
    "NotFoundException",
    "ConflictException",
    "GoneException",
    "ValidationException",
    "RateLimitException",
    "ServerException",
    "InternalServerException",
    "validate_password",
    "RateLimiter",
]
