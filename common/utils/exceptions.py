"""
HTTP exceptions carrying machine-readable error codes.

Every service in the CRM raises one of these instead of returning error
tuples; FastAPI turns them into responses whose ``detail`` is
``{"message", "code", "details"}``.

Example:
    from common.utils import NotFoundException

    contact = await contacts.find_one({"_id": contact_id})
    if not contact:
        raise NotFoundException("Contact not found", code="CONTACT_NOT_FOUND")
"""

from typing import Optional, Any, Dict
from fastapi import HTTPException


class APIException(HTTPException):
    """Base class for all API errors."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: Optional[str] = None,
        details: Optional[Any] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            status_code: HTTP status code
            message: Human-readable error message
            code: Machine-readable error code
            details: Extra context (missing fields, ids, ...)
            headers: Optional response headers
        """
        detail: Dict[str, Any] = {"message": message}

        if code:
            detail["code"] = code

        if details is not None:
            detail["details"] = details

        self.message = message
        self.code = code

        super().__init__(status_code=status_code, detail=detail, headers=headers)


class BadRequestException(APIException):
    """400 - malformed input, missing fields, bad ids."""

    def __init__(
        self,
        message: str = "Bad request",
        code: str = "BAD_REQUEST",
        details: Optional[Any] = None,
    ):
        super().__init__(400, message, code, details)


class UnauthorizedException(APIException):
    """401 - no session or an invalid one."""

    def __init__(
        self,
        message: str = "Unauthorized",
        code: str = "UNAUTHORIZED",
        details: Optional[Any] = None,
    ):
        super().__init__(401, message, code, details)


class ForbiddenException(APIException):
    """403 - authenticated, but the role or tenant does not allow it."""

    def __init__(
        self,
        message: str = "Forbidden",
        code: str = "FORBIDDEN",
        details: Optional[Any] = None,
    ):
        super().__init__(403, message, code, details)


class NotFoundException(APIException):
    """404 - missing, or belongs to another organization."""

    def __init__(
        self,
        message: str = "Not found",
        code: str = "NOT_FOUND",
        details: Optional[Any] = None,
    ):
        super().__init__(404, message, code, details)


class ConflictException(APIException):
    """409 - duplicate record or state conflict."""

    def __init__(
        self,
        message: str = "Conflict",
        code: str = "CONFLICT",
        details: Optional[Any] = None,
    ):
        super().__init__(409, message, code, details)


class GoneException(APIException):
    """410 - the resource existed but is no longer usable (expired invitation)."""

    def __init__(
        self,
        message: str = "Gone",
        code: str = "GONE",
        details: Optional[Any] = None,
    ):
        super().__init__(410, message, code, details)


class ValidationException(APIException):
    """422 - semantic validation failed."""

    def __init__(
        self,
        message: str = "Validation error",
        code: str = "VALIDATION_ERROR",
        details: Optional[Any] = None,
        errors: Optional[list] = None,
    ):
        detail_info = details
        if errors:
            detail_info = {"errors": errors, **(details or {})}
        super().__init__(422, message, code, detail_info)


class RateLimitException(APIException):
    """429 - too many requests for this identifier."""

    def __init__(
        self,
        message: str = "Too many requests",
        code: str = "RATE_LIMIT_EXCEEDED",
        retry_after: Optional[int] = None,
    ):
        headers = {"Retry-After": str(retry_after)} if retry_after else None

        super().__init__(
            status_code=429,
            message=message,
            code=code,
            details={"retryAfter": retry_after} if retry_after else None,
            headers=headers,
        )


class InternalServerException(APIException):
    """500 - unexpected failure."""

    def __init__(
        self,
        message: str = "Internal server error",
        code: str = "INTERNAL_ERROR",
        details: Optional[Any] = None,
    ):
        super().__init__(500, message, code, details)


ServerException = InternalServerException
