"""
Request field checks that answer with 400 rather than 422.

Registration, invitation and acceptance endpoints report missing fields
as a list so the client can highlight them.
"""

import re
from typing import Any, Dict, Iterable, List

from email_validator import EmailNotValidError, validate_email as check_email

from common.utils.exceptions import BadRequestException

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")
SLUG_MIN_LENGTH = 2
SLUG_MAX_LENGTH = 50


def missing_fields(body: Dict[str, Any], required: Iterable[str]) -> List[str]:
    """Names of required fields that are absent, None or blank."""
    return [
        field for field in required
        if body.get(field) is None or str(body.get(field)).strip() == ""
    ]


def require_fields(body: Dict[str, Any], required: Iterable[str]) -> None:
    """
    Raises:
        BadRequestException: With ``details.fields`` listing what is missing
    """
    missing = missing_fields(body, required)
    if missing:
        raise BadRequestException(
            message="Missing required fields",
            code="MISSING_FIELDS",
            details={"fields": missing},
        )


def validate_email(email: str) -> str:
    """Return the normalized (trimmed, lower-case) email or raise 400."""
    try:
        result = check_email((email or "").strip(), check_deliverability=False)
    except EmailNotValidError:
        raise BadRequestException(message="Invalid email format", code="INVALID_EMAIL")
    return result.normalized.lower()


def validate_slug(slug: str) -> str:
    slug = (slug or "").strip()
    if not SLUG_PATTERN.match(slug):
        raise BadRequestException(
            message="Organization slug must contain only lowercase letters, numbers, and hyphens",
            code="INVALID_SLUG",
        )
    if not SLUG_MIN_LENGTH <= len(slug) <= SLUG_MAX_LENGTH:
        raise BadRequestException(
            message=f"Organization slug must be {SLUG_MIN_LENGTH}-{SLUG_MAX_LENGTH} characters",
            code="INVALID_SLUG",
        )
    return slug


def clean_optional(value: Any) -> Any:
    """Trim strings and turn blank strings into None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value
