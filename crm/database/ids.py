"""ObjectId parsing for path and body parameters."""

from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId

from common.utils.exceptions import BadRequestException


def to_object_id(value: Any, field: str = "id") -> ObjectId:
    """
    Parse an id from a request.

    Raises:
        BadRequestException: Value is missing or not a valid ObjectId
    """
    if isinstance(value, ObjectId):
        return value

    if not value or not isinstance(value, str):
        raise BadRequestException(message=f"{field} is required", code="INVALID_ID")

    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise BadRequestException(message=f"Invalid {field} format", code="INVALID_ID")


def optional_object_id(value: Any, field: str = "id") -> Optional[ObjectId]:
    """Like :func:`to_object_id` but passes None and empty strings through."""
    if value in (None, ""):
        return None
    return to_object_id(value, field)

