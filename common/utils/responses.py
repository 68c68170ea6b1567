"""
Response envelopes shared by every router.

Success bodies are ``{"success": true, "data": ..., "message": ...}``,
errors are ``{"success": false, "error": {"message", "code", ...}}``.

Example:
    from common.utils import success_response

    @router.get("/current")
    async def get_current_organization(ctx: AuthContext = Depends(require_organization)):
        return success_response(ctx.organization)
"""

from typing import Any, Optional, Dict


def success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build a success envelope.

    Args:
        data: Serializable payload
        message: Optional human-readable message
    """
    response: Dict[str, Any] = {"success": True}

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    return response


def error_response(
    message: str,
    code: Optional[str] = None,
    details: Optional[Any] = None,
    errors: Optional[list] = None,
) -> Dict[str, Any]:
    """
    Build an error envelope.

    Args:
        message: Human-readable error message
        code: Machine-readable code, e.g. "INVITATION_EXPIRED"
        details: Extra context
        errors: Field-level validation errors
    """
    error: Dict[str, Any] = {"message": message}

    if code:
        error["code"] = code

    if details is not None:
        error["details"] = details

    if errors:
        error["errors"] = errors

    return {"success": False, "error": error}


def paginated_response(
    items: list,
    total: int,
    page: int = 1,
    limit: int = 25,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """Success envelope for one page of a CRM list."""
    total_pages = (total + limit - 1) // limit if limit > 0 else 0

    response: Dict[str, Any] = {
        "success": True,
        "data": items,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": total_pages,
            "hasNextPage": page < total_pages,
            "hasPreviousPage": page > 1,
        },
    }

    if message:
        response["message"] = message

    return response


def list_response(
    items: list,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """Success envelope for an unpaginated list."""
    response: Dict[str, Any] = {
        "success": True,
        "data": items,
        "count": len(items),
    }

    if message:
        response["message"] = message

    return response
