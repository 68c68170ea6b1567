"""
Roles and the role-to-permission table.

Permissions are ``resource:action`` strings. ``owner`` implicitly holds
every permission; every other role holds exactly what is listed here.
This table is the only place authorization decisions are derived from.
"""

from typing import Dict, FrozenSet, Iterable, List

from common.utils.exceptions import BadRequestException, ForbiddenException

OWNER = "owner"
OPERATIONS_MANAGER = "operations_manager"
SALES_MANAGER = "sales_manager"
ESTIMATING_MANAGER = "estimating_manager"
ESTIMATOR = "estimator"
FIELD_MANAGEMENT = "field_management"

ROLES = (
    OWNER,
    OPERATIONS_MANAGER,
    SALES_MANAGER,
    ESTIMATING_MANAGER,
    ESTIMATOR,
    FIELD_MANAGEMENT,
)

ROLE_LABELS = {
    OWNER: "Owner",
    OPERATIONS_MANAGER: "Operations Manager",
    SALES_MANAGER: "Sales Manager",
    ESTIMATING_MANAGER: "Estimating Manager",
    ESTIMATOR: "Estimator",
    FIELD_MANAGEMENT: "Field Management",
}

RESOURCES = (
    "organizations",
    "users",
    "contacts",
    "leads",
    "jobs",
    "estimates",
    "reports",
    "settings",
)
ACTIONS = ("create", "read", "update", "delete")


def _perms(*entries: str) -> FrozenSet[str]:
    return frozenset(entries)


ROLE_PERMISSIONS: Dict[str, FrozenSet[str]] = {
    OWNER: frozenset(f"{resource}:{action}" for resource in RESOURCES for action in ACTIONS),
    OPERATIONS_MANAGER: _perms(
        "users:create", "users:read", "users:update",
        "contacts:create", "contacts:read", "contacts:update",
        "leads:read", "leads:update",
        "jobs:create", "jobs:read", "jobs:update",
        "estimates:read",
        "reports:read",
    ),
    SALES_MANAGER: _perms(
        "contacts:create", "contacts:read", "contacts:update",
        "leads:create", "leads:read", "leads:update",
        "jobs:read",
        "estimates:read",
        "reports:read",
    ),
    ESTIMATING_MANAGER: _perms(
        "contacts:read",
        "leads:read", "leads:update",
        "jobs:read",
        "estimates:create", "estimates:read", "estimates:update",
        "reports:read",
    ),
    ESTIMATOR: _perms(
        "contacts:read",
        "leads:read", "leads:update",
        "estimates:create", "estimates:read", "estimates:update",
    ),
    FIELD_MANAGEMENT: _perms(
        "contacts:read",
        "jobs:read", "jobs:update",
    ),
}

# Roles that only see records assigned to them
LIMITED_ACCESS_ROLES = frozenset({ESTIMATOR, FIELD_MANAGEMENT})

# Roles allowed to send invitations
INVITER_ROLES = frozenset({OWNER, OPERATIONS_MANAGER, SALES_MANAGER})

# Only owners may hand these out
MANAGEMENT_ROLES = frozenset({OWNER, OPERATIONS_MANAGER, SALES_MANAGER, ESTIMATING_MANAGER})


def is_valid_role(role: str) -> bool:
    return role in ROLES


def has_permission(role: str, resource: str, action: str) -> bool:
    """True if ``role`` may perform ``action`` on ``resource``."""
    if role == OWNER:
        return True
    return f"{resource}:{action}" in ROLE_PERMISSIONS.get(role, frozenset())


def has_role(role: str, roles: Iterable[str]) -> bool:
    return role in set(roles)


def get_permissions(role: str) -> List[str]:
    """Sorted permission list for a role (empty for unknown roles)."""
    return sorted(ROLE_PERMISSIONS.get(role, frozenset()))


def has_limited_access(role: str) -> bool:
    return role in LIMITED_ACCESS_ROLES


def can_view_reports(role: str) -> bool:
    return has_permission(role, "reports", "read")


def can_invite(inviter_role: str, invitee_role: str) -> bool:
    """Boolean form of :func:`check_can_invite`."""
    try:
        check_can_invite(inviter_role, invitee_role)
    except (ForbiddenException, BadRequestException):
        return False
    return True


def check_can_invite(inviter_role: str, invitee_role: str) -> None:
    """
    Enforce the invitation policy.

    Raises:
        BadRequestException: Unknown invitee role
        ForbiddenException: Inviter may not send this invitation
    """
    if not is_valid_role(invitee_role):
        raise BadRequestException(
            message=f"Invalid role. Must be one of: {', '.join(ROLES)}",
            code="INVALID_ROLE",
        )

    if inviter_role not in INVITER_ROLES:
        raise ForbiddenException(
            message="Insufficient permissions to invite users",
            code="INSUFFICIENT_PERMISSIONS",
        )

    if invitee_role == OWNER and inviter_role != OWNER:
        raise ForbiddenException(
            message="Only owners can invite other owners",
            code="OWNER_INVITE_FORBIDDEN",
        )

    if inviter_role != OWNER and invitee_role in MANAGEMENT_ROLES:
        raise ForbiddenException(
            message="Insufficient permissions to invite users with this role",
            code="ROLE_INVITE_FORBIDDEN",
        )
