"""
Per-request authorization context.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from bson import ObjectId

from crm import permissions


@dataclass
class AuthContext:
    """The authenticated user inside their current organization."""

    user: Dict[str, Any]
    organization: Dict[str, Any]
    membership: Dict[str, Any]
    token: str = field(default="", repr=False)

    @property
    def user_id(self) -> ObjectId:
        return self.user["_id"]

    @property
    def organization_id(self) -> ObjectId:
        return self.organization["_id"]

    @property
    def role(self) -> str:
        return self.membership["role"]

    @property
    def limited(self) -> bool:
        """Only sees records assigned to the user."""
        return permissions.has_limited_access(self.role)

    def can(self, resource: str, action: str) -> bool:
        return permissions.has_permission(self.role, resource, action)
