"""Unit tests for the role/permission table and the invitation policy."""

import pytest

from common.utils.exceptions import BadRequestException, ForbiddenException
from crm import permissions
from crm.permissions import (
    OWNER,
    OPERATIONS_MANAGER,
    SALES_MANAGER,
    ESTIMATING_MANAGER,
    ESTIMATOR,
    FIELD_MANAGEMENT,
)


class TestHasPermission:
    @pytest.mark.parametrize("resource", permissions.RESOURCES)
    @pytest.mark.parametrize("action", permissions.ACTIONS)
    def test_owner_has_everything(self, resource, action):
        assert permissions.has_permission(OWNER, resource, action)

    def test_operations_manager_can_create_jobs(self):
        assert permissions.has_permission(OPERATIONS_MANAGER, "jobs", "create")

    def test_sales_manager_cannot_create_jobs(self):
        assert not permissions.has_permission(SALES_MANAGER, "jobs", "create")

    def test_field_management_is_limited_to_jobs_and_contacts(self):
        assert permissions.get_permissions(FIELD_MANAGEMENT) == [
            "contacts:read",
            "jobs:read",
            "jobs:update",
        ]

    def test_estimator_cannot_delete_estimates(self):
        assert permissions.has_permission(ESTIMATOR, "estimates", "update")
        assert not permissions.has_permission(ESTIMATOR, "estimates", "delete")

    def test_unknown_role_has_nothing(self):
        assert not permissions.has_permission("janitor", "contacts", "read")
        assert permissions.get_permissions("janitor") == []

    def test_reports_follow_permission_table(self):
        assert permissions.can_view_reports(ESTIMATING_MANAGER)
        assert not permissions.can_view_reports(ESTIMATOR)


class TestRoles:
    def test_limited_access_roles(self):
        assert permissions.has_limited_access(ESTIMATOR)
        assert permissions.has_limited_access(FIELD_MANAGEMENT)
        assert not permissions.has_limited_access(SALES_MANAGER)

    def test_has_role(self):
        assert permissions.has_role(OWNER, [OWNER, SALES_MANAGER])
        assert not permissions.has_role(ESTIMATOR, (OWNER,))

    def test_every_role_has_a_label(self):
        assert set(permissions.ROLE_LABELS) == set(permissions.ROLES)


class TestInvitationPolicy:
    @pytest.mark.parametrize("invitee", permissions.ROLES)
    def test_owner_can_invite_anyone(self, invitee):
        permissions.check_can_invite(OWNER, invitee)

    @pytest.mark.parametrize("inviter", [OPERATIONS_MANAGER, SALES_MANAGER])
    @pytest.mark.parametrize("invitee", [ESTIMATOR, FIELD_MANAGEMENT])
    def test_managers_can_invite_staff_roles(self, inviter, invitee):
        assert permissions.can_invite(inviter, invitee)

    def test_non_owner_cannot_invite_owner(self):
        with pytest.raises(ForbiddenException) as exc:
            permissions.check_can_invite(OPERATIONS_MANAGER, OWNER)
        assert exc.value.code == "OWNER_INVITE_FORBIDDEN"

    def test_non_owner_cannot_invite_management(self):
        with pytest.raises(ForbiddenException) as exc:
            permissions.check_can_invite(SALES_MANAGER, ESTIMATING_MANAGER)
        assert exc.value.code == "ROLE_INVITE_FORBIDDEN"

    @pytest.mark.parametrize("inviter", [ESTIMATING_MANAGER, ESTIMATOR, FIELD_MANAGEMENT])
    def test_other_roles_cannot_invite(self, inviter):
        with pytest.raises(ForbiddenException) as exc:
            permissions.check_can_invite(inviter, ESTIMATOR)
        assert exc.value.code == "INSUFFICIENT_PERMISSIONS"

    def test_invalid_invitee_role(self):
        with pytest.raises(BadRequestException) as exc:
            permissions.check_can_invite(OWNER, "superuser")
        assert exc.value.code == "INVALID_ROLE"
        assert not permissions.can_invite(OWNER, "superuser")
