"""HTTP-level tests for the CRM routers with mocked services."""

import pytest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId
from fastapi import FastAPI
from fastapi.testclient import TestClient

from common.auth import JWTAuth
from common.utils.exceptions import ConflictException
from common.utils.rate_limit import RateLimiter
from crm import dependencies
from crm.middleware import AuthMiddleware
from crm.routers import (
    auth_router,
    contacts_router,
    estimates_router,
    organization_router,
    user_router,
)


@pytest.fixture
def services():
    return SimpleNamespace(
        auth=MagicMock(),
        contacts=MagicMock(),
        estimates=MagicMock(),
        invitations=MagicMock(),
        organizations=MagicMock(),
        users=MagicMock(),
    )


@pytest.fixture
def limiter():
    return RateLimiter(default_limit=2, default_window_seconds=60)


@pytest.fixture
def app(services, limiter, monkeypatch):
    monkeypatch.setattr(
        dependencies,
        "_settings",
        SimpleNamespace(is_development=lambda: True, AUTH_RATE_LIMIT_REQUESTS=2),
    )

    app = FastAPI()
    for router in (auth_router, user_router, contacts_router, estimates_router, organization_router):
        app.include_router(router, prefix="/api")

    app.dependency_overrides[dependencies.get_auth_provider] = lambda: services.auth
    app.dependency_overrides[dependencies.get_contact_service] = lambda: services.contacts
    app.dependency_overrides[dependencies.get_estimate_service] = lambda: services.estimates
    app.dependency_overrides[dependencies.get_invitation_service] = lambda: services.invitations
    app.dependency_overrides[dependencies.get_organization_service] = lambda: services.organizations
    app.dependency_overrides[dependencies.get_user_service] = lambda: services.users
    app.dependency_overrides[dependencies.get_rate_limiter] = lambda: limiter
    return app


@pytest.fixture
def as_role(app, make_ctx, sample_user):
    """Authenticate every request as ``role`` in the sample organization."""

    def _as(role: str):
        ctx = make_ctx(role)
        app.dependency_overrides[dependencies.require_organization] = lambda: ctx
        app.dependency_overrides[dependencies.require_auth] = lambda: sample_user
        return ctx

    return _as


@pytest.fixture
def client(app):
    return TestClient(app)


class TestAuthentication:
    def test_missing_token(self, app, client):
        middleware = AuthMiddleware(MagicMock(), MagicMock(), MagicMock())
        app.dependency_overrides[dependencies.get_auth_middleware] = lambda: middleware

        response = client.get("/api/contacts")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "AUTH_REQUIRED"


class TestPermissions:
    def test_denied_role(self, as_role, client, services):
        as_role("field_management")

        response = client.post("/api/contacts", json={"firstName": "Ann"})

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["code"] == "INSUFFICIENT_PERMISSIONS"
        assert detail["details"] == {"required": "contacts:create"}
        services.contacts.create_contact.assert_not_called()

    def test_allowed_role_gets_page(self, as_role, client, services):
        ctx = as_role("estimator")
        services.contacts.list_contacts = AsyncMock(return_value=([{"id": "c1", "displayName": "Ann"}], 26))

        response = client.get("/api/contacts", params={"page": 2, "limit": 25, "search": "ann"})

        assert response.status_code == 200
        body = response.json()
        assert body["data"] == [{"id": "c1", "displayName": "Ann"}]
        assert body["pagination"]["totalPages"] == 2
        assert body["pagination"]["hasPreviousPage"] is True
        kwargs = services.contacts.list_contacts.call_args.kwargs
        assert services.contacts.list_contacts.call_args[0][0] is ctx
        assert kwargs["search"] == "ann"
        assert kwargs["page"] == 2

    def test_contact_email_format_checked(self, as_role, client, services):
        as_role("owner")
        services.contacts.create_contact = AsyncMock()

        response = client.post("/api/contacts", json={"firstName": "Ann", "email": "ann@"})

        assert response.status_code == 422
        services.contacts.create_contact.assert_not_called()

    def test_limit_is_bounded(self, as_role, client):
        as_role("owner")

        response = client.get("/api/contacts", params={"limit": 500})

        assert response.status_code == 422

    def test_members_require_users_read(self, as_role, client):
        as_role("estimator")

        response = client.get("/api/organizations/current/members")

        assert response.status_code == 403


class TestEstimates:
    def test_service_conflict_maps_to_409(self, as_role, client, services):
        as_role("estimating_manager")
        services.estimates.change_status = AsyncMock(side_effect=ConflictException(
            message="Cannot change estimate status from accepted to draft",
            code="INVALID_STATUS_TRANSITION",
        ))

        response = client.post(f"/api/estimates/{ObjectId()}/status", json={"status": "draft"})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    def test_unknown_status_rejected(self, as_role, client, services):
        as_role("owner")

        response = client.post(f"/api/estimates/{ObjectId()}/status", json={"status": "approved"})

        assert response.status_code == 422

    @pytest.mark.parametrize("quantity", ["Infinity", "NaN"])
    def test_non_finite_quantity_rejected(self, as_role, client, services, quantity):
        as_role("owner")
        services.estimates.create_estimate = AsyncMock()

        response = client.post(
            "/api/estimates",
            content=(
                '{"title": "Re-side", "lineItems": '
                f'[{{"description": "Lap siding", "quantity": {quantity}, "unitPrice": 4.5}}]}}'
            ),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 422
        services.estimates.create_estimate.assert_not_called()


class TestRegisterOrganization:
    def test_missing_fields_listed(self, as_role, client, services):
        as_role("owner")

        response = client.post("/api/auth/register-organization", json={"organizationName": "Acme"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "MISSING_FIELDS"
        assert "organizationSlug" in detail["details"]["fields"]

    def test_email_must_match_account(self, as_role, client):
        as_role("owner")

        response = client.post("/api/auth/register-organization", json={
            "organizationName": "Acme",
            "organizationSlug": "acme",
            "ownerFirstName": "Dana",
            "ownerLastName": "Reyes",
            "ownerEmail": "someone@else.com",
        })

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "EMAIL_MISMATCH"

    def test_registers(self, as_role, client, services, sample_user):
        as_role("owner")
        org_id = str(ObjectId())
        services.organizations.register_organization = AsyncMock(
            return_value={"id": org_id, "name": "Acme", "slug": "acme", "status": "trial"}
        )

        response = client.post("/api/auth/register-organization", json={
            "organizationName": "Acme",
            "organizationSlug": "acme",
            "ownerFirstName": "Dana",
            "ownerLastName": "Reyes",
            "ownerEmail": sample_user["email"].upper(),
        })

        assert response.status_code == 201
        assert response.json()["data"]["organizationId"] == org_id
        kwargs = services.organizations.register_organization.call_args.kwargs
        assert kwargs["user_id"] == str(sample_user["_id"])
        assert kwargs["organization_slug"] == "acme"


class TestInvitations:
    def test_invite_returns_token_in_development(self, as_role, client, services):
        ctx = as_role("sales_manager")
        services.invitations.create_invitation = AsyncMock(
            return_value=({"id": "inv1", "role": "estimator"}, "raw-token")
        )

        response = client.post("/api/auth/invite-user", json={"email": " Sam@Example.com ", "role": "estimator"})

        assert response.status_code == 201
        assert response.json()["data"]["invitationToken"] == "raw-token"
        kwargs = services.invitations.create_invitation.call_args.kwargs
        assert kwargs["email"] == "sam@example.com"
        assert kwargs["inviter_role"] == "sales_manager"
        assert kwargs["organization"] is ctx.organization

    def test_invite_requires_role(self, as_role, client):
        as_role("owner")

        response = client.post("/api/auth/invite-user", json={"email": "sam@example.com"})

        assert response.status_code == 400
        assert response.json()["detail"]["details"]["fields"] == ["role"]

    @pytest.mark.parametrize("role", ["estimator", "field_management"])
    def test_non_inviter_rejected_before_body_checks(self, as_role, client, services, role):
        as_role(role)
        services.invitations.create_invitation = AsyncMock()

        response = client.post("/api/auth/invite-user", json={"email": "sam@example.com"})

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "INSUFFICIENT_PERMISSIONS"
        services.invitations.create_invitation.assert_not_called()

    def test_public_lookup_is_rate_limited(self, client, services):
        services.invitations.validate_invitation = AsyncMock(return_value={"email": "sam@example.com"})

        statuses = [client.get("/api/auth/validate-invitation", params={"token": "t"}).status_code for _ in range(3)]

        assert statuses == [200, 200, 429]

    def test_rate_limited_response_has_retry_after(self, client, services):
        services.invitations.get_invitation_details = AsyncMock(return_value={"email": "sam@example.com"})
        for _ in range(2):
            client.get("/api/auth/accept-invitation", params={"token": "t"})

        response = client.get("/api/auth/accept-invitation", params={"token": "t"})

        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) > 0


class TestSwitchOrganization:
    @pytest.mark.parametrize("payload", [{"organization_id": 42}, {"organization_id": "  "}, {}])
    def test_invalid_id(self, as_role, client, services, payload):
        as_role("owner")

        response = client.post("/api/auth/switch-organization", json=payload)

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INVALID_ORGANIZATION_ID"

    def test_switches(self, as_role, client, services, sample_user):
        as_role("owner")
        target = str(ObjectId())
        services.organizations.switch_organization = AsyncMock(
            return_value={"currentOrganization": {"organizationId": target}, "allOrganizations": []}
        )

        response = client.post("/api/auth/switch-organization", json={"organization_id": target})

        assert response.status_code == 200
        services.organizations.switch_organization.assert_awaited_once_with(str(sample_user["_id"]), target)


class TestAccounts:
    @pytest.fixture
    def signup_body(self):
        return {"email": "Sam@Example.com", "password": "Shingles2026", "firstName": "Sam", "lastName": "Ortiz"}

    def test_signup(self, client, services, sample_user, signup_body):
        services.auth.create_user = AsyncMock(return_value=str(sample_user["_id"]))
        services.auth.create_token = AsyncMock(return_value="signed-token")
        services.users.get_user_by_id = AsyncMock(return_value=sample_user)
        services.users.format_user.return_value = {"id": str(sample_user["_id"])}

        response = client.post("/api/auth/signup", json=signup_body)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["token"] == "signed-token"
        assert data["organizations"] == []
        assert services.auth.create_user.call_args[0][0] == "sam@example.com"

    def test_signup_duplicate_email(self, client, services, signup_body):
        services.auth.create_user = AsyncMock(side_effect=ValueError("Email already registered"))

        response = client.post("/api/auth/signup", json=signup_body)

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "EMAIL_EXISTS"

    def test_signup_weak_password(self, client, services, signup_body):
        services.auth.create_user = AsyncMock()

        response = client.post("/api/auth/signup", json={**signup_body, "password": "short"})

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "WEAK_PASSWORD"
        services.auth.create_user.assert_not_called()

    def test_login_bad_credentials(self, client, services):
        services.auth.verify_credentials = AsyncMock(side_effect=ValueError("Invalid email or password"))
        services.users.record_login = AsyncMock()

        response = client.post("/api/auth/login", json={"email": "dana@acme-exteriors.com", "password": "nope"})

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"
        services.users.record_login.assert_not_called()

    def test_login_suspended(self, client, services, sample_user):
        services.auth.verify_credentials = AsyncMock(return_value={**sample_user, "status": "suspended"})
        services.users.record_login = AsyncMock()

        response = client.post("/api/auth/login", json={"email": sample_user["email"], "password": "Shingles2026"})

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "ACCOUNT_SUSPENDED"
        services.users.record_login.assert_not_called()

    def test_login_records_login(self, client, services, sample_user):
        services.auth.verify_credentials = AsyncMock(return_value=sample_user)
        services.auth.create_token = AsyncMock(return_value="signed-token")
        services.users.record_login = AsyncMock()
        services.users.format_user.return_value = {"id": str(sample_user["_id"])}
        services.organizations.get_user_org_info = AsyncMock(return_value=[{"organizationId": "o1"}])

        response = client.post("/api/auth/login", json={"email": "DANA@acme-exteriors.com", "password": "Shingles2026"})

        assert response.status_code == 200
        assert response.json()["data"]["organizations"] == [{"organizationId": "o1"}]
        services.auth.verify_credentials.assert_awaited_once_with("dana@acme-exteriors.com", "Shingles2026")
        services.users.record_login.assert_awaited_once_with(str(sample_user["_id"]))


class TestLogout:
    @pytest.fixture
    def auth(self, app, monkeypatch):
        auth = JWTAuth(secret="router-test-secret")
        monkeypatch.setattr(dependencies, "_auth_provider", auth)
        app.dependency_overrides[dependencies.get_auth_provider] = lambda: auth
        return auth

    @pytest.mark.asyncio
    async def test_logout_revokes_token(self, auth, client):
        token = await auth.create_token("user-1")

        response = client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        with pytest.raises(ValueError, match="revoked"):
            await auth.verify_token(token)

        again = client.post("/api/auth/logout", headers={"Authorization": f"Bearer {token}"})
        assert again.status_code == 401
        assert again.json()["detail"]["code"] == "INVALID_TOKEN"

    def test_logout_without_token(self, auth, client):
        response = client.post("/api/auth/logout")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "AUTH_REQUIRED"


class TestProfile:
    @pytest.fixture
    def profile_services(self, as_role, services, sample_user):
        as_role("owner")
        services.users.update_profile = AsyncMock(return_value=sample_user)
        services.users.format_user.return_value = {"id": str(sample_user["_id"])}
        services.organizations.get_membership = AsyncMock(return_value={"status": "active", "role": "owner"})
        services.organizations.get_organization_doc = AsyncMock(return_value={"status": "active"})
        services.organizations.format_organization.return_value = {"name": "Acme Exteriors"}
        return services

    def test_only_whitelisted_fields_forwarded(self, client, profile_services, sample_user):
        response = client.patch("/api/auth/user", json={
            "firstName": "Dani",
            "title": "Owner",
            "status": "suspended",
            "email": "evil@example.com",
            "passwordHash": "x",
        })

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "owner"
        profile_services.users.update_profile.assert_awaited_once_with(
            str(sample_user["_id"]), {"first_name": "Dani", "title": "Owner"}
        )

    def test_null_name_rejected(self, client, profile_services):
        response = client.patch("/api/auth/user", json={"firstName": None})

        assert response.status_code == 422
        profile_services.users.update_profile.assert_not_called()
