"""Unit tests for UserService and EmailService."""

import logging
import pytest
from unittest.mock import AsyncMock, patch
from bson import ObjectId

import aiosmtplib

from common.utils.exceptions import NotFoundException
from crm.services.email import EmailService
from crm.services.user import UserService


@pytest.fixture
def service(mock_db):
    return UserService(mock_db)


@pytest.fixture
def users(collections):
    return collections["users"]


class TestCreateUser:
    @pytest.mark.asyncio
    async def test_new_user_defaults(self, service, users):
        new_id = ObjectId()
        users.insert_one.return_value.inserted_id = new_id

        result = await service.create_user(" Dana@Acme.COM ", "hash", {"first_name": "Dana", "last_name": "Reyes"})

        doc = users.insert_one.call_args[0][0]
        assert result == str(new_id)
        assert doc["email"] == "dana@acme.com"
        assert doc["displayName"] == "Dana Reyes"
        assert doc["status"] == "active"
        assert doc["currentOrganizationId"] is None
        assert doc["notificationPreferences"] == {"email": True, "browser": True, "mobile": False}


class TestLookups:
    @pytest.mark.asyncio
    async def test_bad_id_is_none(self, service, users):
        assert await service.get_user_by_id("nope") is None
        users.find_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_lookup_normalizes(self, service, users):
        await service.get_user_by_email(" Dana@Acme.com")

        users.find_one.assert_called_once_with({"email": "dana@acme.com"})

    @pytest.mark.asyncio
    async def test_display_names(self, service, users, cursor):
        first, second = ObjectId(), ObjectId()
        users.find.return_value = cursor([
            {"_id": first, "firstName": "Dana", "lastName": "Reyes"},
            {"_id": second, "email": "ops@acme.com"},
        ])

        names = await service.get_display_names([first, str(second), None])

        assert names == {str(first): "Dana Reyes", str(second): "ops@acme.com"}

    def test_full_name_unknown(self):
        assert UserService.full_name(None) == "Unknown User"


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_only_profile_fields_written(self, service, users, sample_user):
        users.find_one.return_value = sample_user
        users.find_one_and_update.return_value = sample_user

        await service.update_profile(str(sample_user["_id"]), {
            "first_name": "Dani",
            "notification_preferences": {"mobile": True},
            "status": "suspended",
            "email": "evil@example.com",
        })

        changes = users.find_one_and_update.call_args[0][1]["$set"]
        assert changes["firstName"] == "Dani"
        assert changes["displayName"] == "Dani Reyes"
        assert changes["notificationPreferences"] == {"email": True, "browser": True, "mobile": True}
        assert "status" not in changes
        assert "email" not in changes

    @pytest.mark.asyncio
    async def test_missing_user(self, service, users):
        users.find_one.return_value = None

        with pytest.raises(NotFoundException):
            await service.update_profile(str(ObjectId()), {"title": "Estimator"})


class TestFormatUser:
    def test_never_exposes_password(self, service, sample_user):
        formatted = service.format_user({**sample_user, "passwordHash": "secret"})

        assert "passwordHash" not in formatted
        assert formatted["id"] == str(sample_user["_id"])
        assert formatted["currentOrganizationId"] == str(sample_user["currentOrganizationId"])


class TestEmailService:
    def test_missing_provider_config_falls_back_to_console(self):
        assert EmailService(mode="smtp").mode == "console"
        assert EmailService(mode="resend").mode == "console"

    def test_invitation_link(self):
        service = EmailService(app_url="https://crm.example.com/")
        assert service.invitation_link("abc") == "https://crm.example.com/accept-invitation?token=abc"

    @pytest.mark.asyncio
    async def test_console_mode(self):
        result = await EmailService().send_invitation_email(
            to_email="sam@example.com",
            token="abc",
            organization_name="Acme Exteriors",
            role_label="Estimator",
            inviter_name="Dana Reyes",
            expires_at="January 01, 2027",
        )

        assert result == {"success": True, "mode": "console"}

    @pytest.mark.asyncio
    async def test_console_mode_withholds_token_by_default(self, caplog):
        caplog.set_level(logging.INFO, logger="crm.services.email.email_service")

        await EmailService().send_invitation_email(
            to_email="sam@example.com",
            token="RAW-INVITE-TOKEN",
            organization_name="Acme Exteriors",
            role_label="Estimator",
            inviter_name="Dana Reyes",
            expires_at="January 01, 2027",
        )

        assert "sam@example.com" in caplog.text
        assert "RAW-INVITE-TOKEN" not in caplog.text

    @pytest.mark.asyncio
    async def test_console_mode_logs_link_in_development(self, caplog):
        caplog.set_level(logging.INFO, logger="crm.services.email.email_service")

        await EmailService(log_bodies=True).send_invitation_email(
            to_email="sam@example.com",
            token="RAW-INVITE-TOKEN",
            organization_name="Acme Exteriors",
            role_label="Estimator",
            inviter_name="Dana Reyes",
            expires_at="January 01, 2027",
        )

        assert "accept-invitation?token=RAW-INVITE-TOKEN" in caplog.text

    @pytest.mark.asyncio
    async def test_smtp_failure_reported(self):
        service = EmailService(mode="smtp", smtp_host="smtp.example.com")

        with patch("crm.services.email.email_service.aiosmtplib.send",
                   new=AsyncMock(side_effect=aiosmtplib.SMTPException("refused"))):
            result = await service.send_invitation_email(
                to_email="sam@example.com",
                token="abc",
                organization_name="Acme <Exteriors>",
                role_label="Estimator",
                inviter_name="Dana Reyes",
                expires_at="January 01, 2027",
            )

        assert result["success"] is False
        assert "refused" in result["error"]
