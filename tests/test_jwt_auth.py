"""Unit tests for the JWT + bcrypt auth provider."""

import pytest
from unittest.mock import AsyncMock

from common.auth import JWTAuth, extract_bearer_token

SECRET = "test-secret-key-for-jwt-signing"


@pytest.fixture
def users():
    return {}


@pytest.fixture
def auth(users):
    async def get_by_email(email):
        return users.get(email)

    async def create_in_db(email, password_hash, data):
        users[email] = {"_id": "user-1", "email": email, "passwordHash": password_hash, **data}
        return "user-1"

    return JWTAuth(
        secret=SECRET,
        get_user_by_email=get_by_email,
        get_user_by_id=AsyncMock(return_value={"_id": "user-1"}),
        create_user_in_db=create_in_db,
    )


class TestPasswords:
    def test_hash_and_verify(self, auth):
        hashed = auth.hash_password("Shingles2026")
        assert hashed != "Shingles2026"
        assert auth.verify_password("Shingles2026", hashed)
        assert not auth.verify_password("shingles2026", hashed)

    def test_long_passwords_are_not_truncated(self, auth):
        base = "x" * 80
        hashed = auth.hash_password(base + "a")
        assert not auth.verify_password(base + "b", hashed)

    def test_malformed_hash(self, auth):
        assert not auth.verify_password("anything", "not-a-bcrypt-hash")


class TestAccounts:
    @pytest.mark.asyncio
    async def test_create_then_verify(self, auth, users):
        user_id = await auth.create_user("dana@acme.com", "Shingles2026", first_name="Dana")

        assert user_id == "user-1"
        assert users["dana@acme.com"]["first_name"] == "Dana"

        user = await auth.verify_credentials("dana@acme.com", "Shingles2026")
        assert "passwordHash" not in user

    @pytest.mark.asyncio
    async def test_duplicate_email(self, auth):
        await auth.create_user("dana@acme.com", "Shingles2026")

        with pytest.raises(ValueError, match="already registered"):
            await auth.create_user("dana@acme.com", "Another2026")

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth):
        await auth.create_user("dana@acme.com", "Shingles2026")

        with pytest.raises(ValueError):
            await auth.verify_credentials("dana@acme.com", "Wrong2026")

    @pytest.mark.asyncio
    async def test_unknown_email(self, auth):
        with pytest.raises(ValueError):
            await auth.verify_credentials("ghost@acme.com", "Shingles2026")


class TestTokens:
    @pytest.mark.asyncio
    async def test_round_trip_claims(self, auth):
        token = await auth.create_token("user-1", email="dana@acme.com")
        claims = await auth.verify_token(token)

        assert claims["sub"] == "user-1"
        assert claims["email"] == "dana@acme.com"
        assert "exp" in claims

    @pytest.mark.asyncio
    async def test_revoked_token(self, auth):
        token = await auth.create_token("user-1")
        await auth.revoke_token(token)

        with pytest.raises(ValueError, match="revoked"):
            await auth.verify_token(token)

    @pytest.mark.asyncio
    async def test_expired_revocations_pruned(self, auth):
        expired = await JWTAuth(secret=SECRET, access_token_expire_minutes=-1).create_token("user-1")
        await auth.revoke_token(expired)
        live = await auth.create_token("user-1")

        await auth.revoke_token(live)

        assert expired not in auth._revoked_tokens
        assert live in auth._revoked_tokens

    @pytest.mark.asyncio
    async def test_revoking_garbage_does_not_fail(self, auth):
        await auth.revoke_token("not-a-jwt")

        with pytest.raises(ValueError, match="revoked"):
            await auth.verify_token("not-a-jwt")

    @pytest.mark.asyncio
    async def test_other_secret_rejected(self, auth):
        other = JWTAuth(secret="a-different-secret")
        token = await other.create_token("user-1")

        with pytest.raises(ValueError):
            await auth.verify_token(token)

    @pytest.mark.asyncio
    async def test_expired_token(self):
        short = JWTAuth(secret=SECRET, access_token_expire_minutes=-1)
        token = await short.create_token("user-1")

        with pytest.raises(ValueError):
            await short.verify_token(token)

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            JWTAuth(secret="")


class TestBearerExtraction:
    @pytest.mark.parametrize(
        "header,expected",
        [
            ("Bearer abc.def", "abc.def"),
            ("bearer abc", "abc"),
            ("Basic abc", None),
            ("Bearer", None),
            ("", None),
            (None, None),
        ],
    )
    def test_extract(self, header, expected):
        assert extract_bearer_token(header) == expected
