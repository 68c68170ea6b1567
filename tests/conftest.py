"""Shared test fixtures for the CRM backend tests."""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock
from bson import ObjectId

from crm.context import AuthContext


def make_collection(name: str = "collection"):
    collection = AsyncMock()
    collection.name = name
    # Motor's find() and aggregate() return cursors synchronously (not
    # coroutines), so use MagicMock for them.
    collection.find = MagicMock(return_value=make_cursor([]))
    collection.aggregate = MagicMock(return_value=make_cursor([]))
    return collection


def make_cursor(docs):
    """Chainable cursor whose to_list() resolves to ``docs``."""
    cursor = MagicMock()
    cursor.sort = MagicMock(return_value=cursor)
    cursor.skip = MagicMock(return_value=cursor)
    cursor.limit = MagicMock(return_value=cursor)
    cursor.to_list = AsyncMock(return_value=list(docs))
    return cursor


class _Collections(dict):
    def __missing__(self, key):
        self[key] = make_collection(key)
        return self[key]


@pytest.fixture
def collections():
    """Collection mocks keyed by name, created on first access."""
    return _Collections()


@pytest.fixture
def mock_collection():
    return make_collection()


@pytest.fixture
def mock_db(collections):
    db = MagicMock()
    db.__getitem__ = MagicMock(side_effect=lambda name: collections[name])
    return db


@pytest.fixture
def org_id():
    return ObjectId()


@pytest.fixture
def user_id():
    return ObjectId()


@pytest.fixture
def sample_user(user_id, org_id):
    now = datetime.now(timezone.utc)
    return {
        "_id": user_id,
        "email": "dana@acme-exteriors.com",
        "firstName": "Dana",
        "lastName": "Reyes",
        "displayName": "Dana Reyes",
        "status": "active",
        "currentOrganizationId": org_id,
        "loginCount": 3,
        "createdAt": now,
        "updatedAt": now,
    }


@pytest.fixture
def sample_org(org_id, user_id):
    now = datetime.now(timezone.utc)
    return {
        "_id": org_id,
        "name": "Acme Exteriors",
        "slug": "acme-exteriors",
        "status": "active",
        "settings": {"timezone": "America/New_York", "currency": "USD"},
        "createdBy": user_id,
        "createdAt": now,
        "updatedAt": now,
    }


@pytest.fixture
def make_ctx(sample_user, sample_org):
    """Build an AuthContext for ``role`` in the sample organization."""

    def _make(role: str = "owner", user=None, organization=None):
        user = user or sample_user
        organization = organization or sample_org
        membership = {
            "_id": ObjectId(),
            "organizationId": organization["_id"],
            "userId": user["_id"],
            "role": role,
            "status": "active",
        }
        return AuthContext(user=user, organization=organization, membership=membership)

    return _make


@pytest.fixture
def cursor():
    """Factory for chainable cursors: ``cursor([doc, ...])``."""
    return make_cursor
