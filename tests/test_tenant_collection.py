"""Unit tests for TenantCollection organization scoping."""

import pytest
from unittest.mock import MagicMock
from bson import ObjectId
from pymongo import ReturnDocument

from common.utils.exceptions import ForbiddenException
from crm.database import TenantCollection


@pytest.fixture
def tenant(mock_collection, org_id):
    return TenantCollection(mock_collection, org_id)


class TestReads:
    @pytest.mark.asyncio
    async def test_find_one_adds_organization(self, tenant, mock_collection, org_id):
        record_id = ObjectId()
        await tenant.find_one({"_id": record_id})

        mock_collection.find_one.assert_called_once_with({"_id": record_id, "organizationId": org_id})

    @pytest.mark.asyncio
    async def test_caller_supplied_organization_is_overridden(self, tenant, mock_collection, org_id):
        await tenant.count_documents({"organizationId": ObjectId(), "status": "new"})

        query = mock_collection.count_documents.call_args[0][0]
        assert query == {"organizationId": org_id, "status": "new"}

    def test_find_scopes_empty_filter(self, tenant, mock_collection, org_id):
        tenant.find()

        mock_collection.find.assert_called_once_with({"organizationId": org_id})

    def test_find_does_not_mutate_caller_filter(self, tenant):
        query = {"status": "new"}
        tenant.find(query)
        assert query == {"status": "new"}

    def test_string_organization_id_is_converted(self, mock_collection):
        org_id = ObjectId()
        tenant = TenantCollection(mock_collection, str(org_id))
        assert tenant.organization_id == org_id

    def test_aggregate_prepends_match(self, tenant, mock_collection, org_id):
        mock_collection.aggregate = MagicMock()
        tenant.aggregate([{"$group": {"_id": "$status"}}])

        pipeline = mock_collection.aggregate.call_args[0][0]
        assert pipeline[0] == {"$match": {"organizationId": org_id}}
        assert pipeline[1] == {"$group": {"_id": "$status"}}


class TestWrites:
    @pytest.mark.asyncio
    async def test_insert_stamps_organization(self, tenant, mock_collection, org_id):
        await tenant.insert_one({"title": "Siding replacement"})

        document = mock_collection.insert_one.call_args[0][0]
        assert document["organizationId"] == org_id

    @pytest.mark.asyncio
    async def test_insert_into_other_organization_rejected(self, tenant, mock_collection):
        with pytest.raises(ForbiddenException) as exc:
            await tenant.insert_one({"title": "x", "organizationId": ObjectId()})

        assert exc.value.code == "TENANT_VIOLATION"
        mock_collection.insert_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_cannot_move_record(self, tenant, mock_collection):
        with pytest.raises(ForbiddenException) as exc:
            await tenant.update_one({"_id": ObjectId()}, {"$set": {"organizationId": ObjectId()}})

        assert exc.value.code == "TENANT_VIOLATION"
        mock_collection.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_cannot_unset_organization(self, tenant):
        with pytest.raises(ForbiddenException):
            await tenant.update_many({}, {"$unset": {"organizationId": ""}})

    @pytest.mark.asyncio
    async def test_replacement_documents_rejected(self, tenant):
        with pytest.raises(ValueError):
            await tenant.update_one({"_id": ObjectId()}, {"status": "won"})

    @pytest.mark.asyncio
    async def test_find_one_and_update_scoped_and_returns_after(self, tenant, mock_collection, org_id):
        record_id = ObjectId()
        await tenant.find_one_and_update({"_id": record_id}, {"$set": {"status": "won"}})

        args, kwargs = mock_collection.find_one_and_update.call_args
        assert args[0] == {"_id": record_id, "organizationId": org_id}
        assert args[1] == {"$set": {"status": "won"}}
        assert kwargs["return_document"] == ReturnDocument.AFTER

    @pytest.mark.asyncio
    async def test_delete_is_scoped(self, tenant, mock_collection, org_id):
        record_id = ObjectId()
        await tenant.delete_one({"_id": record_id})

        mock_collection.delete_one.assert_called_once_with({"_id": record_id, "organizationId": org_id})
