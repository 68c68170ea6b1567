"""
Organization-scoped collection access.

Every CRM collection holding tenant data is accessed through
``TenantCollection``: filters are always ANDed with the caller's
organization id, inserts are stamped with it, and updates may never move
a record to another organization.
"""

import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import ReturnDocument

from common.utils.exceptions import ForbiddenException

logger = logging.getLogger(__name__)

TENANT_FIELD = "organizationId"


class TenantCollection:
    """Wraps a Motor collection and confines it to one organization."""

    def __init__(self, collection, organization_id: ObjectId):
        if not isinstance(organization_id, ObjectId):
            organization_id = ObjectId(organization_id)
        self._collection = collection
        self.organization_id = organization_id

    @property
    def name(self) -> str:
        return self._collection.name

    def _scope(self, filter: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        scoped = dict(filter or {})
        if TENANT_FIELD in scoped and scoped[TENANT_FIELD] != self.organization_id:
            logger.warning(
                f"Cross-tenant filter on {self.name} rewritten to organization {self.organization_id}"
            )
        scoped[TENANT_FIELD] = self.organization_id
        return scoped

    def _check_update(self, update: Dict[str, Any]) -> None:
        for operator, fields in update.items():
            if not operator.startswith("$"):
                raise ValueError("Update documents must use update operators")
            if isinstance(fields, dict) and any(
                key == TENANT_FIELD or key.startswith(f"{TENANT_FIELD}.") for key in fields
            ):
                raise ForbiddenException(
                    message="Records cannot be moved between organizations",
                    code="TENANT_VIOLATION",
                )

    def _stamp(self, document: Dict[str, Any]) -> Dict[str, Any]:
        owner = document.get(TENANT_FIELD)
        if owner is not None and owner != self.organization_id:
            raise ForbiddenException(
                message="Records cannot be created in another organization",
                code="TENANT_VIOLATION",
            )
        document[TENANT_FIELD] = self.organization_id
        return document

    def find(self, filter: Optional[Dict[str, Any]] = None, *args, **kwargs):
        return self._collection.find(self._scope(filter), *args, **kwargs)

    async def find_one(self, filter: Optional[Dict[str, Any]] = None, *args, **kwargs):
        return await self._collection.find_one(self._scope(filter), *args, **kwargs)

    async def count_documents(self, filter: Optional[Dict[str, Any]] = None, **kwargs) -> int:
        return await self._collection.count_documents(self._scope(filter), **kwargs)

    async def insert_one(self, document: Dict[str, Any], **kwargs):
        return await self._collection.insert_one(self._stamp(document), **kwargs)

    async def update_one(self, filter: Dict[str, Any], update: Dict[str, Any], **kwargs):
        self._check_update(update)
        return await self._collection.update_one(self._scope(filter), update, **kwargs)

    async def update_many(self, filter: Dict[str, Any], update: Dict[str, Any], **kwargs):
        self._check_update(update)
        return await self._collection.update_many(self._scope(filter), update, **kwargs)

    async def find_one_and_update(
        self,
        filter: Dict[str, Any],
        update: Dict[str, Any],
        return_document: ReturnDocument = ReturnDocument.AFTER,
        **kwargs,
    ):
        self._check_update(update)
        # Upserts inherit organizationId from the scoped equality filter
        return await self._collection.find_one_and_update(
            self._scope(filter), update, return_document=return_document, **kwargs
        )

    async def delete_one(self, filter: Dict[str, Any], **kwargs):
        return await self._collection.delete_one(self._scope(filter), **kwargs)

    def aggregate(self, pipeline: List[Dict[str, Any]], **kwargs):
        """Aggregate with a leading ``$match`` on the organization."""
        return self._collection.aggregate(
            [{"$match": {TENANT_FIELD: self.organization_id}}, *pipeline], **kwargs
        )
