"""
Shared plumbing for the organization-scoped CRM services.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument

from common.utils.exceptions import BadRequestException, NotFoundException
from crm.context import AuthContext
from crm.database import collections, to_object_id, TenantCollection

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def to_datetime(value: Any) -> Any:
    """BSON cannot store ``date``; promote it to midnight UTC."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    return value


class TenantScopedService:
    """
    Base class for services whose records belong to one organization.

    Subclasses set ``collection_name`` and ``resource_label`` and may
    override :meth:`visibility_filter` to narrow what limited roles see.
    """

    collection_name: str = ""
    resource_label: str = "Record"
    not_found_code: str = "NOT_FOUND"

    def __init__(self, db: AsyncIOMotorDatabase):
        self._db = db

    def collection(self, ctx: AuthContext) -> TenantCollection:
        return TenantCollection(self._db[self.collection_name], ctx.organization_id)

    def scoped(self, ctx: AuthContext, name: str) -> TenantCollection:
        return TenantCollection(self._db[name], ctx.organization_id)

    def visibility_filter(self, ctx: AuthContext) -> Dict[str, Any]:
        """Extra filter applied to every read; empty means the whole organization."""
        return {}

    async def get_doc(self, ctx: AuthContext, record_id: str) -> Dict[str, Any]:
        """
        Load one record visible to ``ctx``.

        Raises:
            NotFoundException: Missing, invisible to the caller, or in another organization
        """
        oid = to_object_id(record_id, "id")
        doc = await self.collection(ctx).find_one({"_id": oid, **self.visibility_filter(ctx)})
        if not doc:
            raise NotFoundException(
                message=f"{self.resource_label} not found",
                code=self.not_found_code,
            )
        return doc

    async def ensure_reference(
        self,
        ctx: AuthContext,
        collection_name: str,
        value: Any,
        field: str,
    ) -> Optional[ObjectId]:
        """
        Resolve a reference to another record of the same organization.

        Raises:
            BadRequestException: Malformed id or no such record in this organization
        """
        if value in (None, ""):
            return None

        oid = to_object_id(value, field)
        if not await self.scoped(ctx, collection_name).count_documents({"_id": oid}, limit=1):
            raise BadRequestException(
                message=f"{field} does not reference a record in this organization",
                code="INVALID_REFERENCE",
            )
        return oid

    async def ensure_member(self, ctx: AuthContext, value: Any, field: str) -> Optional[ObjectId]:
        """
        Resolve a user reference that must be an active member of the organization.

        Raises:
            BadRequestException: Malformed id or not an active member
        """
        if value in (None, ""):
            return None

        oid = to_object_id(value, field)
        membership = await self._db[collections.MEMBERSHIPS].find_one({
            "organizationId": ctx.organization_id,
            "userId": oid,
            "status": "active",
        })
        if not membership:
            raise BadRequestException(
                message=f"{field} must be an active member of this organization",
                code="INVALID_ASSIGNEE",
            )
        return oid

    async def list_docs(
        self,
        ctx: AuthContext,
        filter: Dict[str, Any],
        page: int = 1,
        limit: int = 25,
        sort: Tuple[str, int] = ("createdAt", -1),
    ) -> Tuple[List[Dict[str, Any]], int]:
        """One page of visible records plus the total count."""
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        query = {**filter, **self.visibility_filter(ctx)}

        coll = self.collection(ctx)
        total = await coll.count_documents(query)
        docs = await (
            coll.find(query)
            .sort(*sort)
            .skip((page - 1) * limit)
            .limit(limit)
            .to_list(length=limit)
        )
        return docs, total

    async def update_doc(
        self,
        ctx: AuthContext,
        doc: Dict[str, Any],
        changes: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Apply ``$set: changes`` to a record loaded by :meth:`get_doc` and return it.

        Raises:
            NotFoundException: The record was deleted since it was read
        """
        result = await self.collection(ctx).find_one_and_update(
            {"_id": doc["_id"]},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise NotFoundException(
                message=f"{self.resource_label} not found",
                code=self.not_found_code,
            )
        return result

    async def delete_doc(self, ctx: AuthContext, record_id: str) -> None:
        doc = await self.get_doc(ctx, record_id)
        await self.collection(ctx).delete_one({"_id": doc["_id"]})
        logger.info(f"{self.resource_label} {record_id} deleted in org {ctx.organization_id} by {ctx.user_id}")

    @staticmethod
    def id_or_none(value: Any) -> Optional[str]:
        return str(value) if value is not None else None
