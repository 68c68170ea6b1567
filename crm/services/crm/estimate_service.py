"""
Estimate service.

Priced proposals. Totals are always recomputed from the line items and
tax rate; clients never send totals. Estimators only see the estimates
they prepared.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Tuple

from pymongo import ReturnDocument

from common.utils.exceptions import BadRequestException, ConflictException
from crm.context import AuthContext
from crm.database import collections, optional_object_id
from crm.services.crm.base import TenantScopedService, to_datetime
from crm.services.crm.numbering import next_number

logger = logging.getLogger(__name__)

LOCKED_STATUSES = frozenset({"accepted", "rejected"})

STATUS_TRANSITIONS = {
    "draft": {"sent"},
    "sent": {"viewed", "accepted", "rejected", "expired", "draft"},
    "viewed": {"accepted", "rejected", "expired"},
    "expired": {"draft"},
    "accepted": set(),
    "rejected": set(),
}

# Timestamp stamped when an estimate enters the status
STATUS_TIMESTAMPS = {
    "sent": "sentAt",
    "viewed": "viewedAt",
    "accepted": "acceptedAt",
    "rejected": "rejectedAt",
}

ESTIMATE_FIELDS = (
    "title",
    "description",
    "division",
    "validUntil",
    "terms",
    "notes",
)

CENT = Decimal("0.01")


def _money(value: Decimal) -> float:
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


def compute_totals(line_items: List[Dict[str, Any]], tax_rate: float) -> Dict[str, Any]:
    """
    Price line items and apply tax.

    ``tax_rate`` is a percentage (8.25 means 8.25%). Every line total and
    the tax amount are rounded half-up to cents.
    """
    priced = []
    subtotal = Decimal("0")
    for item in line_items:
        quantity = Decimal(str(item.get("quantity", 0)))
        unit_price = Decimal(str(item.get("unitPrice", 0)))
        if not (quantity.is_finite() and unit_price.is_finite()):
            raise BadRequestException(
                message="Line item quantity and unit price must be finite numbers",
                code="INVALID_LINE_ITEM",
            )
        line_total = (quantity * unit_price).quantize(CENT, rounding=ROUND_HALF_UP)
        subtotal += line_total
        priced.append({
            "description": item.get("description"),
            "quantity": float(quantity),
            "unit": item.get("unit"),
            "unitPrice": float(unit_price),
            "total": float(line_total),
        })

    rate = Decimal(str(tax_rate or 0))
    if not rate.is_finite():
        raise BadRequestException(message="Tax rate must be a finite number", code="INVALID_TAX_RATE")
    tax_amount = (subtotal * rate / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)

    return {
        "lineItems": priced,
        "subtotal": _money(subtotal),
        "taxRate": float(tax_rate or 0),
        "taxAmount": _money(tax_amount),
        "totalAmount": _money(subtotal + tax_amount),
    }


class EstimateService(TenantScopedService):
    """
    Manages estimates.
    """

    collection_name = collections.ESTIMATES
    resource_label = "Estimate"
    not_found_code = "ESTIMATE_NOT_FOUND"

    def visibility_filter(self, ctx: AuthContext) -> Dict[str, Any]:
        if ctx.limited:
            return {"preparedBy": ctx.user_id}
        return {}

    async def list_estimates(
        self,
        ctx: AuthContext,
        status: Optional[str] = None,
        contact_id: Optional[str] = None,
        lead_id: Optional[str] = None,
        page: int = 1,
        limit: int = 25,
    ) -> Tuple[List[Dict[str, Any]], int]:
        query: Dict[str, Any] = {}
        if status:
            query["status"] = status
        if contact_id:
            query["contactId"] = optional_object_id(contact_id, "contactId")
        if lead_id:
            query["leadId"] = optional_object_id(lead_id, "leadId")

        docs, total = await self.list_docs(ctx, query, page, limit)
        return [self._format_estimate(doc) for doc in docs], total

    async def get_estimate(self, ctx: AuthContext, estimate_id: str) -> Dict[str, Any]:
        return self._format_estimate(await self.get_doc(ctx, estimate_id))

    async def create_estimate(self, ctx: AuthContext, data: Dict[str, Any]) -> Dict[str, Any]:
        fields = {key: to_datetime(data[key]) for key in ESTIMATE_FIELDS if key in data}
        refs = {
            "contactId": await self.ensure_reference(ctx, collections.CONTACTS, data.get("contactId"), "contactId"),
            "leadId": await self.ensure_reference(ctx, collections.LEADS, data.get("leadId"), "leadId"),
        }

        now = datetime.now(timezone.utc)
        estimate_doc = {
            **fields,
            **refs,
            **compute_totals(data.get("lineItems") or [], data.get("taxRate") or 0),
            "estimateNumber": await next_number(self.scoped(ctx, collections.COUNTERS), "E"),
            "status": "draft",
            "preparedBy": ctx.user_id,
            "approvedBy": None,
            "sentAt": None,
            "viewedAt": None,
            "acceptedAt": None,
            "rejectedAt": None,
            "createdAt": now,
            "updatedAt": now,
        }

        result = await self.collection(ctx).insert_one(estimate_doc)
        estimate_doc["_id"] = result.inserted_id

        logger.info(f"Estimate {estimate_doc['estimateNumber']} created in org {ctx.organization_id}")
        return self._format_estimate(estimate_doc)

    async def update_estimate(
        self,
        ctx: AuthContext,
        estimate_id: str,
        updates: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Edit an open estimate; ``status`` goes through :meth:`change_status` rules.

        Raises:
            ConflictException: Estimate already accepted or rejected, or bad transition
        """
        existing = await self.get_doc(ctx, estimate_id)
        if existing.get("status") in LOCKED_STATUSES:
            raise ConflictException(
                message=f"Estimate is {existing['status']} and can no longer be edited",
                code="ESTIMATE_LOCKED",
            )

        changes = {key: to_datetime(updates[key]) for key in ESTIMATE_FIELDS if key in updates}

        if "contactId" in updates:
            changes["contactId"] = await self.ensure_reference(
                ctx, collections.CONTACTS, updates["contactId"], "contactId"
            )
        if "leadId" in updates:
            changes["leadId"] = await self.ensure_reference(ctx, collections.LEADS, updates["leadId"], "leadId")
        if "approvedBy" in updates:
            changes["approvedBy"] = await self.ensure_member(ctx, updates["approvedBy"], "approvedBy")

        if "lineItems" in updates or "taxRate" in updates:
            line_items = updates.get("lineItems")
            if line_items is None:
                line_items = existing.get("lineItems") or []
            tax_rate = updates.get("taxRate")
            if tax_rate is None:
                tax_rate = existing.get("taxRate") or 0
            changes.update(compute_totals(line_items, tax_rate))

        now = datetime.now(timezone.utc)
        new_status = updates.get("status")
        if new_status and new_status != existing.get("status"):
            changes.update(self._status_changes(existing.get("status"), new_status, now))

        changes["updatedAt"] = now

        # Must still be in the status checked above
        result = await self.collection(ctx).find_one_and_update(
            {"_id": existing["_id"], "status": existing.get("status")},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise ConflictException(
                message="Estimate was modified concurrently",
                code="ESTIMATE_CONFLICT",
            )
        return self._format_estimate(result)

    async def change_status(self, ctx: AuthContext, estimate_id: str, status: str) -> Dict[str, Any]:
        """
        Move an estimate along its lifecycle and stamp the matching timestamp.

        Raises:
            ConflictException: Transition not allowed
        """
        existing = await self.get_doc(ctx, estimate_id)
        now = datetime.now(timezone.utc)
        changes = self._status_changes(existing.get("status"), status, now)
        changes["updatedAt"] = now

        result = await self.collection(ctx).find_one_and_update(
            {"_id": existing["_id"], "status": existing.get("status")},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        if not result:
            raise ConflictException(
                message="Estimate was modified concurrently",
                code="ESTIMATE_CONFLICT",
            )

        logger.info(f"Estimate {estimate_id} moved {existing.get('status')} -> {status}")
        return self._format_estimate(result)

    @staticmethod
    def _status_changes(current: str, new: str, now: datetime) -> Dict[str, Any]:
        if new not in STATUS_TRANSITIONS.get(current, set()):
            raise ConflictException(
                message=f"Cannot change estimate status from {current} to {new}",
                code="INVALID_STATUS_TRANSITION",
            )
        changes: Dict[str, Any] = {"status": new}
        if new in STATUS_TIMESTAMPS:
            changes[STATUS_TIMESTAMPS[new]] = now
        return changes

    async def delete_estimate(self, ctx: AuthContext, estimate_id: str) -> None:
        await self.delete_doc(ctx, estimate_id)

    def _format_estimate(self, estimate: Dict[str, Any]) -> Dict[str, Any]:
        formatted = {key: estimate.get(key) for key in ESTIMATE_FIELDS}
        formatted.update({
            "id": str(estimate["_id"]),
            "organizationId": str(estimate["organizationId"]),
            "estimateNumber": estimate.get("estimateNumber"),
            "status": estimate.get("status"),
            "contactId": self.id_or_none(estimate.get("contactId")),
            "leadId": self.id_or_none(estimate.get("leadId")),
            "lineItems": estimate.get("lineItems") or [],
            "subtotal": estimate.get("subtotal", 0),
            "taxRate": estimate.get("taxRate", 0),
            "taxAmount": estimate.get("taxAmount", 0),
            "totalAmount": estimate.get("totalAmount", 0),
            "preparedBy": self.id_or_none(estimate.get("preparedBy")),
            "approvedBy": self.id_or_none(estimate.get("approvedBy")),
            "sentAt": estimate.get("sentAt"),
            "viewedAt": estimate.get("viewedAt"),
            "acceptedAt": estimate.get("acceptedAt"),
            "rejectedAt": estimate.get("rejectedAt"),
            "createdAt": estimate.get("createdAt"),
            "updatedAt": estimate.get("updatedAt"),
        })
        return formatted
