"""Per-organization document numbers (J-2026-0001, E-2026-0001)."""

from datetime import datetime, timezone

from pymongo import ReturnDocument

from crm.database.tenant import TenantCollection


async def next_sequence(counters: TenantCollection, name: str) -> int:
    """Atomically increment and return the organization's counter ``name``."""
    counter = await counters.find_one_and_update(
        {"name": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["seq"]


async def next_number(counters: TenantCollection, prefix: str) -> str:
    """
    Next document number for ``prefix``, restarting every calendar year.

    Example: ``await next_number(counters, "J")`` -> ``"J-2026-0007"``
    """
    year = datetime.now(timezone.utc).year
    seq = await next_sequence(counters, f"{prefix}-{year}")
    return f"{prefix}-{year}-{seq:04d}"
