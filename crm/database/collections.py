"""
CRM collection names and index setup.

Global collections (users, organizations, memberships, invitations) are
used directly by the identity services; tenant collections are only
reached through :class:`crm.database.tenant.TenantCollection`.
"""

import logging

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

logger = logging.getLogger(__name__)

# Global collections
USERS = "users"
ORGANIZATIONS = "organizations"
MEMBERSHIPS = "organizationMembers"
INVITATIONS = "invitations"

# Tenant collections
CONTACTS = "contacts"
LEADS = "leads"
JOBS = "jobs"
ESTIMATES = "estimates"
COUNTERS = "counters"


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    """Create the indexes the services rely on for uniqueness and lookups."""
    await db[USERS].create_index("email", unique=True)
    await db[ORGANIZATIONS].create_index("slug", unique=True)
    await db[MEMBERSHIPS].create_index(
        [("organizationId", ASCENDING), ("userId", ASCENDING)], unique=True
    )
    await db[MEMBERSHIPS].create_index([("userId", ASCENDING), ("status", ASCENDING)])
    await db[INVITATIONS].create_index("tokenHash", unique=True)
    await db[INVITATIONS].create_index(
        [("organizationId", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)]
    )
    await db[INVITATIONS].create_index([("status", ASCENDING), ("expiresAt", ASCENDING)])

    await db[CONTACTS].create_index([("organizationId", ASCENDING), ("displayName", ASCENDING)])
    await db[LEADS].create_index([("organizationId", ASCENDING), ("status", ASCENDING)])
    await db[LEADS].create_index([("organizationId", ASCENDING), ("assignedTo", ASCENDING)])
    await db[JOBS].create_index(
        [("organizationId", ASCENDING), ("jobNumber", ASCENDING)], unique=True
    )
    await db[ESTIMATES].create_index(
        [("organizationId", ASCENDING), ("estimateNumber", ASCENDING)], unique=True
    )
    await db[COUNTERS].create_index(
        [("organizationId", ASCENDING), ("name", ASCENDING)], unique=True
    )

    logger.info("Database indexes ensured")
