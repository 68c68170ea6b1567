"""
CRM API Routers.

All routers are imported here for easy access.
"""

from crm.routers.auth import router as auth_router
from crm.routers.user import router as user_router
from crm.routers.organization import router as organization_router
from crm.routers.contacts import router as contacts_router
from crm.routers.leads import router as leads_router
from crm.routers.jobs import router as jobs_router
from crm.routers.estimates import router as estimates_router

__all__ = [
    "auth_router",
    "user_router",
    "organization_router",
    "contacts_router",
    "leads_router",
    "jobs_router",
    "estimates_router",
]
