"""
CRM data access: collection names, tenant scoping, id parsing.
"""

from crm.database.ids import to_object_id, optional_object_id
from crm.database.tenant import TenantCollection, TENANT_FIELD
from crm.database.collections import ensure_indexes

__all__ = [
    "to_object_id",
    "optional_object_id",
    "TenantCollection",
    "TENANT_FIELD",
    "ensure_indexes",
]
