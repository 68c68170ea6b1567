"""
CRM Schemas.

Pydantic models for request validation.
"""

from crm.schemas.auth import *
from crm.schemas.user import *
from crm.schemas.organization import *
from crm.schemas.contacts import *
from crm.schemas.leads import *
from crm.schemas.jobs import *
from crm.schemas.estimates import *
