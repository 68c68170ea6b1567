"""
Pydantic models for Organization system request validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field


class OrganizationSettings(BaseModel):
    """Organization settings; merged into the stored settings."""
    timezone: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    defaultTaxRate: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)
    divisions: Optional[List[str]] = None


class UpdateOrganizationRequest(BaseModel):
    """Request to update the current organization."""
    name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = None
    addressLine1: Optional[str] = None
    addressLine2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    websiteUrl: Optional[str] = None
    logoUrl: Optional[str] = None
    taxId: Optional[str] = None
    settings: Optional[OrganizationSettings] = None


class UpdateMemberRequest(BaseModel):
    """Request to change a member's role or status."""
    role: Optional[str] = None
    status: Optional[str] = None
