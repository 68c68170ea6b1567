"""
Pydantic models for leads.
"""

from datetime import date
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

LeadSource = Literal[
    "referral",
    "website",
    "advertising",
    "social_media",
    "direct_mail",
    "cold_call",
    "trade_show",
    "repeat_customer",
    "other",
]
LeadStatus = Literal[
    "new",
    "contacted",
    "qualified",
    "quoted",
    "proposal_sent",
    "follow_up",
    "won",
    "lost",
    "inactive",
]
Division = Literal["multi_family", "single_family", "repair_remodel"]


class LeadFields(BaseModel):
    """Fields shared by create and update."""
    description: Optional[str] = None
    source: Optional[LeadSource] = None
    status: Optional[LeadStatus] = None
    division: Optional[Division] = None
    estimatedValue: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    probability: Optional[int] = Field(None, ge=0, le=100)
    priority: Optional[int] = Field(None, ge=1, le=5)
    expectedCloseDate: Optional[date] = None
    contactId: Optional[str] = None
    assignedTo: Optional[str] = None
    addressLine1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class CreateLeadRequest(LeadFields):
    """Request to create a lead."""
    title: str = Field(..., min_length=1, max_length=200)


class UpdateLeadRequest(LeadFields):
    """Request to update a lead."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)

    @field_validator("title", "status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class ConvertLeadRequest(BaseModel):
    """Optional overrides for the job created from a lead."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    contactId: Optional[str] = None
    contractValue: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    startDate: Optional[date] = None
    scheduledCompletion: Optional[date] = None
    projectManagerId: Optional[str] = None
    fieldManagerId: Optional[str] = None
    notes: Optional[str] = None
