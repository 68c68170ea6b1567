"""
Pydantic models for estimates.
"""

from datetime import date
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from crm.schemas.leads import Division

EstimateStatus = Literal["draft", "sent", "viewed", "accepted", "rejected", "expired"]


class LineItem(BaseModel):
    """One priced line; the total is computed server-side."""
    description: str = Field(..., min_length=1, max_length=500)
    quantity: float = Field(..., ge=0, allow_inf_nan=False)
    unit: Optional[str] = Field(None, max_length=20)
    unitPrice: float = Field(..., ge=0, allow_inf_nan=False)


class EstimateFields(BaseModel):
    """Fields shared by create and update."""
    description: Optional[str] = None
    division: Optional[Division] = None
    contactId: Optional[str] = None
    leadId: Optional[str] = None
    lineItems: Optional[List[LineItem]] = None
    taxRate: Optional[float] = Field(None, ge=0, le=100, allow_inf_nan=False)
    validUntil: Optional[date] = None
    terms: Optional[str] = None
    notes: Optional[str] = None


class CreateEstimateRequest(EstimateFields):
    """Request to create an estimate."""
    title: str = Field(..., min_length=1, max_length=200)


class UpdateEstimateRequest(EstimateFields):
    """Request to update an open estimate."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[EstimateStatus] = None
    approvedBy: Optional[str] = None

    @field_validator("title", "status")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value


class EstimateStatusRequest(BaseModel):
    """Request to move an estimate to a new status."""
    status: EstimateStatus
