"""
Pydantic models for jobs.
"""

from datetime import date
from typing import List, Literal, Optional
from pydantic import BaseModel, Field, field_validator

from crm.schemas.leads import Division

JobStatus = Literal["pending", "scheduled", "in_progress", "completed", "on_hold", "cancelled"]


class JobFields(BaseModel):
    """Fields shared by create and update."""
    description: Optional[str] = None
    division: Optional[Division] = None
    status: Optional[JobStatus] = None
    contractValue: Optional[float] = Field(None, ge=0, allow_inf_nan=False)
    startDate: Optional[date] = None
    scheduledCompletion: Optional[date] = None
    actualCompletion: Optional[date] = None
    leadId: Optional[str] = None
    projectManagerId: Optional[str] = None
    fieldManagerId: Optional[str] = None
    addressLine1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None


class CreateJobRequest(JobFields):
    """Request to create a job."""
    title: str = Field(..., min_length=1, max_length=200)
    contactId: Optional[str] = None


class UpdateJobRequest(JobFields):
    """Request to update a job."""
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    contactId: Optional[str] = None

    @field_validator("title", "status", "contactId")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value
