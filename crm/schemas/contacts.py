"""
Pydantic models for contacts.
"""

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

ContactType = Literal["customer", "prospect", "vendor", "crew", "internal"]


class ContactFields(BaseModel):
    """Fields shared by create and update."""
    firstName: Optional[str] = Field(None, max_length=100)
    lastName: Optional[str] = Field(None, max_length=100)
    companyName: Optional[str] = Field(None, max_length=200)
    displayName: Optional[str] = Field(None, max_length=200)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    mobile: Optional[str] = Field(None, max_length=30)
    addressLine1: Optional[str] = None
    addressLine2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None
    country: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None
    customFields: Optional[Dict[str, Any]] = None


class CreateContactRequest(ContactFields):
    """Request to create a contact."""
    type: ContactType = "customer"


class UpdateContactRequest(ContactFields):
    """Request to update a contact."""
    type: Optional[ContactType] = None
    isActive: Optional[bool] = None

    @field_validator("type", "isActive")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value
