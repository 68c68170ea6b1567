"""
Pydantic models for Auth system request validation.

Registration, invitation and acceptance bodies keep their fields optional
so missing fields are reported together as a 400 rather than a 422.
"""

from typing import Any, Optional
from pydantic import BaseModel, Field, EmailStr


class SignupRequest(BaseModel):
    """Request body for account creation."""
    email: EmailStr
    password: str = Field(..., min_length=1)
    firstName: str = Field(..., min_length=1, max_length=50)
    lastName: str = Field(..., min_length=1, max_length=50)


class LoginRequest(BaseModel):
    """Request body for user login."""
    email: EmailStr
    password: str = Field(..., min_length=1)


class RegisterOrganizationRequest(BaseModel):
    """Request body for registering a new organization."""
    organizationName: Optional[str] = None
    organizationSlug: Optional[str] = None
    ownerFirstName: Optional[str] = None
    ownerLastName: Optional[str] = None
    ownerEmail: Optional[str] = None
    phone: Optional[str] = None
    addressLine1: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zipCode: Optional[str] = None


class InviteUserRequest(BaseModel):
    """Request body for inviting a user into the current organization."""
    email: Optional[str] = None
    role: Optional[str] = None


class AcceptInvitationRequest(BaseModel):
    """Request body for accepting an invitation."""
    invitationToken: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    phone: Optional[str] = None
    mobile: Optional[str] = None
    timezone: Optional[str] = None


class SwitchOrganizationRequest(BaseModel):
    """Request body for switching the current organization."""
    # Any, so a non-string id is answered with 400 instead of 422
    organization_id: Optional[Any] = None
