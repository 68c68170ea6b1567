"""
Pydantic models for the user profile.
"""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class NotificationPreferences(BaseModel):
    """Notification channels."""
    email: Optional[bool] = None
    browser: Optional[bool] = None
    mobile: Optional[bool] = None


class UpdateProfileRequest(BaseModel):
    """Request to update the caller's own profile. Unknown fields are ignored."""
    firstName: Optional[str] = Field(None, min_length=1, max_length=50)
    lastName: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=30)
    mobile: Optional[str] = Field(None, max_length=30)
    title: Optional[str] = Field(None, max_length=100)
    timezone: Optional[str] = Field(None, max_length=64)
    notificationPreferences: Optional[NotificationPreferences] = None

    @field_validator("firstName", "lastName")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may not be null")
        return value

    def to_updates(self) -> dict:
        """Only the fields the client sent, keyed the way UserService expects."""
        sent = self.model_dump(exclude_unset=True)
        if sent.get("notificationPreferences") is not None:
            sent["notificationPreferences"] = {
                key: value
                for key, value in sent["notificationPreferences"].items()
                if value is not None
            }
        keys = {
            "firstName": "first_name",
            "lastName": "last_name",
            "phone": "phone",
            "mobile": "mobile",
            "title": "title",
            "timezone": "timezone",
            "notificationPreferences": "notification_preferences",
        }
        return {keys[key]: value for key, value in sent.items()}
