"""
CRM application settings.

Extends the base settings with invitation, trial, rate-limit and email
configuration.
"""

from typing import Optional
from common.config import BaseAppSettings


class Settings(BaseAppSettings):
    """Exterior CRM settings."""

    APP_NAME: str = "Exterior CRM"

    # ==========================================================================
    # Tenancy
    # ==========================================================================
    INVITATION_EXPIRE_DAYS: int = 7
    TRIAL_PERIOD_DAYS: int = 14

    # ==========================================================================
    # Rate Limiting
    # ==========================================================================
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    AUTH_RATE_LIMIT_REQUESTS: int = 10

    # ==========================================================================
    # Pagination
    # ==========================================================================
    DEFAULT_PAGE_SIZE: int = 25
    MAX_PAGE_SIZE: int = 100

    # ==========================================================================
    # Email Settings (invitations)
    # ==========================================================================
    EMAIL_MODE: str = "console"  # console, smtp or resend
    RESEND_API_KEY: Optional[str] = None
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_EMAIL: str = "noreply@exteriorcrm.app"
    SMTP_FROM_NAME: str = "Exterior CRM"

    # ==========================================================================
    # Frontend URL (for email links)
    # ==========================================================================
    FRONTEND_URL: str = "http://localhost:3000"


settings = Settings()
