"""
Invitation expiry background job.

Marks pending invitations whose expiry has passed as ``expired`` so they
stop counting as pending and can be re-issued.

Usage:
    Run via CRON:
        0 * * * * cd /path/to/project && python -m jobs.expire_invitations

    Or run directly:
        python -m jobs.expire_invitations
"""

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from motor.motor_asyncio import AsyncIOMotorClient

from crm.config import settings
from crm.services.email.email_service import EmailService
from crm.services.invitation.invitation_service import InvitationService
from crm.services.organization.organization_service import OrganizationService
from crm.services.user.user_service import UserService

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


class ExpireInvitationsJob:
    """
    Expires stale invitations across every organization.
    """

    def __init__(self, db_uri: str, db_name: str = "exterior_crm"):
        """
        Args:
            db_uri: MongoDB URI
            db_name: Database name
        """
        self._client = AsyncIOMotorClient(db_uri, tz_aware=True)
        db = self._client[db_name]

        user_service = UserService(db=db)
        self._invitation_service = InvitationService(
            db=db,
            organization_service=OrganizationService(db=db),
            user_service=user_service,
            email_service=EmailService(),
        )

    async def run(self) -> Dict[str, Any]:
        """
        Execute the job.

        Returns:
            Dict with the number of invitations expired and any errors
        """
        logger.info("Starting invitation expiry job")
        start_time = datetime.now(timezone.utc)

        results: Dict[str, Any] = {
            "startTime": start_time.isoformat(),
            "invitationsExpired": 0,
            "errors": [],
        }

        try:
            results["invitationsExpired"] = await self._invitation_service.expire_old_invitations()
        except Exception as e:
            error_msg = f"Job failed: {str(e)}"
            logger.error(error_msg)
            results["errors"].append(error_msg)

        end_time = datetime.now(timezone.utc)
        results["endTime"] = end_time.isoformat()
        results["durationSeconds"] = (end_time - start_time).total_seconds()

        logger.info(
            f"Invitation expiry job completed. "
            f"Expired: {results['invitationsExpired']}, "
            f"Errors: {len(results['errors'])}"
        )

        return results

    def close(self) -> None:
        """Close database connection."""
        self._client.close()


async def main():
    """Main entry point for the invitation expiry job."""
    job = ExpireInvitationsJob(
        db_uri=settings.MONGODB_URI,
        db_name=settings.MONGODB_DATABASE,
    )

    try:
        results = await job.run()
        sys.exit(1 if results["errors"] else 0)
    finally:
        job.close()


if __name__ == "__main__":
    asyncio.run(main())
