"""
Email service for transactional emails.

Supports console logging (development), SMTP and the Resend HTTP API.
"""

import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

import aiosmtplib
import httpx

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


class EmailService:
    """
    Email service with multi-mode support.

    Modes:
        - console: Log emails (bodies only when log_bodies is set)
        - smtp: Send via SMTP
        - resend: Send via Resend HTTP API
    """

    def __init__(
        self,
        mode: str = "console",
        from_email: str = "noreply@exteriorcrm.app",
        from_name: str = "Exterior CRM",
        app_url: str = "http://localhost:3000",
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        resend_api_key: Optional[str] = None,
        log_bodies: bool = False,
    ):
        self._mode = mode
        self._log_bodies = log_bodies
        self._from_email = from_email
        self._from_name = from_name
        self._app_url = app_url.rstrip("/")
        self._smtp_host = smtp_host
        self._smtp_port = smtp_port
        self._smtp_user = smtp_user
        self._smtp_password = smtp_password
        self._resend_api_key = resend_api_key

        if self._mode == "smtp" and not self._smtp_host:
            logger.warning("SMTP host not configured, falling back to console mode")
            self._mode = "console"
        elif self._mode == "resend" and not self._resend_api_key:
            logger.warning("Resend API key not configured, falling back to console mode")
            self._mode = "console"

        logger.info(f"Email service initialized in {self._mode} mode")

    @property
    def mode(self) -> str:
        return self._mode

    def invitation_link(self, token: str) -> str:
        return f"{self._app_url}/accept-invitation?token={token}"

    async def send_invitation_email(
        self,
        to_email: str,
        token: str,
        organization_name: str,
        role_label: str,
        inviter_name: str,
        expires_at: str,
    ) -> dict:
        """
        Send a team invitation.

        Args:
            to_email: Invitee email
            token: Raw invitation token (only ever sent to the invitee)
            organization_name: Inviting organization
            role_label: Human-readable role
            inviter_name: Who sent the invitation
            expires_at: Formatted expiry date

        Returns:
            dict with success status
        """
        link = self.invitation_link(token)
        subject = f"You're invited to join {organization_name}"

        text = (
            f"{inviter_name} has invited you to join {organization_name} as {role_label}.\n\n"
            f"Accept the invitation: {link}\n\n"
            f"This invitation expires on {expires_at}."
        )
        html = (
            f"<p><strong>{escape(inviter_name)}</strong> has invited you to join "
            f"<strong>{escape(organization_name)}</strong> as {escape(role_label)}.</p>"
            f'<p><a href="{escape(link)}">Accept invitation</a></p>'
            f"<p>This invitation expires on {escape(expires_at)}.</p>"
        )

        return await self._send(to_email, subject, html, text)

    async def _send(self, to: str, subject: str, html: str, text: str) -> dict:
        """Send email via configured provider."""
        if self._mode == "console":
            return self._send_console(to, subject, text)
        elif self._mode == "smtp":
            return await self._send_smtp(to, subject, html, text)
        elif self._mode == "resend":
            return await self._send_resend(to, subject, html, text)

        logger.error(f"Unknown email mode: {self._mode}")
        return {"success": False, "error": f"Unknown email mode: {self._mode}"}

    def _send_console(self, to: str, subject: str, text: str) -> dict:
        logger.info("=" * 60)
        logger.info("EMAIL (console mode)")
        logger.info(f"To: {to}")
        logger.info(f"Subject: {subject}")
        logger.info("-" * 60)
        # Bodies carry invitation links with raw tokens
        if self._log_bodies:
            logger.info(text)
        else:
            logger.info("(body withheld outside development)")
        logger.info("=" * 60)
        return {"success": True, "mode": "console"}

    async def _send_smtp(self, to: str, subject: str, html: str, text: str) -> dict:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self._from_name} <{self._from_email}>"
        message["To"] = to
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        # Port 465 is implicit TLS, anything else negotiates STARTTLS
        use_tls = self._smtp_port == 465

        try:
            await aiosmtplib.send(
                message,
                hostname=self._smtp_host,
                port=self._smtp_port,
                username=self._smtp_user,
                password=self._smtp_password,
                use_tls=use_tls,
                start_tls=not use_tls,
            )
        except aiosmtplib.SMTPException as e:
            logger.error(f"Failed to send email via SMTP: {e}")
            return {"success": False, "error": str(e)}

        logger.info(f"Email sent via SMTP to {to}")
        return {"success": True, "mode": "smtp"}

    async def _send_resend(self, to: str, subject: str, html: str, text: str) -> dict:
        async with httpx.AsyncClient(timeout=10.0) as client:
            try:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self._resend_api_key}"},
                    json={
                        "from": f"{self._from_name} <{self._from_email}>",
                        "to": [to],
                        "subject": subject,
                        "html": html,
                        "text": text,
                    },
                )
            except httpx.HTTPError as e:
                logger.error(f"Failed to send email via Resend: {e}")
                return {"success": False, "error": str(e)}

        if response.status_code >= 400:
            logger.error(f"Resend API error {response.status_code}: {response.text}")
            return {"success": False, "error": response.text}

        return {"success": True, "mode": "resend", "messageId": response.json().get("id")}
