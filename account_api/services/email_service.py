"""Service for sending verification emails."""

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Tuple

from ..domain.models import Account
from ..domain.ports.notifications import NotificationReason

logger = logging.getLogger(__name__)


class EmailDeliveryError(RuntimeError):
    """Raised when the SMTP transport rejects or drops a message."""


class EmailService:
    """Verification notifier that delivers messages over SMTP."""

    def __init__(
        self,
        base_url: str,
        smtp_host: Optional[str] = None,
        smtp_port: int = 587,
        smtp_username: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: str = "Accounts",
        timeout: float = 10.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.smtp_host = smtp_host or ""
        self.smtp_port = smtp_port
        self.smtp_username = smtp_username or ""
        self.smtp_password = smtp_password or ""
        self.from_email = from_email or ""
        self.from_name = from_name
        self.timeout = timeout
        self.enabled = bool(self.smtp_host and self.from_email)

    def verification_url(self, token: str) -> str:
        return f"{self.base_url}/accounts/verify/{token}"

    def send_verification(self, account: Account, reason: NotificationReason) -> None:
        """
        Send the verification message matching ``reason`` to the account.

        Args:
            account: Recipient account; its current email and token are used
            reason: Why the message is being sent

        Raises:
            EmailDeliveryError: If the SMTP exchange fails
        """
        if not account.verification_token:
            raise ValueError(f"Account {account.id} has no pending verification token.")

        verification_url = self.verification_url(account.verification_token)

        if not self.enabled:
            # Log verification URL for development
            logger.info("Verification URL for %s: %s", account.email, verification_url)
            return

        subject, text_body, html_body = self._render(account, reason, verification_url)
        self._send_email(account.email, subject, html_body, text_body)

    def _render(
        self, account: Account, reason: NotificationReason, verification_url: str
    ) -> Tuple[str, str, str]:
        if reason is NotificationReason.EMAIL_CHANGED:
            subject = "Please confirm your new email"
            intro = "You changed your email. Please confirm the new address using this link:"
        else:
            subject = "Please confirm your account"
            intro = "Thanks for creating an account. Please verify it using this link:"

        text_body = f"""
        Hello {account.name},

        {intro}
        {verification_url}

        If you did not request this, you can ignore this email.
        """

        safe_name = html.escape(account.name)
        safe_url = html.escape(verification_url)
        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; padding: 20px;">
                <h2 style="color: #1e293b;">Hello {safe_name},</h2>
                <p style="color: #475569; line-height: 1.6;">{intro}</p>
                <div style="text-align: center; margin: 30px 0;">
                    <a href="{safe_url}"
                       style="background-color: #3b82f6; color: white; padding: 15px 30px;
                              text-decoration: none; border-radius: 5px; display: inline-block;
                              font-weight: bold;">
                        Verify account
                    </a>
                </div>
                <p style="color: #64748b; font-size: 14px;">
                    If you did not request this, you can ignore this email.
                </p>
            </body>
        </html>
        """

        return subject, text_body, html_body

    def _send_email(self, to_email: str, subject: str, html_body: str, text_body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                server.starttls()
                if self.smtp_username:
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Failed to send email to {to_email}: {exc}") from exc
