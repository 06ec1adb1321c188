"""
SMTP delivery for notification emails.

smtplib is blocking, so sends run in a worker thread. Sending never raises:
every outcome is reported as an ``EmailResult``.
"""

import asyncio
import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from core.config import Settings, get_settings
from database.models import Notification

logger = logging.getLogger(__name__)

NOT_CONFIGURED = "Email transport not configured"


@dataclass(frozen=True)
class EmailResult:
    success: bool
    error: str | None = None


class EmailService:
    """Sends notification emails over SMTP."""

    def __init__(self, settings: Settings | None = None):
        settings = settings or get_settings()
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = settings.smtp_use_tls
        self.email_from = settings.email_from
        self.frontend_url = settings.frontend_url.rstrip("/")

    @property
    def is_configured(self) -> bool:
        return all([self.smtp_host, self.smtp_user, self.smtp_password])

    def build_message(self, to_email: str, user_name: str, notification: Notification) -> MIMEMultipart:
        """Multipart text/HTML email for one notification."""
        action_link = ""
        action_text = ""
        if notification.action_url:
            url = f"{self.frontend_url}{notification.action_url}"
            label = html.escape(notification.action_label or "Open FitLife")
            action_link = f'<a href="{html.escape(url)}" class="button">{label}</a>'
            action_text = f"\n\n{notification.action_label or 'Open FitLife'}: {url}"

        text_body = (
            f"Hi {user_name},\n\n{notification.title}\n\n{notification.message}{action_text}"
            "\n\nYou are receiving this email because email notifications are enabled "
            "in your FitLife preferences."
        )
        html_body = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <title>{html.escape(notification.title)}</title>
            <style>
                body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
                .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
                .header {{ background-color: #4f46e5; color: white; padding: 20px; text-align: center; border-radius: 8px; }}
                .content {{ padding: 20px; }}
                .button {{ display: inline-block; padding: 12px 24px; background-color: #4f46e5; color: white; text-decoration: none; border-radius: 4px; margin: 20px 0; }}
                .footer {{ font-size: 12px; color: #666; margin-top: 20px; }}
            </style>
        </head>
        <body>
            <div class="container">
                <div class="header">
                    <h1>{html.escape(notification.title)}</h1>
                </div>
                <div class="content">
                    <p>Hi {html.escape(user_name)},</p>
                    <p>{html.escape(notification.message)}</p>
                    {action_link}
                </div>
                <div class="footer">
                    <p>You are receiving this email because email notifications are enabled in your FitLife preferences.</p>
                </div>
            </div>
        </body>
        </html>
        """

        msg = MIMEMultipart("alternative")
        msg["Subject"] = notification.title
        msg["From"] = self.email_from
        msg["To"] = to_email
        msg.attach(MIMEText(text_body, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _send(self, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
            if self.smtp_use_tls:
                server.starttls()
            server.login(self.smtp_user, self.smtp_password)
            server.send_message(msg)

    async def send_notification(
        self,
        to_email: str,
        user_name: str,
        notification: Notification,
    ) -> EmailResult:
        """Send one notification email."""
        if not self.is_configured:
            return EmailResult(success=False, error=NOT_CONFIGURED)

        msg = self.build_message(to_email, user_name, notification)
        try:
            await asyncio.to_thread(self._send, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return EmailResult(success=False, error=str(e) or e.__class__.__name__)

        logger.info(f"Email sent for notification {notification.notification_id}")
        return EmailResult(success=True)
