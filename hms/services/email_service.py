"""
Email Service

Sends account emails (verification, password reset) rendered from Jinja2
templates. Delivery is best-effort: failures are logged and reported as
False, never raised.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from hms.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent.parent / "templates" / "emails"

# template kind -> (template file, subject)
TEMPLATES = {
    "verify_email": ("verify_email.html", "Verify your email"),
    "password_reset": ("password_reset.html", "Password Reset"),
}


class EmailService:
    """Service for sending emails with template support"""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )

        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_from = settings.smtp_from

    def render(self, template_kind: str, template_data: dict) -> tuple[str, str]:
        """Return (subject, html body) for a template kind."""
        try:
            template_name, subject = TEMPLATES[template_kind]
        except KeyError:
            raise ValueError(f"Unknown email template: {template_kind}") from None
        html_body = self.env.get_template(template_name).render(app_name=settings.app_name, **template_data)
        return f"{subject} - {settings.app_name}", html_body

    def _send_email(self, to_email: str, subject: str, html_body: str) -> bool:
        """
        Send an email using SMTP.

        Returns:
            bool: True if email sent successfully, False otherwise
        """
        if not self.smtp_host:
            logger.info("SMTP not configured; skipping email %r to %s", subject, to_email)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.smtp_from
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                server.starttls()
                if self.smtp_user and self.smtp_password:
                    server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

        logger.info("Email %r sent to %s", subject, to_email)
        return True

    def send(self, recipient: str, template_kind: str, template_data: dict) -> bool:
        try:
            subject, html_body = self.render(template_kind, template_data)
        except TemplateError as e:
            logger.error(f"Failed to render {template_kind} email: {e}")
            return False
        return self._send_email(recipient, subject, html_body)

    def send_verification_email(self, to_email: str, name: str, token: str) -> bool:
        link = f"{settings.frontend_url}/verify-email?token={token}"
        return self.send(to_email, "verify_email", {"name": name, "verification_link": link})

    def send_password_reset_email(self, to_email: str, name: str, token: str) -> bool:
        link = f"{settings.frontend_url}/reset-password?token={token}"
        return self.send(
            to_email,
            "password_reset",
            {"name": name, "reset_link": link, "expires_hours": settings.password_reset_expire_hours},
        )


def get_email_service() -> EmailService:
    return EmailService()
