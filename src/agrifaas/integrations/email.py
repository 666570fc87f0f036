"""Outbound email: the sender protocol, an SMTP sender and message templates."""

from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import Protocol

import aiosmtplib
import structlog
from jinja2 import Environment, PackageLoader, select_autoescape

from agrifaas.config.settings import Settings

logger = structlog.get_logger()

_templates = Environment(
    loader=PackageLoader("agrifaas.integrations", "templates"),
    autoescape=select_autoescape(["html"]),
)


@dataclass
class EmailResult:
    """Outcome of one send attempt."""

    success: bool
    message: str


class EmailSender(Protocol):
    """Sends one HTML email. Implementations never raise."""

    async def send_email(self, to: str, subject: str, html: str) -> EmailResult: ...


class SmtpEmailSender:
    """Sends mail over implicit-TLS SMTP with aiosmtplib."""

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = (
            settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else None
        )
        self.from_name = settings.EMAIL_FROM_NAME
        self.timeout = settings.HTTP_TIMEOUT_SECONDS

    async def send_email(self, to: str, subject: str, html: str) -> EmailResult:
        if not (self.host and self.user and self.password):
            logger.warning("smtp_not_configured", to=to, subject=subject)
            return EmailResult(False, "Email service is not configured.")

        message = EmailMessage()
        message["From"] = formataddr((self.from_name, self.user))
        message["To"] = to
        message["Subject"] = subject
        message.set_content(html, subtype="html")

        try:
            await aiosmtplib.send(
                message,
                hostname=self.host,
                port=self.port,
                username=self.user,
                password=self.password,
                use_tls=self.port == 465,
                start_tls=False if self.port == 465 else None,
                timeout=self.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", to=to, subject=subject, error=str(e))
            return EmailResult(False, f"Failed to send email: {e}")

        logger.info("email_sent", to=to, subject=subject)
        return EmailResult(True, "Email sent successfully.")


def render_invitation_email(
    full_name: str,
    tenant_name: str,
    invite_link: str,
    ttl_hours: int,
) -> tuple[str, str]:
    """Build the subject and HTML body of a tenant-admin invitation."""
    subject = f"You're invited to manage {tenant_name} on AgriFAAS Connect!"
    html = _templates.get_template("invitation.html").render(
        full_name=full_name,
        tenant_name=tenant_name,
        invite_link=invite_link,
        ttl_hours=ttl_hours,
    )
    return subject, html
