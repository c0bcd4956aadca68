"""Transactional email over SMTP."""

import smtplib
from email.message import EmailMessage

import structlog
from starlette.concurrency import run_in_threadpool

from lms.config import Settings
from lms.core.errors import UpstreamError

logger = structlog.get_logger(__name__)


class EmailSender:
    """Interface for sending an HTML email."""

    async def send(self, to: str, subject: str, html_body: str) -> None:
        raise NotImplementedError


class SMTPEmailSender(EmailSender):
    """Sends mail through the configured SMTP relay."""

    def __init__(self, settings: Settings):
        self.host = settings.SMTP_HOST
        self.port = settings.SMTP_PORT
        self.user = settings.SMTP_USER
        self.password = settings.SMTP_PASSWORD
        self.use_tls = settings.SMTP_USE_TLS
        self.sender = settings.EMAIL_FROM

    def _build(self, to: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=30) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, html_body: str) -> None:
        message = self._build(to, subject, html_body)
        try:
            await run_in_threadpool(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_send_failed", to=to, subject=subject, error=str(e))
            raise UpstreamError(f"Failed to send email: {e}")
        logger.info("email_sent", to=to, subject=subject)
