"""
Outbound email over SMTP.

Used for the daily production list. Sends one HTML message per call.
"""

import smtplib
from email.message import EmailMessage
from typing import Optional
import structlog

from config import settings
from exceptions import EmailError, IntegrationNotConfiguredError

logger = structlog.get_logger(__name__)

SMTP_TIMEOUT = 10


def send_html_email(
    to: str,
    subject: str,
    html_body: str,
    attachment: Optional[tuple[str, bytes, str]] = None
) -> None:
    """
    Send an HTML email.

    Args:
        to: Recipient address
        subject: Subject line
        html_body: HTML content
        attachment: Optional (filename, bytes, mime type)

    Raises:
        IntegrationNotConfiguredError: SMTP host not set
        EmailError: Delivery failed
    """
    if not settings.smtp_host:
        logger.warning("smtp_not_configured")
        raise IntegrationNotConfiguredError("email", ["smtp_host"])

    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = settings.smtp_sender
    message["To"] = to
    message.set_content("This message requires an HTML-capable mail client.")
    message.add_alternative(html_body, subtype="html")

    if attachment:
        filename, data, mime_type = attachment
        maintype, _, subtype = mime_type.partition("/")
        message.add_attachment(data, maintype=maintype, subtype=subtype, filename=filename)

    try:
        logger.info("sending_email", to=to, subject=subject)

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=SMTP_TIMEOUT) as smtp:
            smtp.starttls()
            if settings.smtp_username and settings.smtp_password:
                smtp.login(settings.smtp_username, settings.smtp_password)
            smtp.send_message(message)

        logger.info("email_sent", to=to)

    except (smtplib.SMTPException, OSError) as e:
        logger.error("email_send_failed", to=to, error=str(e))
        raise EmailError(f"Failed to send email: {e}")
