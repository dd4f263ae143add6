"""SMTP delivery of templated reminder emails via aiosmtplib."""

from __future__ import annotations

from email.message import EmailMessage
from pathlib import Path

import aiosmtplib

from wacraft_reminders.config import EmailConfig
from wacraft_reminders.core.errors import DeliveryError, MissingEmailError
from wacraft_reminders.log import get_logger
from wacraft_reminders.reminders.models import EmailAction
from wacraft_reminders.wacraft.models import Contact

logger = get_logger(__name__)


def build_reminder_email(config: EmailConfig, contact: Contact, action: EmailAction) -> EmailMessage:
    """Render the action's template for contact into an HTML email."""
    if not contact.email:
        raise MissingEmailError(contact.id, contact.name)

    template_path = Path(action.template)
    try:
        template = template_path.read_text(encoding="utf-8")
    except OSError as e:
        raise DeliveryError(f"Failed to read email template from '{template_path}'") from e

    message = EmailMessage()
    message["From"] = config.from_address
    message["To"] = contact.email
    message["Subject"] = action.subject
    message.set_content(template.replace("{contact_name}", contact.name), subtype="html")
    return message


async def send_reminder_email(config: EmailConfig, contact: Contact, action: EmailAction) -> None:
    message = build_reminder_email(config, contact, action)
    try:
        await aiosmtplib.send(
            message,
            hostname=config.smtp_server,
            port=config.smtp_port,
            username=config.smtp_user,
            password=config.smtp_password,
            use_tls=config.use_tls,
        )
    except aiosmtplib.SMTPException as e:
        raise DeliveryError(f"Failed to send email to '{contact.email}': {e}") from e
    logger.info("email_sent", contact_id=contact.id, to=contact.email, subject=action.subject)
