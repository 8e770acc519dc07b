import logging
from typing import Optional, Protocol

import resend

from app.core.config import Settings, get_settings
from app.core.errors import ExternalServiceError
from app.utils.logger import mask_secret

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    def send(self, to: str, subject: str, text: str, *, secret: Optional[str] = None) -> None: ...


class ResendEmailSender:
    """
    Sends through Resend (HTTPS) when RESEND_API_KEY is configured; otherwise
    logs the message with any embedded secret masked and drops it.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def send(self, to: str, subject: str, text: str, *, secret: Optional[str] = None) -> None:
        api_key = self.settings.RESEND_API_KEY
        if not api_key:
            shown = text.replace(secret, mask_secret(secret)) if secret else text
            logger.info("Resend not configured; email to %s (%s): %s", to, subject, shown)
            return

        resend.api_key = api_key
        try:
            resend.Emails.send(
                {
                    "from": self.settings.EMAIL_FROM,
                    "to": to,
                    "subject": subject,
                    "text": text,
                }
            )
        except Exception as e:
            logger.exception("Failed to send email via Resend")
            raise ExternalServiceError("Failed to send email") from e

        logger.info("Sent '%s' email to %s via Resend", subject, to)
