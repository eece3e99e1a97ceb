"""
Notification transports.

The dispatcher decides *whether* to notify; a transport only delivers.
Real push/email delivery is out of scope here, so the default transport
writes the message to the log and keeps an in-memory outbox.
"""

import logging
from typing import List, Protocol

from .models import NotificationMessage

logger = logging.getLogger(__name__)

BANNER_WIDTH = 50


class NotificationTransport(Protocol):
    def send(self, message: NotificationMessage) -> bool:
        ...


class LoggingTransport:
    """Logs each message and records it in ``sent``."""

    def __init__(self):
        self.sent: List[NotificationMessage] = []

    def send(self, message: NotificationMessage) -> bool:
        if not message.recipient_email:
            logger.warning("[NOTIFY] Cannot send notification: empty recipient email")
            return False

        logger.info(
            f"[NOTIFY] {message.title}\n"
            f"{'=' * BANNER_WIDTH}\n"
            f"{message.body}\n"
            f"Alert sent at: {message.sent_at.isoformat()}\n"
            f"{'=' * BANNER_WIDTH}"
        )
        self.sent.append(message)
        return True

    def clear(self):
        self.sent.clear()
