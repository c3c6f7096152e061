"""
Notification delivery.

No email or SMS provider is wired in; LoggingNotificationSender records
each message in the application log, which is enough for the back
office to show what would have gone out. A real provider only needs to
implement NotificationSender.send().
"""

import logging

from src.core.billing.models import NotificationMessage


logger = logging.getLogger(__name__)


class LoggingNotificationSender:
    """Writes every outbound message to the log instead of delivering it."""

    def __init__(self, sender_name: str = "Super Sheets Team") -> None:
        self.sender_name = sender_name

    def send(self, message: NotificationMessage) -> None:
        logger.info(
            "Notification dispatched",
            extra={
                "channel": message.channel,
                "to": message.to,
                "subject": message.subject,
                "sender": self.sender_name,
                "body_length": len(message.body),
            }
        )
