"""
Console notification dispatcher - Implements NotificationDispatcher protocol.

This module provides a console-based implementation of the domain's
notification port, logging notification intents for demo purposes.
"""

import logging

from src.domain.models import NotificationIntent

logger = logging.getLogger(__name__)


class ConsoleNotificationDispatcher:
    """
    Implements NotificationDispatcher protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints notification intents to stdout.
    """

    def dispatch(self, intent: NotificationIntent) -> None:
        """
        Log a notification intent (simulates delivery).

        In production, this would be replaced with a queue publisher.
        Logged at INFO level to be visible in docker-compose logs.

        Args:
            intent: Recipient, template key and template payload
        """
        logger.info(
            "[NOTIFICATION] To: %s Template: %s Payload: %s",
            intent.recipient_id,
            intent.template_key,
            intent.payload,
        )
