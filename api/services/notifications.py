"""Best-effort enqueueing of lifecycle notifications."""

import logging
from typing import Any, Optional

from workers.tasks.notifications import send_notification

logger = logging.getLogger(__name__)


def notify(event: str, recipient_sub: Optional[str], payload: dict[str, Any]) -> bool:
    """
    Enqueue a notification for `recipient_sub`.

    Never raises: a broker outage must not fail a lifecycle write that has
    already been committed. Returns whether the task was enqueued.
    """
    if not recipient_sub:
        return False

    try:
        send_notification.delay(event, recipient_sub, payload)
    except Exception as e:
        logger.error(
            f"Failed to enqueue notification {event} for {recipient_sub}: {e}",
            exc_info=True,
        )
        return False

    logger.debug(f"Enqueued notification {event} for {recipient_sub}")
    return True
