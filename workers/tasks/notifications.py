"""Lifecycle notification delivery."""

import logging
from typing import Any, Dict

import httpx
from celery import Task

from core.config import settings
from workers.celery_app import celery_app

logger = logging.getLogger(__name__)

MAX_RETRIES = 3

# Events emitted by the lifecycle services
EVENTS = frozenset({
    "application.submitted",
    "negotiation.started",
    "invitation.sent",
    "invitation.responded",
    "negotiation.responded",
    "application.accepted",
    "application.rejected",
    "application.withdrawn",
})


@celery_app.task(name="workers.tasks.notifications.send_notification", bind=True)
def send_notification(
    self: Task,
    event: str,
    recipient_sub: str,
    payload: Dict[str, Any],
) -> dict:
    """Deliver a lifecycle event to the notification webhook.

    Args:
        event: Event name (application.submitted, negotiation.responded, ...)
        recipient_sub: Subject id of the user to notify
        payload: Event data

    Returns:
        Dictionary with delivery status
    """
    if event not in EVENTS:
        logger.warning(f"Dropping unknown notification event {event}")
        return {"status": "dropped", "event": event}

    webhook_url = settings.notification_webhook_url
    if not webhook_url:
        logger.info(f"Notification {event} for {recipient_sub} (no webhook configured)")
        return {"status": "logged", "event": event}

    body = {"event": event, "recipientSub": recipient_sub, "payload": payload}

    try:
        with httpx.Client(timeout=settings.notification_timeout_seconds) as client:
            response = client.post(
                webhook_url,
                json=body,
                headers={"X-Notification-Event": event},
            )
            response.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning(
            f"Notification {event} delivery failed "
            f"(attempt {self.request.retries + 1}/{MAX_RETRIES + 1}): {e}"
        )
        raise self.retry(exc=e, countdown=2 ** self.request.retries * 30, max_retries=MAX_RETRIES)

    return {
        "status": "delivered",
        "status_code": response.status_code,
        "event": event,
    }
