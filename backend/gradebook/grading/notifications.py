"""Notification collaborator: fire-and-forget delivery of grading events."""

import os
import logging
from typing import Any, Dict, Optional, Protocol

import requests

from .exceptions import DependencyFailureError

logger = logging.getLogger(__name__)

NOTIFICATION_WEBHOOK_URL = os.getenv("NOTIFICATION_WEBHOOK_URL")
NOTIFICATION_TIMEOUT = float(os.getenv("NOTIFICATION_TIMEOUT", "5"))

SUBMISSION_GRADED = "submission_graded"
PENALTY_WAIVED = "late_penalty_waived"


class Notifier(Protocol):
    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        ...


class LoggingNotifier:
    """Default notifier that only records events in the log."""

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        logger.info(f"Notification {event}: {payload}")


class WebhookNotifier:
    """Posts events as JSON to the notification service."""

    def __init__(self, url: Optional[str] = NOTIFICATION_WEBHOOK_URL, timeout: float = NOTIFICATION_TIMEOUT):
        if not url:
            raise ValueError("A webhook URL is required")
        self.url = url
        self.timeout = timeout

    def notify(self, event: str, payload: Dict[str, Any]) -> None:
        try:
            response = requests.post(
                self.url,
                json={"event": event, "payload": payload},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise DependencyFailureError("notifications", f"Failed to deliver {event}: {e}") from e


def default_notifier() -> Notifier:
    if NOTIFICATION_WEBHOOK_URL:
        return WebhookNotifier(NOTIFICATION_WEBHOOK_URL)
    return LoggingNotifier()


def notify_quietly(notifier: Optional[Notifier], event: str, payload: Dict[str, Any]) -> None:
    """Deliver a notification, logging instead of raising on any failure."""
    if notifier is None:
        return
    try:
        notifier.notify(event, payload)
    except Exception as e:
        logger.warning(f"Notification {event} failed and was dropped: {e}")
