"""Test cases for grading notifications."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from gradebook.grading import notifications
from gradebook.grading.exceptions import DependencyFailureError
from gradebook.grading.notifications import (
    LoggingNotifier, SUBMISSION_GRADED, WebhookNotifier, default_notifier, notify_quietly,
)


class TestWebhookNotifier:
    """Test cases for webhook delivery."""

    def test_posts_event(self):
        notifier = WebhookNotifier("http://notify.local/events", timeout=2)
        with patch("gradebook.grading.notifications.requests.post") as mock_post:
            notifier.notify(SUBMISSION_GRADED, {"submission_id": 1})

        mock_post.assert_called_once_with(
            "http://notify.local/events",
            json={"event": SUBMISSION_GRADED, "payload": {"submission_id": 1}},
            timeout=2,
        )
        mock_post.return_value.raise_for_status.assert_called_once()

    def test_delivery_failure(self):
        notifier = WebhookNotifier("http://notify.local/events")
        with patch("gradebook.grading.notifications.requests.post",
                   side_effect=requests.ConnectionError("refused")):
            with pytest.raises(DependencyFailureError) as exc_info:
                notifier.notify(SUBMISSION_GRADED, {})
        assert exc_info.value.collaborator == "notifications"

    def test_requires_url(self):
        with pytest.raises(ValueError):
            WebhookNotifier(None)


class TestNotifyQuietly:
    """Test cases for fire-and-forget delivery."""

    def test_failure_is_logged_not_raised(self, caplog):
        failing = MagicMock()
        failing.notify.side_effect = DependencyFailureError("notifications", "down")

        notify_quietly(failing, SUBMISSION_GRADED, {"submission_id": 3})

        failing.notify.assert_called_once()
        assert "dropped" in caplog.text

    def test_no_notifier(self):
        notify_quietly(None, SUBMISSION_GRADED, {})


class TestDefaultNotifier:
    def test_logging_without_url(self, monkeypatch):
        monkeypatch.setattr(notifications, "NOTIFICATION_WEBHOOK_URL", None)
        assert isinstance(default_notifier(), LoggingNotifier)

    def test_webhook_with_url(self, monkeypatch):
        monkeypatch.setattr(notifications, "NOTIFICATION_WEBHOOK_URL", "http://notify.local")
        notifier = default_notifier()
        assert isinstance(notifier, WebhookNotifier)
        assert notifier.url == "http://notify.local"
