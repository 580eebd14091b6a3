import json

import httpx
import pytest
from fastapi import BackgroundTasks

from timeharbor.api import deps
from timeharbor.api.deps import get_clock_engine
from timeharbor.constants.notification_types import NotificationType, notification_body
from timeharbor.services.notifications import LoggingNotifier, NotificationTrigger, WebhookNotifier


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestWebhookNotifier:
    def test_posts_payload(self):
        received = []

        def handler(request: httpx.Request):
            received.append(json.loads(request.content))
            return httpx.Response(202)

        notifier = WebhookNotifier("https://push.example.com/notify", client=mock_client(handler))
        notifier.notify("user-1", {"type": "clock-in", "body": "user-1 clocked in to team-a"})

        assert received == [{
            "user_id": "user-1",
            "payload": {"type": "clock-in", "body": "user-1 clocked in to team-a"},
        }]

    def test_without_subscription_nothing_is_sent(self):
        def handler(request: httpx.Request):
            raise AssertionError("no request expected")

        notifier = WebhookNotifier(None, client=mock_client(handler))
        notifier.notify("user-1", {"type": "clock-in"})

    def test_rejected_delivery_raises(self):
        notifier = WebhookNotifier(
            "https://push.example.com/notify",
            client=mock_client(lambda request: httpx.Response(410))
        )
        with pytest.raises(httpx.HTTPStatusError):
            notifier.notify("user-1", {"type": "clock-in"})


class TestNotificationTrigger:
    def test_rejected_delivery_is_swallowed(self, caplog):
        notifier = WebhookNotifier(
            "https://push.example.com/notify",
            client=mock_client(lambda request: httpx.Response(500))
        )
        trigger = NotificationTrigger(notifier)

        assert trigger.session_opened("user-1", "team-a", 1) is False
        assert "rejected: 500" in caplog.text

    def test_unreachable_endpoint_is_swallowed(self):
        def handler(request: httpx.Request):
            raise httpx.ConnectError("connection refused", request=request)

        trigger = NotificationTrigger(WebhookNotifier("https://push.example.com/notify", client=mock_client(handler)))

        assert trigger.session_closed("user-1", "team-a", 1, 60) is False

    def test_disabled_trigger_sends_nothing(self, notifier):
        trigger = NotificationTrigger(notifier, enabled=False)
        assert trigger.ticket_started("user-1", "team-a", 1, 7) is False
        assert notifier.sent == []

    def test_clock_out_payload(self, notifier):
        trigger = NotificationTrigger(notifier)

        assert trigger.session_closed("user-1", "team-a", 3, 3723) is True

        user_id, payload = notifier.sent[0]
        assert user_id == "user-1"
        assert payload["type"] == "clock-out"
        assert payload["title"] == "Time Harbor"
        assert payload["body"] == "user-1 clocked out of team-a (1h 2m 3s)"
        assert payload["clock_session_id"] == 3
        assert payload["total_seconds"] == 3723

    def test_ticket_stop_payload(self, notifier):
        NotificationTrigger(notifier).ticket_stopped("user-1", "team-a", 3, 7, 90)

        payload = notifier.sent[0][1]
        assert payload["body"] == "user-1 stopped ticket 7 in team-a (1m 30s)"
        assert payload["ticket_id"] == 7
        assert payload["seconds"] == 90

    def test_default_notifier_logs(self, caplog):
        caplog.set_level("INFO", logger="timeharbor.services.notifications")
        trigger = NotificationTrigger()

        assert isinstance(trigger.notifier, LoggingNotifier)
        assert trigger.session_opened("user-1", "team-a", 1) is True
        assert "user-1 clocked in to team-a" in caplog.text


def test_notification_body_templates():
    context = {"user_id": "user-1", "team_id": "team-a", "ticket_id": 7}
    assert notification_body(NotificationType.CLOCK_IN, context) == "user-1 clocked in to team-a"
    assert notification_body(NotificationType.TICKET_START, context) == "user-1 started ticket 7 in team-a"


class TestDeferredDelivery:
    def test_scheduled_delivery_waits_for_the_queue(self, notifier):
        queued = []
        trigger = NotificationTrigger(notifier).deferred(lambda fn, *args: queued.append((fn, args)))

        assert trigger.session_opened("user-1", "team-a", 1) is True
        assert notifier.sent == []

        for fn, args in queued:
            fn(*args)
        assert notifier.types() == ["clock-in"]

    def test_engine_dependency_queues_on_background_tasks(self, db, notifier):
        background_tasks = BackgroundTasks()
        engine = get_clock_engine(background_tasks, db, NotificationTrigger(notifier))

        engine.open_session("user-1", "team-a")

        assert notifier.sent == []
        assert len(background_tasks.tasks) == 1

    def test_queued_failure_is_swallowed(self):
        queued = []
        trigger = NotificationTrigger(
            WebhookNotifier("https://push.example.com/notify", client=mock_client(lambda request: httpx.Response(503)))
        ).deferred(lambda fn, *args: queued.append((fn, args)))

        assert trigger.session_opened("user-1", "team-a", 1) is True
        fn, args = queued[0]
        assert fn(*args) is False


def test_close_notifications_releases_http_client(monkeypatch):
    client = mock_client(lambda request: httpx.Response(202))
    monkeypatch.setattr(deps, "_NOTIFICATIONS", NotificationTrigger(WebhookNotifier("https://push.example.com/notify", client=client)))

    deps.close_notifications()

    assert client.is_closed
    assert deps._NOTIFICATIONS is None
