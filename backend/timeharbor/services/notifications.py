"""Best-effort notifications fired after clock transitions."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import httpx

from timeharbor.config import settings
from timeharbor.constants.notification_types import NotificationType, notification_body
from timeharbor.services.duration import format_duration

log = logging.getLogger(__name__)


class Notifier(ABC):
    """Delivery collaborator. Implementations may raise; the trigger absorbs it."""

    @abstractmethod
    def notify(self, user_id: str, payload: Dict[str, Any]) -> None:
        pass


class LoggingNotifier(Notifier):
    """Default notifier when no delivery endpoint is configured."""

    def notify(self, user_id: str, payload: Dict[str, Any]) -> None:
        log.info(f"Notification for user {user_id}: {payload.get('body')}")


class WebhookNotifier(Notifier):
    """
    POSTs the JSON payload to a delivery endpoint (push gateway, chat webhook).

    A missing URL means the user has no subscription; the call is skipped.
    """

    def __init__(self, url: Optional[str], timeout: float = 3.0, client: Optional[httpx.Client] = None):
        self.url = url
        self.client = client or httpx.Client(timeout=httpx.Timeout(timeout, connect=timeout))

    def notify(self, user_id: str, payload: Dict[str, Any]) -> None:
        if not self.url:
            log.debug(f"No notification subscription configured, skipping {payload.get('type')} for user {user_id}")
            return
        response = self.client.post(self.url, json={"user_id": user_id, "payload": payload})
        response.raise_for_status()
        log.debug(f"Delivered {payload.get('type')} notification for user {user_id}: {response.status_code}")

    def close(self):
        self.client.close()


class NotificationTrigger:
    """
    Builds transition payloads and hands them to a ``Notifier``.

    Fire-and-forget: every delivery failure is logged and swallowed so it can
    never fail or roll back the transition that triggered it. With a
    ``schedule`` callable (e.g. ``BackgroundTasks.add_task``) delivery is
    queued instead of run inline, so a slow endpoint never delays the caller.
    """

    def __init__(
        self,
        notifier: Optional[Notifier] = None,
        enabled: bool = True,
        schedule: Optional[Callable[..., Any]] = None,
    ):
        self.notifier = notifier or LoggingNotifier()
        self.enabled = enabled
        self.schedule = schedule

    def deferred(self, schedule: Callable[..., Any]) -> "NotificationTrigger":
        """Same notifier, delivery handed to ``schedule(fn, *args)``."""
        return NotificationTrigger(self.notifier, self.enabled, schedule)

    def fire(self, user_id: str, payload: Dict[str, Any]) -> bool:
        """Returns True when the payload was delivered or queued."""
        if not self.enabled:
            return False
        if self.schedule is not None:
            self.schedule(self.deliver, user_id, payload)
            return True
        return self.deliver(user_id, payload)

    def close(self) -> None:
        close = getattr(self.notifier, "close", None)
        if close is not None:
            close()

    def deliver(self, user_id: str, payload: Dict[str, Any]) -> bool:
        try:
            self.notifier.notify(user_id, payload)
            return True
        except httpx.HTTPStatusError as e:
            log.warning(f"Notification {payload.get('type')} for user {user_id} rejected: {e.response.status_code}")
        except httpx.RequestError as e:
            log.warning(f"Notification {payload.get('type')} for user {user_id} not delivered: {e}")
        except Exception as e:
            log.error(f"Failed to send {payload.get('type')} notification for user {user_id}: {e}", exc_info=True)
        return False

    def _payload(self, notification_type: NotificationType, user_id: str, team_id: str, **data) -> Dict[str, Any]:
        context = {"user_id": user_id, "team_id": team_id, **data}
        return {
            "type": notification_type.value,
            "title": "Time Harbor",
            "body": notification_body(notification_type, context),
            "user_id": user_id,
            "team_id": team_id,
            **data,
        }

    def session_opened(self, user_id: str, team_id: str, clock_session_id: int) -> bool:
        return self.fire(user_id, self._payload(
            NotificationType.CLOCK_IN, user_id, team_id, clock_session_id=clock_session_id
        ))

    def session_closed(self, user_id: str, team_id: str, clock_session_id: int, total_seconds: int) -> bool:
        return self.fire(user_id, self._payload(
            NotificationType.CLOCK_OUT, user_id, team_id,
            clock_session_id=clock_session_id,
            total_seconds=total_seconds,
            duration=format_duration(total_seconds)
        ))

    def ticket_started(self, user_id: str, team_id: str, clock_session_id: int, ticket_id: int) -> bool:
        return self.fire(user_id, self._payload(
            NotificationType.TICKET_START, user_id, team_id,
            clock_session_id=clock_session_id, ticket_id=ticket_id
        ))

    def ticket_stopped(self, user_id: str, team_id: str, clock_session_id: int, ticket_id: int, seconds: int) -> bool:
        return self.fire(user_id, self._payload(
            NotificationType.TICKET_STOP, user_id, team_id,
            clock_session_id=clock_session_id,
            ticket_id=ticket_id,
            seconds=seconds,
            duration=format_duration(seconds)
        ))


def get_notification_trigger() -> NotificationTrigger:
    """Trigger configured from settings."""
    if settings.notification_webhook_url:
        notifier = WebhookNotifier(settings.notification_webhook_url, timeout=settings.notification_timeout_seconds)
    else:
        notifier = LoggingNotifier()
    return NotificationTrigger(notifier, enabled=settings.notifications_enabled)
