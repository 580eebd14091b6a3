"""Shared FastAPI dependencies."""

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from timeharbor.database import get_db
from timeharbor.services.clock_engine import ClockEngine
from timeharbor.services.notifications import NotificationTrigger, get_notification_trigger
from timeharbor.services.rollup import RollupAggregator

# Lazy loaded so an HTTP notifier keeps one connection pool per process
_NOTIFICATIONS = None


def get_notifications() -> NotificationTrigger:
    global _NOTIFICATIONS
    if _NOTIFICATIONS is None:
        _NOTIFICATIONS = get_notification_trigger()
    return _NOTIFICATIONS


def close_notifications() -> None:
    """Release the notifier's HTTP client on shutdown."""
    global _NOTIFICATIONS
    if _NOTIFICATIONS is not None:
        _NOTIFICATIONS.close()
        _NOTIFICATIONS = None


def get_clock_engine(
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    notifications: NotificationTrigger = Depends(get_notifications)
) -> ClockEngine:
    # Delivery runs after the response is sent
    return ClockEngine(db, notifications.deferred(background_tasks.add_task))


def get_rollup_aggregator(db: Session = Depends(get_db)) -> RollupAggregator:
    return RollupAggregator(db)
