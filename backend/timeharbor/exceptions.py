"""Error taxonomy for the clock engine and its store."""

import logging
import time
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

log = logging.getLogger(__name__)

RETRY_MESSAGE = "Could not start/stop tracking, please retry"


class ClockEngineError(Exception):
    """Base class. ``user_message`` is safe to show to end users."""

    user_message = RETRY_MESSAGE

    def __init__(self, detail: str = "", user_message: Optional[str] = None):
        super().__init__(detail or self.user_message)
        self.detail = detail
        if user_message:
            self.user_message = user_message


class NotAuthenticated(ClockEngineError):
    user_message = "Not authenticated"


class ConcurrencyConflict(ClockEngineError):
    """An atomic guard rejected a write because another request changed the state first."""


class StoreUnavailable(ClockEngineError):
    """The store timed out or the connection failed."""


class TicketNotFound(ClockEngineError):
    user_message = "Ticket not found"


@contextmanager
def store_errors(db: Session, operation: str):
    """
    Run a unit of work and translate store failures into the engine taxonomy.

    The transaction is rolled back before any error propagates.
    """
    try:
        yield
    except ClockEngineError:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        log.warning(f"{operation}: atomic guard rejected write: {e.orig}")
        raise ConcurrencyConflict(f"{operation}: {e.orig}") from e
    except (OperationalError, PoolTimeoutError) as e:
        db.rollback()
        log.error(f"{operation}: store unavailable: {e}")
        raise StoreUnavailable(f"{operation}: {e}") from e
    except DBAPIError as e:
        db.rollback()
        if e.connection_invalidated:
            log.error(f"{operation}: connection invalidated: {e}")
            raise StoreUnavailable(f"{operation}: {e}") from e
        raise
    except Exception:
        db.rollback()
        raise


def retry_reads(operation: str, fn, retries: int, backoff_seconds: float):
    """
    Call an idempotent read, retrying on ``StoreUnavailable`` up to ``retries`` extra times.

    Backoff doubles each attempt. Writes must never go through here.
    """
    last_exception = None
    for attempt in range(retries + 1):
        try:
            return fn()
        except StoreUnavailable as e:
            last_exception = e
            if attempt < retries:
                delay = (2 ** attempt) * backoff_seconds
                log.warning(f"{operation}: store unavailable, retrying in {delay}s (attempt {attempt + 1}/{retries + 1})")
                time.sleep(delay)
    raise last_exception
