from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from timeharbor.exceptions import (
    RETRY_MESSAGE,
    ConcurrencyConflict,
    StoreUnavailable,
    TicketNotFound,
    retry_reads,
    store_errors,
)


def test_integrity_error_becomes_conflict():
    db = MagicMock()
    with pytest.raises(ConcurrencyConflict) as exc_info:
        with store_errors(db, "open_session"):
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    db.rollback.assert_called_once()
    assert exc_info.value.user_message == RETRY_MESSAGE


def test_operational_error_becomes_unavailable():
    db = MagicMock()
    with pytest.raises(StoreUnavailable):
        with store_errors(db, "close_session"):
            raise OperationalError("SELECT", {}, Exception("database is locked"))
    db.rollback.assert_called_once()


def test_engine_errors_pass_through_after_rollback():
    db = MagicMock()
    with pytest.raises(TicketNotFound) as exc_info:
        with store_errors(db, "start_ticket"):
            raise TicketNotFound("ticket 9 not found")
    db.rollback.assert_called_once()
    assert exc_info.value.user_message == "Ticket not found"


def test_unrelated_errors_propagate_unchanged():
    db = MagicMock()
    with pytest.raises(KeyError):
        with store_errors(db, "rollup"):
            raise KeyError("boom")
    db.rollback.assert_called_once()


def test_retry_reads_recovers_from_transient_failure():
    fn = MagicMock(side_effect=[StoreUnavailable("timeout"), "rows"])
    with patch("timeharbor.exceptions.time.sleep") as sleep:
        assert retry_reads("rollup", fn, retries=2, backoff_seconds=0.1) == "rows"
    assert fn.call_count == 2
    sleep.assert_called_once_with(0.1)


def test_retry_reads_gives_up():
    fn = MagicMock(side_effect=StoreUnavailable("timeout"))
    with patch("timeharbor.exceptions.time.sleep") as sleep:
        with pytest.raises(StoreUnavailable):
            retry_reads("rollup", fn, retries=2, backoff_seconds=0.1)
    assert fn.call_count == 3
    assert [c.args[0] for c in sleep.call_args_list] == [0.1, 0.2]


def test_retry_reads_does_not_retry_conflicts():
    fn = MagicMock(side_effect=ConcurrencyConflict("guard"))
    with pytest.raises(ConcurrencyConflict):
        retry_reads("rollup", fn, retries=2, backoff_seconds=0)
    assert fn.call_count == 1


def test_user_message_defaults_to_class_message():
    assert StoreUnavailable("pool exhausted").user_message == RETRY_MESSAGE
    assert StoreUnavailable("pool exhausted", user_message=None).user_message == RETRY_MESSAGE
    assert TicketNotFound("gone", user_message="Ticket was archived").user_message == "Ticket was archived"
