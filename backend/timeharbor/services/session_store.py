"""Reads and guarded writes against the clock session and ticket timer tables."""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from timeharbor.exceptions import ConcurrencyConflict
from timeharbor.models.clock_session import ClockSession
from timeharbor.models.ticket import Ticket
from timeharbor.models.ticket_timer import TicketTimer
from timeharbor.services.duration import seconds_between

log = logging.getLogger(__name__)


class SessionStore:
    """
    Store access for the clock engine.

    Every state transition is a conditional UPDATE that only matches the row
    in the state the caller observed. A transition that matches nothing means
    another request got there first and raises ``ConcurrencyConflict``. The
    partial unique indexes on both tables back this up for inserts.
    Nothing here commits; the engine owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # Reads

    def find_open_session(self, user_id: str, team_id: str) -> Optional[ClockSession]:
        return self.db.query(ClockSession).filter(
            ClockSession.user_id == user_id,
            ClockSession.team_id == team_id,
            ClockSession.end_timestamp.is_(None)
        ).first()

    def open_sessions_for_users(self, user_ids: Iterable[str]) -> List[ClockSession]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        return self.db.query(ClockSession).filter(
            ClockSession.user_id.in_(user_ids),
            ClockSession.end_timestamp.is_(None)
        ).order_by(ClockSession.start_timestamp.asc()).all()

    def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        return self.db.query(Ticket).filter(Ticket.id == ticket_id).first()

    def running_timers(self, clock_session_id: int) -> List[TicketTimer]:
        return self.db.query(TicketTimer).filter(
            TicketTimer.clock_session_id == clock_session_id,
            TicketTimer.start_timestamp.isnot(None)
        ).all()

    def find_timer(self, clock_session_id: int, ticket_id: int) -> Optional[TicketTimer]:
        return self.db.query(TicketTimer).filter(
            TicketTimer.clock_session_id == clock_session_id,
            TicketTimer.ticket_id == ticket_id
        ).first()

    def sessions_started_between(self, user_ids: Iterable[str], start: datetime, end: datetime) -> List[ClockSession]:
        """Sessions of ``user_ids`` whose start falls in ``[start, end)``, with timers and tickets loaded."""
        user_ids = list(user_ids)
        if not user_ids:
            return []
        return self.db.query(ClockSession).options(
            selectinload(ClockSession.ticket_timers).selectinload(TicketTimer.ticket)
        ).filter(
            ClockSession.user_id.in_(user_ids),
            ClockSession.start_timestamp >= start,
            ClockSession.start_timestamp < end
        ).order_by(ClockSession.start_timestamp.asc(), ClockSession.id.asc()).all()

    # Writes

    def insert_session(self, user_id: str, team_id: str, now: datetime) -> ClockSession:
        """Insert an open session. A second open row for the pair violates the partial unique index."""
        clock_session = ClockSession(
            user_id=user_id,
            team_id=team_id,
            start_timestamp=now,
            end_timestamp=None,
            accumulated_seconds=0
        )
        self.db.add(clock_session)
        self.db.flush()
        log.debug(f"Inserted clock session {clock_session.id} for user {user_id} team {team_id}")
        return clock_session

    def claim_open_session(self, clock_session: ClockSession) -> None:
        """
        Write-lock the session row while it is still open.

        Timer reads and writes under a session must come after this so that a
        concurrent close either waits for them or is seen by them. Matching no
        row means the session was closed since it was read.
        """
        updated = self.db.query(ClockSession).filter(
            ClockSession.id == clock_session.id,
            ClockSession.end_timestamp.is_(None)
        ).update({
            ClockSession.accumulated_seconds: ClockSession.accumulated_seconds
        }, synchronize_session=False)
        if updated != 1:
            raise ConcurrencyConflict(f"clock session {clock_session.id} was closed concurrently")

    def finalize_session(self, clock_session: ClockSession, accumulated_seconds: int, now: datetime) -> None:
        updated = self.db.query(ClockSession).filter(
            ClockSession.id == clock_session.id,
            ClockSession.end_timestamp.is_(None)
        ).update({
            ClockSession.end_timestamp: now,
            ClockSession.accumulated_seconds: accumulated_seconds
        }, synchronize_session=False)
        if updated != 1:
            raise ConcurrencyConflict(f"clock session {clock_session.id} was closed concurrently")
        self.db.expire(clock_session)
        log.debug(f"Finalized clock session {clock_session.id}: {accumulated_seconds}s")

    def stop_timer(self, timer: TicketTimer, now: datetime) -> int:
        """
        Stop a running timer and credit the elapsed seconds to it and to its ticket.

        Both increments run in the caller's transaction so the timer and the
        ticket aggregate commit or roll back together. Returns the credited delta.
        """
        observed_start = timer.start_timestamp
        ticket_id = timer.ticket_id
        if observed_start is None:
            return 0
        delta = seconds_between(observed_start, now)

        updated = self.db.query(TicketTimer).filter(
            TicketTimer.id == timer.id,
            TicketTimer.start_timestamp == observed_start
        ).update({
            TicketTimer.start_timestamp: None,
            TicketTimer.accumulated_seconds: TicketTimer.accumulated_seconds + delta
        }, synchronize_session=False)
        if updated != 1:
            raise ConcurrencyConflict(f"ticket timer {timer.id} was stopped concurrently")

        self.db.query(Ticket).filter(Ticket.id == ticket_id).update({
            Ticket.accumulated_seconds: Ticket.accumulated_seconds + delta
        }, synchronize_session=False)

        self.db.expire(timer)
        ticket = self.db.identity_map.get(self.db.identity_key(Ticket, ticket_id))
        if ticket is not None:
            self.db.expire(ticket)
        log.debug(f"Stopped ticket timer {timer.id} (ticket {ticket_id}): +{delta}s")
        return delta

    def start_timer(self, clock_session_id: int, ticket_id: int, now: datetime) -> TicketTimer:
        """Locate or create the timer row for (session, ticket) and mark it running from ``now``."""
        timer = self.find_timer(clock_session_id, ticket_id)
        if timer is None:
            timer = TicketTimer(
                clock_session_id=clock_session_id,
                ticket_id=ticket_id,
                start_timestamp=None,
                accumulated_seconds=0
            )
            self.db.add(timer)
            self.db.flush()

        updated = self.db.query(TicketTimer).filter(
            TicketTimer.id == timer.id,
            TicketTimer.start_timestamp.is_(None)
        ).update({TicketTimer.start_timestamp: now}, synchronize_session=False)
        if updated != 1:
            raise ConcurrencyConflict(f"ticket timer {timer.id} was started concurrently")
        self.db.expire(timer)
        log.debug(f"Started ticket timer {timer.id} (session {clock_session_id}, ticket {ticket_id})")
        return timer

    def ticket_totals(self, ticket_ids: Iterable[int]) -> Dict[int, int]:
        """Sum of ``accumulated_seconds`` across all timer rows, per ticket."""
        ticket_ids = list(ticket_ids)
        if not ticket_ids:
            return {}
        rows = self.db.query(
            TicketTimer.ticket_id, func.coalesce(func.sum(TicketTimer.accumulated_seconds), 0)
        ).filter(TicketTimer.ticket_id.in_(ticket_ids)).group_by(TicketTimer.ticket_id).all()
        return {ticket_id: int(total) for ticket_id, total in rows}
