"""Clock engine: open/close sessions and switch the active ticket inside them."""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from timeharbor.config import settings
from timeharbor.exceptions import ConcurrencyConflict, NotAuthenticated, TicketNotFound, retry_reads, store_errors
from timeharbor.models.clock_session import ClockSession
from timeharbor.models.ticket_timer import TicketTimer
from timeharbor.services.duration import elapsed, utcnow
from timeharbor.services.notifications import NotificationTrigger
from timeharbor.services.session_store import SessionStore

log = logging.getLogger(__name__)


class ClockEngine:
    """
    Session engine for one request.

    Per (user, team): Closed -> Open -> Closed. Per (session, ticket):
    Idle -> Running -> Idle. Each public write runs as one transaction stamped
    with a single ``now``; on ``ConcurrencyConflict`` it is retried once against
    fresh state. Timer changes happen only after the parent session row is
    claimed, so a clock-out and a ticket switch on the same session serialize.
    Notifications fire only after the transaction commits.
    """

    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationTrigger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.db = db
        self.store = SessionStore(db)
        self.notifications = notifications or NotificationTrigger()
        self.clock = clock

    def _run_write(self, operation: str, unit_of_work):
        attempts = 2
        for attempt in range(1, attempts + 1):
            now = self.clock()
            try:
                with store_errors(self.db, operation):
                    result = unit_of_work(now)
                    self.db.commit()
                return result
            except ConcurrencyConflict:
                if attempt == attempts:
                    log.error(f"{operation}: concurrency conflict persisted after retry")
                    raise
                log.warning(f"{operation}: concurrency conflict, retrying with fresh state")

    @staticmethod
    def _require_user(user_id: Optional[str]) -> str:
        if not user_id:
            raise NotAuthenticated("no caller identity")
        return user_id

    # Transition steps. They run inside the caller's transaction and never commit.

    def _stop_running_timers(self, clock_session: ClockSession, now: datetime) -> List[Dict]:
        stopped = []
        for timer in self.store.running_timers(clock_session.id):
            ticket_id = timer.ticket_id
            delta = self.store.stop_timer(timer, now)
            stopped.append({"ticket_id": ticket_id, "seconds": delta})
        return stopped

    def _close(self, clock_session: ClockSession, now: datetime) -> Dict:
        """Claim the session, stop running timers, then finalize it at ``now``."""
        self.store.claim_open_session(clock_session)
        stopped = self._stop_running_timers(clock_session, now)
        total = elapsed(clock_session.start_timestamp, clock_session.accumulated_seconds, None, now)
        self.store.finalize_session(clock_session, total, now)
        log.info(f"Closed clock session {clock_session.id} for user {clock_session.user_id} team {clock_session.team_id}: {total}s")
        return {
            "session": clock_session,
            "user_id": clock_session.user_id,
            "team_id": clock_session.team_id,
            "total_seconds": total,
            "stopped_timers": stopped,
        }

    def _notify_closed(self, closed: Dict) -> None:
        session_id = closed["session"].id
        for stopped in closed["stopped_timers"]:
            self.notifications.ticket_stopped(closed["user_id"], closed["team_id"], session_id, stopped["ticket_id"], stopped["seconds"])
        self.notifications.session_closed(closed["user_id"], closed["team_id"], session_id, closed["total_seconds"])

    # Operations

    def open_session(self, user_id: str, team_id: str) -> ClockSession:
        """
        Clock in. An existing open session for (user, team) is fully closed
        first, running ticket timer included, in the same transaction.
        """
        user_id = self._require_user(user_id)

        def unit_of_work(now):
            previous = self.store.find_open_session(user_id, team_id)
            closed = self._close(previous, now) if previous is not None else None
            return closed, self.store.insert_session(user_id, team_id, now)

        closed, clock_session = self._run_write("open_session", unit_of_work)
        if closed is not None:
            log.info(f"Implicitly closed previous session {closed['session'].id} before opening {clock_session.id}")
            self._notify_closed(closed)
        log.info(f"Opened clock session {clock_session.id} for user {user_id} team {team_id}")
        self.notifications.session_opened(user_id, team_id, clock_session.id)
        return clock_session

    def close_session(self, user_id: str, team_id: str) -> Optional[ClockSession]:
        """Clock out. Returns None when nothing was open."""
        user_id = self._require_user(user_id)

        def unit_of_work(now):
            clock_session = self.store.find_open_session(user_id, team_id)
            if clock_session is None:
                return None
            return self._close(clock_session, now)

        closed = self._run_write("close_session", unit_of_work)
        if closed is None:
            log.debug(f"close_session: no open session for user {user_id} team {team_id}")
            return None
        self._notify_closed(closed)
        return closed["session"]

    def start_ticket(self, user_id: str, team_id: str, ticket_id: int) -> TicketTimer:
        """
        Make ``ticket_id`` the active ticket, clocking in first when needed.

        The previous ticket is stopped and the new one started at the same
        instant, so a switch neither loses nor double-counts time.
        """
        user_id = self._require_user(user_id)

        def unit_of_work(now):
            ticket = self.store.get_ticket(ticket_id)
            if ticket is None or ticket.team_id != team_id:
                raise TicketNotFound(f"ticket {ticket_id} not found in team {team_id}")

            opened = False
            clock_session = self.store.find_open_session(user_id, team_id)
            if clock_session is None:
                clock_session = self.store.insert_session(user_id, team_id, now)
                opened = True
            else:
                self.store.claim_open_session(clock_session)

            stopped = self._stop_running_timers(clock_session, now)
            timer = self.store.start_timer(clock_session.id, ticket_id, now)
            return clock_session, opened, stopped, timer

        clock_session, opened, stopped, timer = self._run_write("start_ticket", unit_of_work)
        if opened:
            log.info(f"Implicitly opened clock session {clock_session.id} for user {user_id} team {team_id}")
            self.notifications.session_opened(user_id, team_id, clock_session.id)
        for entry in stopped:
            self.notifications.ticket_stopped(user_id, team_id, clock_session.id, entry["ticket_id"], entry["seconds"])
        log.info(f"Started ticket {ticket_id} in session {clock_session.id} for user {user_id}")
        self.notifications.ticket_started(user_id, team_id, clock_session.id, ticket_id)
        return timer

    def stop_ticket(self, user_id: str, team_id: str, ticket_id: int) -> Optional[TicketTimer]:
        """Stop ``ticket_id`` if it is running in the open session. Returns None otherwise."""
        user_id = self._require_user(user_id)

        def unit_of_work(now):
            clock_session = self.store.find_open_session(user_id, team_id)
            if clock_session is None:
                return None
            self.store.claim_open_session(clock_session)
            timer = self.store.find_timer(clock_session.id, ticket_id)
            if timer is None or timer.start_timestamp is None:
                return None
            delta = self.store.stop_timer(timer, now)
            return clock_session, timer, delta

        result = self._run_write("stop_ticket", unit_of_work)
        if result is None:
            log.debug(f"stop_ticket: ticket {ticket_id} not running for user {user_id} team {team_id}")
            return None
        clock_session, timer, delta = result
        log.info(f"Stopped ticket {ticket_id} in session {clock_session.id} for user {user_id}: +{delta}s")
        self.notifications.ticket_stopped(user_id, team_id, clock_session.id, ticket_id, delta)
        return timer

    # Reads

    def active_session(self, user_id: str, team_id: str) -> Optional[ClockSession]:
        user_id = self._require_user(user_id)

        def read():
            with store_errors(self.db, "active_session"):
                return self.store.find_open_session(user_id, team_id)

        return retry_reads("active_session", read, settings.store_read_retries, settings.store_retry_backoff_seconds)

    def active_users(self, user_ids: List[str]) -> Dict[str, List[str]]:
        """Map each user to the teams they are clocked into right now (empty list when idle)."""

        def read():
            with store_errors(self.db, "active_users"):
                return self.store.open_sessions_for_users(user_ids)

        open_sessions = retry_reads("active_users", read, settings.store_read_retries, settings.store_retry_backoff_seconds)
        active = {user_id: [] for user_id in user_ids}
        for clock_session in open_sessions:
            active.setdefault(clock_session.user_id, []).append(clock_session.team_id)
        return active
