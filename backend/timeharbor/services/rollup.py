"""Rollups of raw clock sessions into per-user, per-day totals for timesheets and dashboards."""

import logging
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy.orm import Session

from timeharbor.config import settings
from timeharbor.exceptions import retry_reads, store_errors
from timeharbor.models.clock_session import ClockSession
from timeharbor.schemas.rollup import RollupRecord, TimesheetResponse, TimesheetSession, TimesheetSummary
from timeharbor.services.duration import as_utc, elapsed, utcnow
from timeharbor.services.session_store import SessionStore

log = logging.getLogger(__name__)


def resolve_timezone(name: Optional[str]) -> ZoneInfo:
    """An absent timezone is UTC. Unknown names raise ``ValueError``."""
    try:
        return ZoneInfo(name or "UTC")
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def local_day_bounds(start_date: date, end_date: date, zone: ZoneInfo) -> Tuple[datetime, datetime]:
    """UTC instants covering local midnight of ``start_date`` up to local midnight after ``end_date``."""
    if end_date < start_date:
        raise ValueError(f"end_date {end_date} is before start_date {start_date}")
    start_local = datetime.combine(start_date, time.min, tzinfo=zone)
    end_local = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=zone)
    return as_utc(start_local), as_utc(end_local)


def ticket_titles(clock_session: ClockSession) -> List[str]:
    titles = []
    for timer in clock_session.ticket_timers:
        title = timer.ticket.title if timer.ticket is not None else None
        if title and title not in titles:
            titles.append(title)
    return titles


class RollupAggregator:
    """
    Read-only. Open sessions are recomputed against ``now`` on every call and
    never written back, so repeated calls cannot accrete time.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.store = SessionStore(db)
        self.clock = clock

    def _load_sessions(self, user_ids: List[str], start: datetime, end: datetime) -> List[ClockSession]:
        def read():
            with store_errors(self.db, "rollup"):
                return self.store.sessions_started_between(user_ids, start, end)

        return retry_reads("rollup", read, settings.store_read_retries, settings.store_retry_backoff_seconds)

    def rollup(
        self,
        user_ids: Iterable[str],
        start_date: date,
        end_date: date,
        timezone: Optional[str] = None,
        by_team: bool = False,
        now: Optional[datetime] = None,
    ) -> List[RollupRecord]:
        """
        Bucket sessions by (user, local start date[, team]).

        A session belongs to the local date of its start even while it is still
        running. Sessions that started before ``start_date`` are not included.
        """
        zone = resolve_timezone(timezone)
        now = now or self.clock()
        user_ids = list(dict.fromkeys(user_ids))
        start, end = local_day_bounds(start_date, end_date, zone)
        sessions = self._load_sessions(user_ids, start, end)
        log.debug(f"Rollup for {len(user_ids)} users {start_date}..{end_date} ({zone.key}): {len(sessions)} sessions")

        buckets: Dict[tuple, RollupRecord] = {}
        for clock_session in sessions:
            started = as_utc(clock_session.start_timestamp)
            day = started.astimezone(zone).date()
            team_id = clock_session.team_id if by_team else None
            key = (clock_session.user_id, day, team_id)

            record = buckets.get(key)
            if record is None:
                record = RollupRecord(user_id=clock_session.user_id, team_id=team_id, day=day, clock_in=started)
                buckets[key] = record

            record.total_seconds += elapsed(
                clock_session.start_timestamp,
                clock_session.accumulated_seconds,
                clock_session.end_timestamp,
                now
            )
            record.session_count += 1
            if started < record.clock_in:
                record.clock_in = started
            for title in ticket_titles(clock_session):
                if title not in record.tickets:
                    record.tickets.append(title)

            if clock_session.end_timestamp is None:
                record.is_active = True
                record.status = "Active"
                record.clock_out = None
            elif not record.is_active:
                ended = as_utc(clock_session.end_timestamp)
                if record.clock_out is None or ended > record.clock_out:
                    record.clock_out = ended

        return sorted(
            buckets.values(),
            key=lambda r: (-r.day.toordinal(), r.user_id, r.team_id or "")
        )

    def user_timesheet(
        self,
        user_id: str,
        start_date: date,
        end_date: date,
        timezone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TimesheetResponse:
        """One user's sessions, most recent first, with summary statistics."""
        zone = resolve_timezone(timezone)
        now = now or self.clock()
        start, end = local_day_bounds(start_date, end_date, zone)
        sessions = self._load_sessions([user_id], start, end)

        rows = []
        for clock_session in sessions:
            started = as_utc(clock_session.start_timestamp)
            rows.append(TimesheetSession(
                id=clock_session.id,
                day=started.astimezone(zone).date(),
                team_id=clock_session.team_id,
                start_time=started,
                end_time=as_utc(clock_session.end_timestamp) if clock_session.end_timestamp else None,
                duration_seconds=elapsed(
                    clock_session.start_timestamp,
                    clock_session.accumulated_seconds,
                    clock_session.end_timestamp,
                    now
                ),
                is_active=clock_session.end_timestamp is None,
                tickets=ticket_titles(clock_session)
            ))
        rows.sort(key=lambda row: (row.start_time, row.id), reverse=True)

        completed = [row for row in rows if not row.is_active]
        summary = TimesheetSummary(
            total_seconds=sum(row.duration_seconds for row in rows),
            total_sessions=len(rows),
            completed_sessions=len(completed),
            average_session_seconds=(
                sum(row.duration_seconds for row in completed) / len(completed) if completed else 0.0
            ),
            working_days=len({row.day for row in rows})
        )
        return TimesheetResponse(
            user_id=user_id,
            start_date=start_date,
            end_date=end_date,
            timezone=zone.key,
            sessions=rows,
            summary=summary
        )
