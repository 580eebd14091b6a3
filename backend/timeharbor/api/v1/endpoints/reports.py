from datetime import date, timedelta
from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from timeharbor.api.deps import get_clock_engine, get_rollup_aggregator
from timeharbor.auth import ensure_can_view, get_current_user
from timeharbor.config import settings
from timeharbor.schemas.auth import CurrentUser
from timeharbor.schemas.clock import ActiveUsersResponse
from timeharbor.schemas.rollup import RollupRecord, TimesheetResponse
from timeharbor.services.clock_engine import ClockEngine
from timeharbor.services.duration import utcnow
from timeharbor.services.rollup import RollupAggregator

router = APIRouter()


def _resolve_range(start_date: Optional[date], end_date: Optional[date]):
    """Defaults to the last 7 days ending today (UTC)."""
    end_d = end_date or utcnow().date()
    start_d = start_date or (end_d - timedelta(days=6))
    return start_d, end_d


@router.get("/rollup", response_model=List[RollupRecord])
def read_rollup(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_ids: Optional[List[str]] = Query(None),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    timezone: Optional[str] = None,
    by_team: bool = False,
    aggregator: RollupAggregator = Depends(get_rollup_aggregator)
):
    """Per-user, per-day totals (optionally per team) for dashboards."""
    user_ids = user_ids or [current_user.user_id]
    for user_id in user_ids:
        ensure_can_view(current_user, user_id)
    start_d, end_d = _resolve_range(start_date, end_date)
    try:
        return aggregator.rollup(user_ids, start_d, end_d, timezone or settings.default_timezone, by_team=by_team)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/timesheet/{user_id}", response_model=TimesheetResponse)
def read_timesheet(
    user_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    timezone: Optional[str] = None,
    aggregator: RollupAggregator = Depends(get_rollup_aggregator)
):
    """A user's sessions in the range with summary statistics."""
    ensure_can_view(current_user, user_id)
    start_d, end_d = _resolve_range(start_date, end_date)
    try:
        return aggregator.user_timesheet(user_id, start_d, end_d, timezone or settings.default_timezone)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/active", response_model=ActiveUsersResponse)
def read_active_users(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    user_ids: Optional[List[str]] = Query(None),
    engine: ClockEngine = Depends(get_clock_engine)
):
    """Which of the given users are clocked in right now, and where."""
    user_ids = user_ids or [current_user.user_id]
    for user_id in user_ids:
        ensure_can_view(current_user, user_id)
    return ActiveUsersResponse(active=engine.active_users(user_ids))
