from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from timeharbor.api.deps import get_clock_engine
from timeharbor.auth import get_current_user
from timeharbor.database import get_db
from timeharbor.schemas.auth import CurrentUser
from timeharbor.schemas.clock import ActiveSessionResponse, ClockSessionInDB, StopResponse
from timeharbor.services.clock_engine import ClockEngine
from timeharbor.services.duration import elapsed
from timeharbor.utils.audit_logger import create_audit_log

router = APIRouter()


@router.post("/{team_id}/start", response_model=ClockSessionInDB, status_code=status.HTTP_201_CREATED)
def clock_in(
    team_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: ClockEngine = Depends(get_clock_engine),
    db: Session = Depends(get_db)
):
    """Open a clock session for the team, closing any session already open there."""
    clock_session = engine.open_session(current_user.user_id, team_id)
    create_audit_log(
        db, request,
        action="clock_in",
        entity_type="clock_session",
        entity_id=clock_session.id,
        user=current_user.user_id,
        details={"team_id": team_id}
    )
    return clock_session


@router.post("/{team_id}/stop", response_model=StopResponse)
def clock_out(
    team_id: str,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: ClockEngine = Depends(get_clock_engine),
    db: Session = Depends(get_db)
):
    """Close the open clock session for the team. Closing when nothing is open is a no-op."""
    clock_session = engine.close_session(current_user.user_id, team_id)
    if clock_session is None:
        return StopResponse(status="noop")
    create_audit_log(
        db, request,
        action="clock_out",
        entity_type="clock_session",
        entity_id=clock_session.id,
        user=current_user.user_id,
        details={"team_id": team_id, "accumulated_seconds": clock_session.accumulated_seconds}
    )
    return StopResponse(status="stopped", session=ClockSessionInDB.model_validate(clock_session))


@router.get("/{team_id}/active", response_model=ActiveSessionResponse)
def read_active_session(
    team_id: str,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: ClockEngine = Depends(get_clock_engine)
):
    """Whether the caller is clocked into the team right now, with the running total."""
    clock_session = engine.active_session(current_user.user_id, team_id)
    if clock_session is None:
        return ActiveSessionResponse(is_active=False)
    return ActiveSessionResponse(
        is_active=True,
        elapsed_seconds=elapsed(clock_session.start_timestamp, clock_session.accumulated_seconds, None, engine.clock()),
        session=ClockSessionInDB.model_validate(clock_session)
    )
