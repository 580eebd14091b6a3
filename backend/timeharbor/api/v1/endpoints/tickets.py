from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from timeharbor.api.deps import get_clock_engine
from timeharbor.auth import get_current_user
from timeharbor.database import get_db
from timeharbor.schemas.auth import CurrentUser
from timeharbor.schemas.clock import StopResponse, TicketActionRequest, TicketTimerInDB
from timeharbor.services.clock_engine import ClockEngine
from timeharbor.utils.audit_logger import create_audit_log

router = APIRouter()


@router.post("/{ticket_id}/start", response_model=TicketTimerInDB)
def start_ticket(
    ticket_id: int,
    body: TicketActionRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: ClockEngine = Depends(get_clock_engine),
    db: Session = Depends(get_db)
):
    """Switch the caller's active ticket, clocking in first if needed."""
    timer = engine.start_ticket(current_user.user_id, body.team_id, ticket_id)
    create_audit_log(
        db, request,
        action="ticket_start",
        entity_type="ticket",
        entity_id=ticket_id,
        user=current_user.user_id,
        details={"team_id": body.team_id, "clock_session_id": timer.clock_session_id}
    )
    return timer


@router.post("/{ticket_id}/stop", response_model=StopResponse)
def stop_ticket(
    ticket_id: int,
    body: TicketActionRequest,
    request: Request,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    engine: ClockEngine = Depends(get_clock_engine),
    db: Session = Depends(get_db)
):
    """Stop the ticket if it is running. Stopping an idle ticket is a no-op."""
    timer = engine.stop_ticket(current_user.user_id, body.team_id, ticket_id)
    if timer is None:
        return StopResponse(status="noop")
    create_audit_log(
        db, request,
        action="ticket_stop",
        entity_type="ticket",
        entity_id=ticket_id,
        user=current_user.user_id,
        details={"team_id": body.team_id, "accumulated_seconds": timer.accumulated_seconds}
    )
    return StopResponse(status="stopped", timer=TicketTimerInDB.model_validate(timer))
