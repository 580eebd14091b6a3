from typing import Dict, List, Optional
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict


class TicketTimerInDB(BaseModel):
    id: int
    clock_session_id: int
    ticket_id: int
    start_timestamp: Optional[datetime] = Field(None, description="Set while the timer is running")
    accumulated_seconds: int = Field(..., description="Seconds credited by completed runs")

    model_config = ConfigDict(from_attributes=True)


class ClockSessionInDB(BaseModel):
    id: int
    user_id: str
    team_id: str
    start_timestamp: datetime
    end_timestamp: Optional[datetime] = Field(None, description="Null while the session is open")
    accumulated_seconds: int = Field(..., description="Finalized seconds, set at close")
    ticket_timers: List[TicketTimerInDB] = []

    model_config = ConfigDict(from_attributes=True)


class ActiveSessionResponse(BaseModel):
    is_active: bool
    elapsed_seconds: int = 0
    session: Optional[ClockSessionInDB] = None


class TicketActionRequest(BaseModel):
    team_id: str = Field(..., description="Team whose clock session the ticket runs in")


class StopResponse(BaseModel):
    status: str  # 'stopped', 'noop'
    session: Optional[ClockSessionInDB] = None
    timer: Optional[TicketTimerInDB] = None


class ActiveUsersResponse(BaseModel):
    active: Dict[str, List[str]] = Field(..., description="User id -> teams currently clocked into")
