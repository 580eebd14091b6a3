from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class RollupRecord(BaseModel):
    """Per (user, day[, team]) totals."""
    user_id: str
    team_id: Optional[str] = Field(None, description="Set only for per-team rollups")
    day: date = Field(..., description="Local calendar date of the sessions' start")
    total_seconds: int = 0
    session_count: int = 0
    tickets: List[str] = Field([], description="Distinct ticket titles touched, in first-seen order")
    is_active: bool = False
    clock_in: Optional[datetime] = Field(None, description="Earliest session start")
    clock_out: Optional[datetime] = Field(None, description="Latest session end, null while any session is open")
    status: str = "Completed"  # 'Active', 'Completed'


class TimesheetSession(BaseModel):
    id: int
    day: date
    team_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_seconds: int
    is_active: bool
    tickets: List[str] = []


class TimesheetSummary(BaseModel):
    total_seconds: int = 0
    total_sessions: int = 0
    completed_sessions: int = 0
    average_session_seconds: float = 0.0
    working_days: int = 0


class TimesheetResponse(BaseModel):
    user_id: str
    start_date: date
    end_date: date
    timezone: str
    sessions: List[TimesheetSession]
    summary: TimesheetSummary
