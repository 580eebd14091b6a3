"""Clock session model: one user's work period inside one team."""

from sqlalchemy import Column, Integer, String, DateTime, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from timeharbor.database import Base


class ClockSession(Base):
    """A clock-in/clock-out period. ``end_timestamp`` is null while the session is open."""

    __tablename__ = "clock_sessions"

    id = Column(Integer, primary_key=True, index=True)

    # Owner (identities come from the auth and team collaborators)
    user_id = Column(String(64), nullable=False, index=True)
    team_id = Column(String(64), nullable=False, index=True)

    # Temporal information
    start_timestamp = Column(DateTime(timezone=True), nullable=False)
    end_timestamp = Column(DateTime(timezone=True), nullable=True)
    accumulated_seconds = Column(Integer, default=0, nullable=False)  # Finalized at close

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    ticket_timers = relationship("TicketTimer", back_populates="clock_session", order_by="TicketTimer.id")

    __table_args__ = (
        # At most one open session per (user, team)
        Index(
            'uq_clock_sessions_open_user_team', 'user_id', 'team_id',
            unique=True,
            postgresql_where=end_timestamp.is_(None),
            sqlite_where=end_timestamp.is_(None),
        ),
        Index('idx_clock_sessions_user_start', 'user_id', 'start_timestamp'),
    )

    @property
    def is_open(self) -> bool:
        return self.end_timestamp is None

    def __repr__(self):
        return f"<ClockSession(id={self.id}, user='{self.user_id}', team='{self.team_id}', open={self.is_open})>"
