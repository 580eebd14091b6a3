"""Ticket timer model: the part of a clock session spent on one ticket."""

from sqlalchemy import Column, Integer, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from timeharbor.database import Base


class TicketTimer(Base):
    """Per (clock session, ticket) accumulator. ``start_timestamp`` is set only while running."""

    __tablename__ = "ticket_timers"

    id = Column(Integer, primary_key=True, index=True)
    clock_session_id = Column(Integer, ForeignKey("clock_sessions.id"), nullable=False, index=True)
    ticket_id = Column(Integer, ForeignKey("tickets.id"), nullable=False, index=True)

    start_timestamp = Column(DateTime(timezone=True), nullable=True)
    accumulated_seconds = Column(Integer, default=0, nullable=False)

    # Relationships
    clock_session = relationship("ClockSession", back_populates="ticket_timers")
    ticket = relationship("Ticket", back_populates="timers")

    __table_args__ = (
        UniqueConstraint('clock_session_id', 'ticket_id', name='uq_ticket_timers_session_ticket'),
        # At most one running timer per clock session
        Index(
            'uq_ticket_timers_running_session', 'clock_session_id',
            unique=True,
            postgresql_where=start_timestamp.isnot(None),
            sqlite_where=start_timestamp.isnot(None),
        ),
    )

    @property
    def is_running(self) -> bool:
        return self.start_timestamp is not None

    def __repr__(self):
        return f"<TicketTimer(id={self.id}, session={self.clock_session_id}, ticket={self.ticket_id}, running={self.is_running})>"
