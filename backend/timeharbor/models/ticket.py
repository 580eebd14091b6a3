"""Ticket model. Only the fields the clock engine reads or writes live here."""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from timeharbor.database import Base


class Ticket(Base):
    """A work item. ``accumulated_seconds`` is the all-time total of its closed timers."""

    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True)
    team_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    reference_url = Column(Text, nullable=True)
    created_by = Column(String(64), nullable=True)

    # Ticket aggregate, only ever incremented when a timer stops
    accumulated_seconds = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    timers = relationship("TicketTimer", back_populates="ticket")

    def __repr__(self):
        return f"<Ticket(id={self.id}, title='{self.title}', seconds={self.accumulated_seconds})>"
