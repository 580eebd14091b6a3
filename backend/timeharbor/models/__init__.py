"""Database models."""

from timeharbor.models.clock_session import ClockSession
from timeharbor.models.ticket_timer import TicketTimer
from timeharbor.models.ticket import Ticket
from timeharbor.models.audit_log import AuditLog

__all__ = [
    "ClockSession",
    "TicketTimer",
    "Ticket",
    "AuditLog",
]
