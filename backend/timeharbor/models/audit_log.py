"""Audit log model for clock transitions made through the API."""

from sqlalchemy import Column, Integer, String, DateTime, Index, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from timeharbor.database import Base


class AuditLog(Base):
    """Audit trail for clock and ticket transitions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Action details
    action = Column(String(100), nullable=False)  # 'clock_in', 'clock_out', 'ticket_start', 'ticket_stop'
    entity_type = Column(String(50), nullable=True)  # 'clock_session', 'ticket'
    entity_id = Column(Integer, nullable=True)

    # User and context
    user = Column(String(100), nullable=True)
    details = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)

    ip_address = Column(String(45), nullable=True)  # Supports IPv6
    user_agent = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    __table_args__ = (
        Index('idx_audit_logs_created_at_desc', created_at.desc()),
        Index('idx_audit_logs_action', 'action'),
    )

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity_type}')>"
