"""Audit trail for clock transitions made through the API."""

import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from timeharbor.models.audit_log import AuditLog

log = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Client IP behind a reverse proxy: first X-Forwarded-For hop, then X-Real-IP,
    then the socket peer.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def create_audit_log(
    db: Session,
    request: Request,
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    user: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None
) -> Optional[AuditLog]:
    """
    Record a completed transition, e.g. ``action="clock_in", entity_type="clock_session"``.

    Runs after the engine committed, in its own transaction. A failure here is
    logged and returns None; the transition it describes already happened.
    """
    audit_log = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user=user,
        details=details,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("User-Agent")
    )
    try:
        db.add(audit_log)
        db.commit()
        db.refresh(audit_log)
    except SQLAlchemyError as e:
        db.rollback()
        log.error(f"Failed to write audit log '{action}' for user {user}: {e}")
        return None
    return audit_log
