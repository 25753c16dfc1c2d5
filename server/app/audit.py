import hashlib
import json
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy.orm import Session

from app.models import AuditEvent


def snapshot(obj: Any, fields: Iterable[str]) -> dict[str, Any]:
    return {name: getattr(obj, name, None) for name in fields}


def content_hash(content: Optional[dict[str, Any]]) -> Optional[str]:
    """SHA-256 of a JSON rendering of ``content``."""
    if content is None:
        return None
    data_str = json.dumps(content, sort_keys=True, default=str)
    return hashlib.sha256(data_str.encode()).hexdigest()


def record_event(
    db: Session,
    *,
    entity_type: str,
    entity_id: int,
    action: str,
    actor: Optional[str] = None,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
    metadata: Optional[str] = None,
) -> AuditEvent:
    event = AuditEvent(
        actor=actor,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        before_hash=content_hash(before),
        after_hash=content_hash(after),
        event_metadata=metadata,
    )
    db.add(event)
    return event


def record_status_transition(
    db: Session,
    *,
    entity_type: str,
    entity_id: int,
    from_status: Optional[str],
    to_status: str,
    actor: Optional[str] = None,
) -> AuditEvent:
    return record_event(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        action="STATUS_TRANSITION",
        actor=actor,
        before={"status": from_status},
        after={"status": to_status},
        metadata=f"{from_status}->{to_status}",
    )


def list_audit_events(
    db: Session,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[AuditEvent]:
    """Audit trail in the order it was written, optionally filtered."""
    query = db.query(AuditEvent)
    if entity_type:
        query = query.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditEvent.entity_id == entity_id)
    if actor:
        query = query.filter(AuditEvent.actor == actor)
    if action:
        query = query.filter(AuditEvent.action == action.upper())
    if start is not None:
        query = query.filter(AuditEvent.created_at >= start)
    if end is not None:
        query = query.filter(AuditEvent.created_at <= end)
    return query.order_by(AuditEvent.id.asc()).offset(offset).limit(limit).all()
