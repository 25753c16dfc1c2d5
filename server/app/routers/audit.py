from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.accounting import schemas
from app.audit import list_audit_events
from app.auth import require_module
from app.db import get_db
from app.module_keys import ModuleKey

router = APIRouter(
    prefix="/api/audit-logs",
    tags=["audit"],
    dependencies=[Depends(require_module(ModuleKey.JOURNAL.value))],
)


@router.get("", response_model=List[schemas.AuditEventResponse])
def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    actor: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    return list_audit_events(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor=actor,
        action=action,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )
