from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.accounting import schemas
from app.accounting.posting import JournalLineInput
from app.accounting.service import (
    approve_journal_entry,
    create_journal_entry,
    delete_journal_entry,
    get_journal_entry,
    list_journal_entries,
    post_journal_entry,
    post_rounding_adjustment,
    reverse_journal_entry,
)
from app.auth import Actor, get_current_actor, require_module
from app.db import get_db
from app.module_keys import ModuleKey
from app.routers.errors import ledger_errors

router = APIRouter(
    prefix="/api/journal-entries",
    tags=["journal-entries"],
    dependencies=[Depends(require_module(ModuleKey.JOURNAL.value))],
)


@router.get("", response_model=List[schemas.JournalEntryResponse])
def list_journal_entries_endpoint(
    limit: int = Query(50, ge=1, le=200),
    status: Optional[str] = Query(None),
    source_type: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    account_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    return list_journal_entries(
        db,
        status=status,
        source_type=source_type,
        start_date=start_date,
        end_date=end_date,
        account_id=account_id,
        search=search,
        limit=limit,
    )


@router.post("", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def create_journal_entry_endpoint(
    payload: schemas.JournalEntryCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    lines = [
        JournalLineInput(
            account_id=line.account_id,
            debit=line.debit,
            credit=line.credit,
            description=line.description,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
            party_id=line.party_id,
        )
        for line in payload.lines
    ]
    with ledger_errors(db, "Journal entry conflicts with an existing entry."):
        entry = create_journal_entry(
            db,
            entry_date=payload.date,
            description=payload.description,
            lines=lines,
            created_by=actor.id,
            idempotency_key=payload.idempotency_key,
            notes=payload.notes,
        )
        db.commit()
    return get_journal_entry(db, entry.id)


@router.post("/rounding-adjustments", response_model=schemas.JournalEntryResponse, status_code=status.HTTP_201_CREATED)
def create_rounding_adjustment(
    payload: schemas.RoundingAdjustmentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        entry = post_rounding_adjustment(
            db,
            amount=payload.amount,
            entry_date=payload.entry_date,
            description=payload.description,
            source_type=payload.source_type,
            source_id=payload.source_id,
            created_by=actor.id,
        )
        db.commit()
    return get_journal_entry(db, entry.id)


@router.get("/{entry_id}", response_model=schemas.JournalEntryResponse)
def get_journal_entry_endpoint(entry_id: int, db: Session = Depends(get_db)):
    with ledger_errors(db):
        return get_journal_entry(db, entry_id)


@router.post("/{entry_id}/approve", response_model=schemas.JournalEntryResponse)
def approve_journal_entry_endpoint(
    entry_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        approve_journal_entry(db, entry_id, actor.id)
        db.commit()
    return get_journal_entry(db, entry_id)


@router.post("/{entry_id}/post", response_model=schemas.JournalEntryResponse)
def post_journal_entry_endpoint(
    entry_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        post_journal_entry(db, entry_id, actor.id)
        db.commit()
    return get_journal_entry(db, entry_id)


@router.post("/{entry_id}/reverse", response_model=schemas.JournalEntryResponse)
def reverse_journal_entry_endpoint(
    entry_id: int,
    payload: Optional[schemas.JournalEntryReverse] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    payload = payload or schemas.JournalEntryReverse()
    with ledger_errors(db):
        reversal = reverse_journal_entry(
            db,
            entry_id,
            actor.id,
            reversal_date=payload.reversal_date,
            reason=payload.reason,
        )
        db.commit()
    return get_journal_entry(db, reversal.id)


@router.delete("/{entry_id}", response_model=dict)
def delete_journal_entry_endpoint(
    entry_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        delete_journal_entry(db, entry_id, actor.id)
        db.commit()
    return {"status": "ok"}
