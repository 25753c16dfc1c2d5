from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth import Actor, get_current_actor, require_module
from app.db import get_db
from app.documents import schemas
from app.documents.lifecycle import BILL, CREDIT_NOTE, INVOICE, VENDOR_CREDIT, DocumentFamily
from app.documents.service import (
    apply_credit,
    create_document,
    delete_document,
    get_document,
    list_documents,
    transition_document,
    update_document,
)
from app.models import Document
from app.module_keys import ModuleKey
from app.routers.errors import ledger_errors


def to_response(document: Document, as_of: Optional[date] = None) -> schemas.DocumentResponse:
    return schemas.DocumentResponse(
        id=document.id,
        family=document.family,
        number=document.number,
        party_id=document.party_id,
        party_name=document.party.name if document.party else None,
        status=document.status,
        effective_status=document.effective_status(as_of),
        issue_date=document.issue_date,
        due_date=document.due_date,
        sub_total=document.sub_total,
        tax_total=document.tax_total,
        total=document.total,
        amount_paid=document.amount_paid,
        balance_due=document.balance_due,
        journal_entry_id=document.journal_entry_id,
        original_document_id=document.original_document_id,
        notes=document.notes,
        created_by=document.created_by,
        approved_by=document.approved_by,
        approved_at=document.approved_at,
        sent_at=document.sent_at,
        voided_by=document.voided_by,
        voided_at=document.voided_at,
        created_at=document.created_at,
        updated_at=document.updated_at,
        lines=[schemas.DocumentLineResponse.model_validate(line) for line in document.lines],
    )


def document_router(family: DocumentFamily, prefix: str, module_key: ModuleKey) -> APIRouter:
    """Routes for one document family; each family keeps its own state machine."""
    router = APIRouter(prefix=prefix, tags=[prefix.rsplit("/", 1)[-1]], dependencies=[Depends(require_module(module_key.value))])
    conflict = f"{family.label} number already exists."

    @router.get("", response_model=List[schemas.DocumentResponse])
    def list_family_documents(
        status: Optional[str] = Query(None),
        party_id: Optional[int] = Query(None),
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        limit: int = Query(100, ge=1, le=500),
        db: Session = Depends(get_db),
    ):
        documents = list_documents(
            db,
            family,
            status=status,
            party_id=party_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
        )
        return [to_response(document) for document in documents]

    @router.post("", response_model=schemas.DocumentResponse, status_code=status.HTTP_201_CREATED)
    def create_family_document(
        payload: schemas.DocumentCreate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
    ):
        with ledger_errors(db, conflict):
            document = create_document(db, family, payload.model_dump(), created_by=actor.id)
            db.commit()
        return to_response(get_document(db, family, document.id))

    @router.get("/{document_id}", response_model=schemas.DocumentResponse)
    def get_family_document(document_id: int, as_of: Optional[date] = Query(None), db: Session = Depends(get_db)):
        with ledger_errors(db):
            return to_response(get_document(db, family, document_id), as_of)

    @router.put("/{document_id}", response_model=schemas.DocumentResponse)
    @router.patch("/{document_id}", response_model=schemas.DocumentResponse)
    def update_family_document(
        document_id: int,
        payload: schemas.DocumentUpdate,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
    ):
        with ledger_errors(db, conflict):
            update_document(db, family, document_id, payload.model_dump(exclude_unset=True), actor.id)
            db.commit()
        return to_response(get_document(db, family, document_id))

    @router.delete("/{document_id}", response_model=dict)
    def delete_family_document(
        document_id: int,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
    ):
        with ledger_errors(db):
            delete_document(db, family, document_id, actor.id)
            db.commit()
        return {"status": "ok"}

    if family.is_credit:

        @router.post("/{document_id}/apply", response_model=schemas.DocumentResponse)
        def apply_family_credit(
            document_id: int,
            payload: schemas.CreditApplicationCreate,
            db: Session = Depends(get_db),
            actor: Actor = Depends(get_current_actor),
        ):
            with ledger_errors(db):
                apply_credit(db, family, document_id, payload.allocations, actor.id)
                db.commit()
            return to_response(get_document(db, family, document_id))

    @router.post("/{document_id}/{action}", response_model=schemas.DocumentResponse)
    def transition_family_document(
        document_id: int,
        action: str,
        payload: Optional[schemas.DocumentTransition] = None,
        db: Session = Depends(get_db),
        actor: Actor = Depends(get_current_actor),
    ):
        reason = payload.reason if payload else None
        with ledger_errors(db):
            transition_document(db, family, document_id, action, actor.id, reason=reason)
            db.commit()
        return to_response(get_document(db, family, document_id))

    return router


invoices_router = document_router(INVOICE, "/api/invoices", ModuleKey.INVOICES)
bills_router = document_router(BILL, "/api/bills", ModuleKey.BILLS)
credit_notes_router = document_router(CREDIT_NOTE, "/api/credit-notes", ModuleKey.INVOICES)
vendor_credits_router = document_router(VENDOR_CREDIT, "/api/vendor-credits", ModuleKey.BILLS)
