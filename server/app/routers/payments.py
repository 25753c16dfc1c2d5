from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.auth import Actor, get_current_actor, require_module
from app.db import get_db
from app.documents import schemas
from app.documents.payments import confirm_payment, create_payment, get_payment, list_payments, void_payment
from app.module_keys import ModuleKey
from app.routers.errors import ledger_errors

router = APIRouter(
    prefix="/api/payments",
    tags=["payments"],
    dependencies=[Depends(require_module(ModuleKey.PAYMENTS.value))],
)


@router.get("", response_model=List[schemas.PaymentResponse])
def list_payments_endpoint(
    type: Optional[schemas.PaymentType] = Query(None),
    party_id: Optional[int] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return list_payments(db, payment_type=type, party_id=party_id, status=status, limit=limit)


@router.post("", response_model=schemas.PaymentResponse, status_code=status.HTTP_201_CREATED)
def create_payment_endpoint(
    payload: schemas.PaymentCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        payment = create_payment(db, payload.model_dump(), created_by=actor.id)
        db.commit()
    return get_payment(db, payment.id)


@router.get("/{payment_id}", response_model=schemas.PaymentResponse)
def get_payment_endpoint(payment_id: int, db: Session = Depends(get_db)):
    with ledger_errors(db):
        return get_payment(db, payment_id)


@router.post("/{payment_id}/confirm", response_model=schemas.PaymentResponse)
def confirm_payment_endpoint(
    payment_id: int,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        confirm_payment(db, payment_id, actor.id)
        db.commit()
    return get_payment(db, payment_id)


@router.post("/{payment_id}/void", response_model=schemas.PaymentResponse)
def void_payment_endpoint(
    payment_id: int,
    payload: Optional[schemas.PaymentVoid] = None,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    with ledger_errors(db):
        void_payment(db, payment_id, actor.id, reason=payload.reason if payload else None)
        db.commit()
    return get_payment(db, payment_id)
