import logging
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session, selectinload

from app.accounting.posting import build_payment_entry
from app.accounting.sequences import next_sequence_number
from app.accounting.service import create_from_input, get_journal_entry, reverse_journal_entry
from app.audit import record_event, record_status_transition
from app.chart_of_accounts.service import get_account_by_code, require_active_accounts
from app.config import settings
from app.documents.lifecycle import BILL, INVOICE, apply_settlement
from app.exceptions import InvalidStateError, LedgerValidationError, UnknownReferenceError
from app.models import OPEN_DOCUMENT_STATUSES, Document, Party, Payment, PaymentAllocation
from app.utils import ZERO, money

logger = logging.getLogger(__name__)

PAYMENT_PREFIX = "PAY"
PAYMENT_TYPES = {
    "CUSTOMER_PAYMENT": ("CUSTOMER", INVOICE),
    "VENDOR_PAYMENT": ("VENDOR", BILL),
}


def _field(source: Any, name: str, default=None):
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


def get_payment(db: Session, payment_id: int, *, for_update: bool = False) -> Payment:
    query = (
        db.query(Payment)
        .options(selectinload(Payment.allocations).selectinload(PaymentAllocation.document))
        .filter(Payment.id == payment_id)
    )
    if for_update:
        query = query.with_for_update()
    payment = query.first()
    if not payment:
        raise UnknownReferenceError("Payment not found.")
    return payment


def list_payments(
    db: Session,
    *,
    payment_type: Optional[str] = None,
    party_id: Optional[int] = None,
    status: Optional[str] = None,
    limit: int = 100,
) -> list[Payment]:
    query = db.query(Payment).options(selectinload(Payment.allocations))
    if payment_type:
        query = query.filter(Payment.type == payment_type.upper())
    if party_id:
        query = query.filter(Payment.party_id == party_id)
    if status:
        query = query.filter(Payment.status == status.upper())
    return query.order_by(Payment.payment_date.desc(), Payment.id.desc()).limit(limit).all()


def _validate_allocations(
    db: Session,
    *,
    payment_type: str,
    party_id: int,
    amount: Decimal,
    allocations: list[tuple[int, Decimal]],
    lock: bool = False,
) -> dict[int, Document]:
    """Check allocations against the documents' current balances.

    Over-payment is rejected: no allocation may exceed the document's balance
    due and allocations together may not exceed the payment amount.
    """
    _, family = PAYMENT_TYPES[payment_type]
    requested: dict[int, Decimal] = {}
    for document_id, allocated in allocations:
        if allocated <= 0:
            raise LedgerValidationError("Allocation amounts must be greater than zero.")
        requested[document_id] = requested.get(document_id, ZERO) + allocated

    total_allocated = sum(requested.values(), ZERO)
    if total_allocated > amount:
        raise LedgerValidationError(f"Allocations ({total_allocated}) exceed the payment amount ({amount}).")

    documents: dict[int, Document] = {}
    for document_id, allocated in requested.items():
        query = db.query(Document).filter(Document.id == document_id)
        if lock:
            query = query.with_for_update()
        document = query.first()
        if not document or document.family != family.key:
            raise UnknownReferenceError(f"{family.label} {document_id} not found.")
        if document.party_id != party_id:
            raise LedgerValidationError(f"{family.label} {document.number} belongs to a different party.")
        if document.status not in OPEN_DOCUMENT_STATUSES:
            raise InvalidStateError(f"{family.label} {document.number} is not open for payment (status {document.status}).")
        if allocated > money(document.balance_due):
            raise LedgerValidationError(
                f"Allocation {allocated} exceeds the balance due on {document.number} ({document.balance_due})."
            )
        documents[document_id] = document
    return documents


def create_payment(db: Session, payload: dict, created_by: Optional[str] = None) -> Payment:
    payment_type = payload["type"]
    if payment_type not in PAYMENT_TYPES:
        raise LedgerValidationError(f"Unknown payment type '{payment_type}'.")
    party_type, _ = PAYMENT_TYPES[payment_type]

    party = db.query(Party).filter(Party.id == payload["party_id"]).first()
    if not party:
        raise UnknownReferenceError("Party not found.")
    if party.type != party_type:
        raise LedgerValidationError(f"A {payment_type.lower()} requires a {party_type.lower()} party.")

    amount = money(payload["amount"])
    if amount <= 0:
        raise LedgerValidationError("Payment amount must be greater than zero.")
    if payload.get("deposit_account_id") is not None:
        require_active_accounts(db, [payload["deposit_account_id"]])

    allocations = [
        (_field(allocation, "document_id"), money(_field(allocation, "amount")))
        for allocation in payload.get("allocations") or []
    ]
    _validate_allocations(db, payment_type=payment_type, party_id=party.id, amount=amount, allocations=allocations)
    allocated = sum((value for _, value in allocations), ZERO)

    payment = Payment(
        number=next_sequence_number(db, PAYMENT_PREFIX),
        type=payment_type,
        party_id=party.id,
        payment_date=payload["payment_date"],
        amount=amount,
        method=payload.get("method"),
        reference=payload.get("reference"),
        deposit_account_id=payload.get("deposit_account_id"),
        status="DRAFT",
        amount_allocated=allocated,
        amount_unallocated=amount - allocated,
        notes=payload.get("notes"),
        created_by=created_by,
    )
    payment.allocations = [PaymentAllocation(document_id=document_id, amount=value) for document_id, value in allocations]
    db.add(payment)
    db.flush()
    record_event(db, entity_type="payment", entity_id=payment.id, action="CREATE", actor=created_by, metadata=payment.number)
    return get_payment(db, payment.id)


def confirm_payment(db: Session, payment_id: int, actor: Optional[str] = None) -> Payment:
    """Post the payment's journal entry and settle its allocated documents."""
    payment = get_payment(db, payment_id, for_update=True)
    if payment.status != "DRAFT":
        raise InvalidStateError(f"Only DRAFT payments can be confirmed (payment is {payment.status}).")

    documents = _validate_allocations(
        db,
        payment_type=payment.type,
        party_id=payment.party_id,
        amount=money(payment.amount),
        allocations=[(allocation.document_id, money(allocation.amount)) for allocation in payment.allocations],
        lock=True,
    )

    control_code = (
        settings.accounts_receivable_code if payment.type == "CUSTOMER_PAYMENT" else settings.accounts_payable_code
    )
    cash_account_id = payment.deposit_account_id or get_account_by_code(db, settings.cash_account_code).id
    entry_input = build_payment_entry(
        payment_type=payment.type,
        entry_date=payment.payment_date,
        cash_account_id=cash_account_id,
        control_account_id=get_account_by_code(db, control_code).id,
        party_id=payment.party_id,
        amount=payment.amount,
        description=f"Payment {payment.number}",
        source_id=payment.id,
        idempotency_key=f"payment-confirm-{payment.id}",
    )
    entry = create_from_input(db, entry_input, created_by=actor, auto_post=True)

    for allocation in payment.allocations:
        apply_settlement(documents[allocation.document_id], money(allocation.amount))

    payment.journal_entry_id = entry.id
    payment.status = "CONFIRMED"
    db.flush()
    record_status_transition(
        db,
        entity_type="payment",
        entity_id=payment.id,
        from_status="DRAFT",
        to_status="CONFIRMED",
        actor=actor,
    )
    logger.info("Confirmed payment %s for %s", payment.number, payment.amount)
    return get_payment(db, payment.id)


def void_payment(db: Session, payment_id: int, actor: Optional[str] = None, reason: Optional[str] = None) -> Payment:
    payment = get_payment(db, payment_id, for_update=True)
    if payment.status == "VOID":
        raise InvalidStateError(f"Payment {payment.number} is already void.")

    from_status = payment.status
    if payment.status == "CONFIRMED":
        if payment.journal_entry_id is not None:
            entry = get_journal_entry(db, payment.journal_entry_id)
            if entry.status == "POSTED":
                reverse_journal_entry(
                    db,
                    entry.id,
                    actor,
                    reversal_date=date.today(),
                    reason=reason or f"Void payment {payment.number}",
                    allow_owned=True,
                )
        for allocation in payment.allocations:
            document = db.query(Document).filter(Document.id == allocation.document_id).with_for_update().first()
            apply_settlement(document, -money(allocation.amount))

    payment.status = "VOID"
    db.flush()
    record_status_transition(
        db,
        entity_type="payment",
        entity_id=payment.id,
        from_status=from_status,
        to_status="VOID",
        actor=actor,
    )
    logger.info("Voided payment %s", payment.number)
    return get_payment(db, payment.id)
