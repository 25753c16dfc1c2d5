"""Document lifecycle: totals through the tax engine, transitions and ledger postings.

Every function here flushes but never commits; the calling router owns the
transaction so that document totals, the journal entry and the document's
``journal_entry_id`` land together or not at all.
"""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session, selectinload

from app.accounting.posting import PostingAmount, build_document_entry
from app.accounting.sequences import next_sequence_number
from app.accounting.service import create_from_input, get_journal_entry, reverse_journal_entry
from app.audit import record_event, record_status_transition
from app.chart_of_accounts.service import get_account_by_code, require_active_accounts, require_dimensions
from app.config import settings
from app.documents.lifecycle import (
    DocumentFamily,
    apply_settlement,
    ensure_transition,
    get_family,
    normalize_action,
)
from app.exceptions import ConflictError, InvalidStateError, LedgerValidationError, UnknownReferenceError
from app.models import OPEN_DOCUMENT_STATUSES, CreditApplication, Document, DocumentLine, Party
from app.tax.calculations import TaxResult
from app.tax.service import calculate_tax
from app.utils import ZERO, money

logger = logging.getLogger(__name__)


def _field(source: Any, name: str, default=None):
    if isinstance(source, dict):
        return source.get(name, default)
    return getattr(source, name, default)


def get_document(db: Session, family: DocumentFamily, document_id: int, *, for_update: bool = False) -> Document:
    query = (
        db.query(family.model)
        .options(selectinload(Document.lines), selectinload(Document.party))
        .filter(Document.id == document_id)
    )
    if for_update:
        query = query.with_for_update()
    document = query.first()
    if not document:
        raise UnknownReferenceError(f"{family.label} not found.")
    return document


def list_documents(
    db: Session,
    family: DocumentFamily,
    *,
    status: Optional[str] = None,
    party_id: Optional[int] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 100,
) -> list[Document]:
    query = db.query(family.model).options(selectinload(Document.lines), selectinload(Document.party))
    if status:
        status = status.upper()
        if status == "OVERDUE":
            query = query.filter(
                Document.status.in_(OPEN_DOCUMENT_STATUSES),
                Document.due_date < date.today(),
                Document.balance_due > 0,
            )
        else:
            query = query.filter(Document.status == status)
    if party_id:
        query = query.filter(Document.party_id == party_id)
    if start_date:
        query = query.filter(Document.issue_date >= start_date)
    if end_date:
        query = query.filter(Document.issue_date <= end_date)
    return query.order_by(Document.issue_date.desc(), Document.id.desc()).limit(limit).all()


def _require_party(db: Session, family: DocumentFamily, party_id: int) -> Party:
    party = db.query(Party).filter(Party.id == party_id).first()
    if not party:
        raise UnknownReferenceError("Party not found.")
    if party.type != family.party_type:
        raise LedgerValidationError(f"A {family.label.lower()} requires a {family.party_type.lower()} party.")
    if not party.is_active:
        raise LedgerValidationError(f"Party {party.name} is inactive.")
    return party


def _build_lines(db: Session, lines_data: list) -> list[DocumentLine]:
    if not lines_data:
        raise LedgerValidationError("A document needs at least one line item.")

    lines: list[DocumentLine] = []
    for index, line_data in enumerate(lines_data, start=1):
        quantity = Decimal(str(_field(line_data, "quantity", 1)))
        rate = Decimal(str(_field(line_data, "rate", 0)))
        if quantity <= 0:
            raise LedgerValidationError(f"Line {index}: quantity must be greater than zero.")
        if rate < 0:
            raise LedgerValidationError(f"Line {index}: rate cannot be negative.")
        lines.append(
            DocumentLine(
                line_number=index,
                description=_field(line_data, "description"),
                account_id=_field(line_data, "account_id"),
                quantity=quantity,
                rate=rate,
                tax_code_id=_field(line_data, "tax_code_id"),
                tax_group_id=_field(line_data, "tax_group_id"),
                tax_rate=_field(line_data, "tax_rate"),
                cost_center_id=_field(line_data, "cost_center_id"),
                project_id=_field(line_data, "project_id"),
            )
        )

    require_active_accounts(db, [line.account_id for line in lines if line.account_id is not None])
    require_dimensions(
        db,
        cost_center_ids=[line.cost_center_id for line in lines],
        project_ids=[line.project_id for line in lines],
    )
    return lines


def recalculate_document(db: Session, document: Document) -> list[tuple[DocumentLine, TaxResult]]:
    """Recompute every line and the document totals from quantities, rates and tax settings."""
    results: list[tuple[DocumentLine, TaxResult]] = []
    sub_total = ZERO
    tax_total = ZERO
    for line in document.lines:
        line.amount = money(Decimal(line.quantity) * Decimal(line.rate))
        result = calculate_tax(
            db,
            line.amount,
            tax_code_id=line.tax_code_id,
            tax_group_id=line.tax_group_id,
            tax_rate=line.tax_rate,
        )
        line.taxable_amount = result.taxable_amount
        line.tax_amount = result.tax_amount
        sub_total += result.taxable_amount
        tax_total += result.tax_amount
        results.append((line, result))

    document.sub_total = sub_total
    document.tax_total = tax_total
    document.total = sub_total + tax_total
    document.balance_due = money(document.total) - money(document.amount_paid)
    return results


def _number_taken(db: Session, family: DocumentFamily):
    def exists(number: str) -> bool:
        return db.query(Document.id).filter(Document.family == family.key, Document.number == number).first() is not None

    return exists


def _validate_original(db: Session, family: DocumentFamily, party_id: int, original_id: Optional[int]) -> None:
    if original_id is None:
        return
    if not family.is_credit:
        raise LedgerValidationError(f"A {family.label.lower()} cannot reference an original document.")
    original = db.query(Document).filter(Document.id == original_id).first()
    if not original or original.family != family.settles_family:
        raise UnknownReferenceError("Original document not found.")
    if original.party_id != party_id:
        raise LedgerValidationError("Original document belongs to a different party.")


def create_document(db: Session, family: DocumentFamily, payload: dict, created_by: Optional[str] = None) -> Document:
    party = _require_party(db, family, payload["party_id"])
    issue_date = payload["issue_date"]
    due_date = payload.get("due_date")
    if due_date is not None and due_date < issue_date:
        raise LedgerValidationError("Due date cannot be before the issue date.")
    _validate_original(db, family, party.id, payload.get("original_document_id"))

    number = payload.get("number")
    if number:
        if _number_taken(db, family)(number):
            raise ConflictError(f"{family.label} number {number} already exists.")
    else:
        number = next_sequence_number(db, family.prefix, exists=_number_taken(db, family))

    document = family.model(
        number=number,
        party_id=party.id,
        status="DRAFT",
        issue_date=issue_date,
        due_date=due_date,
        original_document_id=payload.get("original_document_id"),
        notes=payload.get("notes"),
        created_by=created_by,
        amount_paid=ZERO,
    )
    document.lines = _build_lines(db, payload.get("lines") or [])
    recalculate_document(db, document)
    db.add(document)
    db.flush()
    record_event(db, entity_type=family.key.lower(), entity_id=document.id, action="CREATE", actor=created_by, metadata=number)
    logger.debug("Created %s %s total=%s", family.label, number, document.total)
    return get_document(db, family, document.id)


def update_document(
    db: Session,
    family: DocumentFamily,
    document_id: int,
    payload: dict,
    actor: Optional[str] = None,
) -> Document:
    document = get_document(db, family, document_id, for_update=True)
    if document.status != "DRAFT":
        raise InvalidStateError(f"Only DRAFT documents can be edited ({family.label.lower()} is {document.status}).")

    if payload.get("party_id") is not None:
        document.party_id = _require_party(db, family, payload["party_id"]).id
    for key in ["issue_date", "due_date", "notes"]:
        if key in payload and (payload[key] is not None or key != "issue_date"):
            setattr(document, key, payload[key])
    if document.due_date is not None and document.due_date < document.issue_date:
        raise LedgerValidationError("Due date cannot be before the issue date.")
    if "original_document_id" in payload:
        _validate_original(db, family, document.party_id, payload["original_document_id"])
        document.original_document_id = payload["original_document_id"]
    if payload.get("lines") is not None:
        new_lines = _build_lines(db, payload["lines"])
        document.lines = []
        db.flush()
        document.lines = new_lines

    recalculate_document(db, document)
    db.flush()
    record_event(db, entity_type=family.key.lower(), entity_id=document.id, action="UPDATE", actor=actor)
    return get_document(db, family, document.id)


def delete_document(db: Session, family: DocumentFamily, document_id: int, actor: Optional[str] = None) -> None:
    document = get_document(db, family, document_id, for_update=True)
    if document.status != "DRAFT":
        raise InvalidStateError(f"Only DRAFT documents can be deleted ({family.label.lower()} is {document.status}).")
    record_status_transition(
        db,
        entity_type=family.key.lower(),
        entity_id=document.id,
        from_status=document.status,
        to_status="DELETED",
        actor=actor,
    )
    db.delete(document)
    db.flush()


def _control_account_id(db: Session, family: DocumentFamily) -> int:
    code = settings.accounts_receivable_code if family.is_sales else settings.accounts_payable_code
    return get_account_by_code(db, code).id


def _base_postings(db: Session, family: DocumentFamily, results: list[tuple[DocumentLine, TaxResult]]) -> list[PostingAmount]:
    default_code = settings.sales_account_code if family.is_sales else settings.expense_account_code
    default_account_id = None
    postings: list[PostingAmount] = []
    for line, result in results:
        account_id = line.account_id
        if account_id is None:
            if default_account_id is None:
                default_account_id = get_account_by_code(db, default_code).id
            account_id = default_account_id
        postings.append(
            PostingAmount(
                account_id=account_id,
                amount=result.taxable_amount,
                description=line.description,
                cost_center_id=line.cost_center_id,
                project_id=line.project_id,
            )
        )
    return postings


def _tax_postings(db: Session, family: DocumentFamily, results: list[tuple[DocumentLine, TaxResult]]) -> list[PostingAmount]:
    """One tax line per ledger account; a line keeps its tax code only when a single code feeds it."""
    default_code = settings.tax_payable_account_code if family.is_sales else settings.input_tax_account_code
    default_account_id = None
    merged: dict[int, Decimal] = {}
    names: dict[int, list[str]] = {}
    codes: dict[int, set[Optional[int]]] = {}
    for _, result in results:
        for component in result.breakdown:
            account_id = component.sales_account_id if family.is_sales else component.purchase_account_id
            if account_id is None:
                if default_account_id is None:
                    default_account_id = get_account_by_code(db, default_code).id
                account_id = default_account_id
            merged[account_id] = merged.get(account_id, ZERO) + component.amount
            if component.name not in names.setdefault(account_id, []):
                names[account_id].append(component.name)
            codes.setdefault(account_id, set()).add(component.tax_code_id)
    return [
        PostingAmount(
            account_id=account_id,
            amount=amount,
            description=" + ".join(names[account_id]),
            tax_code_id=next(iter(codes[account_id])) if len(codes[account_id]) == 1 else None,
        )
        for account_id, amount in merged.items()
    ]


def approve_document(db: Session, family: DocumentFamily, document: Document, actor: Optional[str]) -> Document:
    ensure_transition(family, "approve", document.status)
    results = recalculate_document(db, document)
    if money(document.total) <= 0:
        raise LedgerValidationError(f"Cannot approve a {family.label.lower()} with a zero total.")

    entry_input = build_document_entry(
        family=family.key,
        entry_date=document.issue_date,
        description=f"{family.label} {document.number}",
        control_account_id=_control_account_id(db, family),
        party_id=document.party_id,
        total=document.total,
        base_amounts=_base_postings(db, family, results),
        tax_amounts=_tax_postings(db, family, results),
        source_id=document.id,
        idempotency_key=f"{family.key.lower()}-approve-{document.id}",
    )
    entry = create_from_input(db, entry_input, created_by=actor, auto_post=True)

    from_status = document.status
    document.journal_entry_id = entry.id
    document.status = "APPROVED"
    document.approved_by = actor
    document.approved_at = datetime.utcnow()
    db.flush()
    record_status_transition(
        db,
        entity_type=family.key.lower(),
        entity_id=document.id,
        from_status=from_status,
        to_status=document.status,
        actor=actor,
    )
    logger.info("Approved %s %s with journal entry %s", family.label, document.number, entry.number)
    return document


def send_document(db: Session, family: DocumentFamily, document: Document, actor: Optional[str]) -> Document:
    ensure_transition(family, "send", document.status)
    if document.status == "DRAFT":
        approve_document(db, family, document, actor)
    from_status = document.status
    document.status = "SENT"
    document.sent_at = datetime.utcnow()
    db.flush()
    record_status_transition(
        db,
        entity_type=family.key.lower(),
        entity_id=document.id,
        from_status=from_status,
        to_status="SENT",
        actor=actor,
    )
    return document


def void_document(
    db: Session,
    family: DocumentFamily,
    document: Document,
    actor: Optional[str],
    *,
    reason: Optional[str] = None,
    action: str = "void",
) -> Document:
    ensure_transition(family, action, document.status)
    if money(document.amount_paid) > 0:
        settled = "applied" if family.is_credit else "paid"
        raise InvalidStateError(f"Cannot void a {family.label.lower()} that has already been {settled}.")

    if document.journal_entry_id is not None:
        entry = get_journal_entry(db, document.journal_entry_id)
        if entry.status == "POSTED":
            reverse_journal_entry(
                db,
                entry.id,
                actor,
                reversal_date=date.today(),
                reason=reason or f"Void {family.label.lower()} {document.number}",
                allow_owned=True,
            )
    elif action == "reverse":
        raise InvalidStateError(f"{family.label} {document.number} has no posted journal entry to reverse.")

    from_status = document.status
    document.status = "VOID"
    document.balance_due = ZERO
    document.voided_by = actor
    document.voided_at = datetime.utcnow()
    db.flush()
    record_status_transition(
        db,
        entity_type=family.key.lower(),
        entity_id=document.id,
        from_status=from_status,
        to_status="VOID",
        actor=actor,
    )
    logger.info("Voided %s %s", family.label, document.number)
    return document


def transition_document(
    db: Session,
    family: DocumentFamily,
    document_id: int,
    action: str,
    actor: Optional[str] = None,
    *,
    reason: Optional[str] = None,
) -> Document:
    action = normalize_action(action)
    document = get_document(db, family, document_id, for_update=True)
    if action == "approve":
        approve_document(db, family, document, actor)
    elif action == "send":
        send_document(db, family, document, actor)
    else:
        void_document(db, family, document, actor, reason=reason, action=action)
    return get_document(db, family, document.id)


def apply_credit(
    db: Session,
    family: DocumentFamily,
    credit_id: int,
    allocations: list,
    actor: Optional[str] = None,
) -> Document:
    """Settle open invoices or bills of the same party against an approved credit."""
    if not family.is_credit:
        raise LedgerValidationError(f"A {family.label.lower()} cannot be applied to other documents.")
    if not allocations:
        raise LedgerValidationError("At least one allocation is required.")

    credit = get_document(db, family, credit_id, for_update=True)
    if credit.status != "APPROVED":
        raise InvalidStateError(f"Only APPROVED credits can be applied ({family.label.lower()} is {credit.status}).")

    available = money(credit.total) - money(credit.amount_paid)
    requested: dict[int, Decimal] = {}
    for allocation in allocations:
        amount = money(_field(allocation, "amount"))
        if amount <= 0:
            raise LedgerValidationError("Allocation amounts must be greater than zero.")
        document_id = _field(allocation, "document_id")
        requested[document_id] = requested.get(document_id, ZERO) + amount

    total_requested = sum(requested.values(), ZERO)
    if total_requested > available:
        raise LedgerValidationError(f"Allocations ({total_requested}) exceed the unapplied credit ({available}).")

    target_family = get_family(family.settles_family)
    for document_id, amount in requested.items():
        target = get_document(db, target_family, document_id, for_update=True)
        if target.party_id != credit.party_id:
            raise LedgerValidationError(f"{target_family.label} {target.number} belongs to a different party.")
        if target.status not in OPEN_DOCUMENT_STATUSES:
            raise InvalidStateError(f"{target_family.label} {target.number} is not open (status {target.status}).")
        if amount > money(target.balance_due):
            raise LedgerValidationError(
                f"Allocation {amount} exceeds the balance due on {target.number} ({target.balance_due})."
            )
        apply_settlement(target, amount)
        db.add(CreditApplication(credit_id=credit.id, document_id=target.id, amount=amount, applied_by=actor))

    from_status = credit.status
    apply_settlement(credit, total_requested)
    db.flush()
    if credit.status != from_status:
        record_status_transition(
            db,
            entity_type=family.key.lower(),
            entity_id=credit.id,
            from_status=from_status,
            to_status=credit.status,
            actor=actor,
        )
    logger.info("Applied %s from %s %s", total_requested, family.label, credit.number)
    return get_document(db, family, credit.id)
