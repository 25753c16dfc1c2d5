import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from app.accounting.posting import (
    JournalEntryInput,
    JournalLineInput,
    build_rounding_lines,
    ensure_balanced,
    reverse_lines,
    validate_lines,
)
from app.accounting.sequences import next_sequence_number
from app.audit import record_event, record_status_transition, snapshot
from app.chart_of_accounts.service import (
    create_account,
    require_active_accounts,
    require_dimensions,
)
from app.config import settings
from app.exceptions import InvalidStateError, LedgerValidationError, UnknownReferenceError
from app.models import DEBIT_NORMAL_TYPES, Account, JournalEntry, JournalLine
from app.periods.service import validate_period
from app.utils import money

logger = logging.getLogger(__name__)

JOURNAL_PREFIX = "JE"
# Entries owned by a document or payment are reversed only by voiding their owner.
OWNED_SOURCE_TYPES = {"INVOICE", "BILL", "CREDIT_NOTE", "VENDOR_CREDIT", "PAYMENT"}
ENTRY_AUDIT_FIELDS = ["number", "entry_date", "status", "total_debit", "total_credit", "reversed_by_id"]


def compute_account_balance(account_type: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Debit-normal types increase on debit, the rest on credit."""
    if (account_type or "").upper() in DEBIT_NORMAL_TYPES:
        return debit - credit
    return credit - debit


def get_journal_entry(db: Session, entry_id: int, *, for_update: bool = False) -> JournalEntry:
    query = db.query(JournalEntry).options(selectinload(JournalEntry.lines)).filter(JournalEntry.id == entry_id)
    if for_update:
        query = query.with_for_update().populate_existing()
    entry = query.first()
    if not entry:
        raise UnknownReferenceError("Journal entry not found.")
    return entry


def _audit(db: Session, entry: JournalEntry, action: str, actor: Optional[str], before: Optional[dict] = None) -> None:
    record_event(
        db,
        entity_type="journal_entry",
        entity_id=entry.id,
        action=action,
        actor=actor,
        before=before,
        after=snapshot(entry, ENTRY_AUDIT_FIELDS),
        metadata=entry.number,
    )


def create_journal_entry(
    db: Session,
    *,
    entry_date: date,
    description: Optional[str],
    lines: List[JournalLineInput],
    created_by: Optional[str] = None,
    source_type: str = "MANUAL",
    source_id: Optional[int] = None,
    idempotency_key: Optional[str] = None,
    notes: Optional[str] = None,
    auto_post: bool = False,
) -> JournalEntry:
    """Validate and store a new entry in DRAFT.

    System clients (documents, payments, payroll) pass ``auto_post`` to
    approve and post in the same unit of work.
    """
    if idempotency_key:
        existing = db.query(JournalEntry).filter(JournalEntry.idempotency_key == idempotency_key).first()
        if existing:
            logger.info("Journal entry %s already exists for key %s", existing.number, idempotency_key)
            return get_journal_entry(db, existing.id)

    validate_lines(lines)
    total_debit, total_credit = ensure_balanced(lines)
    require_active_accounts(db, [line.account_id for line in lines])
    require_dimensions(
        db,
        cost_center_ids=[line.cost_center_id for line in lines],
        project_ids=[line.project_id for line in lines],
    )
    period = validate_period(db, entry_date)

    entry = JournalEntry(
        number=next_sequence_number(db, JOURNAL_PREFIX),
        entry_date=entry_date,
        description=description,
        status="DRAFT",
        source_type=source_type,
        source_id=source_id,
        idempotency_key=idempotency_key,
        period_id=period.id if period else None,
        total_debit=total_debit,
        total_credit=total_credit,
        notes=notes,
        created_by=created_by,
    )
    entry.lines = [
        JournalLine(
            line_number=index,
            account_id=line.account_id,
            description=line.description,
            debit=money(line.debit),
            credit=money(line.credit),
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
            party_id=line.party_id,
            tax_code_id=line.tax_code_id,
        )
        for index, line in enumerate(lines, start=1)
    ]
    db.add(entry)
    db.flush()
    _audit(db, entry, "CREATE", created_by)
    logger.debug("Created journal entry %s (%s lines, %s)", entry.number, len(lines), total_debit)

    if auto_post:
        _mark_approved(db, entry, created_by)
        _post(db, entry, created_by)

    return get_journal_entry(db, entry.id)


def create_from_input(
    db: Session,
    entry_input: JournalEntryInput,
    *,
    created_by: Optional[str] = None,
    auto_post: bool = False,
) -> JournalEntry:
    return create_journal_entry(
        db,
        entry_date=entry_input.entry_date,
        description=entry_input.description,
        lines=entry_input.lines,
        created_by=created_by,
        source_type=entry_input.source_type,
        source_id=entry_input.source_id,
        idempotency_key=entry_input.idempotency_key,
        auto_post=auto_post,
    )


def _mark_approved(db: Session, entry: JournalEntry, approved_by: Optional[str]) -> None:
    before = snapshot(entry, ENTRY_AUDIT_FIELDS)
    entry.status = "APPROVED"
    entry.approved_by = approved_by
    entry.approved_at = datetime.utcnow()
    db.flush()
    _audit(db, entry, "APPROVE", approved_by, before)


def approve_journal_entry(db: Session, entry_id: int, approved_by: Optional[str]) -> JournalEntry:
    entry = get_journal_entry(db, entry_id, for_update=True)
    if entry.status != "DRAFT":
        raise InvalidStateError(f"Only DRAFT entries can be approved (entry is {entry.status}).")
    if settings.enforce_maker_checker and entry.created_by and entry.created_by == approved_by:
        raise InvalidStateError("Maker-checker violation: an entry cannot be approved by its creator.")
    _mark_approved(db, entry, approved_by)
    return entry


def _apply_to_balances(db: Session, entry: JournalEntry) -> None:
    account_ids = sorted({line.account_id for line in entry.lines})
    # Accounts are locked in ascending id order.
    accounts = (
        db.query(Account)
        .filter(Account.id.in_(account_ids))
        .order_by(Account.id.asc())
        .with_for_update()
        .populate_existing()
        .all()
    )
    by_id = {account.id: account for account in accounts}
    missing = [str(account_id) for account_id in account_ids if account_id not in by_id]
    if missing:
        raise UnknownReferenceError(f"Accounts not found: {', '.join(missing)}")

    for line in entry.lines:
        account = by_id[line.account_id]
        delta = compute_account_balance(account.type, money(line.debit), money(line.credit))
        account.balance = money(account.balance) + delta


def _post(db: Session, entry: JournalEntry, posted_by: Optional[str]) -> None:
    validate_period(db, entry.entry_date)
    before = snapshot(entry, ENTRY_AUDIT_FIELDS)
    _apply_to_balances(db, entry)
    entry.status = "POSTED"
    entry.posted_by = posted_by
    entry.posted_at = datetime.utcnow()
    db.flush()
    _audit(db, entry, "POST", posted_by, before)
    logger.info("Posted journal entry %s for %s", entry.number, entry.total_debit)


def post_journal_entry(db: Session, entry_id: int, posted_by: Optional[str]) -> JournalEntry:
    entry = get_journal_entry(db, entry_id, for_update=True)
    if entry.status != "APPROVED":
        raise InvalidStateError(f"Only APPROVED entries can be posted (entry is {entry.status}).")
    _post(db, entry, posted_by)
    return entry


def reverse_journal_entry(
    db: Session,
    entry_id: int,
    reversed_by: Optional[str],
    *,
    reversal_date: Optional[date] = None,
    reason: Optional[str] = None,
    allow_owned: bool = False,
) -> JournalEntry:
    """Post an offsetting entry and mark the original REVERSED.

    Returns the new reversing entry. The original lines are left untouched.
    Entries created by documents or payments need ``allow_owned``; only the
    void paths of their owners pass it.
    """
    original = get_journal_entry(db, entry_id, for_update=True)
    if original.source_type in OWNED_SOURCE_TYPES and not allow_owned:
        owner = "payment" if original.source_type == "PAYMENT" else original.source_type.lower().replace("_", " ")
        raise InvalidStateError(
            f"Journal entry {original.number} belongs to {owner} {original.source_id}; void the {owner} instead."
        )
    if original.status == "REVERSED" or original.reversed_by_id is not None:
        raise InvalidStateError(f"Journal entry {original.number} has already been reversed.")
    if original.status != "POSTED":
        raise InvalidStateError(f"Only POSTED entries can be reversed (entry is {original.status}).")

    reversal_date = reversal_date or date.today()
    lines = reverse_lines(
        JournalLineInput(
            account_id=line.account_id,
            debit=money(line.debit),
            credit=money(line.credit),
            description=line.description,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
            party_id=line.party_id,
            tax_code_id=line.tax_code_id,
        )
        for line in original.lines
    )
    validate_lines(lines)
    total_debit, total_credit = ensure_balanced(lines)
    period = validate_period(db, reversal_date)

    reversal = JournalEntry(
        number=next_sequence_number(db, JOURNAL_PREFIX),
        entry_date=reversal_date,
        description=f"Reversal of {original.number}" + (f": {reason}" if reason else ""),
        status="DRAFT",
        source_type="REVERSAL",
        source_id=original.id,
        period_id=period.id if period else None,
        total_debit=total_debit,
        total_credit=total_credit,
        reversal_of_id=original.id,
        reversal_reason=reason,
        created_by=reversed_by,
    )
    reversal.lines = [
        JournalLine(
            line_number=index,
            account_id=line.account_id,
            description=line.description,
            debit=line.debit,
            credit=line.credit,
            cost_center_id=line.cost_center_id,
            project_id=line.project_id,
            party_id=line.party_id,
            tax_code_id=line.tax_code_id,
        )
        for index, line in enumerate(lines, start=1)
    ]
    db.add(reversal)
    db.flush()
    _audit(db, reversal, "CREATE", reversed_by)
    _mark_approved(db, reversal, reversed_by)
    _post(db, reversal, reversed_by)

    before = snapshot(original, ENTRY_AUDIT_FIELDS)
    original.status = "REVERSED"
    original.reversed_by_id = reversal.id
    original.reversal_reason = reason
    db.flush()
    _audit(db, original, "REVERSE", reversed_by, before)
    logger.info("Reversed journal entry %s with %s", original.number, reversal.number)
    return get_journal_entry(db, reversal.id)


def delete_journal_entry(db: Session, entry_id: int, actor: Optional[str] = None) -> None:
    entry = get_journal_entry(db, entry_id, for_update=True)
    if entry.status != "DRAFT":
        raise InvalidStateError(f"Only DRAFT entries can be deleted (entry is {entry.status}).")
    record_status_transition(
        db,
        entity_type="journal_entry",
        entity_id=entry.id,
        from_status=entry.status,
        to_status="DELETED",
        actor=actor,
    )
    db.delete(entry)
    db.flush()


def ensure_system_account(db: Session, code: str, name: str, account_type: str) -> Account:
    account = db.query(Account).filter(Account.code == code).first()
    if account:
        if not account.is_active:
            raise UnknownReferenceError(f"System account {code} is inactive.")
        return account
    return create_account(db, {"code": code, "name": name, "type": account_type}, is_system_account=True)


def post_rounding_adjustment(
    db: Session,
    *,
    amount: Decimal,
    entry_date: Optional[date] = None,
    description: Optional[str] = None,
    source_type: str = "ROUNDING",
    source_id: Optional[int] = None,
    created_by: Optional[str] = None,
) -> JournalEntry:
    amount = money(amount)
    if amount == 0:
        raise LedgerValidationError("Rounding difference must be non-zero.")
    if abs(amount) > settings.rounding_threshold:
        raise LedgerValidationError(
            f"Rounding difference exceeds maximum threshold of {settings.rounding_threshold}."
        )

    rounding = ensure_system_account(db, settings.rounding_account_code, "Rounding Differences", "EXPENSE")
    suspense = ensure_system_account(db, settings.suspense_account_code, "Suspense Account", "LIABILITY")
    lines = build_rounding_lines(amount=amount, rounding_account_id=rounding.id, suspense_account_id=suspense.id)
    return create_journal_entry(
        db,
        entry_date=entry_date or date.today(),
        description=description or f"Rounding difference for {source_type} {source_id or ''}".strip(),
        lines=lines,
        created_by=created_by,
        source_type=source_type,
        source_id=source_id,
        auto_post=True,
    )


def list_journal_entries(
    db: Session,
    *,
    status: Optional[str] = None,
    source_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    account_id: Optional[int] = None,
    search: Optional[str] = None,
    limit: int = 50,
) -> list[JournalEntry]:
    query = db.query(JournalEntry).options(selectinload(JournalEntry.lines))
    if status:
        query = query.filter(JournalEntry.status == status.upper())
    if source_type:
        query = query.filter(JournalEntry.source_type == source_type.upper())
    if start_date:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date:
        query = query.filter(JournalEntry.entry_date <= end_date)
    if account_id:
        query = query.filter(JournalEntry.lines.any(JournalLine.account_id == account_id))
    if search:
        like = f"%{search}%"
        query = query.filter((JournalEntry.description.ilike(like)) | (JournalEntry.number.ilike(like)))
    return query.order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc()).limit(limit).all()
