from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from app.exceptions import LedgerValidationError, UnbalancedEntryError
from app.utils import ZERO, money


@dataclass(frozen=True)
class JournalLineInput:
    account_id: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: str | None = None
    cost_center_id: int | None = None
    project_id: int | None = None
    party_id: int | None = None
    tax_code_id: int | None = None


@dataclass(frozen=True)
class JournalEntryInput:
    entry_date: date
    description: str
    source_type: str
    source_id: int | None
    lines: List[JournalLineInput]
    idempotency_key: str | None = None


@dataclass(frozen=True)
class PostingAmount:
    """One non-control side of a document posting."""

    account_id: int
    amount: Decimal
    description: str | None = None
    cost_center_id: int | None = None
    project_id: int | None = None
    tax_code_id: int | None = None


def validate_lines(lines: List[JournalLineInput]) -> None:
    if len(lines) < 2:
        raise LedgerValidationError("Journal entry must have at least 2 lines.")
    for index, line in enumerate(lines, start=1):
        debit = money(line.debit)
        credit = money(line.credit)
        if debit < 0 or credit < 0:
            raise LedgerValidationError(f"Line {index}: debit and credit amounts cannot be negative.")
        if debit > 0 and credit > 0:
            raise LedgerValidationError(f"Line {index}: a line cannot carry both a debit and a credit.")
        if debit == 0 and credit == 0:
            raise LedgerValidationError(f"Line {index}: either a debit or a credit amount is required.")


def ensure_balanced(lines: List[JournalLineInput]) -> Tuple[Decimal, Decimal]:
    total_debits = sum((money(line.debit) for line in lines), ZERO)
    total_credits = sum((money(line.credit) for line in lines), ZERO)
    if total_debits != total_credits:
        raise UnbalancedEntryError(
            f"Journal entry is unbalanced: debits={total_debits} credits={total_credits}"
        )
    if total_debits <= 0:
        raise UnbalancedEntryError("Journal entry total must be greater than zero.")
    return total_debits, total_credits


def reverse_lines(lines: Iterable[JournalLineInput]) -> List[JournalLineInput]:
    return [replace(line, debit=line.credit, credit=line.debit) for line in lines]


def _side(posting: PostingAmount, *, debit: bool, party_id: Optional[int]) -> JournalLineInput:
    amount = money(posting.amount)
    return JournalLineInput(
        account_id=posting.account_id,
        debit=amount if debit else ZERO,
        credit=ZERO if debit else amount,
        description=posting.description,
        cost_center_id=posting.cost_center_id,
        project_id=posting.project_id,
        party_id=party_id,
        tax_code_id=posting.tax_code_id,
    )


def build_document_entry(
    *,
    family: str,
    entry_date: date,
    description: str,
    control_account_id: int,
    party_id: int,
    total: Decimal,
    base_amounts: List[PostingAmount],
    tax_amounts: List[PostingAmount],
    source_id: int | None = None,
    idempotency_key: str | None = None,
) -> JournalEntryInput:
    """Balanced entry for an approved document.

    Invoices debit the receivable control account and credit income and tax;
    bills credit the payable control account and debit expense and input
    tax. Credit notes and vendor credits mirror invoices and bills.
    """
    control_is_debit = family in {"INVOICE", "VENDOR_CREDIT"}
    lines = [
        JournalLineInput(
            account_id=control_account_id,
            debit=money(total) if control_is_debit else ZERO,
            credit=ZERO if control_is_debit else money(total),
            description=description,
            party_id=party_id,
        )
    ]
    for posting in [*base_amounts, *tax_amounts]:
        if money(posting.amount) == 0:
            continue
        lines.append(_side(posting, debit=not control_is_debit, party_id=party_id))

    ensure_balanced(lines)
    return JournalEntryInput(
        entry_date=entry_date,
        description=description,
        source_type=family,
        source_id=source_id,
        lines=lines,
        idempotency_key=idempotency_key,
    )


def build_payment_entry(
    *,
    payment_type: str,
    entry_date: date,
    cash_account_id: int,
    control_account_id: int,
    party_id: int,
    amount: Decimal,
    description: str,
    source_id: int | None = None,
    idempotency_key: str | None = None,
) -> JournalEntryInput:
    amount = money(amount)
    cash_line = JournalLineInput(account_id=cash_account_id, description=description)
    control_line = JournalLineInput(account_id=control_account_id, description=description, party_id=party_id)
    if payment_type == "CUSTOMER_PAYMENT":
        lines = [replace(cash_line, debit=amount), replace(control_line, credit=amount)]
    else:
        lines = [replace(control_line, debit=amount), replace(cash_line, credit=amount)]
    ensure_balanced(lines)
    return JournalEntryInput(
        entry_date=entry_date,
        description=description,
        source_type="PAYMENT",
        source_id=source_id,
        lines=lines,
        idempotency_key=idempotency_key,
    )


def build_rounding_lines(
    *,
    amount: Decimal,
    rounding_account_id: int,
    suspense_account_id: int,
    description: str = "Rounding difference",
) -> List[JournalLineInput]:
    """A positive difference is expensed to rounding; a negative one is released from it."""
    absolute = abs(money(amount))
    expense = JournalLineInput(account_id=rounding_account_id, description=description)
    suspense = JournalLineInput(account_id=suspense_account_id, description=description)
    if amount > 0:
        return [replace(expense, debit=absolute), replace(suspense, credit=absolute)]
    return [replace(suspense, debit=absolute), replace(expense, credit=absolute)]
