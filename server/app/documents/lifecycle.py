from dataclasses import dataclass
from decimal import Decimal
from typing import Type

from app.exceptions import InvalidStateError, LedgerValidationError
from app.models import Bill, CreditNote, Document, Invoice, VendorCredit
from app.utils import money

ACTIONS = ("approve", "post", "send", "void", "reverse")


@dataclass(frozen=True)
class DocumentFamily:
    key: str
    label: str
    prefix: str
    party_type: str
    model: Type[Document]
    statuses: tuple[str, ...]
    transitions: dict[str, frozenset]
    is_credit: bool = False
    settles_family: str | None = None

    @property
    def is_sales(self) -> bool:
        return self.party_type == "CUSTOMER"


INVOICE = DocumentFamily(
    key="INVOICE",
    label="Invoice",
    prefix="INV",
    party_type="CUSTOMER",
    model=Invoice,
    statuses=("DRAFT", "APPROVED", "SENT", "PARTIALLY_PAID", "PAID", "VOID"),
    transitions={
        "approve": frozenset({"DRAFT"}),
        "send": frozenset({"DRAFT", "APPROVED"}),
        "void": frozenset({"DRAFT", "APPROVED", "SENT"}),
        "reverse": frozenset({"APPROVED", "SENT"}),
    },
)

BILL = DocumentFamily(
    key="BILL",
    label="Bill",
    prefix="BILL",
    party_type="VENDOR",
    model=Bill,
    statuses=("DRAFT", "APPROVED", "PARTIALLY_PAID", "PAID", "VOID"),
    transitions={
        "approve": frozenset({"DRAFT"}),
        "void": frozenset({"DRAFT", "APPROVED"}),
        "reverse": frozenset({"APPROVED"}),
    },
)

CREDIT_NOTE = DocumentFamily(
    key="CREDIT_NOTE",
    label="Credit Note",
    prefix="CN",
    party_type="CUSTOMER",
    model=CreditNote,
    statuses=("DRAFT", "APPROVED", "APPLIED", "VOID"),
    transitions={
        "approve": frozenset({"DRAFT"}),
        "void": frozenset({"DRAFT", "APPROVED"}),
        "reverse": frozenset({"APPROVED"}),
    },
    is_credit=True,
    settles_family="INVOICE",
)

VENDOR_CREDIT = DocumentFamily(
    key="VENDOR_CREDIT",
    label="Vendor Credit",
    prefix="VC",
    party_type="VENDOR",
    model=VendorCredit,
    statuses=("DRAFT", "APPROVED", "APPLIED", "VOID"),
    transitions={
        "approve": frozenset({"DRAFT"}),
        "void": frozenset({"DRAFT", "APPROVED"}),
        "reverse": frozenset({"APPROVED"}),
    },
    is_credit=True,
    settles_family="BILL",
)

FAMILIES: dict[str, DocumentFamily] = {
    family.key: family for family in (INVOICE, BILL, CREDIT_NOTE, VENDOR_CREDIT)
}


def get_family(key: str) -> DocumentFamily:
    try:
        return FAMILIES[key.upper()]
    except KeyError:
        raise LedgerValidationError(f"Unknown document family '{key}'.") from None


def normalize_action(action: str) -> str:
    action = (action or "").lower()
    if action not in ACTIONS:
        raise LedgerValidationError(f"Unknown document action '{action}'.")
    # Posting a document is its approval: both create and post the journal entry.
    return "approve" if action == "post" else action


def ensure_transition(family: DocumentFamily, action: str, status: str) -> None:
    allowed = family.transitions.get(action)
    if allowed is None:
        raise InvalidStateError(f"{family.label} does not support '{action}'.")
    if status not in allowed:
        raise InvalidStateError(f"Cannot {action} a {family.label.lower()} in status {status}.")


def open_status(document: Document) -> str:
    """Status an approved document returns to when nothing has been settled."""
    if document.family == "INVOICE" and document.sent_at is not None:
        return "SENT"
    return "APPROVED"


def settlement_status(document: Document) -> str:
    total = money(document.total)
    paid = money(document.amount_paid)
    if paid > total:
        raise LedgerValidationError(f"Amount settled ({paid}) cannot exceed the document total ({total}).")
    if document.family in {"CREDIT_NOTE", "VENDOR_CREDIT"}:
        return "APPLIED" if paid == total else "APPROVED"
    if paid == total:
        return "PAID"
    if paid > Decimal("0"):
        return "PARTIALLY_PAID"
    return open_status(document)


def apply_settlement(document: Document, amount: Decimal) -> None:
    """Change amount_paid by ``amount`` (negative to undo) and refresh balance and status."""
    document.amount_paid = money(document.amount_paid) + money(amount)
    if document.amount_paid < 0:
        raise LedgerValidationError("Amount settled cannot become negative.")
    document.balance_due = money(document.total) - document.amount_paid
    document.status = settlement_status(document)
