from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .db import Base

DEBIT_NORMAL_TYPES = {"ASSET", "EXPENSE"}
OPEN_DOCUMENT_STATUSES = ("APPROVED", "SENT", "PARTIALLY_PAID")


class Account(Base):
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    type = Column(String(20), nullable=False, index=True)
    subtype = Column(String(50), nullable=True)
    normal_balance = Column(String(10), nullable=False)
    parent_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    description = Column(Text, nullable=True)
    is_system_account = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    balance = Column(Numeric(14, 2), nullable=False, default=Decimal("0.00"))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    parent = relationship("Account", remote_side=[id], back_populates="children")
    children = relationship("Account", back_populates="parent")


class CostCenter(Base):
    __tablename__ = "cost_centers"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    code = Column(String(50), nullable=False, unique=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class TaxCode(Base):
    __tablename__ = "tax_codes"

    id = Column(Integer, primary_key=True)
    code = Column(String(30), nullable=False, unique=True)
    name = Column(String(100), nullable=False)
    rate = Column(Numeric(9, 4), nullable=False, default=0)
    type = Column(String(20), nullable=False, default="PERCENTAGE")
    is_inclusive = Column(Boolean, nullable=False, default=False)
    sales_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    purchase_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class TaxGroup(Base):
    __tablename__ = "tax_groups"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    members = relationship(
        "TaxGroupTax",
        back_populates="tax_group",
        cascade="all, delete-orphan",
        order_by="TaxGroupTax.position",
    )


class TaxGroupTax(Base):
    __tablename__ = "tax_group_taxes"

    id = Column(Integer, primary_key=True)
    tax_group_id = Column(Integer, ForeignKey("tax_groups.id"), nullable=False)
    tax_code_id = Column(Integer, ForeignKey("tax_codes.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)

    tax_group = relationship("TaxGroup", back_populates="members")
    tax_code = relationship("TaxCode")

    __table_args__ = (
        UniqueConstraint("tax_group_id", "tax_code_id", name="uq_tax_group_tax_code"),
    )


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    id = Column(Integer, primary_key=True)
    prefix = Column(String(20), nullable=False, unique=True)
    current_value = Column(Integer, nullable=False, default=0)
    padding = Column(Integer, nullable=False, default=5)


class FiscalYear(Base):
    __tablename__ = "fiscal_years"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), nullable=False, unique=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="OPEN")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    periods = relationship(
        "AccountingPeriod",
        back_populates="fiscal_year",
        cascade="all, delete-orphan",
        order_by="AccountingPeriod.period_number",
    )


class AccountingPeriod(Base):
    __tablename__ = "accounting_periods"

    id = Column(Integer, primary_key=True)
    fiscal_year_id = Column(Integer, ForeignKey("fiscal_years.id"), nullable=False)
    name = Column(String(50), nullable=False)
    period_number = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), nullable=False, default="OPEN")
    closed_by = Column(String(100), nullable=True)
    closed_at = Column(DateTime, nullable=True)

    fiscal_year = relationship("FiscalYear", back_populates="periods")


class JournalEntry(Base):
    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    number = Column(String(30), nullable=False, unique=True)
    entry_date = Column(Date, nullable=False, index=True)
    description = Column(String(255), nullable=True)
    status = Column(String(20), nullable=False, default="DRAFT", index=True)
    source_type = Column(String(30), nullable=False, default="MANUAL")
    source_id = Column(Integer, nullable=True)
    idempotency_key = Column(String(100), nullable=True, unique=True)
    period_id = Column(Integer, ForeignKey("accounting_periods.id"), nullable=True)
    total_debit = Column(Numeric(14, 2), nullable=False, default=0)
    total_credit = Column(Numeric(14, 2), nullable=False, default=0)
    reversal_of_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    reversed_by_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    reversal_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    posted_by = Column(String(100), nullable=True)
    posted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    lines = relationship(
        "JournalLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.line_number",
    )


class JournalLine(Base):
    __tablename__ = "journal_lines"

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    line_number = Column(Integer, nullable=False, default=1)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False, index=True)
    description = Column(String(255), nullable=True)
    debit = Column(Numeric(14, 2), nullable=False, default=0)
    credit = Column(Numeric(14, 2), nullable=False, default=0)
    cost_center_id = Column(Integer, ForeignKey("cost_centers.id"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)
    party_id = Column(Integer, ForeignKey("parties.id"), nullable=True)
    tax_code_id = Column(Integer, ForeignKey("tax_codes.id"), nullable=True)

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account")


class AuditEvent(Base):
    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True)
    actor = Column(String(100), nullable=True)
    entity_type = Column(String(100), nullable=False)
    entity_id = Column(Integer, nullable=False)
    action = Column(String(50), nullable=False)
    before_hash = Column(String(64), nullable=True)
    after_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    event_metadata = Column(Text, nullable=True)


class Party(Base):
    __tablename__ = "parties"

    id = Column(Integer, primary_key=True)
    type = Column(String(20), nullable=False)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    documents = relationship("Document", back_populates="party")


class Document(Base):
    """Sales and purchase documents share one table keyed by ``family``."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True)
    family = Column(String(20), nullable=False)
    number = Column(String(30), nullable=False)
    party_id = Column(Integer, ForeignKey("parties.id"), nullable=False)
    status = Column(String(20), nullable=False, default="DRAFT", index=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    sub_total = Column(Numeric(14, 2), nullable=False, default=0)
    tax_total = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(14, 2), nullable=False, default=0)
    balance_due = Column(Numeric(14, 2), nullable=False, default=0)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    original_document_id = Column(Integer, ForeignKey("documents.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    approved_by = Column(String(100), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    sent_at = Column(DateTime, nullable=True)
    voided_by = Column(String(100), nullable=True)
    voided_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    party = relationship("Party", back_populates="documents")
    lines = relationship(
        "DocumentLine",
        back_populates="document",
        cascade="all, delete-orphan",
        order_by="DocumentLine.line_number",
    )
    journal_entry = relationship("JournalEntry")

    __table_args__ = (
        UniqueConstraint("family", "number", name="uq_document_family_number"),
    )
    __mapper_args__ = {"polymorphic_on": family, "polymorphic_identity": "DOCUMENT"}

    def effective_status(self, as_of: date | None = None) -> str:
        as_of = as_of or date.today()
        if (
            self.status in OPEN_DOCUMENT_STATUSES
            and self.due_date is not None
            and self.due_date < as_of
            and Decimal(self.balance_due or 0) > 0
        ):
            return "OVERDUE"
        return self.status


class Invoice(Document):
    __mapper_args__ = {"polymorphic_identity": "INVOICE"}


class Bill(Document):
    __mapper_args__ = {"polymorphic_identity": "BILL"}


class CreditNote(Document):
    __mapper_args__ = {"polymorphic_identity": "CREDIT_NOTE"}


class VendorCredit(Document):
    __mapper_args__ = {"polymorphic_identity": "VENDOR_CREDIT"}


class DocumentLine(Base):
    __tablename__ = "document_lines"

    id = Column(Integer, primary_key=True)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    line_number = Column(Integer, nullable=False, default=1)
    description = Column(Text, nullable=True)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    quantity = Column(Numeric(14, 4), nullable=False, default=1)
    rate = Column(Numeric(14, 4), nullable=False, default=0)
    tax_code_id = Column(Integer, ForeignKey("tax_codes.id"), nullable=True)
    tax_group_id = Column(Integer, ForeignKey("tax_groups.id"), nullable=True)
    tax_rate = Column(Numeric(9, 4), nullable=True)
    taxable_amount = Column(Numeric(14, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    amount = Column(Numeric(14, 2), nullable=False, default=0)
    cost_center_id = Column(Integer, ForeignKey("cost_centers.id"), nullable=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True)

    document = relationship("Document", back_populates="lines")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True)
    number = Column(String(30), nullable=False, unique=True)
    type = Column(String(30), nullable=False)
    party_id = Column(Integer, ForeignKey("parties.id"), nullable=False)
    payment_date = Column(Date, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    method = Column(String(50), nullable=True)
    reference = Column(String(100), nullable=True)
    deposit_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=True)
    status = Column(String(20), nullable=False, default="DRAFT")
    amount_allocated = Column(Numeric(14, 2), nullable=False, default=0)
    amount_unallocated = Column(Numeric(14, 2), nullable=False, default=0)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=True)
    notes = Column(Text, nullable=True)
    created_by = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    party = relationship("Party")
    allocations = relationship("PaymentAllocation", back_populates="payment", cascade="all, delete-orphan")


class PaymentAllocation(Base):
    __tablename__ = "payment_allocations"

    id = Column(Integer, primary_key=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)

    payment = relationship("Payment", back_populates="allocations")
    document = relationship("Document")


class CreditApplication(Base):
    __tablename__ = "credit_applications"

    id = Column(Integer, primary_key=True)
    credit_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    document_id = Column(Integer, ForeignKey("documents.id"), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    applied_by = Column(String(100), nullable=True)
    applied_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    credit = relationship("Document", foreign_keys=[credit_id])
    document = relationship("Document", foreign_keys=[document_id])
