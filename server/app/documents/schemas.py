from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


PartyType = Literal["CUSTOMER", "VENDOR"]
PaymentType = Literal["CUSTOMER_PAYMENT", "VENDOR_PAYMENT"]


class PartyCreate(BaseModel):
    type: PartyType
    name: str = Field(..., max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    is_active: bool = True


class PartyUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    is_active: Optional[bool] = None


class PartyResponse(PartyCreate):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class DocumentLineCreate(BaseModel):
    description: Optional[str] = None
    account_id: Optional[int] = None
    quantity: Decimal = Field(Decimal("1"), gt=Decimal("0"))
    rate: Decimal = Field(..., ge=Decimal("0"))
    tax_code_id: Optional[int] = None
    tax_group_id: Optional[int] = None
    tax_rate: Optional[Decimal] = Field(None, ge=Decimal("0"))
    cost_center_id: Optional[int] = None
    project_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_tax_source(self):
        if self.tax_code_id is not None and self.tax_group_id is not None:
            raise ValueError("A line can use a tax code or a tax group, not both.")
        return self


class DocumentCreate(BaseModel):
    party_id: int
    number: Optional[str] = Field(None, max_length=30)
    issue_date: date
    due_date: Optional[date] = None
    original_document_id: Optional[int] = None
    notes: Optional[str] = None
    lines: list[DocumentLineCreate] = Field(..., min_length=1)


class DocumentUpdate(BaseModel):
    party_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    original_document_id: Optional[int] = None
    notes: Optional[str] = None
    lines: Optional[list[DocumentLineCreate]] = None


class DocumentTransition(BaseModel):
    reason: Optional[str] = None


class DocumentLineResponse(BaseModel):
    id: int
    line_number: int
    description: Optional[str] = None
    account_id: Optional[int] = None
    quantity: Decimal
    rate: Decimal
    tax_code_id: Optional[int] = None
    tax_group_id: Optional[int] = None
    tax_rate: Optional[Decimal] = None
    taxable_amount: Decimal
    tax_amount: Decimal
    amount: Decimal
    cost_center_id: Optional[int] = None
    project_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class DocumentResponse(BaseModel):
    id: int
    family: str
    number: str
    party_id: int
    party_name: Optional[str] = None
    status: str
    effective_status: str
    issue_date: date
    due_date: Optional[date] = None
    sub_total: Decimal
    tax_total: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    journal_entry_id: Optional[int] = None
    original_document_id: Optional[int] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    voided_by: Optional[str] = None
    voided_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    lines: list[DocumentLineResponse]


class CreditAllocation(BaseModel):
    document_id: int
    amount: Decimal = Field(..., gt=Decimal("0"))


class CreditApplicationCreate(BaseModel):
    allocations: list[CreditAllocation] = Field(..., min_length=1)


class PaymentAllocationCreate(BaseModel):
    document_id: int
    amount: Decimal = Field(..., gt=Decimal("0"))


class PaymentCreate(BaseModel):
    type: PaymentType
    party_id: int
    payment_date: date
    amount: Decimal = Field(..., gt=Decimal("0"))
    method: Optional[str] = Field(None, max_length=50)
    reference: Optional[str] = Field(None, max_length=100)
    deposit_account_id: Optional[int] = None
    notes: Optional[str] = None
    allocations: list[PaymentAllocationCreate] = []


class PaymentVoid(BaseModel):
    reason: Optional[str] = None


class PaymentAllocationResponse(BaseModel):
    id: int
    document_id: int
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: int
    number: str
    type: str
    party_id: int
    payment_date: date
    amount: Decimal
    method: Optional[str] = None
    reference: Optional[str] = None
    deposit_account_id: Optional[int] = None
    status: str
    amount_allocated: Decimal
    amount_unallocated: Decimal
    journal_entry_id: Optional[int] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime
    allocations: list[PaymentAllocationResponse]

    model_config = ConfigDict(from_attributes=True)
