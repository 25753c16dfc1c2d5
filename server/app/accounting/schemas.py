from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


JournalStatus = Literal["DRAFT", "APPROVED", "POSTED", "REVERSED"]


class JournalLineCreate(BaseModel):
    account_id: int
    debit: Decimal = Field(Decimal("0.00"), ge=Decimal("0"))
    credit: Decimal = Field(Decimal("0.00"), ge=Decimal("0"))
    description: Optional[str] = Field(None, max_length=255)
    cost_center_id: Optional[int] = None
    project_id: Optional[int] = None
    party_id: Optional[int] = None

    @model_validator(mode="after")
    def validate_one_side(self):
        if self.debit > 0 and self.credit > 0:
            raise ValueError("A line cannot carry both a debit and a credit.")
        if self.debit == 0 and self.credit == 0:
            raise ValueError("Either a debit or a credit amount is required.")
        return self


class JournalEntryCreate(BaseModel):
    date: date
    description: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = None
    idempotency_key: Optional[str] = Field(None, max_length=100)
    lines: list[JournalLineCreate]

    @field_validator("lines")
    @classmethod
    def validate_lines(cls, value: list[JournalLineCreate]) -> list[JournalLineCreate]:
        if len(value) < 2:
            raise ValueError("Journal entries must include at least 2 lines.")
        return value


class JournalEntryReverse(BaseModel):
    reversal_date: Optional[date] = None
    reason: Optional[str] = None


class RoundingAdjustmentCreate(BaseModel):
    amount: Decimal
    entry_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=255)
    source_type: str = "ROUNDING"
    source_id: Optional[int] = None


class JournalLineResponse(BaseModel):
    id: int
    line_number: int
    account_id: int
    description: Optional[str] = None
    debit: Decimal
    credit: Decimal
    cost_center_id: Optional[int] = None
    project_id: Optional[int] = None
    party_id: Optional[int] = None
    tax_code_id: Optional[int] = None

    model_config = ConfigDict(from_attributes=True)


class JournalEntryResponse(BaseModel):
    id: int
    number: str
    entry_date: date
    description: Optional[str] = None
    status: str
    source_type: str
    source_id: Optional[int] = None
    idempotency_key: Optional[str] = None
    period_id: Optional[int] = None
    total_debit: Decimal
    total_credit: Decimal
    reversal_of_id: Optional[int] = None
    reversed_by_id: Optional[int] = None
    reversal_reason: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    posted_by: Optional[str] = None
    posted_at: Optional[datetime] = None
    created_at: datetime
    lines: list[JournalLineResponse]

    model_config = ConfigDict(from_attributes=True)


class AuditEventResponse(BaseModel):
    id: int
    entity_type: str
    entity_id: int
    action: str
    actor: Optional[str] = None
    before_hash: Optional[str] = None
    after_hash: Optional[str] = None
    event_metadata: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
