from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


TaxType = Literal["PERCENTAGE", "FIXED"]


class TaxCodeBase(BaseModel):
    code: str = Field(..., max_length=30)
    name: str = Field(..., max_length=100)
    rate: Decimal = Field(..., ge=Decimal("0"))
    type: TaxType = "PERCENTAGE"
    is_inclusive: bool = False
    sales_account_id: Optional[int] = None
    purchase_account_id: Optional[int] = None
    description: Optional[str] = None
    is_active: bool = True


class TaxCodeCreate(TaxCodeBase):
    pass


class TaxCodeUpdate(BaseModel):
    code: Optional[str] = Field(None, max_length=30)
    name: Optional[str] = Field(None, max_length=100)
    rate: Optional[Decimal] = Field(None, ge=Decimal("0"))
    type: Optional[TaxType] = None
    is_inclusive: Optional[bool] = None
    sales_account_id: Optional[int] = None
    purchase_account_id: Optional[int] = None
    description: Optional[str] = None
    is_active: Optional[bool] = None


class TaxCodeResponse(TaxCodeBase):
    id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TaxGroupCreate(BaseModel):
    name: str = Field(..., max_length=100)
    description: Optional[str] = None
    is_active: bool = True
    tax_code_ids: list[int] = Field(..., min_length=1)


class TaxGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    tax_code_ids: Optional[list[int]] = None


class TaxGroupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    is_inclusive: bool
    total_rate: Decimal
    taxes: list[TaxCodeResponse]


class TaxCalculationRequest(BaseModel):
    amount: Decimal
    tax_code_id: Optional[int] = None
    tax_group_id: Optional[int] = None
    tax_rate: Optional[Decimal] = Field(None, ge=Decimal("0"))

    @model_validator(mode="after")
    def validate_single_source(self):
        if self.tax_code_id is not None and self.tax_group_id is not None:
            raise ValueError("Provide either tax_code_id or tax_group_id, not both.")
        return self


class TaxBreakdownResponse(BaseModel):
    tax_code_id: Optional[int] = None
    code: Optional[str] = None
    name: str
    rate: Decimal
    type: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class TaxCalculationResponse(BaseModel):
    taxable_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    breakdown: list[TaxBreakdownResponse]

    model_config = ConfigDict(from_attributes=True)
