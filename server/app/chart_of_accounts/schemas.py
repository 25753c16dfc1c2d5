from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


AccountType = Literal["ASSET", "LIABILITY", "EQUITY", "INCOME", "EXPENSE"]


class AccountParentSummary(BaseModel):
    id: int
    name: str
    code: str

    model_config = ConfigDict(from_attributes=True)


class ChartAccountBase(BaseModel):
    name: str = Field(..., max_length=200)
    code: str = Field(..., min_length=1, max_length=50)
    type: AccountType
    subtype: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    is_active: bool = True
    parent_account_id: Optional[int] = None


class ChartAccountCreate(ChartAccountBase):
    pass


class ChartAccountUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    code: Optional[str] = Field(None, min_length=1, max_length=50)
    type: Optional[AccountType] = None
    subtype: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    parent_account_id: Optional[int] = None


class ChartAccountResponse(BaseModel):
    id: int
    name: str
    code: str
    type: str
    subtype: Optional[str] = None
    normal_balance: str
    description: Optional[str] = None
    is_active: bool
    is_system_account: bool
    balance: Decimal
    parent_account_id: Optional[int] = None
    parent_account: Optional[AccountParentSummary] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChartAccountTreeNode(BaseModel):
    id: int
    code: str
    name: str
    type: str
    is_active: bool
    is_system_account: bool
    balance: Decimal
    children: list["ChartAccountTreeNode"] = []


class DimensionBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., max_length=200)
    description: Optional[str] = None
    is_active: bool = True


class DimensionCreate(DimensionBase):
    pass


class DimensionUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class DimensionResponse(DimensionBase):
    id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
