from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class FiscalYearCreate(BaseModel):
    name: str = Field(..., max_length=50)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def validate_range(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date.")
        return self


class AccountingPeriodResponse(BaseModel):
    id: int
    fiscal_year_id: int
    name: str
    period_number: int
    start_date: date
    end_date: date
    status: str
    closed_by: Optional[str] = None
    closed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FiscalYearResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    status: str
    periods: list[AccountingPeriodResponse]

    model_config = ConfigDict(from_attributes=True)
