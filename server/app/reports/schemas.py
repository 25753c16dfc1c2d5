from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class AgingBucket(BaseModel):
    key: str
    label: str
    amount: Decimal


class AgingPartyRow(BaseModel):
    party_id: int
    party_name: str
    current: Decimal
    days_1_30: Decimal
    days_31_60: Decimal
    days_61_90: Decimal
    days_90_plus: Decimal
    total: Decimal


class AgingDocumentRow(BaseModel):
    document_id: int
    number: str
    party_id: int
    party_name: str
    issue_date: date
    due_date: Optional[date] = None
    days_past_due: int
    bucket: str
    balance_due: Decimal


class AgingSummaryResponse(BaseModel):
    as_of: date
    party_type: str
    buckets: list[AgingBucket]
    total: Decimal
    parties: list[AgingPartyRow]
    documents: list[AgingDocumentRow]


class TrialBalanceRow(BaseModel):
    account_id: int
    code: str
    name: str
    type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


class TrialBalanceResponse(BaseModel):
    as_of: date
    rows: list[TrialBalanceRow]
    total_debit: Decimal
    total_credit: Decimal
    balanced: bool


class StatementRow(BaseModel):
    account_id: int
    code: str
    name: str
    type: str
    parent_id: Optional[int] = None
    balance: Decimal
    rollup_balance: Decimal


class BalanceSheetResponse(BaseModel):
    as_of: date
    assets: list[StatementRow]
    liabilities: list[StatementRow]
    equity: list[StatementRow]
    current_earnings: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    total_equity: Decimal
    total_liabilities_and_equity: Decimal
    balanced: bool


class ProfitAndLossResponse(BaseModel):
    start_date: date
    end_date: date
    income: list[StatementRow]
    expenses: list[StatementRow]
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal


class CashFlowLine(BaseModel):
    account_id: int
    code: str
    name: str
    amount: Decimal


class CashFlowSection(BaseModel):
    total: Decimal
    lines: list[CashFlowLine]


class CashFlowResponse(BaseModel):
    start_date: date
    end_date: date
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    net_change: Decimal
    opening_cash: Decimal
    closing_cash: Decimal


class SubledgerRow(BaseModel):
    party_id: int
    party_name: str
    debit: Decimal
    credit: Decimal
    balance: Decimal


class BalanceMismatch(BaseModel):
    account_id: int
    code: str
    cached_balance: Decimal
    ledger_balance: Decimal


class BalanceCheckResponse(BaseModel):
    consistent: bool
    checked: int
    mismatches: list[BalanceMismatch]


class AccountLedgerBalance(BaseModel):
    account_id: int
    code: str
    name: str
    type: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
