from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.auth import require_module
from app.db import get_db
from app.module_keys import ModuleKey
from app.reports import schemas
from app.reports.service import (
    get_account_ledger_balances,
    get_aging_summary,
    get_balance_sheet,
    get_cash_flow,
    get_profit_and_loss,
    get_subledger_balances,
    get_trial_balance,
    verify_account_balances,
)
from app.routers.errors import ledger_errors

router = APIRouter(
    prefix="/api/reports",
    tags=["reports"],
    dependencies=[Depends(require_module(ModuleKey.REPORTS.value))],
)


def _date_range(start_date: Optional[date], end_date: Optional[date]) -> tuple[date, date]:
    end_date = end_date or date.today()
    start_date = start_date or date(end_date.year, 1, 1)
    if start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date.")
    return start_date, end_date


def _aging_party_row(row: dict) -> schemas.AgingPartyRow:
    return schemas.AgingPartyRow(
        party_id=row["party_id"],
        party_name=row["party_name"],
        current=row["current"],
        days_1_30=row["1_30"],
        days_31_60=row["31_60"],
        days_61_90=row["61_90"],
        days_90_plus=row["90_plus"],
        total=row["total"],
    )


@router.get("/aging", response_model=schemas.AgingSummaryResponse)
def aging_summary(
    as_of: Optional[date] = Query(None),
    party_type: str = Query("CUSTOMER"),
    db: Session = Depends(get_db),
):
    with ledger_errors(db):
        result = get_aging_summary(db, as_of or date.today(), party_type)
    return schemas.AgingSummaryResponse(
        as_of=result["as_of"],
        party_type=result["party_type"],
        buckets=[schemas.AgingBucket(**bucket) for bucket in result["buckets"]],
        total=result["total"],
        parties=[_aging_party_row(row) for row in result["parties"]],
        documents=[schemas.AgingDocumentRow(**row) for row in result["documents"]],
    )


@router.get("/trial-balance", response_model=schemas.TrialBalanceResponse)
def trial_balance(as_of: Optional[date] = Query(None), db: Session = Depends(get_db)):
    return get_trial_balance(db, as_of or date.today())


@router.get("/balance-sheet", response_model=schemas.BalanceSheetResponse)
def balance_sheet(as_of: Optional[date] = Query(None), db: Session = Depends(get_db)):
    return get_balance_sheet(db, as_of or date.today())


@router.get("/profit-loss", response_model=schemas.ProfitAndLossResponse)
def profit_and_loss(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return get_profit_and_loss(db, *_date_range(start_date, end_date))


@router.get("/cash-flow", response_model=schemas.CashFlowResponse)
def cash_flow(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    return get_cash_flow(db, *_date_range(start_date, end_date))


@router.get("/subledger", response_model=List[schemas.SubledgerRow])
def subledger(
    party_type: str = Query("CUSTOMER"),
    as_of: Optional[date] = Query(None),
    db: Session = Depends(get_db),
):
    with ledger_errors(db):
        return get_subledger_balances(db, party_type, as_of)


@router.get("/balance-check", response_model=schemas.BalanceCheckResponse)
def balance_check(db: Session = Depends(get_db)):
    return verify_account_balances(db)


@router.get("/account-balances", response_model=List[schemas.AccountLedgerBalance])
def account_balances(
    account_id: Optional[int] = Query(None),
    as_of: Optional[date] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    cost_center_id: Optional[int] = Query(None),
    project_id: Optional[int] = Query(None),
    db: Session = Depends(get_db),
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=400, detail="start_date cannot be after end_date.")
    with ledger_errors(db):
        return get_account_ledger_balances(
            db,
            account_id=account_id,
            as_of=as_of,
            start_date=start_date,
            end_date=end_date,
            cost_center_id=cost_center_id,
            project_id=project_id,
        )
