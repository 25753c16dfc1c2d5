from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.auth import Actor, get_current_actor, require_module
from app.db import get_db
from app.module_keys import ModuleKey
from app.periods import schemas
from app.periods.service import close_period, create_fiscal_year, get_period, list_fiscal_years, lock_period, reopen_period
from app.routers.errors import ledger_errors

router = APIRouter(prefix="/api", tags=["periods"], dependencies=[Depends(require_module(ModuleKey.PERIODS.value))])


@router.get("/fiscal-years", response_model=List[schemas.FiscalYearResponse])
def list_fiscal_years_endpoint(db: Session = Depends(get_db)):
    return list_fiscal_years(db)


@router.post("/fiscal-years", response_model=schemas.FiscalYearResponse, status_code=status.HTTP_201_CREATED)
def create_fiscal_year_endpoint(payload: schemas.FiscalYearCreate, db: Session = Depends(get_db)):
    with ledger_errors(db, "Fiscal year already exists."):
        fiscal_year = create_fiscal_year(db, name=payload.name, start_date=payload.start_date, end_date=payload.end_date)
        db.commit()
    db.refresh(fiscal_year)
    return fiscal_year


@router.post("/accounting-periods/{period_id}/close", response_model=schemas.AccountingPeriodResponse)
def close_period_endpoint(period_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    with ledger_errors(db):
        close_period(db, period_id, actor.id)
        db.commit()
    return get_period(db, period_id)


@router.post("/accounting-periods/{period_id}/lock", response_model=schemas.AccountingPeriodResponse)
def lock_period_endpoint(period_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    with ledger_errors(db):
        lock_period(db, period_id, actor.id)
        db.commit()
    return get_period(db, period_id)


@router.post("/accounting-periods/{period_id}/reopen", response_model=schemas.AccountingPeriodResponse)
def reopen_period_endpoint(period_id: int, db: Session = Depends(get_db), actor: Actor = Depends(get_current_actor)):
    with ledger_errors(db):
        reopen_period(db, period_id, actor.id)
        db.commit()
    return get_period(db, period_id)
