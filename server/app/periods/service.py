import calendar
import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.audit import record_status_transition
from app.exceptions import ConflictError, InvalidStateError, LedgerValidationError, PeriodClosedError, UnknownReferenceError
from app.models import AccountingPeriod, FiscalYear

logger = logging.getLogger(__name__)


def _month_end(value: date) -> date:
    return value.replace(day=calendar.monthrange(value.year, value.month)[1])


def create_fiscal_year(db: Session, *, name: str, start_date: date, end_date: date) -> FiscalYear:
    """Create a fiscal year split into calendar-month periods."""
    if end_date <= start_date:
        raise LedgerValidationError("Fiscal year end date must be after its start date.")
    if db.query(FiscalYear.id).filter(FiscalYear.name == name).first():
        raise ConflictError(f"Fiscal year '{name}' already exists.")
    overlapping = (
        db.query(FiscalYear.id)
        .filter(FiscalYear.start_date <= end_date, FiscalYear.end_date >= start_date)
        .first()
    )
    if overlapping:
        raise ConflictError("Fiscal year overlaps an existing fiscal year.")

    fiscal_year = FiscalYear(name=name, start_date=start_date, end_date=end_date, status="OPEN")
    cursor = start_date
    period_number = 1
    while cursor <= end_date:
        period_end = min(_month_end(cursor), end_date)
        fiscal_year.periods.append(
            AccountingPeriod(
                name=cursor.strftime("%b %Y"),
                period_number=period_number,
                start_date=cursor,
                end_date=period_end,
                status="OPEN",
            )
        )
        cursor = period_end + timedelta(days=1)
        period_number += 1

    db.add(fiscal_year)
    db.flush()
    logger.info("Created fiscal year %s with %s periods", name, len(fiscal_year.periods))
    return fiscal_year


def list_fiscal_years(db: Session) -> list[FiscalYear]:
    return db.query(FiscalYear).options(selectinload(FiscalYear.periods)).order_by(FiscalYear.start_date.asc()).all()


def get_period(db: Session, period_id: int) -> AccountingPeriod:
    period = db.query(AccountingPeriod).filter(AccountingPeriod.id == period_id).first()
    if not period:
        raise UnknownReferenceError("Accounting period not found.")
    return period


def find_period(db: Session, on_date: date) -> Optional[AccountingPeriod]:
    return (
        db.query(AccountingPeriod)
        .filter(AccountingPeriod.start_date <= on_date, AccountingPeriod.end_date >= on_date)
        .first()
    )


def validate_period(db: Session, on_date: date) -> Optional[AccountingPeriod]:
    """Return the open period covering ``on_date``.

    Books without any periods configured accept every date.
    """
    if db.query(AccountingPeriod.id).first() is None:
        return None
    period = find_period(db, on_date)
    if not period:
        raise LedgerValidationError(f"No accounting period is defined for {on_date.isoformat()}.")
    if period.status != "OPEN":
        raise PeriodClosedError(f"Accounting period {period.name} is {period.status.lower()}.")
    return period


def _transition(db: Session, period: AccountingPeriod, to_status: str, actor: Optional[str]) -> AccountingPeriod:
    from_status = period.status
    period.status = to_status
    if to_status == "OPEN":
        period.closed_by = None
        period.closed_at = None
    else:
        period.closed_by = actor
        period.closed_at = datetime.utcnow()
    record_status_transition(
        db,
        entity_type="accounting_period",
        entity_id=period.id,
        from_status=from_status,
        to_status=to_status,
        actor=actor,
    )
    db.flush()
    logger.info("Accounting period %s moved %s -> %s", period.name, from_status, to_status)
    return period


def close_period(db: Session, period_id: int, actor: Optional[str] = None) -> AccountingPeriod:
    period = get_period(db, period_id)
    if period.status != "OPEN":
        raise InvalidStateError(f"Only open periods can be closed (period is {period.status}).")
    return _transition(db, period, "CLOSED", actor)


def lock_period(db: Session, period_id: int, actor: Optional[str] = None) -> AccountingPeriod:
    period = get_period(db, period_id)
    if period.status == "LOCKED":
        raise InvalidStateError("Period is already locked.")
    return _transition(db, period, "LOCKED", actor)


def reopen_period(db: Session, period_id: int, actor: Optional[str] = None) -> AccountingPeriod:
    period = get_period(db, period_id)
    if period.status == "LOCKED":
        raise InvalidStateError("Locked periods cannot be reopened.")
    if period.status != "CLOSED":
        raise InvalidStateError("Only closed periods can be reopened.")
    return _transition(db, period, "OPEN", actor)
