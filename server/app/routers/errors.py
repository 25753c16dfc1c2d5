from contextlib import contextmanager

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.exceptions import LedgerError


def http_error(exc: LedgerError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=str(exc))


@contextmanager
def ledger_errors(db: Session, conflict_detail: str = "Record conflicts with existing data."):
    """Roll back and translate ledger failures raised inside the block into HTTP errors."""
    try:
        yield
    except LedgerError as exc:
        db.rollback()
        raise http_error(exc) from None
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=conflict_detail) from None
