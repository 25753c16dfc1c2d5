from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.config import settings
from app.models import SequenceCounter


def format_sequence(prefix: str, value: int, padding: int) -> str:
    return f"{prefix}-{value:0{padding}d}"


def next_sequence_number(
    db: Session,
    prefix: str,
    *,
    padding: Optional[int] = None,
    exists: Optional[Callable[[str], bool]] = None,
) -> str:
    """Advance the counter for ``prefix`` under a row lock and format the result.

    ``exists`` lets callers skip numbers that were already taken by
    client-supplied values.
    """
    counter = (
        db.query(SequenceCounter)
        .filter(SequenceCounter.prefix == prefix)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not counter:
        counter = SequenceCounter(prefix=prefix, current_value=0, padding=padding or settings.sequence_padding)
        db.add(counter)
        db.flush()

    while True:
        counter.current_value += 1
        number = format_sequence(prefix, counter.current_value, counter.padding)
        if exists is None or not exists(number):
            break
    db.flush()
    return number
