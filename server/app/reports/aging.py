from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from app.utils import ZERO, money

BUCKETS = ("current", "1_30", "31_60", "61_90", "90_plus")
BUCKET_LABELS = {
    "current": "Current",
    "1_30": "1-30 Days",
    "31_60": "31-60 Days",
    "61_90": "61-90 Days",
    "90_plus": "90+ Days",
}


@dataclass(frozen=True)
class AgingItem:
    document_id: int
    number: str
    party_id: int
    party_name: str
    issue_date: date
    due_date: Optional[date]
    balance_due: Decimal


def days_past_due(due_date: Optional[date], as_of: date) -> Optional[int]:
    if due_date is None:
        return None
    return (as_of - due_date).days


def bucket_for_days(days: Optional[int]) -> str:
    """Bucket key for a number of days past due; no due date counts as current."""
    if days is None or days <= 0:
        return "current"
    if days <= 30:
        return "1_30"
    if days <= 60:
        return "31_60"
    if days <= 90:
        return "61_90"
    return "90_plus"


def _empty_buckets() -> dict[str, Decimal]:
    return {bucket: ZERO for bucket in BUCKETS}


def build_aging(items: Iterable[AgingItem], as_of: date) -> dict[str, Any]:
    summary = _empty_buckets()
    parties: dict[int, dict[str, Any]] = {}
    details: list[dict[str, Any]] = []

    for item in items:
        balance = money(item.balance_due)
        if balance <= 0:
            continue
        days = days_past_due(item.due_date, as_of)
        bucket = bucket_for_days(days)
        summary[bucket] += balance

        row = parties.get(item.party_id)
        if row is None:
            row = {"party_id": item.party_id, "party_name": item.party_name, **_empty_buckets(), "total": ZERO}
            parties[item.party_id] = row
        row[bucket] += balance
        row["total"] += balance

        details.append(
            {
                "document_id": item.document_id,
                "number": item.number,
                "party_id": item.party_id,
                "party_name": item.party_name,
                "issue_date": item.issue_date,
                "due_date": item.due_date,
                "days_past_due": max(days or 0, 0),
                "bucket": bucket,
                "balance_due": balance,
            }
        )

    return {
        "as_of": as_of,
        "buckets": [
            {"key": bucket, "label": BUCKET_LABELS[bucket], "amount": summary[bucket]} for bucket in BUCKETS
        ],
        "total": sum(summary.values(), ZERO),
        "parties": sorted(parties.values(), key=lambda row: row["party_name"].lower()),
        "documents": details,
    }
