from datetime import date
from decimal import Decimal

import pytest

from app.accounting.posting import JournalLineInput
from app.accounting.service import create_journal_entry, reverse_journal_entry
from app.exceptions import InvalidStateError
from app.models import Account


def _entry_payload(account_ids, amount="500.00", **extra):
    payload = {
        "date": "2025-01-15",
        "description": "Owner contribution",
        "lines": [
            {"account_id": account_ids["1000"], "debit": amount},
            {"account_id": account_ids["4000"], "credit": amount},
        ],
    }
    payload.update(extra)
    return payload


def _balance(client, account_id):
    response = client.get(f"/api/chart-of-accounts/{account_id}")
    assert response.status_code == 200
    return Decimal(response.json()["balance"])


def _draft_by_maker(session_factory, account_ids) -> int:
    with session_factory() as db:
        entry = create_journal_entry(
            db,
            entry_date=date(2025, 1, 15),
            description="Cash sale",
            lines=[
                JournalLineInput(account_id=account_ids["1000"], debit=Decimal("500.00")),
                JournalLineInput(account_id=account_ids["4000"], credit=Decimal("500.00")),
            ],
            created_by="maker",
        )
        db.commit()
        return entry.id


def test_unbalanced_entry_is_rejected(client, account_ids):
    payload = _entry_payload(account_ids)
    payload["lines"][1]["credit"] = "499.99"
    response = client.post("/api/journal-entries", json=payload)
    assert response.status_code == 400
    assert "unbalanced" in response.json()["detail"]


def test_single_line_entry_fails_validation(client, account_ids):
    payload = _entry_payload(account_ids)
    payload["lines"] = payload["lines"][:1]
    assert client.post("/api/journal-entries", json=payload).status_code == 422


def test_draft_entry_does_not_touch_balances(client, account_ids):
    response = client.post("/api/journal-entries", json=_entry_payload(account_ids))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["number"] == "JE-00001"
    assert Decimal(data["total_debit"]) == Decimal("500.00")
    assert _balance(client, account_ids["1000"]) == Decimal("0.00")


def test_approve_then_post_updates_balances(client, session_factory, account_ids):
    entry_id = _draft_by_maker(session_factory, account_ids)

    approved = client.post(f"/api/journal-entries/{entry_id}/approve")
    assert approved.status_code == 200
    assert approved.json()["status"] == "APPROVED"
    assert approved.json()["approved_by"] == "tester"

    posted = client.post(f"/api/journal-entries/{entry_id}/post")
    assert posted.status_code == 200
    assert posted.json()["status"] == "POSTED"

    assert _balance(client, account_ids["1000"]) == Decimal("500.00")
    assert _balance(client, account_ids["4000"]) == Decimal("500.00")


def test_posting_requires_approval(client, session_factory, account_ids):
    entry_id = _draft_by_maker(session_factory, account_ids)
    response = client.post(f"/api/journal-entries/{entry_id}/post")
    assert response.status_code == 409


def test_creator_cannot_approve_own_entry(client, account_ids):
    created = client.post("/api/journal-entries", json=_entry_payload(account_ids))
    response = client.post(f"/api/journal-entries/{created.json()['id']}/approve")
    assert response.status_code == 409
    assert "Maker-checker" in response.json()["detail"]


def test_reversal_restores_balances_and_cannot_repeat(client, account_ids, post_entry):
    entry_id = post_entry(account_ids["1000"], account_ids["4000"], "500.00")
    assert _balance(client, account_ids["1000"]) == Decimal("500.00")

    reversal = client.post(f"/api/journal-entries/{entry_id}/reverse", json={"reason": "Entered twice"})
    assert reversal.status_code == 200
    data = reversal.json()
    assert data["status"] == "POSTED"
    assert data["source_type"] == "REVERSAL"
    assert data["reversal_of_id"] == entry_id
    assert Decimal(data["lines"][0]["credit"]) == Decimal("500.00")

    original = client.get(f"/api/journal-entries/{entry_id}").json()
    assert original["status"] == "REVERSED"
    assert original["reversed_by_id"] == data["id"]
    assert Decimal(original["lines"][0]["debit"]) == Decimal("500.00")

    assert _balance(client, account_ids["1000"]) == Decimal("0.00")
    assert _balance(client, account_ids["4000"]) == Decimal("0.00")

    again = client.post(f"/api/journal-entries/{entry_id}/reverse")
    assert again.status_code == 409


def test_reversing_a_draft_is_rejected(db_session, account_ids):
    entry = create_journal_entry(
        db_session,
        entry_date=date(2025, 1, 15),
        description="Draft",
        lines=[
            JournalLineInput(account_id=account_ids["1000"], debit=Decimal("1.00")),
            JournalLineInput(account_id=account_ids["4000"], credit=Decimal("1.00")),
        ],
    )
    with pytest.raises(InvalidStateError):
        reverse_journal_entry(db_session, entry.id, "tester")


def test_only_drafts_can_be_deleted(client, account_ids, post_entry):
    draft = client.post("/api/journal-entries", json=_entry_payload(account_ids)).json()
    assert client.delete(f"/api/journal-entries/{draft['id']}").status_code == 200
    assert client.get(f"/api/journal-entries/{draft['id']}").status_code == 404

    posted_id = post_entry(account_ids["1000"], account_ids["4000"], "500.00")
    assert client.delete(f"/api/journal-entries/{posted_id}").status_code == 409


def test_idempotency_key_returns_the_existing_entry(client, account_ids, post_entry):
    first = client.post("/api/journal-entries", json=_entry_payload(account_ids, idempotency_key="import-42"))
    second = client.post("/api/journal-entries", json=_entry_payload(account_ids, idempotency_key="import-42"))
    assert first.json()["id"] == second.json()["id"]
    assert len(client.get("/api/journal-entries").json()) == 1

    posted = post_entry(account_ids["1000"], account_ids["4000"], "500.00", idempotency_key="bank-7")
    again = post_entry(account_ids["1000"], account_ids["4000"], "500.00", idempotency_key="bank-7")
    assert posted == again
    assert _balance(client, account_ids["1000"]) == Decimal("500.00")


def test_manual_entries_cannot_skip_approval(client, account_ids):
    response = client.post("/api/journal-entries", json=_entry_payload(account_ids, auto_post=True))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["approved_by"] is None
    assert _balance(client, account_ids["1000"]) == Decimal("0.00")

    assert client.post(f"/api/journal-entries/{data['id']}/approve").status_code == 409


def test_audit_log_lists_entry_history(client, session_factory, account_ids):
    entry_id = _draft_by_maker(session_factory, account_ids)
    client.post(f"/api/journal-entries/{entry_id}/approve")
    client.post(f"/api/journal-entries/{entry_id}/post")

    response = client.get("/api/audit-logs", params={"entity_type": "journal_entry", "entity_id": entry_id})
    assert response.status_code == 200
    events = response.json()
    assert [event["action"] for event in events] == ["CREATE", "APPROVE", "POST"]
    assert [event["actor"] for event in events] == ["maker", "tester", "tester"]
    assert events[0]["before_hash"] is None
    assert events[1]["before_hash"] == events[0]["after_hash"]
    assert all(event["event_metadata"] == "JE-00001" for event in events)

    by_actor = client.get("/api/audit-logs", params={"actor": "maker"}).json()
    assert [event["action"] for event in by_actor] == ["CREATE"]

    posts = client.get("/api/audit-logs", params={"action": "post"}).json()
    assert [event["entity_id"] for event in posts] == [entry_id]

    paged = client.get("/api/audit-logs", params={"entity_type": "journal_entry", "limit": 1, "offset": 2}).json()
    assert [event["action"] for event in paged] == ["POST"]


def test_document_entries_cannot_be_reversed_directly(client, customer_id, account_ids):
    invoice = client.post(
        "/api/invoices",
        json={"party_id": customer_id, "issue_date": "2025-01-10", "lines": [{"quantity": "1", "rate": "100"}]},
    ).json()
    approved = client.post(f"/api/invoices/{invoice['id']}/approve").json()

    response = client.post(f"/api/journal-entries/{approved['journal_entry_id']}/reverse")
    assert response.status_code == 409
    assert "void the invoice" in response.json()["detail"]

    entry = client.get(f"/api/journal-entries/{approved['journal_entry_id']}").json()
    assert entry["status"] == "POSTED"
    assert _balance(client, account_ids["1100"]) == Decimal("100.00")
    assert Decimal(client.get(f"/api/invoices/{invoice['id']}").json()["balance_due"]) == Decimal("100.00")


def test_payment_entries_cannot_be_reversed_directly(client, customer_id, account_ids):
    invoice = client.post(
        "/api/invoices",
        json={"party_id": customer_id, "issue_date": "2025-01-10", "lines": [{"quantity": "1", "rate": "100"}]},
    ).json()
    client.post(f"/api/invoices/{invoice['id']}/approve")
    payment = client.post(
        "/api/payments",
        json={
            "type": "CUSTOMER_PAYMENT",
            "party_id": customer_id,
            "payment_date": "2025-01-20",
            "amount": "100.00",
            "allocations": [{"document_id": invoice["id"], "amount": "100.00"}],
        },
    ).json()
    confirmed = client.post(f"/api/payments/{payment['id']}/confirm").json()

    response = client.post(f"/api/journal-entries/{confirmed['journal_entry_id']}/reverse")
    assert response.status_code == 409
    assert "void the payment" in response.json()["detail"]
    assert _balance(client, account_ids["1000"]) == Decimal("100.00")


def test_posting_reads_the_locked_balance_not_a_stale_copy(session_factory, account_ids, post_entry):
    with session_factory() as db:
        cash = db.get(Account, account_ids["1000"])
        assert cash.balance == Decimal("0.00")

        post_entry(account_ids["1000"], account_ids["4000"], "500.00")

        entry = create_journal_entry(
            db,
            entry_date=date(2025, 1, 16),
            description="Second sale",
            lines=[
                JournalLineInput(account_id=account_ids["1000"], debit=Decimal("200.00")),
                JournalLineInput(account_id=account_ids["4000"], credit=Decimal("200.00")),
            ],
            created_by="system",
            auto_post=True,
        )
        db.commit()
        assert entry.number == "JE-00002"

    with session_factory() as db:
        assert db.get(Account, account_ids["1000"]).balance == Decimal("700.00")
        assert db.get(Account, account_ids["4000"]).balance == Decimal("700.00")


def test_locked_and_missing_periods_block_posting(client, account_ids):
    fiscal_year = client.post(
        "/api/fiscal-years",
        json={"name": "FY2025", "start_date": "2025-01-01", "end_date": "2025-12-31"},
    )
    assert fiscal_year.status_code == 201
    periods = fiscal_year.json()["periods"]
    assert len(periods) == 12
    assert periods[0]["name"] == "Jan 2025"

    locked = client.post(f"/api/accounting-periods/{periods[0]['id']}/lock")
    assert locked.json()["status"] == "LOCKED"

    in_locked = client.post("/api/journal-entries", json=_entry_payload(account_ids))
    assert in_locked.status_code == 409

    outside = client.post("/api/journal-entries", json=_entry_payload(account_ids, date="2030-01-01"))
    assert outside.status_code == 400

    in_open = client.post("/api/journal-entries", json=_entry_payload(account_ids, date="2025-02-10"))
    assert in_open.status_code == 201
    assert in_open.json()["period_id"] == periods[1]["id"]

    assert client.post(f"/api/accounting-periods/{periods[0]['id']}/reopen").status_code == 409


def test_closed_period_can_be_reopened(client, account_ids):
    periods = client.post(
        "/api/fiscal-years",
        json={"name": "FY2025", "start_date": "2025-01-01", "end_date": "2025-12-31"},
    ).json()["periods"]
    assert client.post(f"/api/accounting-periods/{periods[0]['id']}/close").json()["status"] == "CLOSED"
    assert client.post("/api/journal-entries", json=_entry_payload(account_ids)).status_code == 409

    assert client.post(f"/api/accounting-periods/{periods[0]['id']}/reopen").json()["status"] == "OPEN"
    assert client.post("/api/journal-entries", json=_entry_payload(account_ids)).status_code == 201


def test_overlapping_fiscal_year_is_rejected(client):
    client.post("/api/fiscal-years", json={"name": "FY2025", "start_date": "2025-01-01", "end_date": "2025-12-31"})
    response = client.post(
        "/api/fiscal-years",
        json={"name": "FY2025-26", "start_date": "2025-07-01", "end_date": "2026-06-30"},
    )
    assert response.status_code == 409


def test_rounding_adjustment_posts_within_threshold(client, session_factory):
    response = client.post("/api/journal-entries/rounding-adjustments", json={"amount": "0.03", "entry_date": "2025-01-31"})
    assert response.status_code == 201
    assert response.json()["status"] == "POSTED"
    assert response.json()["source_type"] == "ROUNDING"

    with session_factory() as db:
        rounding = db.query(Account).filter(Account.code == "SYS-ROUNDING").one()
        suspense = db.query(Account).filter(Account.code == "SYS-SUSPENSE").one()
        assert rounding.balance == Decimal("0.03")
        assert suspense.balance == Decimal("0.03")

    too_large = client.post("/api/journal-entries/rounding-adjustments", json={"amount": "5.00"})
    assert too_large.status_code == 400
    zero = client.post("/api/journal-entries/rounding-adjustments", json={"amount": "0"})
    assert zero.status_code == 400
