from datetime import date
from decimal import Decimal

import pytest

from app.accounting.posting import JournalLineInput
from app.accounting.service import create_journal_entry
from app.models import Account


@pytest.fixture()
def activity(client, customer_id, account_ids, post_entry):
    """Owner funding, one taxed invoice and a partial customer payment."""
    post_entry(account_ids["1000"], account_ids["3100"], "1000.00", entry_date=date(2025, 1, 2), description="Owner funding")

    invoice = client.post(
        "/api/invoices",
        json={
            "party_id": customer_id,
            "issue_date": "2025-01-10",
            "lines": [{"quantity": "1", "rate": "1000", "tax_rate": "18"}],
        },
    ).json()
    client.post(f"/api/invoices/{invoice['id']}/approve")

    payment = client.post(
        "/api/payments",
        json={
            "type": "CUSTOMER_PAYMENT",
            "party_id": customer_id,
            "payment_date": "2025-01-20",
            "amount": "400.00",
            "allocations": [{"document_id": invoice["id"], "amount": "400.00"}],
        },
    ).json()
    client.post(f"/api/payments/{payment['id']}/confirm")
    return invoice


def test_trial_balance_is_balanced(client, activity, account_ids):
    response = client.get("/api/reports/trial-balance", params={"as_of": "2025-12-31"})
    assert response.status_code == 200
    data = response.json()
    assert data["balanced"] is True
    assert Decimal(data["total_debit"]) == Decimal("2180.00")
    assert Decimal(data["total_credit"]) == Decimal("2180.00")

    rows = {row["code"]: row for row in data["rows"]}
    assert Decimal(rows["1000"]["debit"]) == Decimal("1400.00")
    assert Decimal(rows["1100"]["debit"]) == Decimal("780.00")
    assert Decimal(rows["2200"]["credit"]) == Decimal("180.00")


def test_trial_balance_respects_as_of(client, activity):
    data = client.get("/api/reports/trial-balance", params={"as_of": "2025-01-05"}).json()
    assert [row["code"] for row in data["rows"]] == ["1000", "3100"]


def test_balance_sheet_balances_with_current_earnings(client, activity):
    data = client.get("/api/reports/balance-sheet", params={"as_of": "2025-12-31"}).json()
    assert data["balanced"] is True
    assert Decimal(data["total_assets"]) == Decimal("2180.00")
    assert Decimal(data["total_liabilities"]) == Decimal("180.00")
    assert Decimal(data["current_earnings"]) == Decimal("1000.00")
    assert Decimal(data["total_equity"]) == Decimal("2000.00")


def test_profit_and_loss(client, activity):
    data = client.get(
        "/api/reports/profit-loss",
        params={"start_date": "2025-01-01", "end_date": "2025-12-31"},
    ).json()
    assert Decimal(data["total_income"]) == Decimal("1000.00")
    assert Decimal(data["total_expenses"]) == Decimal("0.00")
    assert Decimal(data["net_profit"]) == Decimal("1000.00")

    bad_range = client.get(
        "/api/reports/profit-loss",
        params={"start_date": "2025-12-31", "end_date": "2025-01-01"},
    )
    assert bad_range.status_code == 400


def test_cash_flow_splits_operating_and_financing(client, activity):
    data = client.get(
        "/api/reports/cash-flow",
        params={"start_date": "2025-01-01", "end_date": "2025-12-31"},
    ).json()
    assert Decimal(data["operating"]["total"]) == Decimal("400.00")
    assert Decimal(data["financing"]["total"]) == Decimal("1000.00")
    assert Decimal(data["investing"]["total"]) == Decimal("0.00")
    assert Decimal(data["opening_cash"]) == Decimal("0.00")
    assert Decimal(data["closing_cash"]) == Decimal("1400.00")

    later = client.get(
        "/api/reports/cash-flow",
        params={"start_date": "2025-01-15", "end_date": "2025-12-31"},
    ).json()
    assert Decimal(later["opening_cash"]) == Decimal("1000.00")
    assert Decimal(later["net_change"]) == Decimal("400.00")


def test_subledger_matches_the_control_account(client, activity, customer_id):
    rows = client.get("/api/reports/subledger", params={"party_type": "CUSTOMER"}).json()
    assert len(rows) == 1
    assert rows[0]["party_id"] == customer_id
    assert Decimal(rows[0]["balance"]) == Decimal("780.00")


def test_balance_check_flags_drift(client, activity, session_factory):
    clean = client.get("/api/reports/balance-check").json()
    assert clean["consistent"] is True
    assert clean["mismatches"] == []

    with session_factory() as db:
        cash = db.query(Account).filter(Account.code == "1000").one()
        cash.balance = Decimal("1.00")
        db.commit()

    drifted = client.get("/api/reports/balance-check").json()
    assert drifted["consistent"] is False
    assert [row["code"] for row in drifted["mismatches"]] == ["1000"]
    assert Decimal(drifted["mismatches"][0]["ledger_balance"]) == Decimal("1400.00")


def test_account_balances_read_from_the_ledger(client, activity, account_ids):
    rows = client.get("/api/reports/account-balances", params={"as_of": "2025-12-31"}).json()
    by_code = {row["code"]: row for row in rows}
    assert Decimal(by_code["1000"]["debit"]) == Decimal("1400.00")
    assert Decimal(by_code["1000"]["balance"]) == Decimal("1400.00")
    assert Decimal(by_code["1100"]["credit"]) == Decimal("400.00")
    assert Decimal(by_code["1100"]["balance"]) == Decimal("780.00")
    assert Decimal(by_code["4000"]["balance"]) == Decimal("1000.00")

    january = client.get(
        "/api/reports/account-balances",
        params={"account_id": account_ids["1000"], "start_date": "2025-01-15", "end_date": "2025-01-31"},
    ).json()
    assert len(january) == 1
    assert Decimal(january[0]["debit"]) == Decimal("400.00")

    idle = client.get("/api/reports/account-balances", params={"account_id": account_ids["5000"]}).json()
    assert Decimal(idle[0]["balance"]) == Decimal("0.00")

    assert client.get("/api/reports/account-balances", params={"account_id": 9999}).status_code == 404


def test_account_balances_filter_by_dimension(client, session_factory, account_ids):
    cost_center = client.post("/api/cost-centers", json={"code": "CC-OPS", "name": "Operations"}).json()
    with session_factory() as db:
        for cost_center_id, amount in ((cost_center["id"], "300.00"), (None, "50.00")):
            create_journal_entry(
                db,
                entry_date=date(2025, 2, 1),
                description="Supplies",
                lines=[
                    JournalLineInput(account_id=account_ids["5000"], debit=Decimal(amount), cost_center_id=cost_center_id),
                    JournalLineInput(account_id=account_ids["1000"], credit=Decimal(amount)),
                ],
                created_by="system",
                auto_post=True,
            )
        db.commit()

    rows = client.get("/api/reports/account-balances", params={"cost_center_id": cost_center["id"]}).json()
    assert [(row["code"], Decimal(row["debit"])) for row in rows] == [("5000", Decimal("300.00"))]

    everything = {row["code"]: row for row in client.get("/api/reports/account-balances").json()}
    assert Decimal(everything["5000"]["balance"]) == Decimal("350.00")
    assert Decimal(everything["1000"]["balance"]) == Decimal("-350.00")
