from datetime import date
from decimal import Decimal

from app.reports.aging import AgingItem, bucket_for_days, build_aging


def _item(document_id, due_date, balance, party_id=1, party_name="Acme Retail"):
    return AgingItem(
        document_id=document_id,
        number=f"INV-{document_id:05d}",
        party_id=party_id,
        party_name=party_name,
        issue_date=date(2025, 1, 1),
        due_date=due_date,
        balance_due=Decimal(balance),
    )


def test_bucket_boundaries():
    assert bucket_for_days(None) == "current"
    assert bucket_for_days(0) == "current"
    assert bucket_for_days(1) == "1_30"
    assert bucket_for_days(30) == "1_30"
    assert bucket_for_days(31) == "31_60"
    assert bucket_for_days(60) == "31_60"
    assert bucket_for_days(61) == "61_90"
    assert bucket_for_days(90) == "61_90"
    assert bucket_for_days(91) == "90_plus"


def test_build_aging_groups_by_party_and_bucket():
    as_of = date(2025, 3, 26)
    result = build_aging(
        [
            _item(1, date(2025, 2, 9), "500.00"),
            _item(2, None, "120.00"),
            _item(3, date(2024, 11, 1), "80.00", party_id=2, party_name="Bayside Foods"),
            _item(4, date(2025, 3, 1), "0.00"),
        ],
        as_of,
    )

    amounts = {bucket["key"]: bucket["amount"] for bucket in result["buckets"]}
    assert amounts == {
        "current": Decimal("120.00"),
        "1_30": Decimal("0.00"),
        "31_60": Decimal("500.00"),
        "61_90": Decimal("0.00"),
        "90_plus": Decimal("80.00"),
    }
    assert result["total"] == Decimal("700.00")
    assert [row["party_name"] for row in result["parties"]] == ["Acme Retail", "Bayside Foods"]
    assert result["parties"][0]["total"] == Decimal("620.00")
    assert [row["document_id"] for row in result["documents"]] == [1, 2, 3]
    assert result["documents"][0]["days_past_due"] == 45


def test_aging_endpoint_uses_open_invoices(client, customer_id):
    invoice = client.post(
        "/api/invoices",
        json={
            "party_id": customer_id,
            "issue_date": "2025-01-10",
            "due_date": "2025-02-09",
            "lines": [{"quantity": "1", "rate": "1000"}],
        },
    ).json()
    client.post(f"/api/invoices/{invoice['id']}/approve")
    payment = client.post(
        "/api/payments",
        json={
            "type": "CUSTOMER_PAYMENT",
            "party_id": customer_id,
            "payment_date": "2025-02-20",
            "amount": "500.00",
            "allocations": [{"document_id": invoice["id"], "amount": "500.00"}],
        },
    ).json()
    client.post(f"/api/payments/{payment['id']}/confirm")

    undated = client.post(
        "/api/invoices",
        json={"party_id": customer_id, "issue_date": "2025-03-01", "lines": [{"quantity": "1", "rate": "75"}]},
    ).json()
    client.post(f"/api/invoices/{undated['id']}/approve")

    draft = client.post(
        "/api/invoices",
        json={"party_id": customer_id, "issue_date": "2025-01-01", "lines": [{"quantity": "1", "rate": "999"}]},
    )
    assert draft.status_code == 201

    response = client.get("/api/reports/aging", params={"as_of": "2025-03-26"})
    assert response.status_code == 200
    data = response.json()
    assert data["party_type"] == "CUSTOMER"
    assert Decimal(data["total"]) == Decimal("575.00")

    row = data["parties"][0]
    assert row["party_name"] == "Acme Retail"
    assert Decimal(row["days_31_60"]) == Decimal("500.00")
    assert Decimal(row["current"]) == Decimal("75.00")

    labels = {bucket["key"]: bucket["label"] for bucket in data["buckets"]}
    assert labels["31_60"] == "31-60 Days"


def test_aging_rejects_unknown_party_type(client):
    response = client.get("/api/reports/aging", params={"party_type": "EMPLOYEE"})
    assert response.status_code == 400
