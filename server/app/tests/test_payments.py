from decimal import Decimal

import pytest


@pytest.fixture()
def approved_invoice(client, customer_id):
    invoice = client.post(
        "/api/invoices",
        json={
            "party_id": customer_id,
            "issue_date": "2025-01-10",
            "due_date": "2025-02-09",
            "lines": [{"description": "Retainer", "quantity": "1", "rate": "1000"}],
        },
    ).json()
    response = client.post(f"/api/invoices/{invoice['id']}/approve")
    assert response.status_code == 200
    return response.json()


def _payment(client, customer_id, invoice_id, amount, allocated=None):
    response = client.post(
        "/api/payments",
        json={
            "type": "CUSTOMER_PAYMENT",
            "party_id": customer_id,
            "payment_date": "2025-01-25",
            "amount": amount,
            "method": "BANK_TRANSFER",
            "allocations": [{"document_id": invoice_id, "amount": allocated or amount}],
        },
    )
    return response


def _balance(client, account_id):
    return Decimal(client.get(f"/api/chart-of-accounts/{account_id}").json()["balance"])


def test_partial_then_full_payment(client, customer_id, approved_invoice, account_ids):
    first = _payment(client, customer_id, approved_invoice["id"], "400.00")
    assert first.status_code == 201
    assert first.json()["status"] == "DRAFT"
    assert first.json()["number"] == "PAY-00001"

    # Drafts do not settle anything.
    invoice = client.get(f"/api/invoices/{approved_invoice['id']}").json()
    assert Decimal(invoice["balance_due"]) == Decimal("1000.00")

    confirmed = client.post(f"/api/payments/{first.json()['id']}/confirm")
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "CONFIRMED"
    assert confirmed.json()["journal_entry_id"] is not None

    invoice = client.get(f"/api/invoices/{approved_invoice['id']}").json()
    assert invoice["status"] == "PARTIALLY_PAID"
    assert Decimal(invoice["amount_paid"]) == Decimal("400.00")
    assert Decimal(invoice["balance_due"]) == Decimal("600.00")

    second = _payment(client, customer_id, approved_invoice["id"], "600.00")
    client.post(f"/api/payments/{second.json()['id']}/confirm")

    invoice = client.get(f"/api/invoices/{approved_invoice['id']}").json()
    assert invoice["status"] == "PAID"
    assert Decimal(invoice["balance_due"]) == Decimal("0.00")

    assert _balance(client, account_ids["1000"]) == Decimal("1000.00")
    assert _balance(client, account_ids["1100"]) == Decimal("0.00")


def test_over_allocation_is_rejected(client, customer_id, approved_invoice):
    too_much = _payment(client, customer_id, approved_invoice["id"], "1200.00")
    assert too_much.status_code == 400
    assert "exceeds the balance due" in too_much.json()["detail"]

    more_than_payment = _payment(client, customer_id, approved_invoice["id"], "100.00", allocated="150.00")
    assert more_than_payment.status_code == 400


def test_unallocated_remainder_is_tracked(client, customer_id, approved_invoice):
    response = _payment(client, customer_id, approved_invoice["id"], "700.00", allocated="500.00")
    assert response.status_code == 201
    data = response.json()
    assert Decimal(data["amount_allocated"]) == Decimal("500.00")
    assert Decimal(data["amount_unallocated"]) == Decimal("200.00")


def test_second_confirmation_cannot_overpay(client, customer_id, approved_invoice):
    first = _payment(client, customer_id, approved_invoice["id"], "800.00").json()
    second = _payment(client, customer_id, approved_invoice["id"], "800.00").json()

    assert client.post(f"/api/payments/{first['id']}/confirm").status_code == 200
    response = client.post(f"/api/payments/{second['id']}/confirm")
    assert response.status_code == 400

    assert client.post(f"/api/payments/{first['id']}/confirm").status_code == 409


def test_voiding_a_payment_restores_the_invoice(client, customer_id, approved_invoice, account_ids):
    payment = _payment(client, customer_id, approved_invoice["id"], "1000.00").json()
    client.post(f"/api/payments/{payment['id']}/confirm")
    assert client.get(f"/api/invoices/{approved_invoice['id']}").json()["status"] == "PAID"

    voided = client.post(f"/api/payments/{payment['id']}/void", json={"reason": "Bounced"})
    assert voided.status_code == 200
    assert voided.json()["status"] == "VOID"

    invoice = client.get(f"/api/invoices/{approved_invoice['id']}").json()
    assert invoice["status"] == "APPROVED"
    assert Decimal(invoice["balance_due"]) == Decimal("1000.00")

    entry = client.get(f"/api/journal-entries/{voided.json()['journal_entry_id']}").json()
    assert entry["status"] == "REVERSED"
    assert _balance(client, account_ids["1000"]) == Decimal("0.00")
    assert _balance(client, account_ids["1100"]) == Decimal("1000.00")

    assert client.post(f"/api/payments/{payment['id']}/void").status_code == 409


def test_payment_party_and_document_must_match(client, vendor_id, customer_id, approved_invoice):
    wrong_type = client.post(
        "/api/payments",
        json={"type": "CUSTOMER_PAYMENT", "party_id": vendor_id, "payment_date": "2025-01-25", "amount": "10.00"},
    )
    assert wrong_type.status_code == 400

    draft = client.post(
        "/api/invoices",
        json={"party_id": customer_id, "issue_date": "2025-01-10", "lines": [{"quantity": "1", "rate": "50"}]},
    ).json()
    not_open = _payment(client, customer_id, draft["id"], "50.00")
    assert not_open.status_code == 409


def test_vendor_payment_settles_a_bill(client, vendor_id, account_ids):
    bill = client.post(
        "/api/bills",
        json={"party_id": vendor_id, "issue_date": "2025-01-05", "lines": [{"quantity": "4", "rate": "50"}]},
    ).json()
    client.post(f"/api/bills/{bill['id']}/approve")

    payment = client.post(
        "/api/payments",
        json={
            "type": "VENDOR_PAYMENT",
            "party_id": vendor_id,
            "payment_date": "2025-01-31",
            "amount": "200.00",
            "allocations": [{"document_id": bill["id"], "amount": "200.00"}],
        },
    ).json()
    assert client.post(f"/api/payments/{payment['id']}/confirm").status_code == 200

    assert client.get(f"/api/bills/{bill['id']}").json()["status"] == "PAID"
    assert _balance(client, account_ids["2100"]) == Decimal("0.00")
    assert _balance(client, account_ids["1000"]) == Decimal("-200.00")
