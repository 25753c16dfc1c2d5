from decimal import Decimal

import pytest

from app.exceptions import TaxConfigurationError
from app.models import TaxCode, TaxGroup, TaxGroupTax
from app.tax.calculations import TaxComponent, calculate_group, calculate_single, calculate_with_rate
from app.tax.service import calculate_tax


def _gst(inclusive: bool):
    return [
        TaxComponent(rate=Decimal("9"), is_inclusive=inclusive, code="CGST9"),
        TaxComponent(rate=Decimal("9"), is_inclusive=inclusive, code="SGST9"),
    ]


def test_exclusive_group_adds_each_component():
    result = calculate_group(Decimal("100"), _gst(False))
    assert result.taxable_amount == Decimal("100.00")
    assert result.tax_amount == Decimal("18.00")
    assert result.total_amount == Decimal("118.00")
    assert [line.amount for line in result.breakdown] == [Decimal("9.00"), Decimal("9.00")]


def test_inclusive_group_backs_out_the_taxable_base():
    result = calculate_group(Decimal("118"), _gst(True))
    assert result.taxable_amount == Decimal("100.00")
    assert result.tax_amount == Decimal("18.00")
    assert result.total_amount == Decimal("118.00")


def test_inclusive_group_rounds_each_component():
    result = calculate_group(Decimal("10"), _gst(True))
    # 10 / 1.18 = 8.4745... and 9% of 8.47 is 0.7623
    assert result.taxable_amount == Decimal("8.47")
    assert [line.amount for line in result.breakdown] == [Decimal("0.76"), Decimal("0.76")]
    assert result.tax_amount == Decimal("1.52")


def test_group_with_mixed_inclusive_flags_is_rejected():
    components = [
        TaxComponent(rate=Decimal("9"), is_inclusive=True),
        TaxComponent(rate=Decimal("9"), is_inclusive=False),
    ]
    with pytest.raises(TaxConfigurationError):
        calculate_group(Decimal("100"), components, group_name="Broken")


def test_inclusive_single_code_keeps_the_gross_amount():
    result = calculate_single(Decimal("100"), TaxComponent(rate=Decimal("18"), is_inclusive=True))
    assert result.taxable_amount == Decimal("84.75")
    assert result.tax_amount == Decimal("15.25")
    assert result.total_amount == Decimal("100.00")


def test_fixed_component_is_a_flat_amount():
    result = calculate_single(Decimal("40"), TaxComponent(rate=Decimal("2.5"), type="FIXED"))
    assert result.tax_amount == Decimal("2.50")
    assert result.total_amount == Decimal("42.50")


def test_inclusive_fixed_code_subtracts_the_flat_amount():
    result = calculate_single(Decimal("40"), TaxComponent(rate=Decimal("2.5"), type="FIXED", is_inclusive=True))
    assert result.taxable_amount == Decimal("37.50")
    assert result.tax_amount == Decimal("2.50")
    assert result.total_amount == Decimal("40.00")


def test_raw_rate_is_exclusive():
    result = calculate_with_rate(Decimal("200"), Decimal("5"))
    assert result.tax_amount == Decimal("10.00")
    assert result.total_amount == Decimal("210.00")


def test_calculate_tax_prefers_group_then_code_then_rate(db_session, gst_group_id):
    igst = db_session.query(TaxCode).filter(TaxCode.code == "IGST18").one()

    by_group = calculate_tax(db_session, Decimal("100"), tax_group_id=gst_group_id, tax_rate=Decimal("5"))
    assert len(by_group.breakdown) == 2
    assert by_group.tax_amount == Decimal("18.00")

    by_code = calculate_tax(db_session, Decimal("100"), tax_code_id=igst.id, tax_rate=Decimal("5"))
    assert by_code.breakdown[0].code == "IGST18"

    by_rate = calculate_tax(db_session, Decimal("100"), tax_rate=Decimal("5"))
    assert by_rate.tax_amount == Decimal("5.00")


def test_missing_or_inactive_codes_yield_zero_tax(db_session):
    igst = db_session.query(TaxCode).filter(TaxCode.code == "IGST18").one()
    igst.is_active = False
    db_session.flush()

    assert calculate_tax(db_session, Decimal("100"), tax_code_id=igst.id).tax_amount == Decimal("0.00")
    assert calculate_tax(db_session, Decimal("100"), tax_code_id=9999).tax_amount == Decimal("0.00")
    assert calculate_tax(db_session, Decimal("100"), tax_group_id=9999).total_amount == Decimal("100.00")


def test_inconsistent_stored_group_raises_at_calculation(db_session):
    inclusive = TaxCode(code="VAT5-INC", name="VAT 5% incl", rate=Decimal("5"), is_inclusive=True)
    exclusive = TaxCode(code="LEVY2", name="Levy 2%", rate=Decimal("2"), is_inclusive=False)
    db_session.add_all([inclusive, exclusive])
    db_session.flush()
    group = TaxGroup(name="Mixed")
    group.members = [
        TaxGroupTax(tax_code_id=inclusive.id, position=0),
        TaxGroupTax(tax_code_id=exclusive.id, position=1),
    ]
    db_session.add(group)
    db_session.flush()

    with pytest.raises(TaxConfigurationError):
        calculate_tax(db_session, Decimal("100"), tax_group_id=group.id)


def test_calculate_endpoint_for_gst_group(client, gst_group_id):
    response = client.post("/api/tax/calculate", json={"amount": "100", "tax_group_id": gst_group_id})
    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["tax_amount"]) == Decimal("18.00")
    assert Decimal(data["total_amount"]) == Decimal("118.00")
    assert [line["code"] for line in data["breakdown"]] == ["CGST9", "SGST9"]


def test_tax_group_api_rejects_mixed_inclusive_codes(client):
    inclusive = client.post(
        "/api/tax/codes",
        json={"code": "VAT5-INC", "name": "VAT 5% incl", "rate": "5", "is_inclusive": True},
    )
    exclusive = client.post("/api/tax/codes", json={"code": "LEVY2", "name": "Levy 2%", "rate": "2"})
    assert inclusive.status_code == 201
    assert exclusive.status_code == 201

    response = client.post(
        "/api/tax/groups",
        json={"name": "Mixed", "tax_code_ids": [inclusive.json()["id"], exclusive.json()["id"]]},
    )
    assert response.status_code == 400
    assert "inclusive" in response.json()["detail"]


@pytest.mark.parametrize("amount", ["0.01", "1.00", "10.00", "99.99", "118.00", "1234.56", "50000.05"])
def test_inclusive_group_base_grosses_back_up_within_rounding(amount):
    components = _gst(True)
    result = calculate_group(Decimal(amount), components)
    regrossed = result.taxable_amount * (1 + Decimal("18") / 100)
    assert abs(regrossed - Decimal(amount)) <= Decimal("0.01") * len(components)
    assert abs(result.total_amount - Decimal(amount)) <= Decimal("0.01") * len(components)
