from decimal import Decimal

from app.utils import money, quantize_money, sum_money


def test_quantize_money_rounds_half_up():
    assert quantize_money(Decimal("137.423")) == Decimal("137.42")
    assert quantize_money(Decimal("137.425")) == Decimal("137.43")
    assert quantize_money(Decimal("-0.005")) == Decimal("-0.01")


def test_quantize_money_accepts_common_types_and_none():
    assert quantize_money(12) == Decimal("12.00")
    assert quantize_money(12.3) == Decimal("12.30")
    assert quantize_money("12.345") == Decimal("12.35")
    assert quantize_money(None) is None


def test_money_treats_none_as_zero():
    assert money(None) == Decimal("0.00")
    assert money("9.999") == Decimal("10.00")


def test_sum_money_skips_none_and_rounds_the_total():
    assert sum_money([Decimal("0.005"), Decimal("0.005"), None]) == Decimal("0.01")
