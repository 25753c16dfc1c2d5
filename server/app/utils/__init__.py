from app.utils.money import ZERO, money, quantize_money, sum_money

__all__ = ["ZERO", "money", "quantize_money", "sum_money"]
