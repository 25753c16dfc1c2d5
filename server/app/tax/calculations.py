from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

from app.exceptions import TaxConfigurationError
from app.utils import ZERO, money, quantize_money

HUNDRED = Decimal("100")
PERCENTAGE = "PERCENTAGE"
FIXED = "FIXED"


@dataclass(frozen=True)
class TaxComponent:
    rate: Decimal
    type: str = PERCENTAGE
    is_inclusive: bool = False
    tax_code_id: Optional[int] = None
    code: Optional[str] = None
    name: Optional[str] = None
    sales_account_id: Optional[int] = None
    purchase_account_id: Optional[int] = None


@dataclass(frozen=True)
class TaxBreakdownLine:
    name: str
    rate: Decimal
    amount: Decimal
    type: str = PERCENTAGE
    tax_code_id: Optional[int] = None
    code: Optional[str] = None
    sales_account_id: Optional[int] = None
    purchase_account_id: Optional[int] = None


@dataclass(frozen=True)
class TaxResult:
    taxable_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    breakdown: List[TaxBreakdownLine] = field(default_factory=list)


def no_tax(amount) -> TaxResult:
    amount = money(amount)
    return TaxResult(taxable_amount=amount, tax_amount=ZERO, total_amount=amount, breakdown=[])


def _percent_of(amount: Decimal, rate: Decimal) -> Decimal:
    return quantize_money(amount * Decimal(rate) / HUNDRED)


def _breakdown_line(component: TaxComponent, amount: Decimal) -> TaxBreakdownLine:
    return TaxBreakdownLine(
        name=component.name or component.code or f"Tax @ {component.rate}%",
        rate=Decimal(component.rate),
        amount=amount,
        type=component.type,
        tax_code_id=component.tax_code_id,
        code=component.code,
        sales_account_id=component.sales_account_id,
        purchase_account_id=component.purchase_account_id,
    )


def calculate_with_rate(amount, rate) -> TaxResult:
    """Exclusive tax at an ad-hoc percentage with no configured code behind it."""
    amount = money(amount)
    rate = Decimal(str(rate))
    tax_amount = _percent_of(amount, rate)
    line = TaxBreakdownLine(name=f"Tax @ {rate}%", rate=rate, amount=tax_amount)
    return TaxResult(
        taxable_amount=amount,
        tax_amount=tax_amount,
        total_amount=amount + tax_amount,
        breakdown=[line],
    )


def calculate_single(amount, component: TaxComponent) -> TaxResult:
    amount = money(amount)
    rate = Decimal(component.rate)
    if component.is_inclusive:
        if component.type == FIXED:
            taxable = amount - money(rate)
        else:
            taxable = quantize_money(amount / (1 + rate / HUNDRED))
        tax_amount = amount - taxable
    else:
        taxable = amount
        tax_amount = money(rate) if component.type == FIXED else _percent_of(amount, rate)
    return TaxResult(
        taxable_amount=taxable,
        tax_amount=tax_amount,
        total_amount=taxable + tax_amount,
        breakdown=[_breakdown_line(component, tax_amount)],
    )


def ensure_consistent_inclusive(components: Iterable[TaxComponent], group_name: str | None = None) -> bool:
    """Return the shared inclusive flag, or raise when members disagree."""
    flags = {bool(component.is_inclusive) for component in components}
    if len(flags) > 1:
        label = f"Tax group '{group_name}'" if group_name else "Tax group"
        raise TaxConfigurationError(f"{label} mixes inclusive and exclusive tax codes.")
    return flags.pop() if flags else False


def calculate_group(amount, components: List[TaxComponent], group_name: str | None = None) -> TaxResult:
    """Apply every component of a group to one line amount.

    Inclusive groups back out a single taxable base using the summed
    percentage rate (flat FIXED components are removed from the gross
    first) and tax each component on that shared base. Every component is
    rounded on its own before the parts are summed.
    """
    amount = money(amount)
    if not components:
        return no_tax(amount)

    inclusive = ensure_consistent_inclusive(components, group_name)
    if inclusive:
        fixed_total = sum((money(c.rate) for c in components if c.type == FIXED), ZERO)
        percent_rate = sum((Decimal(c.rate) for c in components if c.type != FIXED), Decimal("0"))
        taxable = quantize_money((amount - fixed_total) / (1 + percent_rate / HUNDRED))
    else:
        taxable = amount

    breakdown: List[TaxBreakdownLine] = []
    for component in components:
        if component.type == FIXED:
            component_tax = money(component.rate)
        else:
            component_tax = _percent_of(taxable, Decimal(component.rate))
        breakdown.append(_breakdown_line(component, component_tax))

    tax_amount = sum((line.amount for line in breakdown), ZERO)
    return TaxResult(
        taxable_amount=taxable,
        tax_amount=tax_amount,
        total_amount=taxable + tax_amount,
        breakdown=breakdown,
    )
