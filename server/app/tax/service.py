import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session, selectinload

from app.chart_of_accounts.service import require_active_accounts
from app.exceptions import ConflictError, TaxConfigurationError, UnknownReferenceError
from app.models import TaxCode, TaxGroup, TaxGroupTax
from app.tax.calculations import (
    FIXED,
    TaxComponent,
    TaxResult,
    calculate_group,
    calculate_single,
    calculate_with_rate,
    ensure_consistent_inclusive,
    no_tax,
)

logger = logging.getLogger(__name__)

TAX_CODE_FIELDS = [
    "code",
    "name",
    "rate",
    "type",
    "is_inclusive",
    "sales_account_id",
    "purchase_account_id",
    "description",
    "is_active",
]


def to_component(tax_code: TaxCode) -> TaxComponent:
    return TaxComponent(
        rate=Decimal(tax_code.rate or 0),
        type=tax_code.type,
        is_inclusive=bool(tax_code.is_inclusive),
        tax_code_id=tax_code.id,
        code=tax_code.code,
        name=tax_code.name,
        sales_account_id=tax_code.sales_account_id,
        purchase_account_id=tax_code.purchase_account_id,
    )


def get_tax_group(db: Session, tax_group_id: int) -> Optional[TaxGroup]:
    return (
        db.query(TaxGroup)
        .options(selectinload(TaxGroup.members).selectinload(TaxGroupTax.tax_code))
        .filter(TaxGroup.id == tax_group_id)
        .first()
    )


def group_codes(group: TaxGroup) -> list[TaxCode]:
    return [member.tax_code for member in group.members if member.tax_code is not None]


def group_total_rate(group: TaxGroup) -> Decimal:
    return sum((Decimal(code.rate or 0) for code in group_codes(group) if code.type != FIXED), Decimal("0"))


def calculate_tax(
    db: Session,
    amount,
    *,
    tax_code_id: Optional[int] = None,
    tax_group_id: Optional[int] = None,
    tax_rate: Optional[Decimal] = None,
) -> TaxResult:
    """Tax for one line amount.

    A group takes precedence over a single code, and a raw rate is only used
    when neither is given. Unknown or inactive codes and groups yield zero
    tax rather than an error.
    """
    if tax_group_id is not None:
        group = get_tax_group(db, tax_group_id)
        if not group or not group.is_active:
            logger.debug("Tax group %s missing or inactive; applying zero tax", tax_group_id)
            return no_tax(amount)
        components = [to_component(code) for code in group_codes(group) if code.is_active]
        return calculate_group(amount, components, group_name=group.name)

    if tax_code_id is not None:
        tax_code = db.query(TaxCode).filter(TaxCode.id == tax_code_id).first()
        if not tax_code or not tax_code.is_active:
            logger.debug("Tax code %s missing or inactive; applying zero tax", tax_code_id)
            return no_tax(amount)
        return calculate_single(amount, to_component(tax_code))

    if tax_rate is not None:
        return calculate_with_rate(amount, tax_rate)

    return no_tax(amount)


def _validate_tax_code_accounts(db: Session, data: dict) -> None:
    account_ids = [data.get("sales_account_id"), data.get("purchase_account_id")]
    require_active_accounts(db, [account_id for account_id in account_ids if account_id is not None])


def create_tax_code(db: Session, data: dict) -> TaxCode:
    if db.query(TaxCode.id).filter(TaxCode.code == data["code"]).first():
        raise ConflictError(f"Tax code '{data['code']}' already exists.")
    _validate_tax_code_accounts(db, data)
    tax_code = TaxCode(**{key: data[key] for key in TAX_CODE_FIELDS if key in data})
    db.add(tax_code)
    db.flush()
    return tax_code


def update_tax_code(db: Session, tax_code_id: int, data: dict) -> TaxCode:
    tax_code = db.query(TaxCode).filter(TaxCode.id == tax_code_id).first()
    if not tax_code:
        raise UnknownReferenceError("Tax code not found.")
    _validate_tax_code_accounts(db, data)

    for key in TAX_CODE_FIELDS:
        if key in data:
            setattr(tax_code, key, data[key])

    if "is_inclusive" in data:
        groups = (
            db.query(TaxGroup)
            .join(TaxGroupTax, TaxGroupTax.tax_group_id == TaxGroup.id)
            .filter(TaxGroupTax.tax_code_id == tax_code.id)
            .all()
        )
        for group in groups:
            ensure_consistent_inclusive([to_component(code) for code in group_codes(group)], group.name)
    db.flush()
    return tax_code


def _resolve_group_members(db: Session, tax_code_ids: list[int], group_name: str) -> list[TaxCode]:
    tax_code_ids = list(dict.fromkeys(tax_code_ids))
    codes = db.query(TaxCode).filter(TaxCode.id.in_(tax_code_ids)).all()
    by_id = {code.id: code for code in codes}
    missing = [str(code_id) for code_id in tax_code_ids if code_id not in by_id]
    if missing:
        raise UnknownReferenceError(f"Tax codes not found: {', '.join(missing)}")
    ordered = [by_id[code_id] for code_id in tax_code_ids]
    ensure_consistent_inclusive([to_component(code) for code in ordered], group_name)
    return ordered


def _set_group_members(group: TaxGroup, codes: list[TaxCode]) -> None:
    group.members = [TaxGroupTax(tax_code=code, position=index) for index, code in enumerate(codes)]


def create_tax_group(db: Session, data: dict) -> TaxGroup:
    if db.query(TaxGroup.id).filter(TaxGroup.name == data["name"]).first():
        raise ConflictError(f"Tax group '{data['name']}' already exists.")
    codes = _resolve_group_members(db, data["tax_code_ids"], data["name"])
    group = TaxGroup(name=data["name"], description=data.get("description"), is_active=data.get("is_active", True))
    _set_group_members(group, codes)
    db.add(group)
    db.flush()
    return group


def update_tax_group(db: Session, tax_group_id: int, data: dict) -> TaxGroup:
    group = get_tax_group(db, tax_group_id)
    if not group:
        raise UnknownReferenceError("Tax group not found.")
    for key in ["name", "description", "is_active"]:
        if key in data and data[key] is not None:
            setattr(group, key, data[key])
    if data.get("tax_code_ids") is not None:
        if not data["tax_code_ids"]:
            raise TaxConfigurationError("A tax group needs at least one tax code.")
        codes = _resolve_group_members(db, data["tax_code_ids"], group.name)
        group.members = []
        db.flush()
        _set_group_members(group, codes)
    db.flush()
    return group
