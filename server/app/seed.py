import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from .chart_of_accounts.service import normal_balance_for
from .config import settings
from .db import SessionLocal
from .models import Account, TaxCode, TaxGroup, TaxGroupTax

logger = logging.getLogger(__name__)

ROOT_ACCOUNTS = [
    ("1", "Assets", "ASSET"),
    ("2", "Liabilities", "LIABILITY"),
    ("3", "Equity", "EQUITY"),
    ("4", "Income", "INCOME"),
    ("5", "Expenses", "EXPENSE"),
]

# (code, name, root code, subtype, system account)
NUMBERED_ACCOUNTS = [
    (settings.cash_account_code, "Cash", "1", "CASH", True),
    (settings.accounts_receivable_code, "Accounts Receivable", "1", "RECEIVABLE", True),
    (settings.input_tax_account_code, "Input Tax Recoverable", "1", "TAX", True),
    (settings.accounts_payable_code, "Accounts Payable", "2", "PAYABLE", True),
    (settings.tax_payable_account_code, "Tax Payable", "2", "TAX", True),
    (settings.retained_earnings_code, "Retained Earnings", "3", None, True),
    (settings.sales_account_code, "Sales", "4", None, False),
    (settings.expense_account_code, "General Expenses", "5", None, False),
    (settings.rounding_account_code, "Rounding Adjustments", "5", None, True),
    (settings.suspense_account_code, "Rounding Suspense", "2", None, True),
]

# (code, name, rate, sales account code, purchase account code)
GST_TAX_CODES = [
    ("CGST9", "CGST 9%", Decimal("9"), settings.tax_payable_account_code, settings.input_tax_account_code),
    ("SGST9", "SGST 9%", Decimal("9"), settings.tax_payable_account_code, settings.input_tax_account_code),
    ("IGST18", "IGST 18%", Decimal("18"), settings.tax_payable_account_code, settings.input_tax_account_code),
]
GST_GROUP = ("GST 18%", ["CGST9", "SGST9"])


def _upsert_account(
    db: Session,
    code: str,
    name: str,
    account_type: str,
    *,
    parent: Account | None = None,
    subtype: str | None = None,
    is_system_account: bool = False,
) -> Account:
    account = db.query(Account).filter(Account.code == code).first()
    if account:
        # Seeded rows keep their balance; only classification is reconciled.
        account.type = account_type
        account.parent_id = parent.id if parent else None
        account.normal_balance = normal_balance_for(account_type)
        account.is_system_account = account.is_system_account or is_system_account
        account.is_active = True
        if subtype and not account.subtype:
            account.subtype = subtype
        return account

    account = Account(
        code=code,
        name=name,
        type=account_type,
        subtype=subtype,
        is_active=True,
        is_system_account=is_system_account,
        normal_balance=normal_balance_for(account_type),
        parent_id=parent.id if parent else None,
        balance=Decimal("0.00"),
    )
    db.add(account)
    db.flush()
    return account


def seed_chart_of_accounts(db: Session) -> dict[str, Account]:
    accounts: dict[str, Account] = {}
    for code, name, account_type in ROOT_ACCOUNTS:
        accounts[code] = _upsert_account(db, code, name, account_type, is_system_account=True)

    for code, name, root_code, subtype, is_system in NUMBERED_ACCOUNTS:
        root = accounts[root_code]
        accounts[code] = _upsert_account(
            db,
            code,
            name,
            root.type,
            parent=root,
            subtype=subtype,
            is_system_account=is_system,
        )
    return accounts


def seed_tax_codes(db: Session, accounts: dict[str, Account]) -> None:
    codes: dict[str, TaxCode] = {}
    for code, name, rate, sales_code, purchase_code in GST_TAX_CODES:
        tax_code = db.query(TaxCode).filter(TaxCode.code == code).first()
        if not tax_code:
            tax_code = TaxCode(
                code=code,
                name=name,
                rate=rate,
                type="PERCENTAGE",
                is_inclusive=False,
                sales_account_id=accounts[sales_code].id,
                purchase_account_id=accounts[purchase_code].id,
            )
            db.add(tax_code)
            db.flush()
        codes[code] = tax_code

    group_name, member_codes = GST_GROUP
    if not db.query(TaxGroup).filter(TaxGroup.name == group_name).first():
        group = TaxGroup(name=group_name, description="Intra-state GST split")
        group.members = [
            TaxGroupTax(tax_code_id=codes[code].id, position=index)
            for index, code in enumerate(member_codes)
        ]
        db.add(group)
        db.flush()


def seed_ledger(db: Session) -> None:
    accounts = seed_chart_of_accounts(db)
    seed_tax_codes(db, accounts)


def run_seed():
    db: Session = SessionLocal()
    try:
        seed_ledger(db)
        db.commit()
        logger.info("Seeded chart of accounts and tax codes")
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    run_seed()
