"""Read-only projections over posted journal entries and open documents."""
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from app.accounting.service import compute_account_balance
from app.chart_of_accounts.service import rollup_balances
from app.config import settings
from app.exceptions import LedgerValidationError, UnknownReferenceError
from app.models import Account, Document, JournalEntry, JournalLine, OPEN_DOCUMENT_STATUSES, Party
from app.reports.aging import AgingItem, build_aging
from app.utils import ZERO, money

# Reversed entries keep their ledger effect; their reversal offsets it.
LEDGER_STATUSES = ("POSTED", "REVERSED")

INVESTING_ASSET_SUBTYPES = {
    "FIXED_ASSET",
    "NON_CURRENT_ASSET",
    "PROPERTY_PLANT_AND_EQUIPMENT",
    "INVESTMENT",
    "INTANGIBLE_ASSET",
}
FINANCING_LIABILITY_SUBTYPES = {
    "LONG_TERM_LIABILITY",
    "NON_CURRENT_LIABILITY",
    "LOAN",
    "NOTES_PAYABLE",
}
CASH_SUBTYPES = {"CASH", "BANK"}


def _normalize_subtype(subtype: Optional[str]) -> str:
    return (subtype or "").upper().replace(" ", "_").replace("-", "_").replace(",", "")


def _ledger_totals(
    db: Session,
    *,
    as_of: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    account_id: Optional[int] = None,
    cost_center_id: Optional[int] = None,
    project_id: Optional[int] = None,
) -> dict[int, tuple[Decimal, Decimal]]:
    query = (
        db.query(
            JournalLine.account_id,
            func.coalesce(func.sum(JournalLine.debit), 0).label("debit"),
            func.coalesce(func.sum(JournalLine.credit), 0).label("credit"),
        )
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(JournalEntry.status.in_(LEDGER_STATUSES))
    )
    if as_of is not None:
        query = query.filter(JournalEntry.entry_date <= as_of)
    if start_date is not None:
        query = query.filter(JournalEntry.entry_date >= start_date)
    if end_date is not None:
        query = query.filter(JournalEntry.entry_date <= end_date)
    if account_id is not None:
        query = query.filter(JournalLine.account_id == account_id)
    if cost_center_id is not None:
        query = query.filter(JournalLine.cost_center_id == cost_center_id)
    if project_id is not None:
        query = query.filter(JournalLine.project_id == project_id)
    rows = query.group_by(JournalLine.account_id).all()
    return {row.account_id: (money(row.debit), money(row.credit)) for row in rows}


def _signed_balances(accounts: list[Account], totals: dict[int, tuple[Decimal, Decimal]]) -> dict[int, Decimal]:
    balances: dict[int, Decimal] = {}
    for account in accounts:
        debit, credit = totals.get(account.id, (ZERO, ZERO))
        balances[account.id] = compute_account_balance(account.type, debit, credit)
    return balances


def _account_row(account: Account, balance: Decimal, rollup: Decimal) -> dict[str, Any]:
    return {
        "account_id": account.id,
        "code": account.code,
        "name": account.name,
        "type": account.type,
        "parent_id": account.parent_id,
        "balance": balance,
        "rollup_balance": rollup,
    }


def get_aging_summary(db: Session, as_of: date, party_type: str = "CUSTOMER") -> dict[str, Any]:
    party_type = party_type.upper()
    if party_type not in {"CUSTOMER", "VENDOR"}:
        raise LedgerValidationError("party_type must be CUSTOMER or VENDOR.")
    family = "INVOICE" if party_type == "CUSTOMER" else "BILL"

    documents = (
        db.query(Document)
        .options(selectinload(Document.party))
        .join(Party, Party.id == Document.party_id)
        .filter(
            Document.family == family,
            Document.status.in_(OPEN_DOCUMENT_STATUSES),
            Document.balance_due > 0,
            Document.issue_date <= as_of,
        )
        .order_by(Party.name.asc(), Document.due_date.asc())
        .all()
    )
    items = [
        AgingItem(
            document_id=document.id,
            number=document.number,
            party_id=document.party_id,
            party_name=document.party.name if document.party else f"Party #{document.party_id}",
            issue_date=document.issue_date,
            due_date=document.due_date,
            balance_due=money(document.balance_due),
        )
        for document in documents
    ]
    result = build_aging(items, as_of)
    result["party_type"] = party_type
    return result


def get_trial_balance(db: Session, as_of: date) -> dict[str, Any]:
    totals = _ledger_totals(db, as_of=as_of)
    accounts = db.query(Account).filter(Account.id.in_(list(totals))).order_by(Account.code.asc()).all() if totals else []

    rows: list[dict[str, Any]] = []
    total_debit = ZERO
    total_credit = ZERO
    for account in accounts:
        debit, credit = totals[account.id]
        net = debit - credit
        if net == 0:
            continue
        row_debit = net if net > 0 else ZERO
        row_credit = -net if net < 0 else ZERO
        total_debit += row_debit
        total_credit += row_credit
        rows.append(
            {
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "type": account.type,
                "debit": row_debit,
                "credit": row_credit,
                "balance": compute_account_balance(account.type, debit, credit),
            }
        )
    return {
        "as_of": as_of,
        "rows": rows,
        "total_debit": total_debit,
        "total_credit": total_credit,
        "balanced": total_debit == total_credit,
    }


def get_account_ledger_balances(
    db: Session,
    *,
    account_id: Optional[int] = None,
    as_of: Optional[date] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    cost_center_id: Optional[int] = None,
    project_id: Optional[int] = None,
) -> list[dict[str, Any]]:
    """Debit and credit totals per account, read from the ledger rather than the cached balance.

    A requested ``account_id`` is always returned, with zero totals when it
    has no matching postings; otherwise only accounts with activity appear.
    """
    totals = _ledger_totals(
        db,
        as_of=as_of,
        start_date=start_date,
        end_date=end_date,
        account_id=account_id,
        cost_center_id=cost_center_id,
        project_id=project_id,
    )
    if account_id is not None:
        account = db.query(Account).filter(Account.id == account_id).first()
        if not account:
            raise UnknownReferenceError("Account not found.")
        accounts = [account]
    elif totals:
        accounts = db.query(Account).filter(Account.id.in_(list(totals))).order_by(Account.code.asc()).all()
    else:
        accounts = []

    rows = []
    for account in accounts:
        debit, credit = totals.get(account.id, (ZERO, ZERO))
        rows.append(
            {
                "account_id": account.id,
                "code": account.code,
                "name": account.name,
                "type": account.type,
                "debit": debit,
                "credit": credit,
                "balance": compute_account_balance(account.type, debit, credit),
            }
        )
    return rows


def get_balance_sheet(db: Session, as_of: date) -> dict[str, Any]:
    accounts = db.query(Account).order_by(Account.code.asc()).all()
    balances = _signed_balances(accounts, _ledger_totals(db, as_of=as_of))
    rollups = rollup_balances(accounts, balances)

    sections: dict[str, list[dict[str, Any]]] = {"ASSET": [], "LIABILITY": [], "EQUITY": []}
    section_totals = {key: ZERO for key in sections}
    income = ZERO
    expenses = ZERO
    for account in accounts:
        balance = balances[account.id]
        if account.type == "INCOME":
            income += balance
            continue
        if account.type == "EXPENSE":
            expenses += balance
            continue
        if account.type not in sections:
            continue
        section_totals[account.type] += balance
        if rollups[account.id] != 0 or balance != 0:
            sections[account.type].append(_account_row(account, balance, rollups[account.id]))

    current_earnings = income - expenses
    total_equity = section_totals["EQUITY"] + current_earnings
    total_liabilities_and_equity = section_totals["LIABILITY"] + total_equity
    return {
        "as_of": as_of,
        "assets": sections["ASSET"],
        "liabilities": sections["LIABILITY"],
        "equity": sections["EQUITY"],
        "current_earnings": current_earnings,
        "total_assets": section_totals["ASSET"],
        "total_liabilities": section_totals["LIABILITY"],
        "total_equity": total_equity,
        "total_liabilities_and_equity": total_liabilities_and_equity,
        "balanced": section_totals["ASSET"] == total_liabilities_and_equity,
    }


def get_profit_and_loss(db: Session, start_date: date, end_date: date) -> dict[str, Any]:
    if end_date < start_date:
        raise LedgerValidationError("end_date must not be before start_date.")
    accounts = (
        db.query(Account)
        .filter(Account.type.in_(["INCOME", "EXPENSE"]))
        .order_by(Account.code.asc())
        .all()
    )
    balances = _signed_balances(accounts, _ledger_totals(db, start_date=start_date, end_date=end_date))
    rollups = rollup_balances(accounts, balances)

    income_rows: list[dict[str, Any]] = []
    expense_rows: list[dict[str, Any]] = []
    total_income = ZERO
    total_expenses = ZERO
    for account in accounts:
        balance = balances[account.id]
        if balance == 0 and rollups[account.id] == 0:
            continue
        row = _account_row(account, balance, rollups[account.id])
        if account.type == "INCOME":
            income_rows.append(row)
            total_income += balance
        else:
            expense_rows.append(row)
            total_expenses += balance

    return {
        "start_date": start_date,
        "end_date": end_date,
        "income": income_rows,
        "expenses": expense_rows,
        "total_income": total_income,
        "total_expenses": total_expenses,
        "net_profit": total_income - total_expenses,
    }


def is_cash_account(account: Account) -> bool:
    if account.type != "ASSET":
        return False
    return account.code == settings.cash_account_code or _normalize_subtype(account.subtype) in CASH_SUBTYPES


def classify_cash_flow(account: Account) -> str:
    """Cash flow section for movements against ``account``."""
    subtype = _normalize_subtype(account.subtype)
    if account.type == "EQUITY":
        return "financing"
    if account.type == "ASSET" and subtype in INVESTING_ASSET_SUBTYPES:
        return "investing"
    if account.type == "LIABILITY" and subtype in FINANCING_LIABILITY_SUBTYPES:
        return "financing"
    return "operating"


def get_cash_flow(db: Session, start_date: date, end_date: date) -> dict[str, Any]:
    if end_date < start_date:
        raise LedgerValidationError("end_date must not be before start_date.")
    accounts = {account.id: account for account in db.query(Account).all()}
    cash_ids = {account_id for account_id, account in accounts.items() if is_cash_account(account)}

    opening_totals = _ledger_totals(db, as_of=start_date - timedelta(days=1))
    opening_cash = sum(
        (opening_totals[account_id][0] - opening_totals[account_id][1] for account_id in cash_ids if account_id in opening_totals),
        ZERO,
    )

    entries = (
        db.query(JournalEntry)
        .options(selectinload(JournalEntry.lines))
        .filter(
            JournalEntry.status.in_(LEDGER_STATUSES),
            JournalEntry.entry_date >= start_date,
            JournalEntry.entry_date <= end_date,
        )
        .all()
    )

    by_section: dict[str, dict[int, Decimal]] = {"operating": {}, "investing": {}, "financing": {}}
    for entry in entries:
        if not any(line.account_id in cash_ids for line in entry.lines):
            continue
        for line in entry.lines:
            if line.account_id in cash_ids:
                continue
            account = accounts[line.account_id]
            amount = money(line.credit) - money(line.debit)
            section = by_section[classify_cash_flow(account)]
            section[account.id] = section.get(account.id, ZERO) + amount

    sections: dict[str, dict[str, Any]] = {}
    net_change = ZERO
    for name, amounts in by_section.items():
        lines = [
            {
                "account_id": account_id,
                "code": accounts[account_id].code,
                "name": accounts[account_id].name,
                "amount": amount,
            }
            for account_id, amount in sorted(amounts.items(), key=lambda item: accounts[item[0]].code)
            if amount != 0
        ]
        total = sum((line["amount"] for line in lines), ZERO)
        net_change += total
        sections[name] = {"total": total, "lines": lines}

    return {
        "start_date": start_date,
        "end_date": end_date,
        "operating": sections["operating"],
        "investing": sections["investing"],
        "financing": sections["financing"],
        "net_change": net_change,
        "opening_cash": opening_cash,
        "closing_cash": opening_cash + net_change,
    }


def get_subledger_balances(db: Session, party_type: str, as_of: Optional[date] = None) -> list[dict[str, Any]]:
    """Per-party balance on the receivable or payable control account."""
    party_type = party_type.upper()
    if party_type not in {"CUSTOMER", "VENDOR"}:
        raise LedgerValidationError("party_type must be CUSTOMER or VENDOR.")
    code = settings.accounts_receivable_code if party_type == "CUSTOMER" else settings.accounts_payable_code
    control = db.query(Account).filter(Account.code == code).first()
    if not control:
        return []

    query = (
        db.query(
            Party.id.label("party_id"),
            Party.name.label("party_name"),
            func.coalesce(func.sum(JournalLine.debit), 0).label("debit"),
            func.coalesce(func.sum(JournalLine.credit), 0).label("credit"),
        )
        .join(JournalLine, JournalLine.party_id == Party.id)
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(
            JournalLine.account_id == control.id,
            JournalEntry.status.in_(LEDGER_STATUSES),
            Party.type == party_type,
        )
    )
    if as_of is not None:
        query = query.filter(JournalEntry.entry_date <= as_of)
    rows = query.group_by(Party.id, Party.name).order_by(Party.name.asc()).all()
    return [
        {
            "party_id": row.party_id,
            "party_name": row.party_name,
            "debit": money(row.debit),
            "credit": money(row.credit),
            "balance": compute_account_balance(control.type, money(row.debit), money(row.credit)),
        }
        for row in rows
    ]


def verify_account_balances(db: Session) -> dict[str, Any]:
    """Compare each cached account balance with the sum of its posted lines."""
    accounts = db.query(Account).order_by(Account.code.asc()).all()
    expected = _signed_balances(accounts, _ledger_totals(db))
    mismatches = [
        {
            "account_id": account.id,
            "code": account.code,
            "cached_balance": money(account.balance),
            "ledger_balance": expected[account.id],
        }
        for account in accounts
        if money(account.balance) != expected[account.id]
    ]
    return {"consistent": not mismatches, "checked": len(accounts), "mismatches": mismatches}
