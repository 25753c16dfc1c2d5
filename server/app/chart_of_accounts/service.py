"""Account lookups, hierarchy checks and rollups for the chart of accounts."""
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.exceptions import ConflictError, LedgerValidationError, UnknownReferenceError
from app.models import DEBIT_NORMAL_TYPES, Account, CostCenter, DocumentLine, JournalLine, Project, TaxCode

ACCOUNT_FIELDS = ["code", "name", "type", "subtype", "description", "is_active", "parent_id"]


def normal_balance_for(account_type: str) -> str:
    return "DEBIT" if (account_type or "").upper() in DEBIT_NORMAL_TYPES else "CREDIT"


def get_account(db: Session, account_id: int) -> Account:
    account = db.query(Account).filter(Account.id == account_id).first()
    if not account:
        raise UnknownReferenceError(f"Account {account_id} not found.")
    return account


def get_account_by_code(db: Session, code: str) -> Account:
    account = db.query(Account).filter(Account.code == code).first()
    if not account:
        raise UnknownReferenceError(f"Account with code '{code}' not found.")
    if not account.is_active:
        raise UnknownReferenceError(f"Account with code '{code}' is inactive.")
    return account


def require_active_accounts(db: Session, account_ids: Iterable[int]) -> dict[int, Account]:
    """Load every referenced account, rejecting unknown or inactive ids."""
    wanted = set(account_ids)
    if not wanted:
        return {}
    accounts = db.query(Account).filter(Account.id.in_(wanted)).all()
    by_id = {account.id: account for account in accounts}
    missing = sorted(wanted - set(by_id))
    if missing:
        raise UnknownReferenceError(f"Accounts not found: {', '.join(str(i) for i in missing)}")
    inactive = sorted(account.id for account in accounts if not account.is_active)
    if inactive:
        raise UnknownReferenceError(f"Accounts are inactive: {', '.join(str(i) for i in inactive)}")
    return by_id


def require_dimensions(
    db: Session,
    cost_center_ids: Iterable[Optional[int]] = (),
    project_ids: Iterable[Optional[int]] = (),
) -> None:
    for model, label, ids in ((CostCenter, "Cost centers", cost_center_ids), (Project, "Projects", project_ids)):
        wanted = {value for value in ids if value is not None}
        if not wanted:
            continue
        found = {row.id for row in db.query(model.id).filter(model.id.in_(wanted), model.is_active.is_(True)).all()}
        missing = sorted(wanted - found)
        if missing:
            raise UnknownReferenceError(f"{label} not found or inactive: {', '.join(str(i) for i in missing)}")


def _parent_map(db: Session) -> dict[int, Optional[int]]:
    return {row.id: row.parent_id for row in db.query(Account.id, Account.parent_id).all()}


def get_children(db: Session, account_id: int) -> list[Account]:
    return db.query(Account).filter(Account.parent_id == account_id).order_by(Account.code.asc()).all()


def get_descendant_ids(db: Session, account_id: int) -> set[int]:
    children_by_parent: dict[int, list[int]] = {}
    for child_id, parent_id in _parent_map(db).items():
        if parent_id is not None:
            children_by_parent.setdefault(parent_id, []).append(child_id)

    found: set[int] = set()
    stack = list(children_by_parent.get(account_id, []))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(children_by_parent.get(current, []))
    return found


def get_ancestor_ids(db: Session, account_id: int) -> list[int]:
    parents = _parent_map(db)
    ancestors: list[int] = []
    current = parents.get(account_id)
    while current is not None and current not in ancestors:
        ancestors.append(current)
        current = parents.get(current)
    return ancestors


def would_create_cycle(db: Session, account_id: int, new_parent_id: Optional[int]) -> bool:
    if new_parent_id is None:
        return False
    if new_parent_id == account_id:
        return True
    return new_parent_id in get_descendant_ids(db, account_id)


def _validate_parent(db: Session, account_type: str, parent_id: Optional[int]) -> None:
    if parent_id is None:
        return
    parent = get_account(db, parent_id)
    if parent.type != account_type:
        raise LedgerValidationError(
            f"Account type {account_type} does not match parent account type {parent.type}."
        )


def create_account(db: Session, data: dict, *, is_system_account: bool = False) -> Account:
    account_type = data["type"].upper()
    if db.query(Account.id).filter(Account.code == data["code"]).first():
        raise ConflictError("Account code already exists.")
    _validate_parent(db, account_type, data.get("parent_id"))

    account = Account(
        code=data["code"],
        name=data["name"],
        type=account_type,
        subtype=data.get("subtype"),
        description=data.get("description"),
        is_active=data.get("is_active", True),
        parent_id=data.get("parent_id"),
        normal_balance=normal_balance_for(account_type),
        is_system_account=is_system_account,
        balance=Decimal("0.00"),
    )
    db.add(account)
    db.flush()
    return account


def _has_journal_lines(db: Session, account_id: int) -> bool:
    return db.query(JournalLine.id).filter(JournalLine.account_id == account_id).first() is not None


def update_account(db: Session, account_id: int, data: dict) -> Account:
    account = get_account(db, account_id)

    if "type" in data and data["type"] is not None:
        data["type"] = data["type"].upper()
    if account.is_system_account:
        if "type" in data and data["type"] != account.type:
            raise ConflictError("System accounts cannot be re-typed.")
        if "code" in data and data["code"] != account.code:
            raise ConflictError("System account codes cannot be changed.")
        if data.get("is_active") is False:
            raise ConflictError("System accounts cannot be deactivated.")

    new_type = data.get("type") or account.type
    new_parent_id = data["parent_id"] if "parent_id" in data else account.parent_id

    if "parent_id" in data:
        if new_parent_id == account.id:
            raise LedgerValidationError("An account cannot be its own parent.")
        if would_create_cycle(db, account.id, new_parent_id):
            raise LedgerValidationError("Parent assignment would create a cycle in the account hierarchy.")

    if new_type != account.type:
        if get_children(db, account.id):
            raise LedgerValidationError("Cannot change the type of an account that has child accounts.")
        if _has_journal_lines(db, account.id):
            raise ConflictError("Cannot change the type of an account that has journal postings.")
    _validate_parent(db, new_type, new_parent_id)

    if "code" in data and data["code"] != account.code:
        if db.query(Account.id).filter(Account.code == data["code"], Account.id != account.id).first():
            raise ConflictError("Account code already exists.")

    for key in ACCOUNT_FIELDS:
        if key in data and (data[key] is not None or key == "parent_id"):
            setattr(account, key, data[key])
    account.normal_balance = normal_balance_for(account.type)
    db.flush()
    return account


def delete_account(db: Session, account_id: int) -> None:
    account = get_account(db, account_id)
    if account.is_system_account:
        raise ConflictError("System accounts cannot be deleted.")

    in_use = (
        _has_journal_lines(db, account_id)
        or db.query(Account.id).filter(Account.parent_id == account_id).first() is not None
        or db.query(DocumentLine.id).filter(DocumentLine.account_id == account_id).first() is not None
        or db.query(TaxCode.id)
        .filter(or_(TaxCode.sales_account_id == account_id, TaxCode.purchase_account_id == account_id))
        .first()
        is not None
    )
    if in_use:
        raise ConflictError("Cannot delete account that is in use.")
    db.delete(account)
    db.flush()


def rollup_balances(accounts: Iterable[Account], balances: dict[int, Decimal]) -> dict[int, Decimal]:
    """Each account's own balance plus the balances of all its descendants."""
    accounts = list(accounts)
    children_by_parent: dict[int, list[int]] = {}
    for account in accounts:
        if account.parent_id is not None:
            children_by_parent.setdefault(account.parent_id, []).append(account.id)

    totals: dict[int, Decimal] = {}

    def total_for(account_id: int, seen: frozenset) -> Decimal:
        if account_id in totals:
            return totals[account_id]
        total = Decimal(balances.get(account_id, Decimal("0.00")))
        for child_id in children_by_parent.get(account_id, []):
            if child_id not in seen:
                total += total_for(child_id, seen | {child_id})
        totals[account_id] = total
        return total

    for account in accounts:
        total_for(account.id, frozenset({account.id}))
    return totals


def build_tree(accounts: Iterable[Account]) -> list[dict]:
    accounts = sorted(accounts, key=lambda account: account.code or "")
    nodes = {
        account.id: {
            "id": account.id,
            "code": account.code,
            "name": account.name,
            "type": account.type,
            "is_active": account.is_active,
            "is_system_account": account.is_system_account,
            "balance": Decimal(account.balance or 0),
            "children": [],
        }
        for account in accounts
    }
    roots: list[dict] = []
    for account in accounts:
        node = nodes[account.id]
        if account.parent_id is not None and account.parent_id in nodes:
            nodes[account.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots
