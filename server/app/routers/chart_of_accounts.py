from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.auth import require_module
from app.chart_of_accounts import schemas
from app.chart_of_accounts.service import build_tree, create_account, delete_account, update_account
from app.db import get_db
from app.models import Account
from app.module_keys import ModuleKey
from app.routers.errors import ledger_errors

router = APIRouter(
    prefix="/api/chart-of-accounts",
    tags=["chart-of-accounts"],
    dependencies=[Depends(require_module(ModuleKey.CHART_OF_ACCOUNTS.value))],
)


def _serialize_account(account: Account) -> schemas.ChartAccountResponse:
    parent_summary = None
    if account.parent:
        parent_summary = schemas.AccountParentSummary(id=account.parent.id, name=account.parent.name, code=account.parent.code)
    return schemas.ChartAccountResponse(
        id=account.id,
        name=account.name,
        code=account.code,
        type=account.type,
        subtype=account.subtype,
        normal_balance=account.normal_balance,
        description=account.description,
        is_active=account.is_active,
        is_system_account=account.is_system_account,
        balance=account.balance,
        parent_account_id=account.parent_id,
        parent_account=parent_summary,
        created_at=account.created_at,
        updated_at=account.updated_at,
    )


def _load_account(db: Session, account_id: int) -> Account:
    account = db.query(Account).options(selectinload(Account.parent)).filter(Account.id == account_id).first()
    if not account:
        raise HTTPException(status_code=404, detail="Account not found.")
    return account


@router.get("", response_model=List[schemas.ChartAccountResponse])
def list_chart_of_accounts(
    type: Optional[schemas.AccountType] = None,
    active: Optional[bool] = None,
    parent_id: Optional[int] = None,
    q: Optional[str] = None,
    db: Session = Depends(get_db),
):
    query = db.query(Account).options(selectinload(Account.parent))
    if type:
        query = query.filter(Account.type == type)
    if active is not None:
        query = query.filter(Account.is_active.is_(active))
    if parent_id is not None:
        query = query.filter(Account.parent_id == parent_id)
    if q:
        like = f"%{q}%"
        query = query.filter((Account.name.ilike(like)) | (Account.code.ilike(like)))

    accounts = query.order_by(Account.type.asc(), Account.code.asc()).all()
    return [_serialize_account(account) for account in accounts]


@router.get("/tree", response_model=List[schemas.ChartAccountTreeNode])
def get_chart_of_accounts_tree(db: Session = Depends(get_db)):
    return build_tree(db.query(Account).all())


@router.post("", response_model=schemas.ChartAccountResponse, status_code=status.HTTP_201_CREATED)
def create_chart_account(payload: schemas.ChartAccountCreate, db: Session = Depends(get_db)):
    data = payload.model_dump()
    data["parent_id"] = data.pop("parent_account_id")
    with ledger_errors(db, "Account code already exists."):
        account = create_account(db, data)
        db.commit()
    return _serialize_account(_load_account(db, account.id))


@router.get("/{account_id}", response_model=schemas.ChartAccountResponse)
def get_chart_account(account_id: int, db: Session = Depends(get_db)):
    return _serialize_account(_load_account(db, account_id))


@router.put("/{account_id}", response_model=schemas.ChartAccountResponse)
@router.patch("/{account_id}", response_model=schemas.ChartAccountResponse)
def update_chart_account(account_id: int, payload: schemas.ChartAccountUpdate, db: Session = Depends(get_db)):
    data = payload.model_dump(exclude_unset=True)
    if "parent_account_id" in data:
        data["parent_id"] = data.pop("parent_account_id")
    with ledger_errors(db, "Account code already exists."):
        update_account(db, account_id, data)
        db.commit()
    return _serialize_account(_load_account(db, account_id))


@router.delete("/{account_id}", response_model=dict)
def delete_chart_account(account_id: int, db: Session = Depends(get_db)):
    with ledger_errors(db, "Cannot delete account that is in use."):
        delete_account(db, account_id)
        db.commit()
    return {"status": "ok"}
