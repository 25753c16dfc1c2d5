from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session, selectinload

from app.auth import require_module
from app.db import get_db
from app.models import TaxCode, TaxGroup, TaxGroupTax
from app.module_keys import ModuleKey
from app.routers.errors import ledger_errors
from app.tax import schemas
from app.tax.service import (
    calculate_tax,
    create_tax_code,
    create_tax_group,
    get_tax_group,
    group_codes,
    group_total_rate,
    update_tax_code,
    update_tax_group,
)

router = APIRouter(prefix="/api/tax", tags=["tax"], dependencies=[Depends(require_module(ModuleKey.TAX.value))])


def _group_response(group: TaxGroup) -> schemas.TaxGroupResponse:
    codes = group_codes(group)
    return schemas.TaxGroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        is_active=group.is_active,
        is_inclusive=bool(codes and codes[0].is_inclusive),
        total_rate=group_total_rate(group),
        taxes=[schemas.TaxCodeResponse.model_validate(code) for code in codes],
    )


def _load_group(db: Session, tax_group_id: int) -> TaxGroup:
    group = get_tax_group(db, tax_group_id)
    if not group:
        raise HTTPException(status_code=404, detail="Tax group not found.")
    return group


@router.get("/codes", response_model=List[schemas.TaxCodeResponse])
def list_tax_codes(active: Optional[bool] = None, db: Session = Depends(get_db)):
    query = db.query(TaxCode)
    if active is not None:
        query = query.filter(TaxCode.is_active.is_(active))
    return query.order_by(TaxCode.code.asc()).all()


@router.post("/codes", response_model=schemas.TaxCodeResponse, status_code=status.HTTP_201_CREATED)
def create_tax_code_endpoint(payload: schemas.TaxCodeCreate, db: Session = Depends(get_db)):
    with ledger_errors(db, "Tax code already exists."):
        tax_code = create_tax_code(db, payload.model_dump())
        db.commit()
    db.refresh(tax_code)
    return tax_code


@router.get("/codes/{tax_code_id}", response_model=schemas.TaxCodeResponse)
def get_tax_code(tax_code_id: int, db: Session = Depends(get_db)):
    tax_code = db.query(TaxCode).filter(TaxCode.id == tax_code_id).first()
    if not tax_code:
        raise HTTPException(status_code=404, detail="Tax code not found.")
    return tax_code


@router.patch("/codes/{tax_code_id}", response_model=schemas.TaxCodeResponse)
def update_tax_code_endpoint(tax_code_id: int, payload: schemas.TaxCodeUpdate, db: Session = Depends(get_db)):
    with ledger_errors(db, "Tax code already exists."):
        tax_code = update_tax_code(db, tax_code_id, payload.model_dump(exclude_unset=True))
        db.commit()
    db.refresh(tax_code)
    return tax_code


@router.get("/groups", response_model=List[schemas.TaxGroupResponse])
def list_tax_groups(db: Session = Depends(get_db)):
    groups = (
        db.query(TaxGroup)
        .options(selectinload(TaxGroup.members).selectinload(TaxGroupTax.tax_code))
        .order_by(TaxGroup.name.asc())
        .all()
    )
    return [_group_response(group) for group in groups]


@router.post("/groups", response_model=schemas.TaxGroupResponse, status_code=status.HTTP_201_CREATED)
def create_tax_group_endpoint(payload: schemas.TaxGroupCreate, db: Session = Depends(get_db)):
    with ledger_errors(db, "Tax group already exists."):
        group = create_tax_group(db, payload.model_dump())
        db.commit()
    return _group_response(_load_group(db, group.id))


@router.get("/groups/{tax_group_id}", response_model=schemas.TaxGroupResponse)
def get_tax_group_endpoint(tax_group_id: int, db: Session = Depends(get_db)):
    return _group_response(_load_group(db, tax_group_id))


@router.patch("/groups/{tax_group_id}", response_model=schemas.TaxGroupResponse)
def update_tax_group_endpoint(tax_group_id: int, payload: schemas.TaxGroupUpdate, db: Session = Depends(get_db)):
    with ledger_errors(db, "Tax group already exists."):
        update_tax_group(db, tax_group_id, payload.model_dump(exclude_unset=True))
        db.commit()
    return _group_response(_load_group(db, tax_group_id))


@router.post("/calculate", response_model=schemas.TaxCalculationResponse)
def calculate_tax_endpoint(payload: schemas.TaxCalculationRequest, db: Session = Depends(get_db)):
    with ledger_errors(db):
        result = calculate_tax(
            db,
            payload.amount,
            tax_code_id=payload.tax_code_id,
            tax_group_id=payload.tax_group_id,
            tax_rate=payload.tax_rate,
        )
    return schemas.TaxCalculationResponse.model_validate(result)
