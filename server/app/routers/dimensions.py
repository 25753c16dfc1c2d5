from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.auth import require_module
from app.chart_of_accounts import schemas
from app.db import get_db
from app.models import CostCenter, Project
from app.module_keys import ModuleKey
from app.routers.errors import ledger_errors

router = APIRouter(
    prefix="/api",
    tags=["dimensions"],
    dependencies=[Depends(require_module(ModuleKey.CHART_OF_ACCOUNTS.value))],
)


def _update(db: Session, model, record_id: int, payload: schemas.DimensionUpdate, label: str):
    record = db.query(model).filter(model.id == record_id).first()
    if not record:
        raise HTTPException(status_code=404, detail=f"{label} not found.")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(record, key, value)
    db.commit()
    db.refresh(record)
    return record


@router.get("/cost-centers", response_model=List[schemas.DimensionResponse])
def list_cost_centers(active: Optional[bool] = None, db: Session = Depends(get_db)):
    query = db.query(CostCenter)
    if active is not None:
        query = query.filter(CostCenter.is_active.is_(active))
    return query.order_by(CostCenter.code.asc()).all()


@router.post("/cost-centers", response_model=schemas.DimensionResponse, status_code=status.HTTP_201_CREATED)
def create_cost_center(payload: schemas.DimensionCreate, db: Session = Depends(get_db)):
    cost_center = CostCenter(**payload.model_dump())
    with ledger_errors(db, "Cost center code already exists."):
        db.add(cost_center)
        db.commit()
    db.refresh(cost_center)
    return cost_center


@router.patch("/cost-centers/{cost_center_id}", response_model=schemas.DimensionResponse)
def update_cost_center(cost_center_id: int, payload: schemas.DimensionUpdate, db: Session = Depends(get_db)):
    return _update(db, CostCenter, cost_center_id, payload, "Cost center")


@router.get("/projects", response_model=List[schemas.DimensionResponse])
def list_projects(active: Optional[bool] = None, db: Session = Depends(get_db)):
    query = db.query(Project)
    if active is not None:
        query = query.filter(Project.is_active.is_(active))
    return query.order_by(Project.code.asc()).all()


@router.post("/projects", response_model=schemas.DimensionResponse, status_code=status.HTTP_201_CREATED)
def create_project(payload: schemas.DimensionCreate, db: Session = Depends(get_db)):
    project = Project(**payload.model_dump())
    with ledger_errors(db, "Project code already exists."):
        db.add(project)
        db.commit()
    db.refresh(project)
    return project


@router.patch("/projects/{project_id}", response_model=schemas.DimensionResponse)
def update_project(project_id: int, payload: schemas.DimensionUpdate, db: Session = Depends(get_db)):
    return _update(db, Project, project_id, payload, "Project")
