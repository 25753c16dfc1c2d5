from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.auth import get_current_actor
from app.db import get_db
from app.documents import schemas
from app.models import Party

router = APIRouter(prefix="/api/parties", tags=["parties"], dependencies=[Depends(get_current_actor)])


@router.get("", response_model=List[schemas.PartyResponse])
def list_parties(type: Optional[schemas.PartyType] = None, q: Optional[str] = None, db: Session = Depends(get_db)):
    query = db.query(Party)
    if type:
        query = query.filter(Party.type == type)
    if q:
        query = query.filter(Party.name.ilike(f"%{q}%"))
    return query.order_by(Party.name.asc()).all()


@router.post("", response_model=schemas.PartyResponse, status_code=status.HTTP_201_CREATED)
def create_party(payload: schemas.PartyCreate, db: Session = Depends(get_db)):
    party = Party(**payload.model_dump())
    db.add(party)
    db.commit()
    db.refresh(party)
    return party


@router.get("/{party_id}", response_model=schemas.PartyResponse)
def get_party(party_id: int, db: Session = Depends(get_db)):
    party = db.query(Party).filter(Party.id == party_id).first()
    if not party:
        raise HTTPException(status_code=404, detail="Party not found.")
    return party


@router.patch("/{party_id}", response_model=schemas.PartyResponse)
def update_party(party_id: int, payload: schemas.PartyUpdate, db: Session = Depends(get_db)):
    party = db.query(Party).filter(Party.id == party_id).first()
    if not party:
        raise HTTPException(status_code=404, detail="Party not found.")
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(party, key, value)
    db.commit()
    db.refresh(party)
    return party
