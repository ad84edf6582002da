from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import List, Optional
from .. import models, schemas
from ..database import get_db

router = APIRouter(prefix="/customers", tags=["customers"])


def _get_customer_or_404(customer_id: int, db: Session) -> models.Customer:
    customer = db.query(models.Customer).filter(models.Customer.id == customer_id).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.post("/", response_model=schemas.Customer)
def create_customer(customer: schemas.CustomerCreate, db: Session = Depends(get_db)):
    db_customer = models.Customer(**customer.model_dump())
    db.add(db_customer)
    db.commit()
    db.refresh(db_customer)
    return db_customer


@router.get("/", response_model=List[schemas.Customer])
def list_customers(q: Optional[str] = None, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    """List customers by name. `q` matches name or company, case-insensitive."""
    query = db.query(models.Customer)
    if q:
        pattern = f"%{q.strip()}%"
        query = query.filter(or_(models.Customer.name.ilike(pattern), models.Customer.company.ilike(pattern)))
    return query.order_by(models.Customer.name).offset(skip).limit(limit).all()


@router.get("/{customer_id}", response_model=schemas.Customer)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return _get_customer_or_404(customer_id, db)


@router.patch("/{customer_id}", response_model=schemas.Customer)
def update_customer(customer_id: int, update: schemas.CustomerUpdate, db: Session = Depends(get_db)):
    customer = _get_customer_or_404(customer_id, db)
    for field, value in update.model_dump(exclude_unset=True).items():
        setattr(customer, field, value)
    db.commit()
    db.refresh(customer)
    return customer


@router.delete("/{customer_id}")
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    customer = _get_customer_or_404(customer_id, db)
    if customer.quotes:
        raise HTTPException(status_code=409, detail="Customer has quotes and cannot be deleted")
    db.delete(customer)
    db.commit()
    return {"ok": True}
