# backend/routes/businesses.py
from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.company import Business
from models.order import Order, OrderStatus
from models.product import Part
from models.users import User
from schemas.company import BusinessCreate, BusinessOut, BusinessUpdate, StatsOut
from utils.audit import client_ip, write_log
from utils.errors import NotFoundError
from utils.guards import company_from_path, require_company_access, require_supplier

router = APIRouter(tags=["Businesses"])

# Threshold for low stock alert
LOW_STOCK_THRESHOLD = 10


@router.get("/businesses", response_model=List[BusinessOut])
def list_businesses(db: Session = Depends(get_db), current_user: User = Depends(require_supplier)):
    return db.query(Business).order_by(Business.name.asc()).all()


@router.post("/businesses", response_model=BusinessOut, status_code=status.HTTP_201_CREATED)
def create_business(payload: BusinessCreate, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_supplier)):
    business = Business(**payload.model_dump())
    db.add(business)
    db.commit()
    db.refresh(business)
    write_log(db, user_id=current_user.id, action="BUSINESS_CREATE", resource="businesses",
              ip=client_ip(request), meta={"business_id": business.id, "price_tier": business.price_tier})
    return business


# Company profile for its own PM and approved tradies
@router.get("/businesses/{business_id}", response_model=BusinessOut)
def get_business(business_id: int, db: Session = Depends(get_db),
                 current_user: User = Depends(require_company_access(company_from_path))):
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise NotFoundError("Business not found")
    return business


@router.put("/businesses/{business_id}", response_model=BusinessOut)
def update_business(business_id: int, payload: BusinessUpdate, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_supplier)):
    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise NotFoundError("Business not found")

    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is not None:
            setattr(business, field, value)
    db.commit()
    db.refresh(business)
    write_log(db, user_id=current_user.id, action="BUSINESS_UPDATE", resource="businesses",
              ip=client_ip(request), meta={"business_id": business.id, "fields": sorted(changes)})
    return business


# === Supplier dashboard summary ===

@router.get("/stats", response_model=StatsOut)
def get_stats(db: Session = Depends(get_db), current_user: User = Depends(require_supplier)):
    # Orders cleared by a PM and waiting for the supplier to pick them up
    new_orders = db.query(Order).filter(
        Order.status.in_([OrderStatus.APPROVED.value, OrderStatus.MODIFIED.value])
    ).count()
    pending_shipments = db.query(Order).filter(Order.status == OrderStatus.PROCESSING.value).count()
    return StatsOut(
        new_orders=new_orders,
        pending_shipments=pending_shipments,
        active_customers=db.query(Business).count(),
        low_stock_parts=db.query(Part).filter(Part.in_stock < LOW_STOCK_THRESHOLD).count(),
    )
