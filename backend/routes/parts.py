# backend/routes/parts.py
from typing import List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, Query, Request, UploadFile, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models.order import OrderItem
from models.cart import CartItem
from models.job import JobPart
from models.product import Favorite, Part
from models.users import User
from schemas.product import PartCreate, PartOut, PartUpdate
from utils.audit import client_ip, write_log
from utils.errors import ConflictError, NotFoundError, ValidationFailed
from utils.guards import require_supplier
from utils.parts_import import import_parts, read_price_list
from utils.permissions import price_visible
from utils.session import get_optional_user

router = APIRouter(prefix="/parts", tags=["Parts"])

PRICE_FIELDS = ("price_t1", "price_t2", "price_t3")


def part_to_out(part: Part, show_prices: bool) -> PartOut:
    out = PartOut.model_validate(part)
    if not show_prices:
        for field in PRICE_FIELDS:
            setattr(out, field, None)
    return out


def _get_part(db: Session, part_id: int) -> Part:
    part = db.query(Part).filter(Part.id == part_id).first()
    if not part:
        raise NotFoundError("Part not found")
    return part


@router.get("", response_model=List[PartOut])
def list_parts(
    type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    query = db.query(Part)
    if type:
        query = query.filter(Part.type == type)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Part.item_code.ilike(like),
            Part.description.ilike(like),
            Part.pipe_size.ilike(like),
        ))
    show = price_visible(current_user)
    return [part_to_out(p, show) for p in query.order_by(Part.item_code.asc()).all()]


@router.get("/popular", response_model=List[PartOut])
def popular_parts(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    parts = db.query(Part).filter(Part.is_popular.is_(True)).order_by(Part.id.asc()).limit(limit).all()
    show = price_visible(current_user)
    return [part_to_out(p, show) for p in parts]


@router.get("/{part_id}", response_model=PartOut)
def get_part(
    part_id: int,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    return part_to_out(_get_part(db, part_id), price_visible(current_user))


# --- Supplier catalog management ---

@router.post("", response_model=PartOut, status_code=status.HTTP_201_CREATED)
def create_part(
    payload: PartCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    code = payload.item_code.strip()
    if db.query(Part).filter(Part.item_code == code).first():
        raise ValidationFailed(f"Part with item code {code} already exists")

    part = Part(**payload.model_dump())
    part.item_code = code
    db.add(part)
    db.commit()
    db.refresh(part)
    write_log(db, user_id=current_user.id, action="PART_CREATE", resource="parts",
              ip=client_ip(request), meta={"part_id": part.id, "item_code": part.item_code})
    return part_to_out(part, True)


@router.put("/{part_id}", response_model=PartOut)
def update_part(
    part_id: int,
    payload: PartUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    part = _get_part(db, part_id)
    changes = payload.model_dump(exclude_unset=True)
    if "item_code" in changes:
        code = (changes["item_code"] or "").strip()
        clash = db.query(Part).filter(Part.item_code == code, Part.id != part.id).first()
        if not code or clash:
            raise ValidationFailed("Item code is empty or already used")
        changes["item_code"] = code
    for field, value in changes.items():
        setattr(part, field, value)
    db.commit()
    db.refresh(part)
    write_log(db, user_id=current_user.id, action="PART_UPDATE", resource="parts",
              ip=client_ip(request), meta={"part_id": part.id, "fields": sorted(changes)})
    return part_to_out(part, True)


@router.delete("/{part_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_part(
    part_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    part = _get_part(db, part_id)
    if db.query(OrderItem).filter(OrderItem.part_id == part.id).first():
        raise ConflictError("Part is referenced by existing orders and cannot be deleted")
    db.query(Favorite).filter(Favorite.part_id == part.id).delete()
    db.query(CartItem).filter(CartItem.part_id == part.id).delete()
    db.query(JobPart).filter(JobPart.part_id == part.id).delete()
    db.delete(part)
    db.commit()
    write_log(db, user_id=current_user.id, action="PART_DELETE", resource="parts",
              ip=client_ip(request), meta={"part_id": part_id})


# Bulk upsert from a supplier price list
@router.post("/import")
async def import_price_list(
    request: Request,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    content = await file.read()
    try:
        df = read_price_list(content)
    except (ValueError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationFailed(f"Could not read price list: {e}")
    result = import_parts(db, df)
    write_log(db, user_id=current_user.id, action="PART_IMPORT", resource="parts",
              ip=client_ip(request),
              meta={"file": file.filename, "created": result.created, "updated": result.updated,
                    "skipped": len(result.skipped)})
    return {"created": result.created, "updated": result.updated, "skipped": result.skipped}
