# backend/routes/cart.py
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.cart import CartItem
from models.job import Job
from models.product import Part
from models.users import User
from routes.parts import part_to_out
from schemas.cart import CartAddItem, CartItemOut, CartOut, CartUpdateItem
from utils.audit import client_ip, write_log
from utils.errors import AuthorizationDenied, NotFoundError, ValidationFailed
from utils.guards import require_cart_access
from utils.permissions import can_access_job, price_visible

router = APIRouter(prefix="/cart", tags=["Cart"])


def _item_to_out(item: CartItem, show_prices: bool) -> CartItemOut:
    return CartItemOut(
        id=item.id,
        part_id=item.part_id,
        job_id=item.job_id,
        quantity=item.quantity,
        part=part_to_out(item.part, show_prices) if item.part else None,
    )


def _cart_to_out(db: Session, user: User) -> CartOut:
    items = db.query(CartItem).filter(CartItem.user_id == user.id).order_by(CartItem.id.asc()).all()
    show = price_visible(user)
    return CartOut(items=[_item_to_out(it, show) for it in items], count=sum(it.quantity for it in items))


def _own_item(db: Session, item_id: int, user: User) -> CartItem:
    item = db.query(CartItem).filter(CartItem.id == item_id, CartItem.user_id == user.id).first()
    if not item:
        raise NotFoundError("Cart item not found")
    return item


@router.get("", response_model=CartOut)
def get_cart(db: Session = Depends(get_db), current_user: User = Depends(require_cart_access)):
    return _cart_to_out(db, current_user)


# Add a part; an existing line for the same part and job is incremented
@router.post("", response_model=CartItemOut, status_code=status.HTTP_201_CREATED)
def add_to_cart(
    payload: CartAddItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_cart_access),
):
    part = db.query(Part).filter(Part.id == payload.part_id).first()
    if not part:
        raise NotFoundError("Part not found")

    if payload.job_id is not None:
        job = db.query(Job).filter(Job.id == payload.job_id).first()
        if job is None:
            raise NotFoundError("Job not found")
        if not can_access_job(current_user, job):
            raise AuthorizationDenied("Job access denied")

    item = db.query(CartItem).filter(
        CartItem.user_id == current_user.id,
        CartItem.part_id == payload.part_id,
        CartItem.job_id.is_(None) if payload.job_id is None else CartItem.job_id == payload.job_id,
    ).first()

    if item:
        item.quantity += payload.quantity
    else:
        item = CartItem(user_id=current_user.id, part_id=payload.part_id,
                        job_id=payload.job_id, quantity=payload.quantity)
        db.add(item)

    db.commit()
    db.refresh(item)

    write_log(db, user_id=current_user.id, action="CART_ADD", resource="cart",
              ip=client_ip(request),
              meta={"part_id": payload.part_id, "job_id": payload.job_id, "quantity": item.quantity})
    return _item_to_out(item, price_visible(current_user))


@router.put("/{item_id}")
def update_cart_item(
    item_id: int,
    payload: CartUpdateItem,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_cart_access),
):
    if payload.quantity < 0:
        raise ValidationFailed("Quantity cannot be negative")

    item = _own_item(db, item_id, current_user)

    if payload.quantity == 0:
        db.delete(item)
        db.commit()
        write_log(db, user_id=current_user.id, action="CART_REMOVE", resource="cart",
                  ip=client_ip(request), meta={"item_id": item_id})
        return {"success": True, "removed": True, "id": item_id}

    item.quantity = payload.quantity
    db.commit()
    db.refresh(item)
    write_log(db, user_id=current_user.id, action="CART_UPDATE", resource="cart",
              ip=client_ip(request), meta={"item_id": item_id, "quantity": item.quantity})
    return _item_to_out(item, price_visible(current_user))


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_cart_item(
    item_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_cart_access),
):
    item = _own_item(db, item_id, current_user)
    db.delete(item)
    db.commit()
    write_log(db, user_id=current_user.id, action="CART_REMOVE", resource="cart",
              ip=client_ip(request), meta={"item_id": item_id})


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
def clear_cart(
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_cart_access),
):
    removed = db.query(CartItem).filter(CartItem.user_id == current_user.id).delete()
    db.commit()
    write_log(db, user_id=current_user.id, action="CART_CLEAR", resource="cart",
              ip=client_ip(request), meta={"removed": removed})
