# backend/routes/orders.py
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.order import Order
from models.users import User, Role
from schemas.order import (
    OrderCreatePayload, OrderHistoryOut, OrderItemOut, OrderResponse, OrderStatusPatch,
)
from utils.audit import client_ip, write_log
from utils.errors import AuthorizationDenied, NotFoundError
from utils.guards import require_order_permissions, require_supplier
from utils.order_workflow import place_order, update_order_status
from utils.permissions import is_company_member, permissions_for, price_visible
from utils.session import get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])


def order_to_out(order: Order, show_prices: bool) -> OrderResponse:
    items = []
    for it in order.items:
        items.append(OrderItemOut(
            id=it.id,
            part_id=it.part_id,
            item_code=it.part.item_code if it.part else None,
            description=it.part.description if it.part else None,
            quantity=it.quantity,
            price_at_order=it.price_at_order if show_prices else None,
            line_total=round(it.quantity * it.price_at_order, 2) if show_prices else None,
        ))
    return OrderResponse(
        id=order.id,
        business_id=order.business_id,
        job_id=order.job_id,
        status=order.status,
        requested_by=order.requested_by,
        approved_by=order.approved_by,
        approval_date=order.approval_date,
        rejection_reason=order.rejection_reason,
        notes=order.notes,
        customer_name=order.customer_name,
        order_number=order.order_number,
        total=order.total if show_prices else None,
        created_at=order.created_at,
        items=items,
        history=[OrderHistoryOut.model_validate(h) for h in order.history],
    )


def _can_see(user: User, order: Order) -> bool:
    if user.role == Role.SUPPLIER.value:
        return True
    if order.requested_by == user.id:
        return True
    return is_company_member(user, order.business_id)


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_order_permissions),
):
    order = place_order(
        db, current_user,
        job_id=payload.job_id,
        order_number=payload.order_number,
        customer_name=payload.customer_name,
        notes=payload.notes,
    )
    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders",
              ip=client_ip(request),
              meta={"order_id": order.id, "status": order.status, "items": len(order.items)})
    return order_to_out(order, price_visible(current_user))


@router.get("", response_model=List[OrderResponse])
def list_orders(
    limit: int = Query(50, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Order)
    if current_user.role == Role.SUPPLIER.value:
        pass
    elif permissions_for(current_user).can_view_company_jobs:
        query = query.filter(Order.business_id == current_user.business_id)
    else:
        query = query.filter(Order.requested_by == current_user.id)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
    show = price_visible(current_user)
    return [order_to_out(o, show) for o in orders]


@router.get("/{order_id}", response_model=OrderResponse)
def get_order(order_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    if not _can_see(current_user, order):
        raise AuthorizationDenied("Order access denied")
    return order_to_out(order, price_visible(current_user))


# Supplier moves an approved order through processing, shipped, completed
@router.put("/{order_id}", response_model=OrderResponse)
def set_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    order = update_order_status(db, order_id, current_user, payload.status, payload.notes)
    write_log(db, user_id=current_user.id, action="ORDER_STATUS", resource="orders",
              ip=client_ip(request), meta={"order_id": order.id, "status": order.status})
    return order_to_out(order, True)
