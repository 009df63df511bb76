# utils/order_workflow.py
"""
Order placement and the order approval state machine.

    pending_approval -> approved | rejected | modified   (project manager)
    approved | modified -> processing -> shipped -> completed   (supplier)

Each transition updates the order, appends an OrderHistory row and notifies the
requester inside a single commit; any database error rolls the whole step back.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.cart import CartItem
from models.company import Business
from models.job import Job
from models.order import Order, OrderItem, OrderHistory, OrderStatus, SUPPLIER_STATUSES
from models.users import User, Role
from schemas.notification import OrderRef
from utils.errors import (
    AuthorizationDenied, InvalidStateError, NotFoundError, ValidationFailed,
)
from utils.notifications import notify, notify_job_order_request
from utils.permissions import can_access_job

logger = logging.getLogger(__name__)

SUPPLIER_MOVABLE = {OrderStatus.APPROVED.value, OrderStatus.MODIFIED.value} | SUPPLIER_STATUSES


def _commit(db: Session, what: str, order_id) -> None:
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s failed for order %s", what, order_id)
        raise


def _append_history(db: Session, order: Order, status: str, user: User, notes: Optional[str]) -> None:
    db.add(OrderHistory(order_id=order.id, status=status, changed_by=user.id, notes=notes))


# --- Placement ---

def place_order(
    db: Session,
    user: User,
    job_id: Optional[int] = None,
    order_number: Optional[str] = None,
    customer_name: Optional[str] = None,
    notes: Optional[str] = None,
) -> Order:
    cart_items = db.query(CartItem).filter(CartItem.user_id == user.id).all()
    if not cart_items:
        raise ValidationFailed("Cart is empty")

    job = None
    if job_id is not None:
        job = db.query(Job).filter(Job.id == job_id).first()
        if job is None:
            raise NotFoundError("Job not found")
        if not can_access_job(user, job):
            raise AuthorizationDenied("Job access denied")

    business = db.query(Business).filter(Business.id == user.business_id).first()
    if business is None:
        raise ValidationFailed("User is not associated with a business")
    tier = business.price_tier or "T3"

    now = datetime.utcnow()
    placed_by_pm = user.role == Role.PROJECT_MANAGER.value
    order = Order(
        business_id=business.id,
        job_id=job.id if job else None,
        status=OrderStatus.APPROVED.value if placed_by_pm else OrderStatus.PENDING_APPROVAL.value,
        requested_by=user.id,
        approved_by=user.id if placed_by_pm else None,
        approval_date=now if placed_by_pm else None,
        notes=notes,
        customer_name=customer_name or user.full_name,
        order_number=order_number,
        created_at=now,
    )

    try:
        db.add(order)
        db.flush()

        for item in cart_items:
            if item.part is None:
                raise ValidationFailed(f"Part {item.part_id} no longer exists")
            db.add(OrderItem(
                order_id=order.id,
                part_id=item.part_id,
                quantity=item.quantity,
                price_at_order=item.part.price_for_tier(tier),
            ))
            db.delete(item)

        _append_history(db, order, order.status, user, "Order placed")
        db.flush()
        db.refresh(order)

        if not placed_by_pm:
            fallback = [pm.id for pm in db.query(User).filter(
                User.business_id == business.id,
                User.role == Role.PROJECT_MANAGER.value,
            ).all()]
            notify_job_order_request(db, job, order.id, order.total, fallback_pm_ids=fallback)
        db.commit()
    except (SQLAlchemyError, ValidationFailed):
        db.rollback()
        raise

    db.refresh(order)
    logger.info("Order %s placed by user %s (%s)", order.id, user.id, order.status)
    return order


# --- Project manager transitions ---

def _load_pending_for_pm(db: Session, order_id: int, pm: User) -> Order:
    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    if not pm.business_id or order.business_id != pm.business_id:
        raise AuthorizationDenied("Order belongs to another company")
    if order.status != OrderStatus.PENDING_APPROVAL.value:
        raise InvalidStateError(f"Order is {order.status}, only pending orders can be changed")
    return order


def _notify_requester(db: Session, order: Order, type: str, title: str, message: str) -> None:
    if order.requested_by:
        notify(db, order.requested_by, type, title, message, OrderRef(order_id=order.id))


def approve_order(db: Session, order_id: int, pm: User, notes: Optional[str] = None) -> Order:
    order = _load_pending_for_pm(db, order_id, pm)

    order.status = OrderStatus.APPROVED.value
    order.approved_by = pm.id
    order.approval_date = datetime.utcnow()
    _append_history(db, order, order.status, pm, notes)
    _notify_requester(
        db, order, "order_approved", "Order Approved",
        f"Your order #{order.id} has been approved by {pm.full_name}." + (f" Notes: {notes}" if notes else ""),
    )
    _commit(db, "Approve", order.id)
    db.refresh(order)
    logger.info("Order %s approved by PM %s", order.id, pm.id)
    return order


def reject_order(db: Session, order_id: int, pm: User, reason: Optional[str]) -> Order:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("Rejection reason is required")

    order = _load_pending_for_pm(db, order_id, pm)

    order.status = OrderStatus.REJECTED.value
    order.approved_by = pm.id
    order.approval_date = datetime.utcnow()
    order.rejection_reason = reason
    _append_history(db, order, order.status, pm, reason)
    _notify_requester(
        db, order, "order_rejected", "Order Rejected",
        f"Your order #{order.id} was rejected. Reason: {reason}",
    )
    _commit(db, "Reject", order.id)
    db.refresh(order)
    logger.info("Order %s rejected by PM %s", order.id, pm.id)
    return order


def modify_order(db: Session, order_id: int, pm: User, items: Iterable[Tuple[int, int]],
                 notes: Optional[str] = None) -> Order:
    """Rewrite quantities of lines already on the order, keyed by part id."""
    changes: List[Tuple[int, int]] = [(int(part_id), int(qty)) for part_id, qty in items]
    if not changes:
        raise ValidationFailed("At least one item is required")
    for part_id, qty in changes:
        if qty < 1:
            raise ValidationFailed(f"Quantity for part {part_id} must be at least 1")

    order = _load_pending_for_pm(db, order_id, pm)

    lines = {line.part_id: line for line in order.items}
    for part_id, _ in changes:
        if part_id not in lines:
            raise ValidationFailed(f"Part {part_id} is not on this order")
    for part_id, qty in changes:
        lines[part_id].quantity = qty

    order.status = OrderStatus.MODIFIED.value
    order.approved_by = pm.id
    order.approval_date = datetime.utcnow()
    if notes:
        order.notes = notes
    _append_history(db, order, order.status, pm, notes)
    _notify_requester(
        db, order, "order_modified", "Order Modified",
        f"Your order #{order.id} was modified by {pm.full_name} before approval." + (f" Notes: {notes}" if notes else ""),
    )
    _commit(db, "Modify", order.id)
    db.refresh(order)
    logger.info("Order %s modified by PM %s", order.id, pm.id)
    return order


# --- Supplier fulfilment ---

def update_order_status(db: Session, order_id: int, supplier: User, status: str,
                        notes: Optional[str] = None) -> Order:
    if status not in SUPPLIER_STATUSES:
        raise ValidationFailed(f"Status must be one of: {', '.join(sorted(SUPPLIER_STATUSES))}")

    order = db.query(Order).filter(Order.id == order_id).first()
    if order is None:
        raise NotFoundError("Order not found")
    if order.status not in SUPPLIER_MOVABLE:
        raise InvalidStateError(f"Order is {order.status}, it must be approved first")

    previous = order.status
    order.status = status
    _append_history(db, order, status, supplier, notes)
    _notify_requester(
        db, order, "order_status", "Order Status Updated",
        f"Your order #{order.id} is now {status}.",
    )
    _commit(db, "Status update", order.id)
    db.refresh(order)
    logger.info("Order %s moved %s -> %s by supplier %s", order.id, previous, status, supplier.id)
    return order
