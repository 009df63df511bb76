from pydantic import Field
from typing import List, Optional
from datetime import datetime

from schemas.base import ORMBase, RequestBase


# Output schema for an individual order line item
class OrderItemOut(ORMBase):
    id: int
    part_id: int
    item_code: Optional[str] = None
    description: Optional[str] = None
    quantity: int
    price_at_order: Optional[float] = None
    line_total: Optional[float] = None


class OrderHistoryOut(ORMBase):
    status: str
    changed_by: Optional[int] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


# Output schema representing the full order details
class OrderResponse(ORMBase):
    id: int
    business_id: int
    job_id: Optional[int] = None
    status: str
    requested_by: Optional[int] = None
    approved_by: Optional[int] = None
    approval_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    customer_name: Optional[str] = None
    order_number: Optional[str] = None
    total: Optional[float] = None
    created_at: Optional[datetime] = None
    items: List[OrderItemOut] = []
    history: List[OrderHistoryOut] = []


# Input schema for placing an order from the caller's cart
class OrderCreatePayload(RequestBase):
    job_id: Optional[int] = None
    order_number: Optional[str] = None
    customer_name: Optional[str] = None
    notes: Optional[str] = None


class ApprovePayload(RequestBase):
    notes: Optional[str] = None


class RejectPayload(RequestBase):
    reason: Optional[str] = None


class ModifyItem(RequestBase):
    part_id: int
    quantity: int


class ModifyPayload(RequestBase):
    items: List[ModifyItem] = Field(min_length=1)
    notes: Optional[str] = None


# Schema for the supplier-side status update
class OrderStatusPatch(RequestBase):
    status: str
    notes: Optional[str] = None
