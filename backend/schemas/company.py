from pydantic import EmailStr, Field
from typing import List, Optional, Literal
from datetime import datetime

from schemas.base import ORMBase, RequestBase

PriceTier = Literal["T1", "T2", "T3"]


# Schema for displaying business details
class BusinessOut(ORMBase):
    id: int
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    price_tier: str


class BusinessCreate(RequestBase):
    name: str = Field(min_length=1)
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    price_tier: PriceTier = "T3"


# Schema for updating business information
class BusinessUpdate(RequestBase):
    name: Optional[str] = None
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    price_tier: Optional[PriceTier] = None


class ClientOut(ORMBase):
    id: int
    business_id: int
    name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None


class ClientCreate(RequestBase):
    name: str = Field(min_length=1)
    contact_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None


class ClientUpdate(RequestBase):
    name: Optional[str] = None
    contact_name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    address: Optional[str] = None


# Supplier dashboard counters
class StatsOut(ORMBase):
    new_orders: int
    pending_shipments: int
    active_customers: int
    low_stock_parts: int


class RecentOrderOut(ORMBase):
    id: int
    order_number: Optional[str] = None
    status: str
    customer_name: Optional[str] = None
    job_name: Optional[str] = None
    job_number: Optional[str] = None
    created_at: Optional[datetime] = None


# PM dashboard summary for one company
class PMDashboardStatsOut(ORMBase):
    pending_approvals: int
    active_jobs: int
    completed_jobs: int
    on_hold_jobs: int
    total_tradies: int
    jobs_this_month: int
    total_job_orders: int
    recent_orders: List[RecentOrderOut] = []
