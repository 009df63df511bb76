from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from schemas.base import ORMBase, RequestBase


# Schema for user authentication credentials
class UserLogin(RequestBase):
    username: str
    password: str


# Schema for user registration requests, optionally redeeming an invitation token
class UserCreate(RequestBase):
    username: str = Field(min_length=3)
    password: str = Field(min_length=6)
    email: EmailStr
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "tradie"
    business_id: Optional[int] = None
    invitation_token: Optional[str] = None


# Output schema for user profile details; never carries the password hash
class UserResponse(ORMBase):
    id: int
    username: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str
    business_id: Optional[int] = None
    is_approved: bool
    status: Optional[str] = None
    approval_date: Optional[datetime] = None
    created_at: Optional[datetime] = None


# Optional free-text reason attached to a membership decision
class ReasonPayload(RequestBase):
    reason: Optional[str] = None


# Company roster entry as seen by the PM
class TradieOut(UserResponse):
    membership_state: str
    access_level: str
