from pydantic import EmailStr, Field
from typing import Optional
from datetime import datetime

from schemas.base import ORMBase, RequestBase


class InvitationCreate(RequestBase):
    email: EmailStr
    phone: Optional[str] = None
    personal_message: Optional[str] = Field(None, max_length=1000)


# Invitation as seen by its PM or its recipient; the token itself is never echoed
class InvitationOut(ORMBase):
    id: int
    email: str
    phone: Optional[str] = None
    personal_message: Optional[str] = None
    status: str
    business_id: int
    project_manager_id: int
    token_expiry: datetime
    created_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    company_name: Optional[str] = None
    project_manager_name: Optional[str] = None


class InvitationVerifyOut(ORMBase):
    outcome: str
    message: str
    email: Optional[str] = None
    company_name: Optional[str] = None
