from pydantic import Field
from typing import List, Optional
from datetime import datetime

from schemas.base import ORMBase, RequestBase
from schemas.product import PartOut


class JobOut(ORMBase):
    id: int
    name: str
    job_number: str
    business_id: Optional[int] = None
    client_id: Optional[int] = None
    project_manager_id: Optional[int] = None
    status: str
    location: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssignedTradie(ORMBase):
    user_id: int
    username: str
    full_name: str
    assigned_at: Optional[datetime] = None


class JobDetail(JobOut):
    tradies: List[AssignedTradie] = []


class JobCreate(RequestBase):
    name: str = Field(min_length=1)
    job_number: str = Field(min_length=1)
    client_id: Optional[int] = None
    status: str = "active"
    location: Optional[str] = None
    description: Optional[str] = None


class JobUpdate(RequestBase):
    name: Optional[str] = None
    client_id: Optional[int] = None
    status: Optional[str] = None
    location: Optional[str] = None
    description: Optional[str] = None


class AssignTradiePayload(RequestBase):
    user_id: int


# Planned part list for a job. Quantities below one are refused in the route
class JobPartCreate(RequestBase):
    part_id: int
    quantity: int = 1
    notes: Optional[str] = None


class JobPartUpdate(RequestBase):
    quantity: Optional[int] = None
    notes: Optional[str] = None


class JobPartOut(ORMBase):
    id: int
    job_id: int
    part_id: int
    quantity: int
    notes: Optional[str] = None
    added_by: Optional[int] = None
    created_at: Optional[datetime] = None
    part: Optional[PartOut] = None
