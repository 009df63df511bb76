from datetime import datetime
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# Typed references to the entity a notification is about
class OrderRef(BaseModel):
    kind: Literal["order"] = "order"
    order_id: int


class JobRef(BaseModel):
    kind: Literal["job"] = "job"
    job_id: int


class UserRef(BaseModel):
    kind: Literal["user"] = "user"
    user_id: int


class InvitationRef(BaseModel):
    kind: Literal["invitation"] = "invitation"
    invitation_id: int


RelatedRef = Annotated[Union[OrderRef, JobRef, UserRef, InvitationRef], Field(discriminator="kind")]


def from_related_ref(ref) -> tuple:
    """Flatten a ref into the (related_type, related_id) columns."""
    if ref is None:
        return None, None
    if isinstance(ref, OrderRef):
        return "order", ref.order_id
    if isinstance(ref, JobRef):
        return "job", ref.job_id
    if isinstance(ref, UserRef):
        return "user", ref.user_id
    if isinstance(ref, InvitationRef):
        return "invitation", ref.invitation_id
    raise TypeError(f"Unsupported notification reference: {ref!r}")


def to_related_ref(related_type: Optional[str], related_id: Optional[int]):
    if related_type is None or related_id is None:
        return None
    if related_type == "order":
        return OrderRef(order_id=related_id)
    if related_type == "job":
        return JobRef(job_id=related_id)
    if related_type == "user":
        return UserRef(user_id=related_id)
    if related_type == "invitation":
        return InvitationRef(invitation_id=related_id)
    # Rows written before the typed refs existed may carry other tags
    return None


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: str
    title: str
    message: str
    is_read: bool
    related: Optional[RelatedRef] = None
    created_at: Optional[datetime] = None


class NotificationPage(BaseModel):
    notifications: List[NotificationOut]
    total: int
    page: int
    total_pages: int
    has_more: bool


class UnreadCount(BaseModel):
    count: int
