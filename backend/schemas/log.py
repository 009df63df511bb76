from datetime import datetime
from typing import Any, List, Optional

from schemas.base import ORMBase


# Audit entry as shown on the supplier's activity page
class LogOut(ORMBase):
    id: int
    ts: datetime
    user_id: Optional[int] = None
    username: Optional[str] = None
    action: str
    resource: str
    status: str
    ip: Optional[str] = None
    meta: Optional[Any] = None


class LogPage(ORMBase):
    items: List[LogOut]
    total: int
    page: int
    page_size: int
