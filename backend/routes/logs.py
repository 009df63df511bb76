# backend/routes/logs.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from database import get_db
from models.log import Log
from models.users import User
from schemas.log import LogOut, LogPage
from utils.errors import ValidationFailed
from utils.guards import require_supplier

router = APIRouter(prefix="/logs", tags=["Logs"])


def _parse_date(value: str, end_of_day: bool = False) -> datetime:
    text = value.strip()
    # A bare date on the upper bound covers the whole day
    if end_of_day and len(text) == 10:
        text += " 23:59:59"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValidationFailed(f"Invalid date: {value}")


def _log_to_out(entry: Log) -> LogOut:
    out = LogOut.model_validate(entry)
    out.username = entry.user.username if entry.user else None
    return out


# Supplier view of the audit trail, newest first
@router.get("", response_model=LogPage)
def get_logs(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    action: Optional[str] = Query(None, description="Substring of the action, e.g. LOGIN"),
    user_id: Optional[int] = Query(None),
    resource: Optional[str] = Query(None, description="Substring of the resource, e.g. orders"),
    status: Optional[str] = Query(None, description="SUCCESS or FAIL"),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD or ISO timestamp"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD or ISO timestamp"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    filters = []
    if action:
        filters.append(Log.action.ilike(f"%{action}%"))
    if resource:
        filters.append(Log.resource.ilike(f"%{resource}%"))
    if user_id is not None:
        filters.append(Log.user_id == user_id)
    if status:
        filters.append(Log.status == status.upper())
    if date_from:
        filters.append(Log.ts >= _parse_date(date_from))
    if date_to:
        filters.append(Log.ts <= _parse_date(date_to, end_of_day=True))

    query = db.query(Log).filter(*filters)
    total = query.count()
    rows = (
        query.order_by(Log.ts.desc(), Log.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return LogPage(items=[_log_to_out(r) for r in rows], total=total, page=page, page_size=page_size)
