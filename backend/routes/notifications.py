# backend/routes/notifications.py
import math
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models.notification import Notification
from models.users import User
from schemas.notification import NotificationOut, NotificationPage, UnreadCount, to_related_ref
from utils.errors import AuthorizationDenied, NotFoundError
from utils.session import get_current_user

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _notification_to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=n.id,
        user_id=n.user_id,
        type=n.type,
        title=n.title,
        message=n.message,
        is_read=bool(n.is_read),
        related=to_related_ref(n.related_type, n.related_id),
        created_at=n.created_at,
    )


@router.get("", response_model=NotificationPage)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    read: Optional[bool] = Query(None),
    type: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    query = db.query(Notification).filter(Notification.user_id == current_user.id)
    if read is not None:
        query = query.filter(Notification.is_read == read)
    if type and type != "all":
        query = query.filter(Notification.type == type)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Notification.title.ilike(like), Notification.message.ilike(like)))

    total = query.count()
    offset = (page - 1) * limit
    rows = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return NotificationPage(
        notifications=[_notification_to_out(n) for n in rows],
        total=total,
        page=page,
        total_pages=math.ceil(total / limit),
        has_more=offset + len(rows) < total,
    )


@router.get("/unread/count", response_model=UnreadCount)
def unread_count(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    count = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False),
    ).count()
    return UnreadCount(count=count)


# Must be registered before /{notification_id}/read
@router.put("/all/read")
def mark_all_read(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    updated = db.query(Notification).filter(
        Notification.user_id == current_user.id,
        Notification.is_read.is_(False),
    ).update({Notification.is_read: True}, synchronize_session=False)
    db.commit()
    return {"message": "All notifications marked as read", "updated": updated}


@router.put("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, db: Session = Depends(get_db),
              current_user: User = Depends(get_current_user)):
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if notification is None:
        raise NotFoundError("Notification not found")
    if notification.user_id != current_user.id:
        raise AuthorizationDenied("Not authorized to update this notification")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return _notification_to_out(notification)
