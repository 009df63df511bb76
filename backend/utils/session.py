# utils/session.py
import uuid
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, Request, Response
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.session import UserSession
from models.users import User
from utils.errors import AuthenticationRequired

SESSION_COOKIE = "connect.sid"


def _encode(sid: str, expires_at: datetime) -> str:
    return jwt.encode({"sid": sid, "exp": expires_at}, settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)


def _decode(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALGORITHM])
    except JWTError:
        return None
    return payload.get("sid")


# Store a new server-side session and return the signed cookie value
def create_session(db: Session, user: User) -> str:
    expires_at = datetime.utcnow() + timedelta(seconds=settings.SESSION_MAX_AGE_SECONDS)
    row = UserSession(sid=uuid.uuid4().hex, user_id=user.id, expires_at=expires_at)
    db.add(row)
    db.commit()
    return _encode(row.sid, expires_at)


def destroy_session(db: Session, token: Optional[str]) -> None:
    sid = _decode(token) if token else None
    if not sid:
        return
    db.query(UserSession).filter(UserSession.sid == sid).delete()
    db.commit()


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=settings.SESSION_MAX_AGE_SECONDS,
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=SESSION_COOKIE,
        path="/",
        httponly=True,
        samesite="strict",
        secure=settings.is_production,
    )


def no_store(response: Response) -> None:
    # Keep authenticated payloads out of browser caches (back-button after logout)
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"


# Resolve the session cookie to a user, or None for anonymous requests
def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    token = request.cookies.get(SESSION_COOKIE)
    if not token:
        return None
    sid = _decode(token)
    if not sid:
        return None
    row = db.query(UserSession).filter(UserSession.sid == sid).first()
    if row is None or row.expires_at < datetime.utcnow():
        return None
    return db.query(User).filter(User.id == row.user_id).first()


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise AuthenticationRequired()
    return user
