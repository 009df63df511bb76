# backend/routes/permissions.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from utils.permissions import resolve_permissions
from utils.session import get_current_user

router = APIRouter(tags=["Permissions"])


# Resolved permission set so the client can render restricted states
@router.get("/permissions")
def my_permissions(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return resolve_permissions(db, current_user.id).as_response()
