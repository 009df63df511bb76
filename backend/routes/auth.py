# backend/routes/auth.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.company import Business
from models.users import User, Role, UserStatus, is_tradie_like, normalize_role, is_effectively_approved
from schemas import user as schemas
from utils.audit import client_ip, write_log
from utils.errors import AuthorizationDenied, NotFoundError, ValidationFailed
from utils.guards import require_role, require_supplier
from utils.hashing import get_password_hash, verify_password
from utils.invitations import TokenOutcome, verify_invitation
from utils.membership import MembershipAction, apply_membership_action
from utils.notifications import notify_now, notify_suppliers_of_registration
from utils.permissions import can_manage_tradie
from utils.session import (
    SESSION_COOKIE, clear_session_cookie, create_session, destroy_session, get_current_user,
    no_store, set_session_cookie,
)
from schemas.notification import UserRef

router = APIRouter(tags=["Auth"])

INVITATION_MESSAGES = {
    TokenOutcome.EXPIRED: "Invitation has expired. Ask your project manager to send a new one.",
    TokenOutcome.INVALID: "Invalid invitation. Check the link or ask for a new invitation.",
}


def _new_user(payload: schemas.UserCreate, role: str, email: str) -> User:
    return User(
        username=payload.username.strip(),
        email=email,
        password_hash=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone=payload.phone,
        role=role,
        is_approved=False,
    )


# Register a new user, optionally redeeming an invitation token
@router.post("/register", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: schemas.UserCreate,
    request: Request,
    response: Response,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
):
    normalized_email = payload.email.strip().lower()

    if db.query(User).filter(func.lower(User.username) == payload.username.strip().lower()).first():
        write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                  ip=client_ip(request), meta={"username": payload.username, "reason": "Username exists"})
        raise ValidationFailed("Username already exists")

    try:
        role = normalize_role(payload.role)
    except ValueError:
        raise ValidationFailed(f"Unknown role: {payload.role}")
    if role == Role.SUPPLIER.value:
        raise AuthorizationDenied("Supplier accounts cannot be self-registered")

    if payload.invitation_token:
        outcome, invitation = verify_invitation(db, payload.invitation_token, normalized_email)
        if outcome != TokenOutcome.VALID:
            write_log(db, user_id=None, action="REGISTER", resource="auth", status="FAIL",
                      ip=client_ip(request), meta={"email": normalized_email, "reason": f"Invitation {outcome.value}"})
            raise ValidationFailed(INVITATION_MESSAGES[outcome], outcome=outcome.value)

        user = _new_user(payload, Role.TRADIE.value, normalized_email)
        user.status = UserStatus.INVITED.value
        db.add(user)
        db.flush()
        pm = db.query(User).filter(User.id == invitation.project_manager_id).first()
        if pm is None:
            db.rollback()
            raise NotFoundError("Inviting project manager not found")
        apply_membership_action(db, user, MembershipAction.ACCEPT_INVITATION, user,
                                pm=pm, invitation=invitation, background=background)
    else:
        user = _new_user(payload, role, normalized_email)
        if payload.business_id is not None:
            if not db.query(Business).filter(Business.id == payload.business_id).first():
                raise ValidationFailed("Business not found")
            user.business_id = payload.business_id
            # Waits for a PM (or supplier, for PMs) to approve the membership
            user.status = UserStatus.PENDING_INVITATION.value
        db.add(user)
        db.commit()

    db.refresh(user)
    notify_suppliers_of_registration(db, user)

    token = create_session(db, user)
    set_session_cookie(response, token)
    write_log(db, user_id=user.id, action="REGISTER", resource="auth", status="SUCCESS",
              ip=client_ip(request), meta={"username": user.username, "role": user.role,
                                           "invited": bool(payload.invitation_token)})
    return user


# Authenticate user and start a server-side session
@router.post("/login", response_model=schemas.UserResponse)
def login(payload: schemas.UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    db_user = db.query(User).filter(User.username == payload.username.strip()).first()

    # Validate credentials and log failure on error
    if not db_user or not verify_password(payload.password, db_user.password_hash):
        write_log(db, user_id=(db_user.id if db_user else None), action="LOGIN", resource="auth",
                  status="FAIL", ip=client_ip(request), meta={"username": payload.username})
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": "Invalid credentials"})

    token = create_session(db, db_user)
    write_log(db, user_id=db_user.id, action="LOGIN", resource="auth",
              status="SUCCESS", ip=client_ip(request), meta={"username": db_user.username})

    # Unapproved accounts keep their session for browse-only access
    if not is_effectively_approved(db_user):
        pending = JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={
            "id": db_user.id,
            "username": db_user.username,
            "role": db_user.role,
            "isApproved": False,
            "message": "Your account is pending approval.",
        })
        set_session_cookie(pending, token)
        return pending

    set_session_cookie(response, token)
    return db_user


@router.post("/logout")
def logout(request: Request, response: Response, db: Session = Depends(get_db)):
    destroy_session(db, request.cookies.get(SESSION_COOKIE))
    clear_session_cookie(response)
    no_store(response)
    return {"success": True, "message": "Logged out successfully"}


# Retrieve current authenticated user details
@router.get("/user", response_model=schemas.UserResponse)
def me(response: Response, current_user: User = Depends(get_current_user)):
    no_store(response)
    return current_user


# --- Account approval ---

@router.get("/users", response_model=List[schemas.UserResponse])
def list_users(
    approved: Optional[bool] = Query(None),
    role: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    query = db.query(User)
    if approved is not None:
        query = query.filter(User.is_approved == approved)
    if role:
        query = query.filter(User.role == role)
    return query.order_by(User.created_at.desc()).all()


@router.post("/users", response_model=schemas.UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_supplier),
):
    if db.query(User).filter(func.lower(User.username) == payload.username.strip().lower()).first():
        raise ValidationFailed("Username already exists")
    try:
        role = normalize_role(payload.role)
    except ValueError:
        raise ValidationFailed(f"Unknown role: {payload.role}")

    user = _new_user(payload, role, payload.email.strip().lower())
    user.business_id = payload.business_id
    if role == Role.SUPPLIER.value or (role == Role.PROJECT_MANAGER.value and payload.business_id):
        user.is_approved = True
        user.approved_by = current_user.id
        user.status = UserStatus.ACTIVE.value
    db.add(user)
    db.commit()
    db.refresh(user)
    write_log(db, user_id=current_user.id, action="USER_CREATE", resource="users",
              ip=client_ip(request), meta={"created_user_id": user.id, "role": role})
    return user


def _load_target(db: Session, user_id: int) -> User:
    target = db.query(User).filter(User.id == user_id).first()
    if target is None:
        raise NotFoundError("User not found")
    return target


def _check_may_decide(actor: User, target: User) -> None:
    if not is_effectively_approved(actor):
        raise AuthorizationDenied("Project manager account is awaiting supplier approval")
    if target.role == Role.PROJECT_MANAGER.value and actor.role != Role.SUPPLIER.value:
        raise AuthorizationDenied("Only suppliers can approve or reject project managers")
    if is_tradie_like(target.role) and actor.role == Role.PROJECT_MANAGER.value and not can_manage_tradie(actor, target):
        raise AuthorizationDenied("Tradie belongs to another company")
    if target.role == Role.SUPPLIER.value:
        raise ValidationFailed("Supplier accounts do not need approval")


@router.post("/users/{user_id}/approve", response_model=schemas.UserResponse)
def approve_user(
    user_id: int,
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.SUPPLIER, Role.PROJECT_MANAGER)),
):
    target = _load_target(db, user_id)
    _check_may_decide(current_user, target)

    if is_tradie_like(target.role):
        apply_membership_action(db, target, MembershipAction.APPROVE, current_user, background=background)
    else:
        target.is_approved = True
        target.approved_by = current_user.id
        target.approval_date = datetime.utcnow()
        target.status = UserStatus.ACTIVE.value
        db.commit()
        notify_now(db, target.id, "user_approved", "Account Approved",
                   "Your account has been approved. You now have access to the system.",
                   UserRef(user_id=target.id))

    db.refresh(target)
    write_log(db, user_id=current_user.id, action="USER_APPROVE", resource="users",
              ip=client_ip(request), meta={"target_user_id": target.id})
    return target


@router.post("/users/{user_id}/reject")
def reject_user(
    user_id: int,
    payload: schemas.ReasonPayload,
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_role(Role.SUPPLIER, Role.PROJECT_MANAGER)),
):
    target = _load_target(db, user_id)
    _check_may_decide(current_user, target)

    if is_tradie_like(target.role):
        apply_membership_action(db, target, MembershipAction.REJECT, current_user,
                                reason=payload.reason, background=background)
    else:
        target.is_approved = False
        target.status = UserStatus.REJECTED.value
        db.commit()
        notify_now(db, target.id, "user_rejected", "Registration Rejected",
                   payload.reason or "Your registration has been rejected.",
                   UserRef(user_id=target.id))

    write_log(db, user_id=current_user.id, action="USER_REJECT", resource="users",
              ip=client_ip(request), meta={"target_user_id": target.id, "reason": payload.reason})
    return {"success": True}
