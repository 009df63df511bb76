# backend/routes/tradie.py
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from database import get_db
from models.company import Business
from models.invitation import TradieInvitation, InvitationStatus
from models.job import Job, JobUser
from models.users import User, is_tradie_like
from schemas.invitation import InvitationOut, InvitationVerifyOut
from schemas.job import JobOut
from utils.audit import client_ip, write_log
from utils.errors import AuthorizationDenied
from utils.guards import require_approved_tradie
from utils.invitations import (
    TokenOutcome, accept_invitation, decline_invitation, normalize_email, verify_invitation,
)
from utils.permissions import access_level_of
from utils.session import get_current_user

router = APIRouter(tags=["Tradie"])

VERIFY_RESPONSES = {
    TokenOutcome.VALID: (200, "Invitation is valid"),
    TokenOutcome.EXPIRED: (400, "Invitation has expired"),
    TokenOutcome.INVALID: (404, "Invalid invitation"),
}


def _require_tradie(current_user: User = Depends(get_current_user)) -> User:
    if not is_tradie_like(current_user.role):
        raise AuthorizationDenied("Tradie role required")
    return current_user


def _with_names(db: Session, inv: TradieInvitation) -> InvitationOut:
    out = InvitationOut.model_validate(inv)
    business = db.query(Business).filter(Business.id == inv.business_id).first()
    pm = db.query(User).filter(User.id == inv.project_manager_id).first()
    out.company_name = business.name if business else None
    out.project_manager_name = pm.full_name if pm else None
    return out


# Public check used by the registration page before the account exists
@router.get("/invitations/verify/{token}", response_model=InvitationVerifyOut)
def verify(token: str, email: Optional[str] = Query(None), db: Session = Depends(get_db)):
    outcome, invitation = verify_invitation(db, token, email)
    code, message = VERIFY_RESPONSES[outcome]
    body = InvitationVerifyOut(outcome=outcome.value, message=message)
    if outcome == TokenOutcome.VALID:
        business = db.query(Business).filter(Business.id == invitation.business_id).first()
        body.email = invitation.email
        body.company_name = business.name if business else None
    return JSONResponse(status_code=code, content=body.model_dump())


@router.get("/tradie/invitations", response_model=List[InvitationOut])
def my_invitations(db: Session = Depends(get_db), current_user: User = Depends(_require_tradie)):
    invitations = db.query(TradieInvitation).filter(
        TradieInvitation.email == normalize_email(current_user.email),
        TradieInvitation.status == InvitationStatus.PENDING.value,
    ).order_by(TradieInvitation.created_at.desc()).all()
    return [_with_names(db, inv) for inv in invitations]


@router.post("/tradie/invitations/{invitation_id}/accept")
def accept(invitation_id: int, request: Request, background: BackgroundTasks,
           db: Session = Depends(get_db), current_user: User = Depends(_require_tradie)):
    invitation = accept_invitation(db, invitation_id, current_user, background)
    write_log(db, user_id=current_user.id, action="INVITE_ACCEPT", resource="invitations",
              ip=client_ip(request), meta={"invitation_id": invitation.id, "business_id": invitation.business_id})
    db.refresh(current_user)
    return {
        "message": "Invitation accepted",
        "business_id": current_user.business_id,
        "access_level": access_level_of(current_user),
    }


@router.post("/tradie/invitations/{invitation_id}/reject")
def reject(invitation_id: int, request: Request, background: BackgroundTasks,
           db: Session = Depends(get_db), current_user: User = Depends(_require_tradie)):
    invitation = decline_invitation(db, invitation_id, current_user, background)
    write_log(db, user_id=current_user.id, action="INVITE_DECLINE", resource="invitations",
              ip=client_ip(request), meta={"invitation_id": invitation.id})
    return {"message": "Invitation declined"}


# Jobs this tradie has been assigned to within their company
@router.get("/tradie/jobs", response_model=List[JobOut])
def my_jobs(db: Session = Depends(get_db), current_user: User = Depends(require_approved_tradie)):
    return (
        db.query(Job)
        .join(JobUser, JobUser.job_id == Job.id)
        .filter(JobUser.user_id == current_user.id, Job.business_id == current_user.business_id)
        .order_by(JobUser.assigned_at.desc())
        .all()
    )
