# utils/invitations.py
import enum
import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple

from fastapi import BackgroundTasks
from sqlalchemy.orm import Session

from config import settings
from models.company import Business
from models.invitation import TradieInvitation, InvitationStatus
from models.users import User
from schemas.notification import InvitationRef
from utils.email_service import email_service
from utils.errors import InvalidStateError, NotFoundError, RateLimitedError, ValidationFailed
from utils.membership import MembershipAction, apply_membership_action
from utils.notifications import notify
from utils.permissions import can_send_invitation
from utils.rate_limit import DatabaseRateLimiter

logger = logging.getLogger(__name__)

# Per-recipient cap on outgoing invitation emails
email_limiter = DatabaseRateLimiter(
    prefix="email",
    limit=settings.MAX_EMAILS_PER_HOUR,
    window_seconds=60 * 60,
)


class TokenOutcome(str, enum.Enum):
    VALID = "valid"
    EXPIRED = "expired"
    INVALID = "invalid"


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def count_recent_invitations(db: Session, pm_id: int, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    since = now - timedelta(hours=24)
    return db.query(TradieInvitation).filter(
        TradieInvitation.project_manager_id == pm_id,
        TradieInvitation.created_at >= since,
    ).count()


def create_invitation(
    db: Session,
    pm: User,
    email: str,
    phone: Optional[str] = None,
    personal_message: Optional[str] = None,
    background: Optional[BackgroundTasks] = None,
) -> TradieInvitation:
    email = normalize_email(email)
    allowed, reason = can_send_invitation(db, pm, email)
    if not allowed:
        raise ValidationFailed(reason)

    now = datetime.utcnow()
    if count_recent_invitations(db, pm.id, now) >= settings.MAX_INVITATIONS_PER_DAY:
        raise RateLimitedError(
            f"Invitation limit reached: at most {settings.MAX_INVITATIONS_PER_DAY} invitations per 24 hours"
        )

    existing = db.query(User).filter(User.email == email).first()
    if existing is None:
        _check_email_quota(db, email, now)

    invitation = TradieInvitation(
        project_manager_id=pm.id,
        business_id=pm.business_id,
        tradie_id=existing.id if existing else None,
        email=email,
        phone=phone,
        personal_message=personal_message,
        invitation_token=str(uuid.uuid4()),
        token_expiry=now + timedelta(days=settings.INVITATION_TTL_DAYS),
        status=InvitationStatus.PENDING.value,
        created_at=now,
    )
    db.add(invitation)
    db.flush()

    if existing is not None:
        # Known users are told in-app; the invitation row commits with the notification
        apply_membership_action(db, existing, MembershipAction.INVITE, pm, invitation=invitation)
        logger.info("Invitation %s sent in-app to existing user %s", invitation.id, existing.id)
        return invitation

    db.commit()
    db.refresh(invitation)

    _queue_invitation_email(db, invitation, pm, background)
    logger.info("Invitation %s created for %s by PM %s", invitation.id, email, pm.id)
    return invitation


def _check_email_quota(db: Session, email: str, now: datetime) -> None:
    decision = email_limiter.check(db, email, now=now)
    if not decision.allowed:
        raise RateLimitedError(
            "Too many emails sent to this address, try again later",
            retryAfter=decision.retry_after_seconds,
        )


def _company_name(db: Session, business_id: Optional[int]) -> str:
    business = db.query(Business).filter(Business.id == business_id).first()
    return business.name if business else "our company"


def _queue_invitation_email(db: Session, invitation: TradieInvitation, pm: User,
                            background: Optional[BackgroundTasks]) -> None:
    if background is None:
        return
    background.add_task(
        email_service.send_invitation_email,
        tradie_email=invitation.email,
        pm_name=pm.full_name,
        company_name=_company_name(db, invitation.business_id),
        token=invitation.invitation_token,
        token_expiry=invitation.token_expiry,
        personal_message=invitation.personal_message,
    )


def resend_invitation(db: Session, invitation_id: int, pm: User,
                      background: Optional[BackgroundTasks] = None) -> TradieInvitation:
    """Re-deliver a pending invitation; the token is kept and its expiry restarts."""
    invitation = db.query(TradieInvitation).filter(
        TradieInvitation.id == invitation_id,
        TradieInvitation.project_manager_id == pm.id,
    ).first()
    if invitation is None:
        raise NotFoundError("Invitation not found")
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvalidStateError("Only pending invitations can be resent")

    now = datetime.utcnow()
    existing = db.query(User).filter(User.email == invitation.email).first()
    if existing is None:
        _check_email_quota(db, invitation.email, now)

    invitation.token_expiry = now + timedelta(days=settings.INVITATION_TTL_DAYS)
    if existing is not None:
        invitation.tradie_id = existing.id
        notify(db, existing.id, "company_invitation", "Company Invitation",
               f"Reminder: {pm.full_name} has invited you to join {_company_name(db, invitation.business_id)}.",
               InvitationRef(invitation_id=invitation.id))
    db.commit()
    db.refresh(invitation)

    if existing is None:
        _queue_invitation_email(db, invitation, pm, background)
    logger.info("Invitation %s resent to %s by PM %s", invitation.id, invitation.email, pm.id)
    return invitation


def verify_invitation(db: Session, token: str, email: Optional[str] = None,
                      now: Optional[datetime] = None) -> Tuple[TokenOutcome, Optional[TradieInvitation]]:
    """Classify a registration token as valid, expired or invalid."""
    if not token:
        return TokenOutcome.INVALID, None
    invitation = db.query(TradieInvitation).filter(TradieInvitation.invitation_token == token).first()
    if invitation is None:
        return TokenOutcome.INVALID, None
    if email is not None and normalize_email(email) != invitation.email:
        return TokenOutcome.INVALID, None
    if invitation.status != InvitationStatus.PENDING.value:
        return TokenOutcome.INVALID, invitation
    now = now or datetime.utcnow()
    if invitation.token_expiry < now:
        return TokenOutcome.EXPIRED, invitation
    return TokenOutcome.VALID, invitation


def _pending_for(db: Session, invitation_id: int, tradie: User) -> TradieInvitation:
    invitation = db.query(TradieInvitation).filter(TradieInvitation.id == invitation_id).first()
    if invitation is None or invitation.email != normalize_email(tradie.email):
        raise NotFoundError("Invitation not found")
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvalidStateError("Invitation has already been responded to")
    return invitation


def _inviting_pm(db: Session, invitation: TradieInvitation) -> User:
    pm = db.query(User).filter(User.id == invitation.project_manager_id).first()
    if pm is None:
        raise NotFoundError("Inviting project manager not found")
    return pm


def accept_invitation(db: Session, invitation_id: int, tradie: User,
                      background: Optional[BackgroundTasks] = None) -> TradieInvitation:
    invitation = _pending_for(db, invitation_id, tradie)
    if invitation.token_expiry < datetime.utcnow():
        raise ValidationFailed("Invitation has expired")
    apply_membership_action(
        db, tradie, MembershipAction.ACCEPT_INVITATION, tradie,
        pm=_inviting_pm(db, invitation), invitation=invitation, background=background,
    )
    return invitation


def decline_invitation(db: Session, invitation_id: int, tradie: User,
                       background: Optional[BackgroundTasks] = None) -> TradieInvitation:
    invitation = _pending_for(db, invitation_id, tradie)
    apply_membership_action(
        db, tradie, MembershipAction.DECLINE_INVITATION, tradie,
        pm=_inviting_pm(db, invitation), invitation=invitation, background=background,
    )
    return invitation


def cancel_invitation(db: Session, invitation_id: int, pm: User) -> TradieInvitation:
    invitation = db.query(TradieInvitation).filter(
        TradieInvitation.id == invitation_id,
        TradieInvitation.project_manager_id == pm.id,
    ).first()
    if invitation is None:
        raise NotFoundError("Invitation not found")
    if invitation.status != InvitationStatus.PENDING.value:
        raise InvalidStateError("Only pending invitations can be cancelled")
    invitation.status = InvitationStatus.CANCELLED.value
    invitation.responded_at = datetime.utcnow()
    db.commit()
    db.refresh(invitation)
    return invitation
