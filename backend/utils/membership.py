# utils/membership.py
"""
Tradie membership state machine.

The membership state is derived from the User row (``state_of``). Every change
to a tradie's company membership goes through ``transition`` for legality and
``apply_membership_action`` for persistence: PM approval, rejection and removal,
invitation accept/decline and registration with an invitation token all share
this one path to the approved state.
"""
import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from fastapi import BackgroundTasks
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.company import Business
from models.invitation import TradieInvitation, InvitationStatus
from models.users import User, UserStatus
from schemas.notification import InvitationRef, UserRef
from utils.email_service import email_service
from utils.errors import InvalidStateError
from utils.notifications import notify

logger = logging.getLogger(__name__)


class MembershipState(str, enum.Enum):
    INDEPENDENT = "independent"
    INVITED = "invited"
    APPROVED = "approved"
    REMOVED = "removed"
    REJECTED = "rejected"


class MembershipAction(str, enum.Enum):
    INVITE = "invite"
    ACCEPT_INVITATION = "accept_invitation"
    DECLINE_INVITATION = "decline_invitation"
    APPROVE = "approve"
    REJECT = "reject"
    REMOVE = "remove"


class Effect(str, enum.Enum):
    NOTIFY_TRADIE = "notify_tradie"
    NOTIFY_PM = "notify_pm"
    EMAIL_PM_ACCEPTED = "email_pm_accepted"
    EMAIL_PM_DECLINED = "email_pm_declined"
    EMAIL_TRADIE_REMOVED = "email_tradie_removed"


@dataclass(frozen=True)
class MembershipTransition:
    previous_state: MembershipState
    next_state: MembershipState
    effects: List[Effect] = field(default_factory=list)


S = MembershipState
A = MembershipAction
ALL_STATES = tuple(MembershipState)

# (state, action) -> next state; a missing pair is an illegal move.
# Invite and decline never move the user row: the invitation carries that state.
_NEXT_STATE = {}
for _state in ALL_STATES:
    _NEXT_STATE[(_state, A.INVITE)] = _state
    _NEXT_STATE[(_state, A.ACCEPT_INVITATION)] = S.APPROVED
    _NEXT_STATE[(_state, A.DECLINE_INVITATION)] = _state
_NEXT_STATE.update({
    (S.INVITED, A.APPROVE): S.APPROVED,
    (S.REMOVED, A.APPROVE): S.APPROVED,
    (S.REJECTED, A.APPROVE): S.APPROVED,
    (S.INVITED, A.REJECT): S.REJECTED,
    (S.REMOVED, A.REJECT): S.REJECTED,
    (S.APPROVED, A.REMOVE): S.REMOVED,
})

_EFFECTS = {
    A.INVITE: [Effect.NOTIFY_TRADIE],
    A.ACCEPT_INVITATION: [Effect.NOTIFY_PM, Effect.EMAIL_PM_ACCEPTED],
    A.DECLINE_INVITATION: [Effect.NOTIFY_PM, Effect.EMAIL_PM_DECLINED],
    A.APPROVE: [Effect.NOTIFY_TRADIE],
    A.REJECT: [Effect.NOTIFY_TRADIE],
    A.REMOVE: [Effect.NOTIFY_TRADIE, Effect.EMAIL_TRADIE_REMOVED],
}


def state_of(user: User) -> MembershipState:
    if user.business_id and user.is_approved:
        return S.APPROVED
    if user.status == UserStatus.REJECTED.value:
        return S.REJECTED
    if user.status in (UserStatus.PENDING_INVITATION.value, UserStatus.INVITED.value):
        return S.INVITED
    if user.business_id:
        return S.REMOVED
    return S.INDEPENDENT


def transition(state, action) -> MembershipTransition:
    state = MembershipState(state)
    action = MembershipAction(action)
    next_state = _NEXT_STATE.get((state, action))
    if next_state is None:
        raise InvalidStateError(f"Cannot {action.value.replace('_', ' ')} a tradie who is {state.value}")
    return MembershipTransition(state, next_state, list(_EFFECTS[action]))


def _company_name(db: Session, business_id: Optional[int]) -> str:
    if not business_id:
        return "the company"
    business = db.query(Business).filter(Business.id == business_id).first()
    return business.name if business else "the company"


def _write_state(tradie: User, next_state: MembershipState, actor: User, business_id: Optional[int], now: datetime):
    if next_state == S.APPROVED:
        if business_id:
            tradie.business_id = business_id
        tradie.is_approved = True
        tradie.status = UserStatus.ACTIVE.value
        tradie.approved_by = actor.id
        tradie.approval_date = now
    elif next_state == S.REJECTED:
        tradie.is_approved = False
        tradie.status = UserStatus.REJECTED.value
        tradie.approved_by = actor.id
        tradie.approval_date = now
    elif next_state == S.REMOVED:
        # Company is kept so the tradie still browses as a limited member
        tradie.is_approved = False
        tradie.status = UserStatus.ACTIVE.value


def _tradie_notification(action: MembershipAction, company: str, pm: User, reason: Optional[str]):
    if action == A.INVITE:
        return ("company_invitation", "Company Invitation",
                f"{pm.full_name} has invited you to join {company}.")
    if action == A.APPROVE:
        return ("user_approved", "Account Approved",
                f"Your account has been approved by {company}. You can now place orders.")
    if action == A.REJECT:
        message = f"Your account application to {company} was rejected."
        if reason:
            message += f" Reason: {reason}"
        return "user_rejected", "Registration Rejected", message
    message = f"Your access to {company} has been changed to browse-only."
    if reason:
        message += f" Reason: {reason}"
    return "tradie_removed", "Company Access Updated", message


def _pm_notification(action: MembershipAction, company: str, tradie: User):
    if action == A.ACCEPT_INVITATION:
        return ("invitation_accepted", "Invitation Accepted",
                f"{tradie.full_name} has accepted your invitation and joined {company}.")
    return ("invitation_declined", "Invitation Declined",
            f"{tradie.email} has declined your invitation to join {company}.")


def _schedule_email(background: Optional[BackgroundTasks], func, **kwargs) -> None:
    if background is None:
        logger.warning("No background task queue, dropping email %s", func.__name__)
        return
    background.add_task(func, **kwargs)


def apply_membership_action(
    db: Session,
    tradie: User,
    action,
    actor: User,
    *,
    pm: Optional[User] = None,
    business_id: Optional[int] = None,
    invitation: Optional[TradieInvitation] = None,
    reason: Optional[str] = None,
    background: Optional[BackgroundTasks] = None,
) -> MembershipTransition:
    """Validate and persist one membership move for ``tradie``.

    ``actor`` is whoever triggers the move (the PM for approve/reject/remove, the
    tradie for accept/decline). ``pm`` is the project manager on the other side
    and defaults to the actor. The user update, the invitation response and the
    in-app notifications are committed together; emails are queued on
    ``background`` and run after the response.
    """
    action = MembershipAction(action)
    pm = pm or actor
    result = transition(state_of(tradie), action)
    now = datetime.utcnow()

    if business_id is None:
        business_id = invitation.business_id if invitation is not None else (pm.business_id or tradie.business_id)
    company = _company_name(db, business_id)

    try:
        _write_state(tradie, result.next_state, actor, business_id, now)

        if invitation is not None and action in (A.ACCEPT_INVITATION, A.DECLINE_INVITATION):
            invitation.status = (InvitationStatus.ACCEPTED.value if action == A.ACCEPT_INVITATION
                                 else InvitationStatus.REJECTED.value)
            invitation.responded_at = now
            invitation.tradie_id = tradie.id

        if Effect.NOTIFY_TRADIE in result.effects:
            type_, title, message = _tradie_notification(action, company, pm, reason)
            related = InvitationRef(invitation_id=invitation.id) if invitation is not None and invitation.id \
                else UserRef(user_id=pm.id)
            notify(db, tradie.id, type_, title, message, related)

        if Effect.NOTIFY_PM in result.effects:
            type_, title, message = _pm_notification(action, company, tradie)
            notify(db, pm.id, type_, title, message, UserRef(user_id=tradie.id))

        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Membership action %s failed for user %s", action.value, tradie.id)
        raise

    logger.info("Membership %s: user %s %s -> %s by %s",
                action.value, tradie.id, result.previous_state.value, result.next_state.value, actor.id)

    if Effect.EMAIL_PM_ACCEPTED in result.effects or Effect.EMAIL_PM_DECLINED in result.effects:
        _schedule_email(
            background, email_service.send_pm_response_email,
            pm_email=pm.email,
            pm_name=pm.full_name,
            company_name=company,
            tradie_email=tradie.email,
            tradie_name=tradie.full_name,
            accepted=Effect.EMAIL_PM_ACCEPTED in result.effects,
        )
    if Effect.EMAIL_TRADIE_REMOVED in result.effects:
        _schedule_email(
            background, email_service.send_removal_email,
            tradie_email=tradie.email,
            tradie_name=tradie.full_name,
            company_name=company,
            pm_name=pm.full_name,
            reason=reason,
        )

    return result
