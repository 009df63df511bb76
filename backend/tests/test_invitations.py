from datetime import datetime, timedelta
from unittest.mock import patch

import pytest
from fastapi import BackgroundTasks

from config import settings
from models.invitation import TradieInvitation, InvitationStatus
from models.notification import Notification
from models.users import User
from utils.errors import InvalidStateError, NotFoundError, RateLimitedError, ValidationFailed
from utils.invitations import (
    TokenOutcome, accept_invitation, cancel_invitation, create_invitation, resend_invitation, verify_invitation,
)
from conftest import make_user


def _invitation(db, pm, email, token="tok", expiry=None, status=InvitationStatus.PENDING.value, created_at=None):
    row = TradieInvitation(
        project_manager_id=pm.id,
        business_id=pm.business_id,
        email=email,
        invitation_token=token,
        token_expiry=expiry or datetime.utcnow() + timedelta(days=7),
        status=status,
        created_at=created_at or datetime.utcnow(),
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def test_invite_new_email_queues_registration_email(db, pm):
    background = BackgroundTasks()

    invitation = create_invitation(db, pm, "  New.Tradie@Example.com ", personal_message="Welcome aboard",
                                   background=background)

    assert invitation.email == "new.tradie@example.com"
    assert invitation.status == InvitationStatus.PENDING.value
    assert invitation.token_expiry - invitation.created_at == timedelta(days=7)
    assert len(background.tasks) == 1
    kwargs = background.tasks[0].kwargs
    assert kwargs["token"] == invitation.invitation_token
    assert kwargs["company_name"] == "Acme Fire Protection"
    assert kwargs["personal_message"] == "Welcome aboard"


def test_invite_existing_user_notifies_in_app(db, pm, independent_tradie):
    background = BackgroundTasks()

    invitation = create_invitation(db, pm, independent_tradie.email, background=background)

    assert invitation.tradie_id == independent_tradie.id
    assert background.tasks == []
    note = db.query(Notification).filter(Notification.user_id == independent_tradie.id).one()
    assert note.type == "company_invitation"
    db.refresh(independent_tradie)
    assert independent_tradie.business_id is None


def test_duplicate_pending_invitation_is_refused(db, pm):
    create_invitation(db, pm, "dup@example.com")

    with pytest.raises(ValidationFailed):
        create_invitation(db, pm, "dup@example.com")


def test_fifty_first_invitation_in_a_day_is_rate_limited(db, pm):
    now = datetime.utcnow()
    for i in range(settings.MAX_INVITATIONS_PER_DAY):
        _invitation(db, pm, f"t{i}@example.com", token=f"tok-{i}", created_at=now - timedelta(minutes=i))

    with pytest.raises(RateLimitedError) as exc:
        create_invitation(db, pm, "one.more@example.com")

    assert exc.value.status_code == 429


def test_old_invitations_do_not_count_towards_daily_limit(db, pm):
    long_ago = datetime.utcnow() - timedelta(days=2)
    for i in range(settings.MAX_INVITATIONS_PER_DAY):
        _invitation(db, pm, f"old{i}@example.com", token=f"old-{i}", created_at=long_ago)

    invitation = create_invitation(db, pm, "fresh@example.com")

    assert invitation.id is not None


def test_email_rate_limit_per_recipient(db, business, pm):
    other_pms = [make_user(db, f"pm{i}", role="project_manager", business=business, approved=True)
                 for i in range(settings.MAX_EMAILS_PER_HOUR + 1)]
    for sender in other_pms[:settings.MAX_EMAILS_PER_HOUR]:
        create_invitation(db, sender, "popular@example.com")

    with pytest.raises(RateLimitedError) as exc:
        create_invitation(db, other_pms[-1], "popular@example.com")

    assert exc.value.extra["retryAfter"] > 0


def test_verify_distinguishes_expired_from_invalid(db, pm):
    _invitation(db, pm, "late@example.com", token="expired-token", expiry=datetime.utcnow() - timedelta(hours=1))
    _invitation(db, pm, "done@example.com", token="used-token", status=InvitationStatus.ACCEPTED.value)
    _invitation(db, pm, "ok@example.com", token="good-token")

    assert verify_invitation(db, "expired-token")[0] == TokenOutcome.EXPIRED
    assert verify_invitation(db, "used-token")[0] == TokenOutcome.INVALID
    assert verify_invitation(db, "missing-token")[0] == TokenOutcome.INVALID
    assert verify_invitation(db, "good-token", "someone.else@example.com")[0] == TokenOutcome.INVALID
    assert verify_invitation(db, "good-token", "OK@example.com")[0] == TokenOutcome.VALID


def test_accept_expired_invitation_is_refused(db, pm, independent_tradie):
    invitation = _invitation(db, pm, independent_tradie.email, token="stale",
                             expiry=datetime.utcnow() - timedelta(days=1))

    with pytest.raises(ValidationFailed):
        accept_invitation(db, invitation.id, independent_tradie)

    db.refresh(independent_tradie)
    assert independent_tradie.business_id is None


def test_cancel_only_pending(db, pm):
    invitation = _invitation(db, pm, "cancel@example.com", token="cancel-me")

    cancelled = cancel_invitation(db, invitation.id, pm)
    assert cancelled.status == InvitationStatus.CANCELLED.value

    with pytest.raises(InvalidStateError):
        cancel_invitation(db, invitation.id, pm)


# Invite, register with the token, and land as an approved member
def test_invitation_registration_flow(db, pm, client_for, anon_client):
    pm_client = client_for(pm)
    with patch("utils.email_service.email_service.send_email", return_value=True) as send:
        res = pm_client.post("/api/pm/tradies/invite", json={"email": "Jane.Doe@Example.com"})
    assert res.status_code == 201
    assert send.call_count == 1

    token = db.query(TradieInvitation).filter(TradieInvitation.email == "jane.doe@example.com").one().invitation_token
    assert anon_client.get(f"/api/invitations/verify/{token}").status_code == 200
    assert anon_client.get("/api/invitations/verify/not-a-token").status_code == 404

    with patch("utils.email_service.email_service.send_email", return_value=True):
        res = anon_client.post("/api/register", json={
            "username": "jane",
            "password": "secret123",
            "email": "jane.doe@example.com",
            "invitationToken": token,
        })
    assert res.status_code == 201
    body = res.json()
    assert body["is_approved"] is True
    assert body["business_id"] == pm.business_id

    db.expire_all()
    invitation = db.query(TradieInvitation).filter(TradieInvitation.invitation_token == token).one()
    jane = db.query(User).filter(User.username == "jane").one()
    assert invitation.status == InvitationStatus.ACCEPTED.value
    assert invitation.tradie_id == jane.id
    assert db.query(Notification).filter(
        Notification.user_id == pm.id, Notification.type == "invitation_accepted"
    ).count() == 1

    permissions = anon_client.get("/api/permissions").json()
    assert permissions["accessLevel"] == "approved"
    assert permissions["canPlaceOrders"] is True


def test_register_with_expired_token_reports_expired(db, pm, anon_client):
    _invitation(db, pm, "late@example.com", token="expired", expiry=datetime.utcnow() - timedelta(days=1))

    res = anon_client.post("/api/register", json={
        "username": "late",
        "password": "secret123",
        "email": "late@example.com",
        "invitationToken": "expired",
    })

    assert res.status_code == 400
    assert res.json()["outcome"] == "expired"
    assert db.query(User).filter(User.username == "late").first() is None


def test_verify_expired_token_returns_400(db, pm, anon_client):
    _invitation(db, pm, "late@example.com", token="expired", expiry=datetime.utcnow() - timedelta(days=1))

    res = anon_client.get("/api/invitations/verify/expired")

    assert res.status_code == 400
    assert res.json()["outcome"] == "expired"


def test_resend_keeps_token_and_restarts_expiry(db, pm):
    soon = datetime.utcnow() + timedelta(hours=2)
    invitation = _invitation(db, pm, "again@example.com", token="keep-me", expiry=soon)
    background = BackgroundTasks()

    resent = resend_invitation(db, invitation.id, pm, background=background)

    assert resent.invitation_token == "keep-me"
    assert resent.token_expiry > soon + timedelta(days=6)
    assert len(background.tasks) == 1
    assert background.tasks[0].kwargs["token"] == "keep-me"


def test_resend_to_existing_user_sends_in_app_reminder(db, pm, independent_tradie):
    invitation = _invitation(db, pm, independent_tradie.email, token="known")
    background = BackgroundTasks()

    resent = resend_invitation(db, invitation.id, pm, background=background)

    assert resent.tradie_id == independent_tradie.id
    assert background.tasks == []
    note = db.query(Notification).filter(Notification.user_id == independent_tradie.id).one()
    assert note.type == "company_invitation"
    assert note.message.startswith("Reminder:")
    assert note.related_id == invitation.id


def test_resend_only_own_pending_invitations(db, business, pm):
    cancelled = _invitation(db, pm, "gone@example.com", token="gone", status=InvitationStatus.CANCELLED.value)
    other_pm = make_user(db, "petra", role="project_manager", business=business, approved=True)
    pending = _invitation(db, pm, "mine@example.com", token="mine")

    with pytest.raises(InvalidStateError):
        resend_invitation(db, cancelled.id, pm)
    with pytest.raises(NotFoundError):
        resend_invitation(db, pending.id, other_pm)


def test_resend_respects_email_rate_limit(db, business, pm):
    invitation = _invitation(db, pm, "popular@example.com", token="popular")
    senders = [make_user(db, f"pm{i}", role="project_manager", business=business, approved=True)
               for i in range(settings.MAX_EMAILS_PER_HOUR)]
    for sender in senders:
        create_invitation(db, sender, "popular@example.com")
    expiry_before = invitation.token_expiry

    with pytest.raises(RateLimitedError):
        resend_invitation(db, invitation.id, pm)

    db.refresh(invitation)
    assert invitation.token_expiry == expiry_before


def test_resend_over_http_on_both_paths(db, pm, client_for):
    invitation = _invitation(db, pm, "both@example.com", token="both")
    client = client_for(pm)

    with patch("utils.email_service.email_service.send_email", return_value=True) as send:
        first = client.post(f"/api/pm/tradies/invitations/{invitation.id}/resend")
        second = client.post(f"/api/pm/invitations/{invitation.id}/resend")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["status"] == "pending"
    assert send.call_count == 2
