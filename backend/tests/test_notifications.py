from models.notification import Notification
from schemas.notification import InvitationRef, JobRef, OrderRef, from_related_ref, to_related_ref
from utils.notifications import notify, notify_now, notify_suppliers_of_registration
from conftest import make_user


def _seed(db, user, count, type="order_status", read=False):
    for i in range(count):
        db.add(Notification(user_id=user.id, type=type, title=f"Title {i}",
                            message=f"Order #{i} changed", is_read=read,
                            related_type="order", related_id=i + 1))
    db.commit()


def test_related_ref_round_trip_through_columns():
    assert from_related_ref(OrderRef(order_id=4)) == ("order", 4)
    assert to_related_ref("job", 9) == JobRef(job_id=9)
    assert to_related_ref("invoice", 9) is None
    assert from_related_ref(None) == (None, None)


def test_notify_stages_until_commit(db, tradie):
    notify(db, tradie.id, "order_approved", "Approved", "Done", OrderRef(order_id=1))
    db.rollback()
    assert db.query(Notification).count() == 0

    created = notify_now(db, tradie.id, "company_invitation", "Invite", "Join us", InvitationRef(invitation_id=3))
    assert created.id is not None
    assert created.related_type == "invitation"


def test_list_is_paginated_and_scoped_to_caller(db, tradie, pm, client_for):
    _seed(db, tradie, 12)
    _seed(db, pm, 2)

    body = client_for(tradie).get("/api/notifications", params={"page": 2, "limit": 5}).json()

    assert body["total"] == 12
    assert body["total_pages"] == 3
    assert body["page"] == 2
    assert body["has_more"] is True
    assert len(body["notifications"]) == 5
    assert body["notifications"][0]["related"]["kind"] == "order"


def test_list_filters(db, tradie, client_for):
    _seed(db, tradie, 2, type="order_approved")
    _seed(db, tradie, 1, type="job_assignment_received", read=True)
    client = client_for(tradie)

    assert client.get("/api/notifications", params={"type": "order_approved"}).json()["total"] == 2
    assert client.get("/api/notifications", params={"read": "true"}).json()["total"] == 1
    assert client.get("/api/notifications", params={"search": "order #1"}).json()["total"] == 1


def test_unread_count_and_mark_all_read(db, tradie, client_for):
    _seed(db, tradie, 3)
    _seed(db, tradie, 1, read=True)
    client = client_for(tradie)

    assert client.get("/api/notifications/unread/count").json() == {"count": 3}
    assert client.put("/api/notifications/all/read").json()["updated"] == 3
    assert client.get("/api/notifications/unread/count").json() == {"count": 0}


def test_mark_single_read_checks_owner(db, tradie, pm, client_for):
    _seed(db, pm, 1)
    note_id = db.query(Notification).filter(Notification.user_id == pm.id).one().id

    assert client_for(tradie).put(f"/api/notifications/{note_id}/read").status_code == 403
    res = client_for(pm).put(f"/api/notifications/{note_id}/read")
    assert res.status_code == 200
    assert res.json()["is_read"] is True
    assert client_for(pm).put("/api/notifications/9999/read").status_code == 404


def test_notifications_require_login(anon_client):
    res = anon_client.get("/api/notifications")

    assert res.status_code == 401
    assert res.json() == {"message": "Authentication required"}


def test_registration_notice_reflects_approval_state(db, business, supplier, tradie):
    waiting = make_user(db, "waiting", business=business)

    notify_suppliers_of_registration(db, waiting)
    notify_suppliers_of_registration(db, tradie)

    messages = [n.message for n in db.query(Notification)
                .filter(Notification.user_id == supplier.id).order_by(Notification.id)]
    assert messages[0].endswith("is waiting for approval.")
    assert "waiting" not in messages[1]
    assert messages[1].endswith("joined their company through an invitation.")
