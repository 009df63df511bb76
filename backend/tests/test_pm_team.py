from datetime import datetime, timedelta

from models.company import Client
from models.job import Job, JobUser
from models.notification import Notification
from models.order import Order, OrderStatus
from models.users import User, UserStatus
from conftest import make_user


def test_pm_approves_pending_tradie(db, business, pm, client_for):
    pending = make_user(db, "nina", business=business, status=UserStatus.PENDING_INVITATION.value)

    res = client_for(pm).post(f"/api/pm/tradies/{pending.id}/approve")

    assert res.status_code == 200
    assert res.json()["membership_state"] == "approved"
    assert res.json()["access_level"] == "approved"


def test_pm_reject_requires_reason(db, business, pm, client_for):
    pending = make_user(db, "nina", business=business, status=UserStatus.PENDING_INVITATION.value)
    client = client_for(pm)

    assert client.post(f"/api/pm/tradies/{pending.id}/reject", json={"reason": " "}).status_code == 400
    res = client.post(f"/api/pm/tradies/{pending.id}/reject", json={"reason": "Unknown to us"})

    assert res.status_code == 200
    assert res.json()["membership_state"] == "rejected"


def test_remove_then_reapprove(db, pm, tradie, client_for):
    client = client_for(pm)

    removed = client.post(f"/api/pm/tradies/{tradie.id}/remove", json={"reason": "Left the crew"})
    assert removed.json()["membership_state"] == "removed"
    assert removed.json()["access_level"] == "limited"
    assert client.post(f"/api/pm/tradies/{tradie.id}/remove").status_code == 400

    again = client.post(f"/api/pm/tradies/{tradie.id}/approve")
    assert again.json()["membership_state"] == "approved"


def test_pm_cannot_manage_other_company_tradie(db, pm, other_business, client_for):
    foreign = make_user(db, "foreign", business=other_business, status=UserStatus.PENDING_INVITATION.value)

    res = client_for(pm).post(f"/api/pm/tradies/{foreign.id}/approve")

    assert res.status_code == 403
    db.refresh(foreign)
    assert not foreign.is_approved


def test_tradie_list_shows_membership_state(db, business, pm, tradie, client_for):
    make_user(db, "nina", business=business, status=UserStatus.PENDING_INVITATION.value)

    rows = {r["username"]: r for r in client_for(pm).get("/api/pm/tradies").json()}

    assert rows["tom"]["membership_state"] == "approved"
    assert rows["nina"]["membership_state"] == "invited"
    assert rows["nina"]["access_level"] == "limited"


def test_tradie_accepts_invitation_in_app(db, pm, independent_tradie, client_for):
    pm_client = client_for(pm)
    invite = pm_client.post("/api/pm/tradies/invite", json={"email": independent_tradie.email})
    assert invite.status_code == 201

    tradie_client = client_for(independent_tradie)
    pending = tradie_client.get("/api/tradie/invitations").json()
    assert [i["company_name"] for i in pending] == ["Acme Fire Protection"]

    res = tradie_client.post(f"/api/tradie/invitations/{pending[0]['id']}/accept")

    assert res.status_code == 200
    assert res.json()["access_level"] == "approved"
    assert tradie_client.get("/api/tradie/invitations").json() == []
    assert pm_client.get("/api/pm/tradies/invitations").json()[0]["status"] == "accepted"


def test_tradie_declines_invitation(db, pm, independent_tradie, client_for):
    client_for(pm).post("/api/pm/tradies/invite", json={"email": independent_tradie.email})
    tradie_client = client_for(independent_tradie)
    invitation_id = tradie_client.get("/api/tradie/invitations").json()[0]["id"]

    assert tradie_client.post(f"/api/tradie/invitations/{invitation_id}/reject").status_code == 200
    assert tradie_client.post(f"/api/tradie/invitations/{invitation_id}/reject").status_code == 400

    db.expire_all()
    user = db.query(User).filter(User.id == independent_tradie.id).one()
    assert user.business_id is None
    declined = db.query(Notification).filter(Notification.user_id == pm.id,
                                             Notification.type == "invitation_declined").count()
    assert declined == 1


def test_pm_cancels_invitation(pm, client_for):
    client = client_for(pm)
    invitation_id = client.post("/api/pm/tradies/invite", json={"email": "gone@example.com"}).json()["id"]

    res = client.delete(f"/api/pm/tradies/invitations/{invitation_id}")

    assert res.status_code == 200
    assert res.json()["status"] == "cancelled"


def test_assign_tradie_to_job(db, business, pm, tradie, client_for):
    client = client_for(pm)
    job = client.post("/api/pm/jobs", json={"name": "Warehouse Fitout", "jobNumber": "JB-7"}).json()

    res = client.post(f"/api/pm/jobs/{job['id']}/tradies", json={"userId": tradie.id})

    assert res.status_code == 201
    assert [t["username"] for t in res.json()["tradies"]] == ["tom"]
    assert client.post(f"/api/pm/jobs/{job['id']}/tradies", json={"userId": tradie.id}).status_code == 409
    note = db.query(Notification).filter(Notification.user_id == tradie.id).one()
    assert note.type == "job_assignment_received"

    assert client.delete(f"/api/pm/jobs/{job['id']}/tradies/{tradie.id}").status_code == 204
    assert db.query(JobUser).count() == 0


def test_unapproved_tradie_cannot_be_assigned(db, business, pm, client_for):
    pending = make_user(db, "nina", business=business, status=UserStatus.PENDING_INVITATION.value)
    client = client_for(pm)
    job = client.post("/api/pm/jobs", json={"name": "Site", "jobNumber": "JB-8"}).json()

    res = client.post(f"/api/pm/jobs/{job['id']}/tradies", json={"userId": pending.id})

    assert res.status_code == 400


def test_job_status_change_notifies_team(db, pm, tradie, job, client_for):
    res = client_for(pm).put(f"/api/pm/jobs/{job.id}", json={"status": "on_hold"})

    assert res.json()["status"] == "on_hold"
    types = sorted(n.type for n in db.query(Notification).all())
    assert types == ["job_status_change_pm", "job_status_change_tradie"]


def test_client_with_jobs_cannot_be_deleted(db, business, pm, client_for):
    client = client_for(pm)
    created = client.post("/api/pm/clients", json={"name": "Harbourside", "email": "jo@example.com"}).json()
    client.post("/api/pm/jobs", json={"name": "Tower", "jobNumber": "JB-9", "clientId": created["id"]})

    assert client.delete(f"/api/pm/clients/{created['id']}").status_code == 409
    assert db.query(Client).count() == 1


def test_tradie_cannot_use_pm_routes(tradie, client_for):
    assert client_for(tradie).get("/api/pm/orders/pending").status_code == 403


def test_dashboard_stats_cover_only_own_company(db, business, other_business, pm, tradie, job, client_for):
    last_year = datetime.utcnow() - timedelta(days=400)
    db.add_all([
        Job(name="Car Park", job_number="JB-2023-150", business_id=business.id, status="On Hold"),
        Job(name="Warehouse", job_number="JB-2022-011", business_id=business.id, status="completed",
            created_at=last_year),
        Job(name="Not Ours", job_number="JB-9", business_id=other_business.id, status="active"),
    ])
    make_user(db, "waiting", business=business)
    make_user(db, "foreign", business=other_business, approved=True)
    db.add_all([
        Order(business_id=business.id, job_id=job.id, status=OrderStatus.PENDING_APPROVAL.value,
              order_number="PO-1", requested_by=tradie.id),
        Order(business_id=business.id, status=OrderStatus.APPROVED.value, order_number="PO-2"),
        Order(business_id=other_business.id, status=OrderStatus.PENDING_APPROVAL.value, order_number="PO-3"),
    ])
    db.commit()

    res = client_for(pm).get("/api/pm/dashboard/stats")

    assert res.status_code == 200
    stats = res.json()
    assert stats["pending_approvals"] == 1
    assert stats["active_jobs"] == 1
    assert stats["on_hold_jobs"] == 1
    assert stats["completed_jobs"] == 1
    assert stats["jobs_this_month"] == 2
    assert stats["total_tradies"] == 1
    assert stats["total_job_orders"] == 1
    recent = {o["order_number"]: o for o in stats["recent_orders"]}
    assert set(recent) == {"PO-1", "PO-2"}
    assert recent["PO-1"]["job_number"] == "JB-2023-142"
    assert recent["PO-2"]["job_name"] is None
