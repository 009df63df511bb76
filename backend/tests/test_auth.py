from models.notification import Notification
from models.order import Order, OrderStatus
from models.session import UserSession
from models.users import User, UserStatus, is_effectively_approved
from conftest import PASSWORD, make_user


def test_login_sets_session_cookie_and_user_endpoint(tradie, anon_client):
    res = anon_client.post("/api/login", json={"username": "tom", "password": PASSWORD})

    assert res.status_code == 200
    assert "connect.sid" in res.cookies
    me = anon_client.get("/api/user")
    assert me.json()["username"] == "tom"
    assert me.headers["Cache-Control"].startswith("no-store")


def test_bad_credentials(tradie, anon_client):
    res = anon_client.post("/api/login", json={"username": "tom", "password": "wrong"})

    assert res.status_code == 401
    assert res.json() == {"message": "Invalid credentials"}


def test_unapproved_login_keeps_browse_session(db, business, part, anon_client):
    make_user(db, "waiting", business=business, status=UserStatus.PENDING_INVITATION.value)

    res = anon_client.post("/api/login", json={"username": "waiting", "password": PASSWORD})

    assert res.status_code == 403
    assert res.json()["isApproved"] is False
    parts = anon_client.get("/api/parts").json()
    assert parts[0]["item_code"] == part.item_code
    assert parts[0]["price_t1"] is None
    assert anon_client.get("/api/permissions").json()["accessLevel"] == "limited"


def test_logout_destroys_session(db, tradie, client_for):
    client = client_for(tradie)

    res = client.post("/api/logout")

    assert res.status_code == 200
    assert db.query(UserSession).count() == 0
    assert client.get("/api/user").status_code == 401


def test_register_independent_tradie_notifies_suppliers(db, supplier, anon_client):
    res = anon_client.post("/api/register", json={
        "username": "newbie",
        "password": "secret123",
        "email": "Newbie@Example.com",
        "firstName": "Nina",
    })

    assert res.status_code == 201
    body = res.json()
    assert body["email"] == "newbie@example.com"
    assert body["role"] == "tradie"
    assert body["is_approved"] is False
    assert body["first_name"] == "Nina"
    note = db.query(Notification).filter(Notification.user_id == supplier.id).one()
    assert note.type == "user_registration"


def test_register_with_company_waits_for_approval(db, business, anon_client):
    res = anon_client.post("/api/register", json={
        "username": "joiner",
        "password": "secret123",
        "email": "joiner@example.com",
        "businessId": business.id,
    })

    assert res.status_code == 201
    user = db.query(User).filter(User.username == "joiner").one()
    assert user.status == UserStatus.PENDING_INVITATION.value
    assert user.business_id == business.id


def test_register_rejects_duplicates_and_suppliers(tradie, anon_client):
    dup = anon_client.post("/api/register", json={
        "username": "TOM", "password": "secret123", "email": "tom2@example.com",
    })
    supplier = anon_client.post("/api/register", json={
        "username": "boss", "password": "secret123", "email": "boss@example.com", "role": "supplier",
    })

    assert dup.status_code == 400
    assert supplier.status_code == 403


def test_legacy_contractor_role_registers_as_tradie(db, anon_client):
    res = anon_client.post("/api/register", json={
        "username": "oldtimer", "password": "secret123", "email": "old@example.com", "role": "contractor",
    })

    assert res.json()["role"] == "tradie"


def test_supplier_approves_project_manager(db, business, supplier, client_for):
    candidate = make_user(db, "newpm", role="project_manager", business=business)

    res = client_for(supplier).post(f"/api/users/{candidate.id}/approve")

    assert res.status_code == 200
    assert res.json()["is_approved"] is True


def test_pm_cannot_approve_another_pm(db, business, pm, client_for):
    candidate = make_user(db, "newpm", role="project_manager", business=business)

    assert client_for(pm).post(f"/api/users/{candidate.id}/approve").status_code == 403


def test_user_listing_is_supplier_only(tradie, supplier, client_for):
    assert client_for(tradie).get("/api/users").status_code == 403
    assert len(client_for(supplier).get("/api/users").json()) == 2


def test_self_registered_pm_cannot_act_until_supplier_approves(db, business, supplier, tradie, client_for, anon_client):
    order = Order(business_id=business.id, requested_by=tradie.id, status=OrderStatus.PENDING_APPROVAL.value)
    db.add(order)
    db.commit()

    res = anon_client.post("/api/register", json={
        "username": "mallory", "password": "secret123", "email": "mallory@example.com",
        "role": "project_manager", "businessId": business.id,
    })
    assert res.status_code == 201
    assert res.json()["is_approved"] is False

    approve = anon_client.post(f"/api/pm/orders/{order.id}/approve", json={})
    assert approve.status_code == 403
    assert approve.json()["isApproved"] is False
    assert anon_client.get("/api/pm/tradies").status_code == 403
    assert anon_client.post(f"/api/users/{tradie.id}/reject", json={"reason": "x"}).status_code == 403
    assert anon_client.get("/api/permissions").json()["accessLevel"] == "limited"
    db.refresh(order)
    assert order.status == OrderStatus.PENDING_APPROVAL.value

    mallory = db.query(User).filter(User.username == "mallory").one()
    client_for(supplier).post(f"/api/users/{mallory.id}/approve")
    assert anon_client.get("/api/pm/tradies").status_code == 200


def test_supplier_is_approved_whatever_the_stored_flag(db, part, anon_client):
    supplier = make_user(db, "stockist", role="supplier", approved=False)

    assert is_effectively_approved(supplier)
    res = anon_client.post("/api/login", json={"username": "stockist", "password": PASSWORD})
    assert res.status_code == 200
    assert anon_client.get("/api/parts").json()[0]["price_t1"] == part.price_t1
