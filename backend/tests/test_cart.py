from models.cart import CartItem
from conftest import make_user


def test_adding_same_part_twice_increments_quantity(db, tradie, part, client_for):
    client = client_for(tradie)

    first = client.post("/api/cart", json={"partId": part.id, "quantity": 2})
    second = client.post("/api/cart", json={"partId": part.id, "quantity": 3})

    assert first.status_code == 201
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["quantity"] == 5
    cart = client.get("/api/cart").json()
    assert cart["count"] == 5
    assert len(cart["items"]) == 1


def test_same_part_for_different_jobs_stays_separate(db, tradie, part, job, client_for):
    client = client_for(tradie)

    client.post("/api/cart", json={"partId": part.id, "quantity": 1})
    client.post("/api/cart", json={"partId": part.id, "jobId": job.id, "quantity": 1})

    assert db.query(CartItem).filter(CartItem.user_id == tradie.id).count() == 2


def test_quantity_zero_removes_line(db, tradie, part, client_for):
    client = client_for(tradie)
    item_id = client.post("/api/cart", json={"partId": part.id, "quantity": 2}).json()["id"]

    res = client.put(f"/api/cart/{item_id}", json={"quantity": 0})

    assert res.status_code == 200
    assert res.json() == {"success": True, "removed": True, "id": item_id}
    assert client.get("/api/cart").json()["items"] == []


def test_negative_quantity_is_refused(tradie, part, client_for):
    client = client_for(tradie)
    item_id = client.post("/api/cart", json={"partId": part.id}).json()["id"]

    res = client.put(f"/api/cart/{item_id}", json={"quantity": -1})

    assert res.status_code == 400


def test_tradie_cart_hides_prices_pm_cart_shows_them(tradie, pm, part, client_for):
    tradie_client = client_for(tradie)
    pm_client = client_for(pm)
    tradie_client.post("/api/cart", json={"partId": part.id})
    pm_client.post("/api/cart", json={"partId": part.id})

    assert tradie_client.get("/api/cart").json()["items"][0]["part"]["price_t1"] is None
    assert pm_client.get("/api/cart").json()["items"][0]["part"]["price_t1"] == part.price_t1


def test_unapproved_tradie_has_no_cart(db, business, part, client_for):
    waiting = make_user(db, "waiting", business=business)

    res = client_for(waiting).post("/api/cart", json={"partId": part.id})

    assert res.status_code == 403
    assert res.json()["accessLevel"] == "limited"


def test_cannot_touch_someone_elses_line(db, business, tradie, part, client_for):
    other = make_user(db, "other", business=business, approved=True)
    item_id = client_for(tradie).post("/api/cart", json={"partId": part.id}).json()["id"]

    assert client_for(other).delete(f"/api/cart/{item_id}").status_code == 404


def test_clear_cart(db, tradie, part, second_part, client_for):
    client = client_for(tradie)
    client.post("/api/cart", json={"partId": part.id})
    client.post("/api/cart", json={"partId": second_part.id})

    assert client.delete("/api/cart").status_code == 204
    assert db.query(CartItem).count() == 0
