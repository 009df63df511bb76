import pytest

from models.cart import CartItem
from models.product import Part
from utils.order_workflow import place_order
from utils.parts_import import import_parts, read_price_list
from conftest import make_user

PRICE_LIST = (
    "Item Code,Pipe Size,Description,Product Type,T1,T2,T3,In Stock,Popular\n"
    "spk-108,1/2 in,Standard Sprinkler Head - K5.6,Sprinkler,$13.50,12.00,11.00,90,yes\n"
    "FIT-432,1 in,Threaded Elbow,Fitting,3.75,3.50,3.25,245,no\n"
    "BAD-001,1 in,Broken Row,Fitting,abc,1.00,1.00,1,no\n"
).encode()


def test_anonymous_catalog_hides_prices(part, anon_client):
    parts = anon_client.get("/api/parts").json()

    assert parts[0]["item_code"] == "SPK-108"
    assert parts[0]["price_t1"] is None


def test_pm_and_supplier_see_prices(part, pm, supplier, client_for):
    assert client_for(pm).get(f"/api/parts/{part.id}").json()["price_t2"] == part.price_t2
    assert client_for(supplier).get(f"/api/parts/{part.id}").json()["price_t3"] == part.price_t3


def test_catalog_filters(part, second_part, anon_client):
    assert [p["item_code"] for p in anon_client.get("/api/parts", params={"type": "Valve"}).json()] == ["VLV-243"]
    assert [p["item_code"] for p in anon_client.get("/api/parts", params={"search": "sprinkler"}).json()] == ["SPK-108"]
    assert anon_client.get("/api/parts/9999").status_code == 404


def test_pm_tier_pricing(db, part, pm, client_for):
    rows = client_for(pm).get("/api/pm/parts").json()

    assert rows[0]["price"] == part.price_t1
    assert rows[0]["price_tier"] == "T1"


def test_supplier_catalog_management(db, supplier, tradie, client_for):
    client = client_for(supplier)
    payload = {"itemCode": "HNG-050", "pipeSize": "1\"", "description": "Band Hanger", "type": "Hanger",
               "priceT1": 1.9, "priceT2": 1.75, "priceT3": 1.6}

    created = client.post("/api/parts", json=payload)
    assert created.status_code == 201
    assert client.post("/api/parts", json=payload).status_code == 400
    assert client_for(tradie).post("/api/parts", json=payload).status_code == 403

    part_id = created.json()["id"]
    updated = client.put(f"/api/parts/{part_id}", json={"inStock": 40})
    assert updated.json()["in_stock"] == 40

    assert client.delete(f"/api/parts/{part_id}").status_code == 204
    assert db.query(Part).filter(Part.item_code == "HNG-050").first() is None


def test_part_on_an_order_cannot_be_deleted(db, tradie, supplier, part, client_for):
    db.add(CartItem(user_id=tradie.id, part_id=part.id, quantity=1))
    db.commit()
    place_order(db, tradie)

    assert client_for(supplier).delete(f"/api/parts/{part.id}").status_code == 409


def test_price_list_import_upserts_by_item_code(db, part):
    result = import_parts(db, read_price_list(PRICE_LIST))

    assert (result.created, result.updated, result.skipped) == (1, 1, ["BAD-001"])
    db.refresh(part)
    assert part.price_t1 == 13.50
    assert part.in_stock == 90
    assert part.is_popular is True
    assert db.query(Part).filter(Part.item_code == "FIT-432").one().price_t3 == 3.25


def test_price_list_missing_columns():
    with pytest.raises(ValueError) as exc:
        read_price_list(b"Item Code,Description\nA,B\n")

    assert "pipe_size" in str(exc.value)


def test_import_endpoint(supplier, client_for):
    res = client_for(supplier).post(
        "/api/parts/import",
        files={"file": ("prices.csv", PRICE_LIST, "text/csv")},
    )

    assert res.status_code == 200
    assert res.json() == {"created": 2, "updated": 0, "skipped": ["BAD-001"]}


def test_favorites(part, tradie, client_for):
    client = client_for(tradie)

    first = client.post("/api/favorites", json={"partId": part.id})
    second = client.post("/api/favorites", json={"partId": part.id})

    assert first.json()["id"] == second.json()["id"]
    assert [p["item_code"] for p in client.get("/api/favorites").json()] == ["SPK-108"]
    assert client.delete(f"/api/favorites/{part.id}").status_code == 204
    assert client.delete(f"/api/favorites/{part.id}").status_code == 404


def test_company_jobs_visibility(db, business, job, tradie, supplier, independent_tradie, client_for):
    waiting = make_user(db, "waiting", business=business)

    assert [j["job_number"] for j in client_for(tradie).get("/api/jobs").json()] == ["JB-2023-142"]
    assert client_for(waiting).get("/api/jobs").json() == []
    assert len(client_for(supplier).get("/api/jobs").json()) == 1
    assert client_for(independent_tradie).get("/api/jobs/search", params={"job_number": "JB"}).status_code == 403
    found = client_for(tradie).get("/api/jobs/search", params={"job_number": "2023"}).json()
    assert [j["id"] for j in found] == [job.id]
    assert client_for(waiting).get(f"/api/jobs/{job.id}").status_code == 403
    detail = client_for(tradie).get(f"/api/jobs/{job.id}").json()
    assert [t["username"] for t in detail["tradies"]] == ["tom"]
