from types import SimpleNamespace

import pytest

from utils.errors import AuthorizationDenied
from utils.guards import require_approved_tradie, require_pm, require_role
from conftest import make_user


def _user(role, business_id=None, approved=False):
    return SimpleNamespace(id=1, role=role, business_id=business_id, is_approved=approved)


def test_require_role_treats_contractor_as_tradie():
    checker = require_role("tradie")

    assert checker(current_user=_user("contractor")).role == "contractor"
    with pytest.raises(AuthorizationDenied):
        checker(current_user=_user("project_manager"))


@pytest.mark.parametrize("user,level", [
    (_user("tradie", business_id=3), "limited"),
    (_user("tradie"), "independent"),
])
def test_require_approved_tradie_echoes_access_level(user, level):
    with pytest.raises(AuthorizationDenied) as exc:
        require_approved_tradie(current_user=user)

    assert exc.value.to_dict()["accessLevel"] == level


def test_require_approved_tradie_rejects_other_roles():
    with pytest.raises(AuthorizationDenied) as exc:
        require_approved_tradie(current_user=_user("project_manager", business_id=3))

    assert exc.value.message == "Tradie role required"


def test_tradie_jobs_lists_assignments(db, business, job, tradie, client_for):
    waiting = make_user(db, "waiting", business=business)

    assert [j["id"] for j in client_for(tradie).get("/api/tradie/jobs").json()] == [job.id]
    res = client_for(waiting).get("/api/tradie/jobs")
    assert res.status_code == 403
    assert res.json()["accessLevel"] == "limited"


def test_company_profile_requires_membership(db, business, other_business, pm, tradie, client_for):
    waiting = make_user(db, "waiting", business=business)

    assert client_for(pm).get(f"/api/businesses/{business.id}").json()["name"] == "Acme Fire Protection"
    assert client_for(tradie).get(f"/api/businesses/{business.id}").status_code == 200
    assert client_for(waiting).get(f"/api/businesses/{business.id}").status_code == 403
    assert client_for(pm).get(f"/api/businesses/{other_business.id}").status_code == 403


def test_job_detail_missing_job(pm, client_for):
    assert client_for(pm).get("/api/jobs/424242").status_code == 404


def test_require_pm_needs_supplier_approval():
    with pytest.raises(AuthorizationDenied) as exc:
        require_pm(current_user=_user("project_manager", business_id=3))

    body = exc.value.to_dict()
    assert body["isApproved"] is False
    assert body["accessLevel"] == "limited"
    approved = _user("project_manager", business_id=3, approved=True)
    assert require_pm(current_user=approved) is approved
