"""Tests for FastAPI endpoints."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from fundhub.database import Base, get_db
from fundhub.main import app

HEADERS = {"X-User-Id": "user-789"}


@pytest.fixture
def client(tmp_path):
    """Create a test client with a file-based temp database."""
    db_path = tmp_path / "test.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def structure_id(client):
    """Create a test structure and return its ID."""
    resp = client.post("/api/structures", headers=HEADERS, json={
        "name": "Growth Fund I",
        "type": "Fund",
        "totalCommitment": 10000000,
        "hurdleRate": 8,
        "carriedInterest": 20,
    })
    assert resp.status_code == 201
    return resp.json()["id"]


@pytest.fixture
def default_tiers(client, structure_id):
    """Create the default four tiers and return them."""
    resp = client.post(f"/api/waterfall-tiers/structure/{structure_id}/defaults", headers=HEADERS)
    assert resp.status_code == 201
    return resp.json()


class TestHealth:
    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.json()["name"] == "FundHub API"

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestStructureEndpoints:
    def test_create_returns_camel_case(self, client, structure_id):
        resp = client.get(f"/api/structures/{structure_id}")
        assert resp.status_code == 200
        data = resp.json()
        assert data["hurdleRate"] == 8
        assert data["userId"] == "user-789"
        assert "hurdle_rate" not in data

    def test_missing_user_header(self, client):
        resp = client.post("/api/structures", json={"name": "x", "type": "Fund"})
        assert resp.status_code == 401

    def test_invalid_type(self, client):
        resp = client.post("/api/structures", headers=HEADERS, json={"name": "x", "type": "Hedge"})
        assert resp.status_code == 422

    def test_list_and_filter(self, client, structure_id):
        assert len(client.get("/api/structures").json()) == 1
        assert client.get("/api/structures", params={"type": "SA/LLC"}).json() == []

    def test_update(self, client, structure_id):
        resp = client.put(f"/api/structures/{structure_id}", headers=HEADERS, json={"hurdleRate": 10})
        assert resp.status_code == 200
        assert resp.json()["hurdleRate"] == 10

    def test_update_rejects_unknown_waterfall_type(self, client, structure_id):
        resp = client.put(f"/api/structures/{structure_id}", headers=HEADERS, json={"waterfallType": "Bogus"})
        assert resp.status_code == 422
        assert client.get(f"/api/structures/{structure_id}").json()["waterfallType"] == "American"

        resp = client.put(f"/api/structures/{structure_id}", headers=HEADERS, json={"waterfallType": "European"})
        assert resp.json()["waterfallType"] == "European"

    def test_update_rejects_long_currency(self, client, structure_id):
        resp = client.put(f"/api/structures/{structure_id}", headers=HEADERS, json={"baseCurrency": "DOLLARS-USD"})
        assert resp.status_code == 422

    def test_not_found(self, client):
        assert client.get("/api/structures/nope").status_code == 404

    def test_delete(self, client, structure_id, default_tiers):
        assert client.delete(f"/api/structures/{structure_id}", headers=HEADERS).status_code == 200
        assert client.get(f"/api/structures/{structure_id}").status_code == 404
        assert client.get(f"/api/waterfall-tiers/structure/{structure_id}").json() == []


class TestInvestorEndpoints:
    def _add(self, client, structure_id, user_id, commitment):
        resp = client.post(f"/api/structures/{structure_id}/investors", headers=HEADERS, json={
            "userId": user_id, "commitment": commitment,
        })
        assert resp.status_code == 201
        return resp.json()

    def test_commitment_and_ownership(self, client, structure_id):
        self._add(client, structure_id, "lp-a", 300000)
        self._add(client, structure_id, "lp-b", 700000)

        resp = client.get(f"/api/structures/{structure_id}/commitment")
        assert resp.json() == {
            "structureId": structure_id, "totalCommitment": 1000000, "investorCount": 2,
        }

        resp = client.post(f"/api/structures/{structure_id}/recalculate-ownership", headers=HEADERS)
        ownership = {inv["userId"]: inv["ownershipPercent"] for inv in resp.json()}
        assert ownership == {"lp-a": 30.0, "lp-b": 70.0}

    def test_duplicate_investor_conflict(self, client, structure_id):
        self._add(client, structure_id, "lp-a", 100)
        resp = client.post(f"/api/structures/{structure_id}/investors", headers=HEADERS, json={
            "userId": "lp-a",
        })
        assert resp.status_code == 409
        assert resp.json()["detail"]["error_code"] == "CONSTRAINT_VIOLATION"

    def test_update_and_remove(self, client, structure_id):
        investor = self._add(client, structure_id, "lp-a", 100)
        url = f"/api/structures/{structure_id}/investors/{investor['id']}"
        resp = client.put(url, headers=HEADERS, json={"feeDiscount": 5})
        assert resp.json()["feeDiscount"] == 5
        assert client.delete(url, headers=HEADERS).status_code == 200
        assert client.get(f"/api/structures/{structure_id}/investors").json() == []


class TestTierEndpoints:
    def _tier_body(self, structure_id, **overrides):
        body = {
            "structureId": structure_id,
            "tierNumber": 1,
            "tierName": "Return of Capital",
            "lpSharePercent": 100,
            "gpSharePercent": 0,
        }
        body.update(overrides)
        return body

    def test_create_and_get(self, client, structure_id):
        resp = client.post("/api/waterfall-tiers", headers=HEADERS, json=self._tier_body(structure_id))
        assert resp.status_code == 201
        tier = resp.json()
        assert tier["isActive"] is True
        assert client.get(f"/api/waterfall-tiers/{tier['id']}").json()["tierName"] == "Return of Capital"

    def test_create_invalid_lists_every_error(self, client, structure_id):
        resp = client.post("/api/waterfall-tiers", headers=HEADERS, json=self._tier_body(
            structure_id, tierNumber=5, lpSharePercent=80, gpSharePercent=10, thresholdIrr=150,
        ))
        assert resp.status_code == 400
        detail = resp.json()["detail"]
        assert detail["error_code"] == "VALIDATION_ERROR"
        assert detail["errors"] == [
            "Tier number must be between 1 and 4",
            "LP share and GP share must sum to 100%",
            "Threshold IRR must be between 0 and 100",
        ]

    def test_create_for_unknown_structure(self, client):
        resp = client.post("/api/waterfall-tiers", headers=HEADERS, json=self._tier_body("nope"))
        assert resp.status_code == 404

    def test_duplicate_active_tier_conflict(self, client, structure_id, default_tiers):
        resp = client.post("/api/waterfall-tiers", headers=HEADERS, json=self._tier_body(structure_id))
        assert resp.status_code == 409

    def test_validate_endpoint(self, client):
        resp = client.post("/api/waterfall-tiers/validate", json={
            "tierNumber": 2, "lpSharePercent": 70, "gpSharePercent": 20,
        })
        assert resp.status_code == 200
        assert resp.json() == {
            "isValid": False, "errors": ["LP share and GP share must sum to 100%"],
        }

    def test_update_validates_merged_tier(self, client, default_tiers):
        tier_id = default_tiers[3]["id"]
        resp = client.put(f"/api/waterfall-tiers/{tier_id}", headers=HEADERS, json={"gpSharePercent": 30})
        assert resp.status_code == 400

        resp = client.put(f"/api/waterfall-tiers/{tier_id}", headers=HEADERS, json={
            "lpSharePercent": 70, "gpSharePercent": 30,
        })
        assert resp.status_code == 200
        assert resp.json()["gpSharePercent"] == 30

    def test_update_unknown(self, client):
        resp = client.put("/api/waterfall-tiers/nope", headers=HEADERS, json={"tierName": "x"})
        assert resp.status_code == 404

    def test_delete(self, client, default_tiers):
        tier_id = default_tiers[0]["id"]
        assert client.delete(f"/api/waterfall-tiers/{tier_id}", headers=HEADERS).status_code == 200
        assert client.get(f"/api/waterfall-tiers/{tier_id}").status_code == 404


class TestDefaultTierEndpoints:
    def test_uses_structure_terms(self, client, default_tiers):
        assert [t["tierNumber"] for t in default_tiers] == [1, 2, 3, 4]
        assert default_tiers[1]["thresholdIrr"] == 8
        assert default_tiers[3]["gpSharePercent"] == 20

    def test_explicit_terms(self, client, structure_id):
        resp = client.post(
            f"/api/waterfall-tiers/structure/{structure_id}/defaults",
            headers=HEADERS, json={"hurdleRatePercent": 10, "carryPercent": 25},
        )
        assert resp.status_code == 201
        assert resp.json()[3]["lpSharePercent"] == 75

    def test_second_call_conflicts(self, client, structure_id, default_tiers):
        resp = client.post(f"/api/waterfall-tiers/structure/{structure_id}/defaults", headers=HEADERS)
        assert resp.status_code == 409
        assert resp.json()["detail"]["detail"] == "Waterfall tiers already exist for this structure"
        assert len(client.get(f"/api/waterfall-tiers/structure/{structure_id}").json()) == 4

    def test_unknown_structure(self, client):
        resp = client.post("/api/waterfall-tiers/structure/nope/defaults", headers=HEADERS)
        assert resp.status_code == 404


class TestStructureTierEndpoints:
    def test_summary(self, client, structure_id, default_tiers):
        resp = client.get(f"/api/waterfall-tiers/structure/{structure_id}/summary")
        data = resp.json()
        assert data["totalTiers"] == 4
        assert data["tiers"][1]["threshold"] == "8% IRR"
        assert data["tiers"][3]["lpShare"] == 80

    def test_deactivate(self, client, structure_id, default_tiers):
        resp = client.patch(f"/api/waterfall-tiers/structure/{structure_id}/deactivate", headers=HEADERS)
        assert resp.status_code == 200
        assert all(t["isActive"] is False for t in resp.json())
        assert client.get(f"/api/waterfall-tiers/structure/{structure_id}/active").json() == []
        assert len(client.get("/api/waterfall-tiers", params={"isActive": "false"}).json()) == 4

    def test_bulk_update(self, client, structure_id, default_tiers):
        resp = client.put(f"/api/waterfall-tiers/structure/{structure_id}/bulk", headers=HEADERS, json={
            "tiers": [
                {"id": default_tiers[3]["id"], "lpSharePercent": 75, "gpSharePercent": 25},
                {"id": default_tiers[0]["id"], "tierName": "Capital Back"},
            ],
        })
        assert resp.status_code == 200
        tiers = resp.json()
        assert [t["id"] for t in tiers] == [default_tiers[3]["id"], default_tiers[0]["id"]]
        assert tiers[0]["gpSharePercent"] == 25

    def test_bulk_partial_failure_reports_progress(self, client, structure_id):
        resp = client.put(f"/api/waterfall-tiers/structure/{structure_id}/bulk", headers=HEADERS, json={
            "tiers": [
                {"tierNumber": 1, "lpSharePercent": 100, "gpSharePercent": 0},
                {"id": "missing", "tierName": "ghost"},
            ],
        })
        assert resp.status_code == 404
        detail = resp.json()["detail"]
        assert detail["context"]["failedIndex"] == 1
        assert len(detail["context"]["completedIds"]) == 1
        assert len(client.get(f"/api/waterfall-tiers/structure/{structure_id}").json()) == 1

    def test_bulk_missing_fields(self, client, structure_id):
        resp = client.put(f"/api/waterfall-tiers/structure/{structure_id}/bulk", headers=HEADERS, json={
            "tiers": [{"lpSharePercent": 100, "gpSharePercent": 0}],
        })
        assert resp.status_code == 400
        assert resp.json()["detail"]["errors"] == ["tierNumber is required for new tiers"]


class TestDistributionEndpoints:
    def _create(self, client, structure_id, amount=1000):
        resp = client.post("/api/distributions", headers=HEADERS, json={
            "structureId": structure_id,
            "distributionNumber": "D-001",
            "distributionDate": "2024-06-30",
            "totalAmount": amount,
        })
        assert resp.status_code == 201
        return resp.json()["id"]

    def test_apply_waterfall(self, client, structure_id, default_tiers):
        distribution_id = self._create(client, structure_id)
        resp = client.post(f"/api/distributions/{distribution_id}/apply-waterfall", headers=HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["waterfallApplied"] is True
        assert data["tiers"] == {"tier1": 250, "tier2": 187.5, "tier3": 112.5, "tier4": 450}
        assert abs(data["splits"]["lpTotal"] - 797.5) < 1e-9
        assert abs(data["splits"]["gpTotal"] - 202.5) < 1e-9

        resp = client.post(f"/api/distributions/{distribution_id}/apply-waterfall", headers=HEADERS)
        assert resp.status_code == 409

    def test_apply_without_tiers(self, client, structure_id):
        distribution_id = self._create(client, structure_id)
        resp = client.post(f"/api/distributions/{distribution_id}/apply-waterfall", headers=HEADERS)
        assert resp.status_code == 409

    def test_apply_unknown(self, client):
        resp = client.post("/api/distributions/nope/apply-waterfall", headers=HEADERS)
        assert resp.status_code == 404

    def test_allocations(self, client, structure_id, default_tiers):
        for user_id, commitment in (("lp-a", 300000), ("lp-b", 700000)):
            client.post(f"/api/structures/{structure_id}/investors", headers=HEADERS, json={
                "userId": user_id, "commitment": commitment,
            })
        client.post(f"/api/structures/{structure_id}/recalculate-ownership", headers=HEADERS)
        distribution_id = self._create(client, structure_id)

        resp = client.post(f"/api/distributions/{distribution_id}/create-allocations", headers=HEADERS)
        assert resp.status_code == 409

        client.post(f"/api/distributions/{distribution_id}/apply-waterfall", headers=HEADERS)
        resp = client.post(f"/api/distributions/{distribution_id}/create-allocations", headers=HEADERS)
        assert resp.status_code == 201
        amounts = {a["investorId"]: a["allocatedAmount"] for a in resp.json()}
        assert abs(amounts["lp-a"] - 239.25) < 1e-6
        assert abs(amounts["lp-b"] - 558.25) < 1e-6

        listed = client.get(f"/api/distributions/{distribution_id}/allocations").json()
        assert len(listed) == 2

    def test_rejects_non_positive_amount(self, client, structure_id):
        resp = client.post("/api/distributions", headers=HEADERS, json={
            "structureId": structure_id,
            "distributionNumber": "D-002",
            "distributionDate": "2024-06-30",
            "totalAmount": 0,
        })
        assert resp.status_code == 422
