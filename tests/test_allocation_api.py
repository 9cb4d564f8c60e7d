from __future__ import annotations

from dataclasses import replace

from fastapi import FastAPI
from fastapi.testclient import TestClient

from seatplan.controllers.allocation_controller import router as allocation_router
from seatplan.repository.data_repository import DataRepository
from seatplan.services.allocation_service import AllocationService
from seatplan.utils.config import get_settings


def _build_test_app(tmp_path) -> tuple[FastAPI, DataRepository]:
    get_settings.cache_clear()
    settings = replace(get_settings(), database_path=tmp_path / "api.db")
    repository = DataRepository(settings)
    repository.initialize_database()
    repository.seed_demo_roster()

    app = FastAPI()
    app.include_router(allocation_router)
    app.state.settings = settings
    app.state.repository = repository
    app.state.allocation_service = AllocationService(repository=repository, settings=settings)
    return app, repository


def test_health_reports_database(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == str(repository.database_path)


def test_run_allocation_seats_demo_roster(tmp_path):
    app, repository = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post("/allocations/run", json={"period_start": "2026-03-01", "max_iterations": 5})
    assert response.status_code == 200
    body = response.json()
    assert body["period_start"] == "2026-03-01"
    assert body["period_end"] is None
    assert 1 <= body["iterations"] <= 5

    seats = [item["seat_id"] for item in body["allocated"]]
    employees = [item["employee_id"] for item in body["allocated"]]
    assert len(seats) == len(set(seats))
    assert len(employees) == len(set(employees))
    assert len(employees) + len(body["unallocated"]) == 5
    assert body["total_score"] == sum(item["score"] for item in body["allocated"])

    # Only the religious employee may sit at the prayer table.
    for item in body["allocated"]:
        if item["resource_id"] == "T3":
            assert item["employee_id"] == "E2"

    listed = client.get("/allocations")
    assert listed.status_code == 200
    assert {item["status"] for item in listed.json()} == {"pending"}
    assert len(listed.json()) == len(employees)

    assert repository.count_allocations() == len(employees)


def test_run_allocation_rejects_inverted_period(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    response = client.post(
        "/allocations/run",
        json={"period_start": "2026-03-10", "period_end": "2026-03-01"},
    )
    assert response.status_code == 422


def test_manual_assign_flow(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    created = client.post(
        "/allocations/assign",
        json={"employee_id": "E5", "seat_id": "T4-S2", "period_start": "2026-03-01"},
    )
    assert created.status_code == 201
    body = created.json()
    assert body["overridden"] is False
    assert body["allocation"]["status"] == "active"
    assert body["allocation"]["resource_id"] == "T4"

    # E4 is male; the quiet wing only admits women.
    rejected = client.post(
        "/allocations/assign",
        json={"employee_id": "E4", "seat_id": "T4-S1", "period_start": "2026-03-01"},
    )
    assert rejected.status_code == 422
    assert [v["type"] for v in rejected.json()["detail"]["violations"]] == ["gender"]

    overridden = client.post(
        "/allocations/assign",
        json={
            "employee_id": "E4",
            "seat_id": "T4-S1",
            "period_start": "2026-03-01",
            "override": True,
        },
    )
    assert overridden.status_code == 201
    assert overridden.json()["overridden"] is True

    audit = client.get("/allocations/violations", params={"limit": 10})
    assert audit.status_code == 200
    assert {row["type"] for row in audit.json()} == {"gender"}

    taken = client.post(
        "/allocations/assign",
        json={
            "employee_id": "E3",
            "seat_id": "T4-S2",
            "period_start": "2026-03-01",
            "override": True,
        },
    )
    assert taken.status_code == 422

    missing = client.post("/allocations/assign", json={"employee_id": "E99", "seat_id": "T1-S1"})
    assert missing.status_code == 404


def test_status_transitions_and_release(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    created = client.post(
        "/allocations/assign",
        json={"employee_id": "E1", "seat_id": "T1-S1", "period_start": "2026-03-01"},
    ).json()
    allocation_id = created["allocation"]["allocation_id"]

    invalid = client.post(f"/allocations/{allocation_id}/status", json={"status": "pending"})
    assert invalid.status_code == 409

    unknown = client.post(f"/allocations/{allocation_id}/status", json={"status": "archived"})
    assert unknown.status_code == 400

    completed = client.post(f"/allocations/{allocation_id}/status", json={"status": "completed"})
    assert completed.status_code == 200
    assert completed.json()["status"] == "completed"

    assert client.post("/allocations/999/status", json={"status": "active"}).status_code == 404

    client.post(
        "/allocations/assign",
        json={"employee_id": "E3", "seat_id": "T1-S2", "period_start": "2026-03-01"},
    )
    freed = client.post("/allocations/free-seat/T1-S2")
    assert freed.status_code == 200
    assert freed.json() == {"seat_id": "T1-S2", "previous_occupant": "E3"}

    released = client.post("/allocations/free-employee/E3")
    assert released.status_code == 200
    assert released.json() == {"employee_id": "E3", "cancelled_allocations": 0}

    assert client.post("/allocations/free-seat/NOPE").status_code == 404
    assert client.post("/allocations/free-employee/NOPE").status_code == 404


def test_validate_pair_and_unallocated(tmp_path):
    app, _ = _build_test_app(tmp_path)
    client = TestClient(app)

    blocked = client.get("/allocations/validate/E4/T4")
    assert blocked.status_code == 200
    assert blocked.json() == {
        "valid": False,
        "constraints": {"gender": False, "religious": True, "health": True, "schedule": True},
    }

    reserved = client.get("/allocations/validate/E4/T3")
    assert reserved.json()["constraints"]["religious"] is False

    assert client.get("/allocations/validate/E4/T9").status_code == 404

    unallocated = client.get("/allocations/unallocated-employees")
    assert unallocated.status_code == 200
    assert [item["employee_id"] for item in unallocated.json()] == ["E1", "E2", "E3", "E4", "E5"]
