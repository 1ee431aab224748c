from __future__ import annotations

import logging
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from dronehub import main as app_main
from dronehub.infra import audit
from dronehub.infra.store import EntityStore


@pytest.fixture()
def dashboard_client() -> Generator[TestClient, None, None]:
    client = TestClient(app_main.create_app(EntityStore(), seed_path=""))
    yield client
    client.close()


def test_dashboard_stats_empty(dashboard_client: TestClient) -> None:
    response = dashboard_client.get("/api/dashboard/stats")
    assert response.status_code == 200
    body = response.json()
    assert body["drones"] == 0
    assert body["logs"] == 0
    assert set(body) == {
        "drones",
        "activeDrones",
        "pendingDrones",
        "controlStations",
        "onlineControlStations",
        "dockingStations",
        "availableDockingStations",
        "projects",
        "activeProjects",
        "users",
        "logs",
    }


def test_dashboard_stats_count_by_status(dashboard_client: TestClient) -> None:
    dashboard_client.post("/api/drones", json={"name": "A", "serialNumber": "SN-A", "status": "active"})
    dashboard_client.post("/api/drones", json={"name": "B", "serialNumber": "SN-B"})
    dashboard_client.post("/api/webhooks/drones", json={"type": "registration", "serialNumber": "SN-C"})
    dashboard_client.post("/api/control-stations", json={"name": "C", "identifier": "CTRL-1", "status": "online"})
    dashboard_client.post("/api/docking-stations", json={"name": "D", "identifier": "DOCK-1"})
    dashboard_client.post("/api/projects", json={"name": "P", "status": "active"})
    dashboard_client.post("/api/users", json={"name": "U", "email": "u@example.com"})

    body = dashboard_client.get("/api/dashboard/stats").json()
    assert body["drones"] == 3
    assert body["activeDrones"] == 1
    assert body["pendingDrones"] == 2
    assert body["controlStations"] == 1
    assert body["onlineControlStations"] == 1
    assert body["dockingStations"] == 1
    assert body["availableDockingStations"] == 1
    assert body["projects"] == 1
    assert body["activeProjects"] == 1
    assert body["users"] == 1
    assert body["logs"] == 1


def test_status_outcome_mapping() -> None:
    assert audit._status_outcome(201) == "success"
    assert audit._status_outcome(404) == "denied"
    assert audit._status_outcome(409) == "rejected"
    assert audit._status_outcome(500) == "error"


def test_should_audit_only_writes() -> None:
    assert audit.should_audit_request("POST", "/api/drones") is True
    assert audit.should_audit_request("DELETE", "/api/users/1") is True
    assert audit.should_audit_request("GET", "/api/drones") is False


def test_write_requests_are_audited(dashboard_client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.INFO, logger="dronehub.audit"):
        dashboard_client.get("/api/drones")
        dashboard_client.post("/api/drones", json={"name": "A", "serialNumber": "SN-AUDIT"})
        dashboard_client.delete("/api/drones/missing")

    audit_lines = [record.getMessage() for record in caplog.records if record.name == "dronehub.audit"]
    assert len(audit_lines) == 2
    assert audit_lines[0].startswith("POST /api/drones ")
    assert "status=201 outcome=success" in audit_lines[0]
    assert audit_lines[1].startswith("DELETE /api/drones/missing ")
    assert "status=404 outcome=denied" in audit_lines[1]
