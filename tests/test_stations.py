from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from dronehub import main as app_main
from dronehub.domain.models import ControlStationCreate, DockingStationCreate
from dronehub.infra.store import EntityStore
from dronehub.services.station_service import ControlStationService, DockingStationService


@pytest.fixture()
def station_client() -> Generator[TestClient, None, None]:
    client = TestClient(app_main.create_app(EntityStore(), seed_path=""))
    yield client
    client.close()


@pytest.mark.parametrize(
    ("path", "default_status", "label"),
    [
        ("/api/control-stations", "offline", "Control station"),
        ("/api/docking-stations", "available", "Docking station"),
    ],
)
def test_station_crud_flow(station_client: TestClient, path: str, default_status: str, label: str) -> None:
    create_resp = station_client.post(
        path,
        json={
            "name": "North Pad",
            "identifier": "ST-001",
            "location": {"lat": 10.0, "lng": 20.0, "address": "Hangar 1"},
        },
    )
    assert create_resp.status_code == 201
    station = create_resp.json()
    station_id = station["id"]
    assert station["status"] == default_status
    assert station["connectedDrones"] == []
    assert station["location"]["address"] == "Hangar 1"

    duplicate = station_client.post(path, json={"name": "Copy", "identifier": "ST-001"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == f"{label} with this identifier already exists"

    update_resp = station_client.patch(
        f"{path}/{station_id}",
        json={"firmwareVersion": "4.0.0", "configuration": {"channel": 7}},
    )
    assert update_resp.status_code == 200
    assert update_resp.json()["firmwareVersion"] == "4.0.0"
    assert update_resp.json()["configuration"] == {"channel": 7}
    assert update_resp.json()["name"] == "North Pad"

    list_resp = station_client.get(path)
    assert [item["id"] for item in list_resp.json()] == [station_id]

    assert station_client.delete(f"{path}/{station_id}").status_code == 204
    missing = station_client.get(f"{path}/{station_id}")
    assert missing.status_code == 404
    assert missing.json()["detail"] == f"{label} not found"


def test_station_identifier_rename_conflicts(station_client: TestClient) -> None:
    station_client.post("/api/control-stations", json={"name": "A", "identifier": "CTRL-A"})
    second = station_client.post("/api/control-stations", json={"name": "B", "identifier": "CTRL-B"}).json()

    response = station_client.patch(f"/api/control-stations/{second['id']}", json={"identifier": "CTRL-A"})
    assert response.status_code == 409
    assert station_client.get(f"/api/control-stations/{second['id']}").json()["identifier"] == "CTRL-B"


def test_control_and_docking_identifiers_are_independent(station_client: TestClient) -> None:
    control = station_client.post("/api/control-stations", json={"name": "A", "identifier": "SHARED-1"})
    dock = station_client.post("/api/docking-stations", json={"name": "B", "identifier": "SHARED-1"})
    assert control.status_code == 201
    assert dock.status_code == 201


def test_deleting_station_detaches_drones(station_client: TestClient) -> None:
    station_id = station_client.post(
        "/api/docking-stations",
        json={"name": "Dock", "identifier": "DOCK-9"},
    ).json()["id"]
    drone_ids = []
    for serial in ("SN-A", "SN-B"):
        drone_id = station_client.post("/api/drones", json={"name": serial, "serialNumber": serial}).json()["id"]
        assign = station_client.put(f"/api/drones/{drone_id}/docking-station", json={"targetId": station_id})
        assert assign.status_code == 200
        drone_ids.append(drone_id)

    assert station_client.get(f"/api/docking-stations/{station_id}").json()["connectedDrones"] == drone_ids

    assert station_client.delete(f"/api/docking-stations/{station_id}").status_code == 204
    for drone_id in drone_ids:
        assert station_client.get(f"/api/drones/{drone_id}").json()["dockingStationId"] is None


@pytest.mark.parametrize("service_class", [ControlStationService, DockingStationService])
def test_find_by_identifier(service_class: type[ControlStationService] | type[DockingStationService]) -> None:
    service = service_class(EntityStore())
    payload_class = ControlStationCreate if service_class is ControlStationService else DockingStationCreate
    created = service.create_station(payload_class(name="Ridge", identifier="ST-RIDGE"))

    found = service.find_by_identifier("ST-RIDGE")
    assert found is not None
    assert found.id == created.id
    assert service.find_by_identifier("ST-MISSING") is None
    assert service.find_by_identifier("st-ridge") is None
