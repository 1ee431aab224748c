from __future__ import annotations

from fastapi.testclient import TestClient

from dronehub import main as app_main
from dronehub.infra.store import EntityStore
from dronehub.services.bootstrap_service import DEFAULT_SEED_PATH


def test_healthz_ok() -> None:
    client = TestClient(app_main.create_app(EntityStore(), seed_path=""))
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_readyz_ok_when_store_ready() -> None:
    client = TestClient(app_main.create_app(EntityStore(), seed_path=""))
    response = client.get("/readyz")
    assert response.status_code == 200
    assert response.json() == {"status": "ready", "checks": {"store": "ok"}}


def test_readyz_not_ready_when_store_fails(monkeypatch) -> None:
    store = EntityStore()
    monkeypatch.setattr(store, "ready", lambda: False)
    client = TestClient(app_main.create_app(store, seed_path=""))
    response = client.get("/readyz")
    assert response.status_code == 503
    assert response.json()["detail"]["checks"] == {"store": "fail"}


def test_startup_seeds_packaged_snapshot() -> None:
    store = EntityStore()
    with TestClient(app_main.create_app(store, seed_path=str(DEFAULT_SEED_PATH))) as client:
        drones = client.get("/api/drones").json()
        stats = client.get("/api/dashboard/stats").json()
    assert [item["serialNumber"] for item in drones] == ["DRN-001", "DRN-002", "DRN-003"]
    assert stats["drones"] == 3
    assert stats["users"] == 2
    assert store.initialized is True
