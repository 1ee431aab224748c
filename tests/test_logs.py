from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from dronehub import main as app_main
from dronehub.domain.models import LOG_RETENTION, LogEntry, LogSeverity, LogType
from dronehub.infra.store import EntityStore
from dronehub.services.log_service import LogService


@pytest.fixture()
def store() -> EntityStore:
    return EntityStore()


@pytest.fixture()
def log_client(store: EntityStore) -> Generator[TestClient, None, None]:
    client = TestClient(app_main.create_app(store, seed_path=""))
    yield client
    client.close()


def _seed_logs(service: LogService) -> None:
    service.create_log(log_type=LogType.REGISTRATION, source="SN-1", message="Drone SN-1 registered")
    service.create_log(log_type=LogType.PING, source="SN-1", message="Ping from SN-1")
    service.create_log(
        log_type=LogType.STATUS_UPDATE,
        source="SN-2",
        message="Status update from SN-2: maintenance",
        severity=LogSeverity.WARNING,
    )
    service.create_log(
        log_type=LogType.SYSTEM,
        source="system",
        message="Battery threshold reached on SN-2",
        severity=LogSeverity.ERROR,
    )


def test_logs_are_returned_newest_first(store: EntityStore) -> None:
    service = LogService(store)
    _seed_logs(service)
    messages = [item.message for item in service.list_logs()]
    assert messages == [
        "Battery threshold reached on SN-2",
        "Status update from SN-2: maintenance",
        "Ping from SN-1",
        "Drone SN-1 registered",
    ]


def test_filtered_views_keep_order(store: EntityStore) -> None:
    service = LogService(store)
    _seed_logs(service)
    service.create_log(log_type=LogType.PING, source="SN-2", message="Ping from SN-2")

    pings = service.list_logs_by_type(LogType.PING)
    assert [item.source for item in pings] == ["SN-2", "SN-1"]
    assert [item.type for item in service.list_logs_by_source("SN-1")] == [LogType.PING, LogType.REGISTRATION]
    assert service.list_logs_by_source("sn-1") == []


def test_create_log_fills_defaults(store: EntityStore) -> None:
    entry = LogService(store).create_log(log_type=LogType.SYSTEM, source="system", message="boot")
    assert entry.id
    assert entry.severity == LogSeverity.INFO
    assert entry.data == {}
    assert entry.raw_message is None
    assert entry.timestamp.tzinfo is not None


def test_log_cap_drops_oldest_entries() -> None:
    store = EntityStore(log_retention=5)
    service = LogService(store)
    for index in range(8):
        service.create_log(log_type=LogType.PING, source="SN-1", message=f"ping {index}")

    logs = service.list_logs()
    assert len(logs) == 5
    assert [item.message for item in logs] == [f"ping {index}" for index in range(7, 2, -1)]
    assert store.counts()["logs"] == 5


def test_default_retention_is_ten_thousand() -> None:
    assert LOG_RETENTION == 10_000
    assert EntityStore().log_retention == 10_000


def test_full_retention_keeps_newest_ten_thousand(store: EntityStore) -> None:
    with store.session() as session:
        session.add_all(
            LogEntry(type=LogType.PING, source="SN-BULK", message=f"bulk {index}")
            for index in range(LOG_RETENTION - 1)
        )
        session.commit()

    service = LogService(store)
    for index in range(3):
        service.create_log(log_type=LogType.PING, source="SN-1", message=f"tail {index}")

    logs = service.list_logs()
    assert len(logs) == LOG_RETENTION
    assert [item.message for item in logs[:3]] == ["tail 2", "tail 1", "tail 0"]
    assert logs[-1].message == "bulk 2"
    assert {"bulk 0", "bulk 1"}.isdisjoint(item.message for item in logs)


def test_invalid_retention_is_rejected() -> None:
    with pytest.raises(ValueError):
        EntityStore(log_retention=0)


def test_logs_endpoint_filters(store: EntityStore, log_client: TestClient) -> None:
    _seed_logs(LogService(store))

    all_resp = log_client.get("/api/logs")
    assert all_resp.status_code == 200
    body = all_resp.json()
    assert len(body) == 4
    assert body[0]["type"] == "system"
    assert set(body[0]) >= {"id", "type", "source", "message", "rawMessage", "data", "severity", "timestamp"}

    by_type = log_client.get("/api/logs", params={"type": "ping"}).json()
    assert [item["message"] for item in by_type] == ["Ping from SN-1"]

    by_severity = log_client.get("/api/logs", params={"severity": "warning"}).json()
    assert [item["source"] for item in by_severity] == ["SN-2"]

    by_source = log_client.get("/api/logs", params={"source": "sn-"}).json()
    assert len(by_source) == 3

    by_search = log_client.get("/api/logs", params={"search": "battery"}).json()
    assert [item["severity"] for item in by_search] == ["error"]

    limited = log_client.get("/api/logs", params={"limit": 2}).json()
    assert [item["type"] for item in limited] == ["system", "status_update"]


def test_logs_endpoint_rejects_unknown_type(log_client: TestClient) -> None:
    assert log_client.get("/api/logs", params={"type": "telemetry"}).status_code == 422
    assert log_client.get("/api/logs", params={"limit": 0}).status_code == 422
