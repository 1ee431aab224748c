from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError
from sqlmodel import Session

from dronehub.domain.models import (
    Drone,
    DroneCreate,
    DroneStatus,
    Location,
    LogType,
    WebhookData,
    now_utc,
)
from dronehub.infra.store import EntityStore
from dronehub.services.drone_service import DroneService
from dronehub.services.log_service import LogService

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("registration", "status_update", "ping")
MISSING_FIELDS = "Missing required fields: type, serialNumber"
INVALID_DATA = "Invalid data payload"
DRONE_NOT_FOUND = "Drone not found. Please register first."
INTERNAL_ERROR = "Internal server error"

_DRONE_STATUSES = {item.value for item in DroneStatus}


class WebhookError(Exception):
    status_code = 400


class InvalidRequestError(WebhookError):
    status_code = 400


class UnsupportedTypeError(WebhookError):
    status_code = 400


class NotFoundError(WebhookError):
    status_code = 404


@dataclass
class WebhookResult:
    status_code: int
    body: dict[str, Any]


@dataclass
class _Event:
    serial_number: str
    data: WebhookData
    raw_data: dict[str, Any]
    raw_message: str


def _is_present(value: Any) -> bool:
    return value not in (None, "", {}, [])


def _parse_data(raw: dict[str, Any]) -> WebhookData:
    # Empty or mistyped values count as absent so they never overwrite stored
    # fields or reject an event that does not read them.
    present = {key: value for key, value in raw.items() if _is_present(value)}
    while True:
        try:
            return WebhookData.model_validate(present)
        except ValidationError as exc:
            invalid = present.keys() & {error["loc"][0] for error in exc.errors() if error["loc"]}
            if not invalid:
                raise InvalidRequestError(INVALID_DATA) from exc
            logger.debug("ignoring malformed webhook fields: %s", ", ".join(sorted(map(str, invalid))))
            present = {key: value for key, value in present.items() if key not in invalid}


def iso_timestamp(value: datetime) -> str:
    """Millisecond ISO-8601 in UTC with a `Z` suffix."""
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class WebhookService:
    """Maps one inbound device event onto store operations.

    Nothing is kept between calls. Each event runs in a single store session:
    the drone change and its log entry are committed together or not at all,
    and no other request can interleave. :meth:`handle` always returns a
    :class:`WebhookResult`; failures never escape as exceptions.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._drones = DroneService(store)
        self._logs = LogService(store)
        self._handlers: dict[str, Callable[[Session, _Event], WebhookResult]] = {
            "registration": self._registration,
            "status_update": self._status_update,
            "ping": self._ping,
        }

    def handle(self, body: Any) -> WebhookResult:
        try:
            with self._store.session() as session:
                result = self._dispatch(session, body)
                session.commit()
                return result
        except WebhookError as exc:
            return WebhookResult(exc.status_code, {"error": str(exc)})
        except Exception:
            logger.exception("webhook processing failed")
            return WebhookResult(500, {"error": INTERNAL_ERROR})

    def _dispatch(self, session: Session, body: Any) -> WebhookResult:
        if not isinstance(body, dict):
            raise InvalidRequestError(MISSING_FIELDS)
        event_type = body.get("type")
        serial_number = body.get("serialNumber")
        if not event_type or not serial_number or not isinstance(serial_number, str):
            raise InvalidRequestError(MISSING_FIELDS)

        handler = self._handlers.get(event_type) if isinstance(event_type, str) else None
        if handler is None:
            raise UnsupportedTypeError(
                f"Unknown type: {event_type}. Supported types: {', '.join(SUPPORTED_TYPES)}"
            )

        raw_data = body.get("data")
        if raw_data is None:
            raw_data = {}
        if not isinstance(raw_data, dict):
            raise InvalidRequestError(INVALID_DATA)
        event = _Event(
            serial_number=serial_number,
            data=_parse_data(raw_data),
            raw_data=raw_data,
            raw_message=json.dumps(body, separators=(",", ":")),
        )
        return handler(session, event)

    def _require_drone(self, session: Session, serial_number: str) -> Drone:
        drone = self._drones.lookup_serial(session, serial_number)
        if drone is None:
            raise NotFoundError(DRONE_NOT_FOUND)
        return drone

    def _update(self, session: Session, drone_id: str, changes: dict[str, Any]) -> Drone:
        updated = self._drones.stage_changes(session, drone_id, changes)
        if updated is None:
            raise NotFoundError(DRONE_NOT_FOUND)
        return updated

    def _log(self, session: Session, event: _Event, log_type: LogType, message: str) -> None:
        self._logs.stage_log(
            session,
            log_type=log_type,
            source=event.serial_number,
            message=message,
            raw_message=event.raw_message,
            data=event.raw_data,
        )

    def _telemetry_changes(self, data: WebhookData, *, configuration: bool) -> dict[str, Any]:
        changes: dict[str, Any] = {"last_ping": now_utc()}
        if data.firmware_version:
            changes["firmware_version"] = data.firmware_version
        if data.location is not None:
            changes["location"] = data.location.as_record()
        if configuration and data.configuration:
            changes["configuration"] = data.configuration
        return changes

    def _registration(self, session: Session, event: _Event) -> WebhookResult:
        serial_number = event.serial_number
        data = event.data
        existing = self._drones.lookup_serial(session, serial_number)
        if existing is not None:
            drone = self._update(session, existing.id, self._telemetry_changes(data, configuration=False))
        else:
            drone = self._drones.stage_drone(
                session,
                DroneCreate(
                    name=data.name or f"Drone {serial_number}",
                    serial_number=serial_number,
                    status=DroneStatus.PENDING,
                    firmware_version=data.firmware_version or "1.0.0",
                    location=data.location or Location(lat=0.0, lng=0.0),
                    configuration=data.configuration or {},
                    metadata=data.metadata or {},
                ),
                last_ping=now_utc(),
            )
            logger.info("registered new drone %s as %s", serial_number, drone.id)

        self._log(session, event, LogType.REGISTRATION, f"Drone {serial_number} registered")
        return WebhookResult(200, {"success": True, "droneId": drone.id, "status": DroneStatus(drone.status).value})

    def _status_update(self, session: Session, event: _Event) -> WebhookResult:
        data = event.data
        drone = self._require_drone(session, event.serial_number)
        changes = self._telemetry_changes(data, configuration=True)
        if isinstance(data.status, str) and data.status in _DRONE_STATUSES:
            changes["status"] = DroneStatus(data.status)
        drone = self._update(session, drone.id, changes)

        reported = data.status or "no status change"
        self._log(session, event, LogType.STATUS_UPDATE, f"Status update from {event.serial_number}: {reported}")
        return WebhookResult(200, {"success": True, "droneId": drone.id, "status": DroneStatus(drone.status).value})

    def _ping(self, session: Session, event: _Event) -> WebhookResult:
        drone = self._require_drone(session, event.serial_number)
        pinged_at = now_utc()
        changes: dict[str, Any] = {"last_ping": pinged_at}
        if event.data.location is not None:
            changes["location"] = event.data.location.as_record()
        drone = self._update(session, drone.id, changes)

        self._log(session, event, LogType.PING, f"Ping from {event.serial_number}")
        return WebhookResult(200, {"success": True, "droneId": drone.id, "timestamp": iso_timestamp(pinged_at)})
