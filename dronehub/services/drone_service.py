from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from dronehub.domain.models import (
    Drone,
    DroneCreate,
    DroneRead,
    DroneUpdate,
    now_utc,
    row_payload,
)
from dronehub.infra.store import DuplicateKeyError, EntityStore

DUPLICATE_SERIAL = "Drone with this serial number already exists"


class DroneError(Exception):
    pass


class ConflictError(DroneError):
    pass


def drone_read(drone: Drone) -> DroneRead:
    return DroneRead.model_validate(row_payload(drone))


def _apply_changes(drone: Drone, changes: dict[str, Any]) -> None:
    for key, value in changes.items():
        if key == "metadata":
            drone.meta = value
        else:
            setattr(drone, key, value)


class DroneService:
    """Drone CRUD.

    The ``stage_*`` and ``lookup_serial`` methods work inside a caller's open
    session and only flush, so several changes can share one commit.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _flush(self, session: Session) -> None:
        try:
            session.flush()
        except IntegrityError as exc:
            session.rollback()
            raise ConflictError(DUPLICATE_SERIAL) from exc

    def _commit(self, session: Session, drone: Drone) -> DroneRead:
        try:
            self._store.commit(session, DUPLICATE_SERIAL)
        except DuplicateKeyError as exc:
            raise ConflictError(str(exc)) from exc
        session.refresh(drone)
        return drone_read(drone)

    def lookup_serial(self, session: Session, serial_number: str) -> Drone | None:
        return session.exec(select(Drone).where(Drone.serial_number == serial_number)).first()

    def stage_drone(
        self,
        session: Session,
        payload: DroneCreate,
        *,
        drone_id: str | None = None,
        registered_at: datetime | None = None,
        last_ping: datetime | None = None,
    ) -> Drone:
        drone = Drone(
            name=payload.name,
            serial_number=payload.serial_number,
            status=payload.status,
            firmware_version=payload.firmware_version,
            location=payload.location.as_record(),
            configuration=dict(payload.configuration),
            meta=dict(payload.metadata),
            registered_at=registered_at or now_utc(),
            last_ping=last_ping,
        )
        if drone_id:
            drone.id = drone_id
        session.add(drone)
        self._flush(session)
        return drone

    def stage_changes(self, session: Session, drone_id: str, changes: dict[str, Any]) -> Drone | None:
        drone = session.get(Drone, drone_id)
        if drone is None:
            return None
        _apply_changes(drone, changes)
        session.add(drone)
        self._flush(session)
        return drone

    def create_drone(
        self,
        payload: DroneCreate,
        *,
        drone_id: str | None = None,
        registered_at: datetime | None = None,
        last_ping: datetime | None = None,
    ) -> DroneRead:
        with self._store.session() as session:
            drone = self.stage_drone(
                session,
                payload,
                drone_id=drone_id,
                registered_at=registered_at,
                last_ping=last_ping,
            )
            return self._commit(session, drone)

    def list_drones(self) -> list[DroneRead]:
        with self._store.session() as session:
            rows = session.exec(select(Drone).order_by(Drone.seq)).all()
            return [drone_read(item) for item in rows]

    def get_drone(self, drone_id: str) -> DroneRead | None:
        with self._store.session() as session:
            drone = session.get(Drone, drone_id)
            return drone_read(drone) if drone is not None else None

    def find_by_serial(self, serial_number: str) -> DroneRead | None:
        with self._store.session() as session:
            drone = self.lookup_serial(session, serial_number)
            return drone_read(drone) if drone is not None else None

    def update_drone(self, drone_id: str, payload: DroneUpdate) -> DroneRead | None:
        changes = payload.model_dump(exclude_unset=True)
        if payload.location is not None:
            changes["location"] = payload.location.as_record()
        # Required columns cannot be cleared through a partial update.
        changes = {
            key: value
            for key, value in changes.items()
            if value is not None or key == "last_ping"
        }
        return self.apply_changes(drone_id, changes)

    def apply_changes(self, drone_id: str, changes: dict[str, Any]) -> DroneRead | None:
        """Shallow-merge already validated column values over the stored drone."""
        with self._store.session() as session:
            drone = self.stage_changes(session, drone_id, changes)
            if drone is None:
                return None
            return self._commit(session, drone)

    def delete_drone(self, drone_id: str) -> bool:
        # Station and project back-references are read from the drone row, so
        # removing it is the whole cleanup.
        with self._store.session() as session:
            drone = session.get(Drone, drone_id)
            if drone is None:
                return False
            session.delete(drone)
            session.commit()
        return True
