from __future__ import annotations

from typing import Any, ClassVar, Generic, TypeVar

from sqlmodel import Session, select

from dronehub.domain.models import (
    ControlStation,
    ControlStationCreate,
    ControlStationRead,
    ControlStationUpdate,
    DockingStation,
    DockingStationCreate,
    DockingStationRead,
    DockingStationUpdate,
    row_payload,
)
from dronehub.infra.store import DuplicateKeyError, EntityStore
from dronehub.services.relationship_service import connected_drone_ids, detach_drones


class StationError(Exception):
    pass


class ConflictError(StationError):
    pass


StationT = TypeVar("StationT", ControlStation, DockingStation)
ReadT = TypeVar("ReadT", ControlStationRead, DockingStationRead)


class _StationService(Generic[StationT, ReadT]):
    """CRUD shared by control and docking stations.

    `identifier` is unique within each station kind. The `connected_drones`
    list on every read model is derived from the drones' own foreign keys.
    """

    model: ClassVar[type[Any]]
    read_model: ClassVar[type[Any]]
    drone_link: ClassVar[str]
    duplicate_message: ClassVar[str]

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _read(self, session: Session, station: StationT) -> ReadT:
        return self.read_model.model_validate(
            row_payload(station, connected_drones=connected_drone_ids(session, station))
        )

    def _save(self, session: Session, station: StationT) -> ReadT:
        session.add(station)
        try:
            self._store.commit(session, self.duplicate_message)
        except DuplicateKeyError as exc:
            raise ConflictError(str(exc)) from exc
        session.refresh(station)
        return self._read(session, station)

    def create_station(
        self,
        payload: ControlStationCreate | DockingStationCreate,
        *,
        station_id: str | None = None,
    ) -> ReadT:
        station = self.model(
            name=payload.name,
            identifier=payload.identifier,
            status=payload.status,
            firmware_version=payload.firmware_version,
            location=payload.location.as_record(),
            configuration=dict(payload.configuration),
            meta=dict(payload.metadata),
        )
        if station_id:
            station.id = station_id
        with self._store.session() as session:
            return self._save(session, station)

    def list_stations(self) -> list[ReadT]:
        with self._store.session() as session:
            rows = session.exec(select(self.model).order_by(self.model.seq)).all()
            return [self._read(session, item) for item in rows]

    def get_station(self, station_id: str) -> ReadT | None:
        with self._store.session() as session:
            station = session.get(self.model, station_id)
            return self._read(session, station) if station is not None else None

    def find_by_identifier(self, identifier: str) -> ReadT | None:
        with self._store.session() as session:
            station = session.exec(select(self.model).where(self.model.identifier == identifier)).first()
            return self._read(session, station) if station is not None else None

    def update_station(
        self,
        station_id: str,
        payload: ControlStationUpdate | DockingStationUpdate,
    ) -> ReadT | None:
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        if payload.location is not None:
            changes["location"] = payload.location.as_record()
        with self._store.session() as session:
            station = session.get(self.model, station_id)
            if station is None:
                return None
            for key, value in changes.items():
                setattr(station, "meta" if key == "metadata" else key, value)
            return self._save(session, station)

    def delete_station(self, station_id: str) -> bool:
        with self._store.session() as session:
            station = session.get(self.model, station_id)
            if station is None:
                return False
            detach_drones(session, self.drone_link, station_id)
            session.delete(station)
            session.commit()
        return True


class ControlStationService(_StationService[ControlStation, ControlStationRead]):
    model = ControlStation
    read_model = ControlStationRead
    drone_link = "control_station_id"
    duplicate_message = "Control station with this identifier already exists"


class DockingStationService(_StationService[DockingStation, DockingStationRead]):
    model = DockingStation
    read_model = DockingStationRead
    drone_link = "docking_station_id"
    duplicate_message = "Docking station with this identifier already exists"
