from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Session, SQLModel

from dronehub.domain.models import (
    ControlStation,
    ControlStationStatus,
    DashboardStatsRead,
    DockingStation,
    DockingStationStatus,
    Drone,
    DroneStatus,
    LogEntry,
    Project,
    ProjectStatus,
    User,
)
from dronehub.infra.store import EntityStore


def _count(session: Session, model: type[SQLModel], *conditions: object) -> int:
    statement = sa.select(sa.func.count()).select_from(model)
    for condition in conditions:
        statement = statement.where(condition)  # type: ignore[arg-type]
    return int(session.execute(statement).scalar_one())


class DashboardService:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def get_stats(self) -> DashboardStatsRead:
        with self._store.session() as session:
            return DashboardStatsRead(
                drones=_count(session, Drone),
                active_drones=_count(session, Drone, Drone.status == DroneStatus.ACTIVE),
                pending_drones=_count(session, Drone, Drone.status == DroneStatus.PENDING),
                control_stations=_count(session, ControlStation),
                online_control_stations=_count(
                    session, ControlStation, ControlStation.status == ControlStationStatus.ONLINE
                ),
                docking_stations=_count(session, DockingStation),
                available_docking_stations=_count(
                    session, DockingStation, DockingStation.status == DockingStationStatus.AVAILABLE
                ),
                projects=_count(session, Project),
                active_projects=_count(session, Project, Project.status == ProjectStatus.ACTIVE),
                users=_count(session, User),
                logs=_count(session, LogEntry),
            )
