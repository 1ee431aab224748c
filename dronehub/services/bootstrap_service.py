from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dronehub.domain.models import (
    ControlStationCreate,
    DockingStationCreate,
    DroneCreate,
    FleetSnapshot,
    ProjectCreate,
    UserCreate,
)
from dronehub.infra.store import EntityStore, StoreError
from dronehub.services.drone_service import DroneError, DroneService
from dronehub.services.log_service import LogService
from dronehub.services.project_service import ProjectService
from dronehub.services.relationship_service import RelationshipService
from dronehub.services.station_service import ControlStationService, DockingStationService, StationError
from dronehub.services.user_service import UserError, UserService

logger = logging.getLogger(__name__)

DEFAULT_SEED_PATH = Path(__file__).resolve().parent.parent / "data" / "mock_data.json"

# Unset means the packaged fixture; an empty value turns seeding off.
SEED_DATA_PATH = os.getenv("SEED_DATA_PATH", str(DEFAULT_SEED_PATH))


def read_snapshot(path: Path) -> FleetSnapshot:
    return FleetSnapshot.model_validate_json(path.read_text(encoding="utf-8"))


class BootstrapService:
    """Seeds an empty store from a snapshot, once per store lifetime."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store
        self._drones = DroneService(store)
        self._control_stations = ControlStationService(store)
        self._docking_stations = DockingStationService(store)
        self._projects = ProjectService(store)
        self._users = UserService(store)
        self._logs = LogService(store)
        self._relationships = RelationshipService(store)

    def initialize(self, path: str | Path | None = None) -> bool:
        """Load the snapshot at `path` into the store.

        Returns True only when this call populated the store. A store that was
        already initialised, or already holds drones, projects or users, is
        left alone. Read, parse and insert failures are logged and leave the
        store empty so that a later call can retry.
        """
        with self._store.exclusive():
            if self._store.initialized:
                return False
            if not self._store.is_empty():
                logger.info("entity store already populated; skipping bootstrap")
                self._store.initialized = True
                return False

            resolved = path if path is not None else SEED_DATA_PATH
            if not resolved:
                logger.info("no snapshot configured; starting with an empty store")
                return False
            snapshot_path = Path(resolved)
            try:
                snapshot = read_snapshot(snapshot_path)
                self._load(snapshot)
            except (OSError, ValidationError, SQLAlchemyError, StoreError, DroneError, StationError, UserError):
                logger.exception("failed to load snapshot from %s", snapshot_path)
                self._store.clear()
                return False

            self._store.initialized = True
            logger.info(
                "loaded %d drones, %d projects, %d users from %s",
                len(snapshot.drones),
                len(snapshot.projects),
                len(snapshot.users),
                snapshot_path,
            )
            return True

    def _load(self, snapshot: FleetSnapshot) -> None:
        for drone in snapshot.drones:
            self._drones.create_drone(
                DroneCreate.model_validate(drone.model_dump()),
                drone_id=drone.id,
                registered_at=drone.registered_at,
                last_ping=drone.last_ping,
            )
        for control_station in snapshot.control_stations:
            self._control_stations.create_station(
                ControlStationCreate.model_validate(control_station.model_dump()),
                station_id=control_station.id,
            )
        for docking_station in snapshot.docking_stations:
            self._docking_stations.create_station(
                DockingStationCreate.model_validate(docking_station.model_dump()),
                station_id=docking_station.id,
            )
        for project in snapshot.projects:
            self._projects.create_project(
                ProjectCreate.model_validate(project.model_dump()),
                project_id=project.id,
                created_at=project.created_at,
                updated_at=project.updated_at,
            )
        for user in snapshot.users:
            self._users.create_user(
                UserCreate.model_validate(user.model_dump()),
                user_id=user.id,
                created_at=user.created_at,
            )
        for log in snapshot.logs:
            self._logs.restore_log(log)

        self._link(snapshot)

    def _link(self, snapshot: FleetSnapshot) -> None:
        relationships = self._relationships
        for drone in snapshot.drones:
            for target_id, assign in (
                (drone.project_id, relationships.assign_drone_to_project),
                (drone.control_station_id, relationships.assign_drone_to_control_station),
                (drone.docking_station_id, relationships.assign_drone_to_docking_station),
            ):
                if target_id and not assign(drone.id, target_id):
                    logger.warning("snapshot drone %s references missing %s", drone.id, target_id)

        memberships = [(user_id, project.id) for project in snapshot.projects for user_id in project.assigned_users]
        memberships.extend((user.id, project_id) for user in snapshot.users for project_id in user.assigned_projects)
        for user_id, project_id in dict.fromkeys(memberships):
            if not relationships.assign_user_to_project(user_id, project_id):
                logger.warning("snapshot membership %s -> %s references a missing entity", user_id, project_id)
