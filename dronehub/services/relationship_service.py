from __future__ import annotations

import logging
from typing import Any

import sqlalchemy as sa
from sqlmodel import Session, SQLModel, select

from dronehub.domain.models import ControlStation, DockingStation, Drone, Project, ProjectMember, User
from dronehub.infra.store import EntityStore

logger = logging.getLogger(__name__)

# Drone foreign key -> the table it points at.
DRONE_LINKS: dict[str, type[SQLModel]] = {
    "project_id": Project,
    "control_station_id": ControlStation,
    "docking_station_id": DockingStation,
}


def _drone_column(link: str) -> Any:
    if link not in DRONE_LINKS:
        raise ValueError(f"unknown drone link: {link}")
    return getattr(Drone, link)


def drone_ids_linked_to(session: Session, link: str, target_id: str) -> list[str]:
    statement = select(Drone.id).where(_drone_column(link) == target_id).order_by(Drone.seq)
    return list(session.exec(statement).all())


def connected_drone_ids(session: Session, station: ControlStation | DockingStation) -> list[str]:
    link = "control_station_id" if isinstance(station, ControlStation) else "docking_station_id"
    return drone_ids_linked_to(session, link, station.id)


def assigned_drone_ids(session: Session, project_id: str) -> list[str]:
    return drone_ids_linked_to(session, "project_id", project_id)


def assigned_user_ids(session: Session, project_id: str) -> list[str]:
    statement = (
        select(ProjectMember.user_id)
        .where(ProjectMember.project_id == project_id)
        .order_by(ProjectMember.seq)
    )
    return list(session.exec(statement).all())


def assigned_project_ids(session: Session, user_id: str) -> list[str]:
    statement = (
        select(ProjectMember.project_id)
        .where(ProjectMember.user_id == user_id)
        .order_by(ProjectMember.seq)
    )
    return list(session.exec(statement).all())


def detach_drones(session: Session, link: str, target_id: str) -> int:
    """Clear `link` on every drone pointing at `target_id`; returns the count."""
    drones = session.exec(select(Drone).where(_drone_column(link) == target_id)).all()
    for drone in drones:
        setattr(drone, link, None)
        session.add(drone)
    session.flush()
    return len(drones)


def drop_memberships(session: Session, *, project_id: str | None = None, user_id: str | None = None) -> None:
    statement = sa.delete(ProjectMember)
    if project_id is not None:
        statement = statement.where(ProjectMember.project_id == project_id)
    if user_id is not None:
        statement = statement.where(ProjectMember.user_id == user_id)
    session.execute(statement)
    session.flush()


class RelationshipService:
    """Keeps both sides of every fleet relationship in agreement.

    A drone owns its three foreign keys; station and project back-references
    are read from those keys, so detaching from the old target and attaching
    to the new one is a single pointer write inside one transaction. User and
    project membership is a link table visible from both ends.

    Assignments are total over the primary entity but reject a non-null
    target that does not exist, so a drone can never point at a missing row.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _assign_drone(self, drone_id: str, link: str, target_id: str | None) -> bool:
        target_model = DRONE_LINKS[link]
        with self._store.session() as session:
            drone = session.get(Drone, drone_id)
            if drone is None:
                return False
            if target_id is not None and session.get(target_model, target_id) is None:
                logger.warning(
                    "rejected %s=%s for drone %s: target does not exist",
                    link,
                    target_id,
                    drone_id,
                )
                return False
            if getattr(drone, link) == target_id:
                return True
            setattr(drone, link, target_id)
            session.add(drone)
            session.commit()
        return True

    def assign_drone_to_project(self, drone_id: str, project_id: str | None) -> bool:
        return self._assign_drone(drone_id, "project_id", project_id)

    def assign_drone_to_control_station(self, drone_id: str, station_id: str | None) -> bool:
        return self._assign_drone(drone_id, "control_station_id", station_id)

    def assign_drone_to_docking_station(self, drone_id: str, station_id: str | None) -> bool:
        return self._assign_drone(drone_id, "docking_station_id", station_id)

    def assign_user_to_project(self, user_id: str, project_id: str) -> bool:
        with self._store.session() as session:
            if session.get(User, user_id) is None or session.get(Project, project_id) is None:
                return False
            if session.get(ProjectMember, (project_id, user_id)) is None:
                session.add(ProjectMember(project_id=project_id, user_id=user_id))
                session.commit()
        return True

    def remove_user_from_project(self, user_id: str, project_id: str) -> bool:
        with self._store.session() as session:
            if session.get(User, user_id) is None or session.get(Project, project_id) is None:
                return False
            membership = session.get(ProjectMember, (project_id, user_id))
            if membership is not None:
                session.delete(membership)
                session.commit()
        return True
