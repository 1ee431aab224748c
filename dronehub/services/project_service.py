from __future__ import annotations

from datetime import datetime

from sqlmodel import Session, select

from dronehub.domain.models import (
    Project,
    ProjectCreate,
    ProjectRead,
    ProjectUpdate,
    now_utc,
    row_payload,
)
from dronehub.infra.store import EntityStore
from dronehub.services.relationship_service import (
    assigned_drone_ids,
    assigned_user_ids,
    detach_drones,
    drop_memberships,
)


def project_read(session: Session, project: Project) -> ProjectRead:
    return ProjectRead.model_validate(
        row_payload(
            project,
            assigned_drones=assigned_drone_ids(session, project.id),
            assigned_users=assigned_user_ids(session, project.id),
        )
    )


class ProjectService:
    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def create_project(
        self,
        payload: ProjectCreate,
        *,
        project_id: str | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ) -> ProjectRead:
        created = created_at or now_utc()
        project = Project(
            name=payload.name,
            description=payload.description,
            status=payload.status,
            meta=dict(payload.metadata),
            created_at=created,
            updated_at=updated_at or created,
        )
        if project_id:
            project.id = project_id
        with self._store.session() as session:
            session.add(project)
            session.commit()
            session.refresh(project)
            return project_read(session, project)

    def list_projects(self) -> list[ProjectRead]:
        with self._store.session() as session:
            rows = session.exec(select(Project).order_by(Project.seq)).all()
            return [project_read(session, item) for item in rows]

    def get_project(self, project_id: str) -> ProjectRead | None:
        with self._store.session() as session:
            project = session.get(Project, project_id)
            return project_read(session, project) if project is not None else None

    def update_project(self, project_id: str, payload: ProjectUpdate) -> ProjectRead | None:
        changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
        with self._store.session() as session:
            project = session.get(Project, project_id)
            if project is None:
                return None
            for key, value in changes.items():
                setattr(project, "meta" if key == "metadata" else key, value)
            project.updated_at = now_utc()
            session.add(project)
            session.commit()
            session.refresh(project)
            return project_read(session, project)

    def delete_project(self, project_id: str) -> bool:
        with self._store.session() as session:
            project = session.get(Project, project_id)
            if project is None:
                return False
            detach_drones(session, "project_id", project_id)
            drop_memberships(session, project_id=project_id)
            session.delete(project)
            session.commit()
        return True
