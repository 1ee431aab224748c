from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from dronehub.api.deps import Store, not_found
from dronehub.domain.models import ProjectCreate, ProjectRead, ProjectUpdate
from dronehub.services.project_service import ProjectService
from dronehub.services.relationship_service import RelationshipService

router = APIRouter()


def get_project_service(store: Store) -> ProjectService:
    return ProjectService(store)


def get_relationship_service(store: Store) -> RelationshipService:
    return RelationshipService(store)


Service = Annotated[ProjectService, Depends(get_project_service)]
Relationships = Annotated[RelationshipService, Depends(get_relationship_service)]

PROJECT_NOT_FOUND = "Project not found"


def _require_project(service: ProjectService, project_id: str) -> ProjectRead:
    project = service.get_project(project_id)
    if project is None:
        raise not_found(PROJECT_NOT_FOUND)
    return project


@router.post(
    "",
    response_model=ProjectRead,
    status_code=status.HTTP_201_CREATED,
)
def create_project(payload: ProjectCreate, service: Service) -> ProjectRead:
    return service.create_project(payload)


@router.get("", response_model=list[ProjectRead])
def list_projects(service: Service) -> list[ProjectRead]:
    return service.list_projects()


@router.get("/{project_id}", response_model=ProjectRead)
def get_project(project_id: str, service: Service) -> ProjectRead:
    return _require_project(service, project_id)


@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(project_id: str, payload: ProjectUpdate, service: Service) -> ProjectRead:
    project = service.update_project(project_id, payload)
    if project is None:
        raise not_found(PROJECT_NOT_FOUND)
    return project


@router.delete("/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(project_id: str, service: Service) -> Response:
    if not service.delete_project(project_id):
        raise not_found(PROJECT_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{project_id}/users/{user_id}", response_model=ProjectRead)
def assign_user(
    project_id: str,
    user_id: str,
    service: Service,
    relationships: Relationships,
) -> ProjectRead:
    if not relationships.assign_user_to_project(user_id, project_id):
        raise not_found("Failed to assign user to project")
    return _require_project(service, project_id)


@router.delete("/{project_id}/users/{user_id}", response_model=ProjectRead)
def remove_user(
    project_id: str,
    user_id: str,
    service: Service,
    relationships: Relationships,
) -> ProjectRead:
    if not relationships.remove_user_from_project(user_id, project_id):
        raise not_found("Failed to remove user from project")
    return _require_project(service, project_id)
