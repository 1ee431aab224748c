from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from dronehub.api.deps import Store, not_found
from dronehub.domain.models import AssignmentRequest, DroneCreate, DroneRead, DroneUpdate
from dronehub.services.drone_service import ConflictError, DroneService
from dronehub.services.relationship_service import RelationshipService

router = APIRouter()


def get_drone_service(store: Store) -> DroneService:
    return DroneService(store)


def get_relationship_service(store: Store) -> RelationshipService:
    return RelationshipService(store)


Service = Annotated[DroneService, Depends(get_drone_service)]
Relationships = Annotated[RelationshipService, Depends(get_relationship_service)]

DRONE_NOT_FOUND = "Drone not found"


def _handle_drone_error(exc: Exception) -> None:
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post(
    "",
    response_model=DroneRead,
    status_code=status.HTTP_201_CREATED,
)
def create_drone(payload: DroneCreate, service: Service) -> DroneRead:
    try:
        return service.create_drone(payload)
    except ConflictError as exc:
        _handle_drone_error(exc)
        raise


@router.get("", response_model=list[DroneRead])
def list_drones(service: Service) -> list[DroneRead]:
    return service.list_drones()


@router.get("/{drone_id}", response_model=DroneRead)
def get_drone(drone_id: str, service: Service) -> DroneRead:
    drone = service.get_drone(drone_id)
    if drone is None:
        raise not_found(DRONE_NOT_FOUND)
    return drone


@router.patch("/{drone_id}", response_model=DroneRead)
def update_drone(drone_id: str, payload: DroneUpdate, service: Service) -> DroneRead:
    try:
        drone = service.update_drone(drone_id, payload)
    except ConflictError as exc:
        _handle_drone_error(exc)
        raise
    if drone is None:
        raise not_found(DRONE_NOT_FOUND)
    return drone


@router.delete("/{drone_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_drone(drone_id: str, service: Service) -> Response:
    if not service.delete_drone(drone_id):
        raise not_found(DRONE_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


def _assign(
    drone_id: str,
    target_id: str | None,
    assign: Callable[[str, str | None], bool],
    service: DroneService,
    failure: str,
) -> DroneRead:
    if not assign(drone_id, target_id):
        raise not_found(failure)
    drone = service.get_drone(drone_id)
    if drone is None:
        raise not_found(DRONE_NOT_FOUND)
    return drone


@router.put("/{drone_id}/project", response_model=DroneRead)
def assign_project(
    drone_id: str,
    payload: AssignmentRequest,
    service: Service,
    relationships: Relationships,
) -> DroneRead:
    return _assign(
        drone_id,
        payload.target_id,
        relationships.assign_drone_to_project,
        service,
        "Failed to assign drone to project",
    )


@router.put("/{drone_id}/control-station", response_model=DroneRead)
def assign_control_station(
    drone_id: str,
    payload: AssignmentRequest,
    service: Service,
    relationships: Relationships,
) -> DroneRead:
    return _assign(
        drone_id,
        payload.target_id,
        relationships.assign_drone_to_control_station,
        service,
        "Failed to assign drone to control station",
    )


@router.put("/{drone_id}/docking-station", response_model=DroneRead)
def assign_docking_station(
    drone_id: str,
    payload: AssignmentRequest,
    service: Service,
    relationships: Relationships,
) -> DroneRead:
    return _assign(
        drone_id,
        payload.target_id,
        relationships.assign_drone_to_docking_station,
        service,
        "Failed to assign drone to docking station",
    )
