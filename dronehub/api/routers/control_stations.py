from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from dronehub.api.deps import Store, not_found
from dronehub.domain.models import ControlStationCreate, ControlStationRead, ControlStationUpdate
from dronehub.services.station_service import ConflictError, ControlStationService

router = APIRouter()


def get_control_station_service(store: Store) -> ControlStationService:
    return ControlStationService(store)


Service = Annotated[ControlStationService, Depends(get_control_station_service)]

STATION_NOT_FOUND = "Control station not found"


def _handle_station_error(exc: Exception) -> None:
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post(
    "",
    response_model=ControlStationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_station(payload: ControlStationCreate, service: Service) -> ControlStationRead:
    try:
        return service.create_station(payload)
    except ConflictError as exc:
        _handle_station_error(exc)
        raise


@router.get("", response_model=list[ControlStationRead])
def list_stations(service: Service) -> list[ControlStationRead]:
    return service.list_stations()


@router.get("/{station_id}", response_model=ControlStationRead)
def get_station(station_id: str, service: Service) -> ControlStationRead:
    station = service.get_station(station_id)
    if station is None:
        raise not_found(STATION_NOT_FOUND)
    return station


@router.patch("/{station_id}", response_model=ControlStationRead)
def update_station(station_id: str, payload: ControlStationUpdate, service: Service) -> ControlStationRead:
    try:
        station = service.update_station(station_id, payload)
    except ConflictError as exc:
        _handle_station_error(exc)
        raise
    if station is None:
        raise not_found(STATION_NOT_FOUND)
    return station


@router.delete("/{station_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_station(station_id: str, service: Service) -> Response:
    if not service.delete_station(station_id):
        raise not_found(STATION_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
