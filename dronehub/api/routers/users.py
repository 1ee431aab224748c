from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from dronehub.api.deps import Store, not_found
from dronehub.domain.models import UserCreate, UserRead, UserUpdate
from dronehub.services.user_service import ConflictError, UserService

router = APIRouter()


def get_user_service(store: Store) -> UserService:
    return UserService(store)


Service = Annotated[UserService, Depends(get_user_service)]

USER_NOT_FOUND = "User not found"


def _handle_user_error(exc: Exception) -> None:
    if isinstance(exc, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    raise exc


@router.post(
    "",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
)
def create_user(payload: UserCreate, service: Service) -> UserRead:
    try:
        return service.create_user(payload)
    except ConflictError as exc:
        _handle_user_error(exc)
        raise


@router.get("", response_model=list[UserRead])
def list_users(service: Service) -> list[UserRead]:
    return service.list_users()


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, service: Service) -> UserRead:
    user = service.get_user(user_id)
    if user is None:
        raise not_found(USER_NOT_FOUND)
    return user


@router.patch("/{user_id}", response_model=UserRead)
def update_user(user_id: str, payload: UserUpdate, service: Service) -> UserRead:
    try:
        user = service.update_user(user_id, payload)
    except ConflictError as exc:
        _handle_user_error(exc)
        raise
    if user is None:
        raise not_found(USER_NOT_FOUND)
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: str, service: Service) -> Response:
    if not service.delete_user(user_id):
        raise not_found(USER_NOT_FOUND)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
