from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from dronehub.infra.store import EntityStore


def get_store(request: Request) -> EntityStore:
    store = getattr(request.app.state, "store", None)
    if not isinstance(store, EntityStore):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Entity store is not configured",
        )
    return store


Store = Annotated[EntityStore, Depends(get_store)]


def not_found(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
