from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException

from dronehub.api.routers import (
    control_stations,
    dashboard,
    docking_stations,
    drones,
    logs,
    projects,
    users,
    webhooks,
)
from dronehub.infra.audit import AuditMiddleware
from dronehub.infra.logging_config import configure_logging
from dronehub.infra.store import EntityStore
from dronehub.services.bootstrap_service import SEED_DATA_PATH, BootstrapService


def create_app(store: EntityStore | None = None, *, seed_path: str | None = SEED_DATA_PATH) -> FastAPI:
    """Build the API around one entity store.

    ``seed_path`` names the snapshot loaded at startup; an empty value starts
    with an empty fleet.
    """
    entity_store = store if store is not None else EntityStore()

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if seed_path:
            BootstrapService(entity_store).initialize(seed_path)
        yield

    app = FastAPI(
        title="dronehub",
        description="Drone fleet registry with stations, projects, users and an activity log.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.store = entity_store

    app.add_middleware(AuditMiddleware)

    app.include_router(drones.router, prefix="/api/drones", tags=["drones"])
    app.include_router(control_stations.router, prefix="/api/control-stations", tags=["control-stations"])
    app.include_router(docking_stations.router, prefix="/api/docking-stations", tags=["docking-stations"])
    app.include_router(projects.router, prefix="/api/projects", tags=["projects"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(logs.router, prefix="/api/logs", tags=["logs"])
    app.include_router(webhooks.router, prefix="/api/webhooks", tags=["webhooks"])
    app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/readyz")
    def readyz() -> dict[str, object]:
        store_ok = entity_store.ready()
        checks = {"store": "ok" if store_ok else "fail"}
        if not store_ok:
            raise HTTPException(
                status_code=503,
                detail={"status": "not_ready", "checks": checks},
            )
        return {"status": "ready", "checks": checks}

    return app


configure_logging()
app = create_app()
