from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from dronehub.api.deps import Store
from dronehub.domain.models import DashboardStatsRead
from dronehub.services.dashboard_service import DashboardService

router = APIRouter()


def get_dashboard_service(store: Store) -> DashboardService:
    return DashboardService(store)


Service = Annotated[DashboardService, Depends(get_dashboard_service)]


@router.get("/stats", response_model=DashboardStatsRead)
def get_stats(service: Service) -> DashboardStatsRead:
    return service.get_stats()
