from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from dronehub.api.deps import Store
from dronehub.domain.models import LogRead, LogSeverity, LogType
from dronehub.services.log_service import LogService

router = APIRouter()


def get_log_service(store: Store) -> LogService:
    return LogService(store)


Service = Annotated[LogService, Depends(get_log_service)]


def filter_logs(
    logs: list[LogRead],
    *,
    severity: LogSeverity | None = None,
    source: str | None = None,
    search: str | None = None,
) -> list[LogRead]:
    """Narrow an already newest-first log list the way the console does."""
    if severity is not None:
        logs = [item for item in logs if item.severity == severity]
    if source:
        needle = source.lower()
        logs = [item for item in logs if needle in item.source.lower()]
    if search:
        needle = search.lower()
        logs = [item for item in logs if needle in item.message.lower() or needle in item.source.lower()]
    return logs


@router.get("", response_model=list[LogRead])
def list_logs(
    service: Service,
    log_type: LogType | None = Query(default=None, alias="type"),
    severity: LogSeverity | None = Query(default=None),
    source: str | None = Query(default=None),
    search: str | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=10_000),
) -> list[LogRead]:
    logs = service.list_logs_by_type(log_type) if log_type is not None else service.list_logs()
    logs = filter_logs(logs, severity=severity, source=source, search=search)
    return logs[:limit] if limit is not None else logs
