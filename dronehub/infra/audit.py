from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("dronehub.audit")

WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}
UNAUDITED_PATHS = {"/healthz", "/readyz"}


def _status_outcome(status_code: int) -> str:
    if status_code >= 500:
        return "error"
    if status_code in {401, 403, 404}:
        return "denied"
    if status_code >= 400:
        return "rejected"
    return "success"


def should_audit_request(method: str, path: str) -> bool:
    return method in WRITE_METHODS and path not in UNAUDITED_PATHS


class AuditMiddleware(BaseHTTPMiddleware):
    """Write one log line per mutating request once the response is known."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        method = request.method
        path = request.url.path
        if not should_audit_request(method, path):
            return response

        route = request.scope.get("route")
        route_path = getattr(route, "path", path)
        outcome = _status_outcome(response.status_code)
        level = logging.WARNING if outcome == "error" else logging.INFO
        logger.log(
            level,
            "%s %s route=%s status=%s outcome=%s client=%s",
            method,
            path,
            route_path,
            response.status_code,
            outcome,
            request.client.host if request.client is not None else None,
        )
        return response
