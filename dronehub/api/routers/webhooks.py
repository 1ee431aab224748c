from __future__ import annotations

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from dronehub.api.deps import Store
from dronehub.services.webhook_service import WebhookService

router = APIRouter()


def get_webhook_service(store: Store) -> WebhookService:
    return WebhookService(store)


Service = Annotated[WebhookService, Depends(get_webhook_service)]


async def _read_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        # Treated like a body without the required fields.
        return None


@router.post("/drones")
async def drone_webhook(request: Request, service: Service) -> JSONResponse:
    body = await _read_body(request)
    result = service.handle(body)
    return JSONResponse(status_code=result.status_code, content=result.body)
