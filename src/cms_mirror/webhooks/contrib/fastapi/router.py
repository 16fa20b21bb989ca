"""FastAPI route exposing a :class:`WebhookReceiver`.

Example:
    ```python
    from fastapi import FastAPI
    from cms_mirror.webhooks.contrib.fastapi import build_webhook_router

    app = FastAPI()
    app.include_router(build_webhook_router(mirror.receiver))
    ```
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from ...receiver import WebhookReceiver

DEFAULT_PATH = "/webhook/receive"


def build_webhook_router(
    receiver: WebhookReceiver,
    *,
    path: str = DEFAULT_PATH,
) -> APIRouter:
    router = APIRouter()

    @router.post(path, status_code=202)
    async def receive_webhook(request: Request) -> JSONResponse:
        result = receiver.receive(request.headers, await request.body())
        return JSONResponse(result.body, status_code=result.status, headers=result.headers)

    return router
