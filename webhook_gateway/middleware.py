from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from webhook_gateway.config import settings
from webhook_gateway.log import new_request_id, request_id_ctx
from webhook_gateway.ratelimit import client_ip

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"

def _is_webhook_post(request: Request) -> bool:
    path = request.url.path
    return (
        request.method == "POST"
        and path.startswith("/webhooks/")
        and not path.startswith("/webhooks/replay/")
    )

def webhook_guard(request: Request) -> JSONResponse | None:
    # header-only checks, the body is not read yet
    if settings.require_json_content_type:
        content_type = request.headers.get("content-type", "")
        if "application/json" not in content_type.lower():
            return JSONResponse(status_code=400, content={"detail": "invalid_content_type"})

    length = request.headers.get("content-length")
    if length is not None:
        try:
            too_large = int(length) > settings.max_payload_kb * 1024
        except ValueError:
            return JSONResponse(status_code=400, content={"detail": "invalid_content_length"})
        if too_large:
            return JSONResponse(status_code=413, content={"detail": "payload_too_large"})
    return None

def install_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def request_context(request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or new_request_id()
        token = request_id_ctx.set(rid)
        try:
            if _is_webhook_post(request):
                logger.info("webhook request %s %s from %s", request.method, request.url.path, client_ip(request))
                rejected = webhook_guard(request)
                if rejected is not None:
                    logger.warning("webhook request rejected on %s: %s", request.url.path, rejected.body.decode())
                    rejected.headers[REQUEST_ID_HEADER] = rid
                    return rejected

            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            request_id_ctx.reset(token)
