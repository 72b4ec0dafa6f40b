from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

class WebhookError(Exception):
    """Base for errors that map onto an HTTP response.

    `detail` is a short snake_case code, the same shape FastAPI uses for
    HTTPException bodies. It must never carry secrets or raw payload data.
    """

    status_code = 500
    detail = "internal_error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)

class ValidationError(WebhookError):
    status_code = 400
    detail = "invalid_request"

class AuthenticationError(WebhookError):
    status_code = 401
    detail = "invalid_signature"

class NotFoundError(WebhookError):
    status_code = 404
    detail = "not_found"

class PayloadTooLargeError(WebhookError):
    status_code = 413
    detail = "payload_too_large"

class ConfigurationError(WebhookError):
    status_code = 500
    detail = "source_not_configured"

class InternalError(WebhookError):
    status_code = 500
    detail = "webhook_processing_failed"

# worker side, never rendered as http
class ProcessingError(Exception):
    def __init__(self, event_id: object, message: str) -> None:
        self.event_id = event_id
        self.message = message
        super().__init__(f"event {event_id}: {message}")

class EventMissingError(ProcessingError):
    """The job points at an event row that does not exist. Not retryable."""

    def __init__(self, event_id: object) -> None:
        super().__init__(event_id, "webhook event not found")

async def _webhook_error_handler(request: Request, exc: WebhookError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WebhookError, _webhook_error_handler)
