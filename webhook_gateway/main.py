from fastapi import FastAPI

from webhook_gateway.config import settings
from webhook_gateway.errors import install_error_handlers
from webhook_gateway.log import configure_logging
from webhook_gateway.middleware import install_middleware
from webhook_gateway.routes.health import router as health_router
from webhook_gateway.routes.webhooks import router as webhooks_router

def create_app() -> FastAPI:
    app = FastAPI(title="webhook-gateway", version="0.1.0")
    install_error_handlers(app)
    install_middleware(app)
    app.include_router(health_router)
    app.include_router(webhooks_router)
    return app

configure_logging(settings.log_level, json_output=settings.log_json)
app = create_app()
