from webhook_gateway.models.webhook_event import WebhookEvent
from webhook_gateway.models.webhook_source import WebhookSource

__all__ = ["WebhookSource", "WebhookEvent"]
