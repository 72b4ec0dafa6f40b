from webhook_gateway.db import Base

__all__ = ["Base"]
