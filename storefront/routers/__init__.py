"""HTTP routers."""
from .checkout import router as checkout_router
from .pages import router as pages_router
from .webhooks import router as webhooks_router

__all__ = ["checkout_router", "pages_router", "webhooks_router"]
