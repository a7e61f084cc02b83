"""API routes package."""

from server.routes.transfer_routes import router as transfer_router
from server.routes.relay_routes import router as relay_router

__all__ = ["transfer_router", "relay_router"]
