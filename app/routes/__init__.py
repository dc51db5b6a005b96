"""API routes package."""

from app.routes.batch import router as batch_router
from app.routes.contracts import router as contracts_router
from app.routes.health import router as health_router

__all__ = ["batch_router", "contracts_router", "health_router"]
