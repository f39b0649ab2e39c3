"""API routes."""

from overtime_engine.api.routes.formulas import router as formulas_router
from overtime_engine.api.routes.health import router as health_router
from overtime_engine.api.routes.overtime import router as overtime_router

__all__ = ["formulas_router", "health_router", "overtime_router"]
