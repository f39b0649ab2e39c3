"""Health check endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.api.dependencies import DbSession
from overtime_engine.config import get_settings
from overtime_engine.models import RateFormula

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    engine_version: str
    active_formulas: int | None = None


async def _count_active_formulas(db: AsyncSession) -> int | None:
    """Number of active rate formulas, or None when the database is unreachable."""
    try:
        result = await db.execute(
            select(func.count()).select_from(RateFormula).where(RateFormula.is_active.is_(True))
        )
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        return None
    return result.scalar_one()


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
)
async def health_check(db: DbSession) -> HealthResponse:
    """Check API and database health."""
    active_formulas = await _count_active_formulas(db)
    healthy = active_formulas is not None

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        database="healthy" if healthy else "unhealthy",
        engine_version=get_settings().engine_version,
        active_formulas=active_formulas,
    )


@router.get("/ready", status_code=status.HTTP_200_OK)
async def readiness_check(db: DbSession):
    """Ready once the database answers; pay cannot be priced without it."""
    if await _count_active_formulas(db) is None:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return {"status": "ready"}


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
