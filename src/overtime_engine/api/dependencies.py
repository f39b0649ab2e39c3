"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from overtime_engine.database import get_session
from overtime_engine.events.emitter import EventEmitter
from overtime_engine.services.holiday_calendar import DatabaseHolidayCalendar
from overtime_engine.services.lifecycle_service import Actor, RequestLifecycleManager
from overtime_engine.services.resubmission_service import ResubmissionTracker


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with get_session() as session:
        yield session


async def get_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_role: Annotated[str | None, Header()] = None,
    x_actor_name: Annotated[str | None, Header()] = None,
) -> Actor:
    """Build the acting user from request headers."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Actor-Id and X-Actor-Role headers are required",
        )
    try:
        user_id = UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-Actor-Id format",
        )
    return Actor(user_id=user_id, role=x_actor_role.lower(), name=x_actor_name or "")


def get_event_emitter(request: Request) -> EventEmitter:
    """Process-wide emitter created at startup."""
    return request.app.state.event_emitter


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
CurrentActor = Annotated[Actor, Depends(get_actor)]
Emitter = Annotated[EventEmitter, Depends(get_event_emitter)]


def get_lifecycle_manager(db: DbSession, emitter: Emitter) -> RequestLifecycleManager:
    return RequestLifecycleManager(
        db, emitter=emitter, holiday_calendar=DatabaseHolidayCalendar(db)
    )


Lifecycle = Annotated[RequestLifecycleManager, Depends(get_lifecycle_manager)]


def get_resubmission_tracker(db: DbSession, lifecycle: Lifecycle) -> ResubmissionTracker:
    return ResubmissionTracker(db, lifecycle)


Resubmissions = Annotated[ResubmissionTracker, Depends(get_resubmission_tracker)]
