"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from overtime_engine import __version__
from overtime_engine.api.routes import formulas_router, health_router, overtime_router
from overtime_engine.calculators.formula_parser import FormulaError, FormulaSyntaxError
from overtime_engine.database import dispose_db, init_db
from overtime_engine.errors import (
    OvertimeError,
    OvertimeValidationError,
    RequestNotFoundError,
)
from overtime_engine.events.emitter import EventEmitter, log_event
from overtime_engine.services.lifecycle_service import ActorNotPermittedError
from overtime_engine.services.state_machine import InvalidTransitionError, MissingRemarksError
from overtime_engine.services.thresholds import ThresholdExceededError

logger = logging.getLogger(__name__)

UNPROCESSABLE_ENTITY = 422


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def _error(status_code: int, exc: Exception, code: str, context: dict | None = None) -> JSONResponse:
    content: dict = {"detail": str(exc), "code": code}
    if context:
        content["context"] = context
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """Map the engine's error family onto HTTP responses."""

    @app.exception_handler(OvertimeValidationError)
    async def validation_error_handler(request: Request, exc: OvertimeValidationError) -> JSONResponse:
        return _error(
            UNPROCESSABLE_ENTITY,
            exc,
            "VALIDATION_ERROR",
            {"field": exc.field} if exc.field else None,
        )

    @app.exception_handler(RequestNotFoundError)
    async def not_found_handler(request: Request, exc: RequestNotFoundError) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND,
            exc,
            "NOT_FOUND",
            {"request_ids": [str(r) for r in exc.request_ids]},
        )

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT,
            exc,
            "INVALID_TRANSITION",
            {"from_status": exc.from_status, "to_status": exc.to_status},
        )

    @app.exception_handler(MissingRemarksError)
    async def missing_remarks_handler(request: Request, exc: MissingRemarksError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, exc, "MISSING_REMARKS")

    @app.exception_handler(ActorNotPermittedError)
    async def not_permitted_handler(request: Request, exc: ActorNotPermittedError) -> JSONResponse:
        return _error(status.HTTP_403_FORBIDDEN, exc, "FORBIDDEN")

    @app.exception_handler(ThresholdExceededError)
    async def threshold_handler(request: Request, exc: ThresholdExceededError) -> JSONResponse:
        return _error(
            UNPROCESSABLE_ENTITY,
            exc,
            "THRESHOLD_EXCEEDED",
            exc.violation.to_dict(),
        )

    @app.exception_handler(FormulaError)
    async def formula_error_handler(request: Request, exc: FormulaError) -> JSONResponse:
        context = {"errors": exc.errors} if isinstance(exc, FormulaSyntaxError) else None
        return _error(status.HTTP_400_BAD_REQUEST, exc, "FORMULA_ERROR", context)

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
        logger.warning("Constraint conflict on %s %s: %s", request.method, request.url.path, exc.orig)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": "Conflicting concurrent change; reload and retry",
                "code": "CONFLICT",
            },
        )

    @app.exception_handler(OvertimeError)
    async def overtime_error_handler(request: Request, exc: OvertimeError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, exc, "OVERTIME_ERROR")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )


def create_app(emitter: EventEmitter | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Overtime Engine API",
        description="Overtime request lifecycle, pay formulas and policy enforcement",
        version=__version__,
        lifespan=lifespan,
    )

    if emitter is None:
        emitter = EventEmitter()
        emitter.on_all(log_event)
    app.state.event_emitter = emitter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(overtime_router, prefix="/api/v1")
    app.include_router(formulas_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
