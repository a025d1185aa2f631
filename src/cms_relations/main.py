# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2026 CMS Relations Contributors

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from cms_relations import __version__
from cms_relations.api.relations import limiter
from cms_relations.api.router import v1_router
from cms_relations.config import get_settings
from cms_relations.db.session import get_engine
from cms_relations.errors import (
    CascadeRestrictError,
    ConcurrentEditError,
    ConstraintViolationError,
    DefinitionInUseError,
    DefinitionValidationError,
    NotFoundError,
    StorageError,
)
from cms_relations.logging_config import configure_logging
from cms_relations.schemas.common import (
    ConstraintErrorResponse,
    ErrorResponse,
    FieldErrorResponse,
    ValidationErrorResponse,
    ViolationResponse,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan: startup and shutdown hooks."""
    settings = get_settings()
    configure_logging(settings)

    # Startup: auto-migrate in development mode
    if settings.environment == "development":
        import subprocess

        subprocess.run(["alembic", "upgrade", "head"], check=True)

    logger.info("Relation engine started (environment=%s)", settings.environment)

    yield

    await get_engine().dispose()


async def _definition_validation_handler(
    request: Request, exc: DefinitionValidationError
) -> JSONResponse:
    body = ValidationErrorResponse(
        detail=str(exc),
        errors=[FieldErrorResponse(field=e.field, reason=e.reason) for e in exc.errors],
    )
    return JSONResponse(status_code=422, content=body.model_dump())


async def _constraint_violation_handler(
    request: Request, exc: ConstraintViolationError
) -> JSONResponse:
    body = ConstraintErrorResponse(
        detail=str(exc),
        violations=[ViolationResponse(**v.to_dict()) for v in exc.violations],
    )
    return JSONResponse(status_code=409, content=body.model_dump(exclude_none=True))


async def _definition_in_use_handler(
    request: Request, exc: DefinitionInUseError
) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "count": exc.count})


async def _cascade_restrict_handler(
    request: Request, exc: CascadeRestrictError
) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content={
            "detail": str(exc),
            "definition_id": str(exc.definition_id),
            "count": exc.count,
            "blocking": [
                {
                    "definition_id": str(b.definition_id),
                    "display_name": b.display_name,
                    "side": b.side,
                    "count": b.count,
                }
                for b in exc.blocking
            ],
        },
    )


async def _concurrent_edit_handler(
    request: Request, exc: ConcurrentEditError
) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "fields": exc.fields})


async def _not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=ErrorResponse(detail=str(exc)).model_dump())


async def _storage_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    body = ErrorResponse(detail="The database is temporarily unavailable. Please retry.")
    return JSONResponse(status_code=503, content=body.model_dump())


app = FastAPI(
    title="CMS Content Relation Engine",
    version=__version__,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(DefinitionValidationError, _definition_validation_handler)
app.add_exception_handler(ConstraintViolationError, _constraint_violation_handler)
app.add_exception_handler(DefinitionInUseError, _definition_in_use_handler)
app.add_exception_handler(CascadeRestrictError, _cascade_restrict_handler)
app.add_exception_handler(ConcurrentEditError, _concurrent_edit_handler)
app.add_exception_handler(NotFoundError, _not_found_handler)
app.add_exception_handler(StorageError, _storage_error_handler)
app.add_exception_handler(SQLAlchemyError, _storage_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "PUT", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is running."""
    return {"status": "healthy"}


@app.get("/ready")
async def ready() -> dict[str, str]:
    """Readiness probe. Checks database connectivity."""
    engine = get_engine()
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return {"status": "ready"}
