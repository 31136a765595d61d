# src/hospital_api/api/app.py
"""FastAPI application setup."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from .. import __version__
from ..config import AppConfig, load_config
from ..db.session import init_db, reset_engine, session_scope
from ..errors import HospitalAPIError, InputValidationError
from ..oauth.provider import HttpIdentityProvider, IdentityProvider
from .middleware import SecurityHeadersMiddleware

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    config: AppConfig = app.state.config
    init_db(config.server.database_url)
    logger.info(f"Database initialized ({config.server.environment})")

    yield

    reset_engine()


def _field_name(loc: tuple) -> str:
    """Last named element of a pydantic error location, e.g. body.patientName."""
    for part in reversed(loc):
        if isinstance(part, str) and part not in ("body", "query", "path"):
            return part
    return "unknown"


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Validation failed", "errors": errors},
    )


async def hospital_error_handler(request: Request, exc: HospitalAPIError) -> JSONResponse:
    content: dict = {"message": exc.message}
    if isinstance(exc, InputValidationError):
        content["errors"] = exc.field_errors
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(
    config: AppConfig | None = None,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Application configuration; loaded from the environment when
            omitted
        identity_provider: OAuth provider client; defaults to an
            HttpIdentityProvider for ``config.oauth``
    """
    if config is None:
        config = load_config()
    config.validate()

    app = FastAPI(
        title="Hospital Management API",
        description="REST API for appointments, staff and OAuth login",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.identity_provider = identity_provider or HttpIdentityProvider(config.oauth)

    app.add_middleware(SecurityHeadersMiddleware, production=config.is_production)
    # Credentials are needed for the cookie-based OAuth flow
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[config.server.frontend_origin],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(HospitalAPIError, hospital_error_handler)

    _register_routes(app)

    return app


def _register_routes(app: FastAPI) -> None:
    """Register all API routes."""
    from .routers import appointments_router, mfa_router, oauth_router, staff_router

    app.include_router(appointments_router)
    app.include_router(staff_router)
    app.include_router(oauth_router)
    app.include_router(mfa_router)

    @app.get("/")
    async def root():
        """API information."""
        return {
            "name": "Hospital Management API",
            "version": __version__,
            "docs": "/docs",
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        db_status = "not_initialized"

        try:
            with session_scope() as session:
                session.execute(text("SELECT 1"))
            db_status = "connected"
        except RuntimeError:
            db_status = "not_initialized"
        except Exception as e:
            logger.warning(f"Health check database error: {e}")
            db_status = "disconnected"

        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "service": "hospital-api",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {"database": db_status},
        }
