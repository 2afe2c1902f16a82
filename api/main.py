"""
api/main.py -- FastAPI application for the account service.

Run with:  uvicorn asgi:app --reload

create_app() builds an app around a Settings object; the module-level `app`
uses get_settings(). Tests call create_app() directly with an in-memory
database URL and a recording email backend.

Lifespan handles startup (engine, schema, service) and shutdown (engine
disposal) symmetrically. The engine is created inside the lifespan so it is
bound to the event loop that serves requests.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from accounts.service import AccountService
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.accounts import router as accounts_router
from core.config import Settings, get_settings
from core.logging import configure_logging
from mail.service import EmailService, build_email_service
from store.database import Database

VERSION = "0.1.0"

logger = logging.getLogger("accounts.api")


def create_app(settings: Settings | None = None, email_service: EmailService | None = None) -> FastAPI:
    """Assemble the app. Arguments override configuration (used by tests)."""
    settings = settings or get_settings()
    configure_logging(settings.debug)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Account API starting up")
        database = Database(settings.database_url, echo=False)
        await database.create_all()
        app.state.database = database
        app.state.account_service = AccountService(
            database,
            email_service or build_email_service(settings),
            verification_ttl=timedelta(seconds=settings.verification_ttl_seconds),
            bcrypt_rounds=settings.bcrypt_rounds,
        )
        await app.state.account_service.warm_up()
        logger.info("Account service ready (mail backend=%s)", settings.mail_backend)

        yield

        await database.dispose()
        logger.info("Account API shutdown complete")

    app = FastAPI(
        title="Account Service API",
        description="Signup, email verification and credential checks.",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # ------------------------------------------------------------------
    # Request logging middleware
    # ------------------------------------------------------------------

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d %.1fms %s",
            request.method,
            request.url.path,
            response.status_code,
            ms,
            request.client.host if request.client else "unknown",
        )
        return response

    app.include_router(accounts_router, prefix="/api/v1", tags=["Accounts"])

    # ------------------------------------------------------------------
    # Exception handlers -- one ErrorResponse envelope for every error
    # ------------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error=ErrorDetail(
                    code="validation_error",
                    message="Request validation failed.",
                    detail=str(exc.errors()),
                )
            ).model_dump(),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Use a structured detail dict as-is; wrap anything else."""
        if isinstance(exc.detail, dict):
            return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=ErrorDetail(code=f"http_{exc.status_code}", message=str(exc.detail))
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log the traceback server-side; the client only sees a generic message."""
        logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error=ErrorDetail(code="internal_error", message="An unexpected error occurred.")
            ).model_dump(),
        )

    # ------------------------------------------------------------------
    # Health endpoint
    # ------------------------------------------------------------------

    @app.get("/api/v1/health", tags=["Health"])
    async def health(request: Request) -> HealthResponse:
        """Return liveness, version and whether the database answers."""
        db_ok = await request.app.state.database.ping()
        return HealthResponse(version=VERSION, components={"app": "ok", "database": "ok" if db_ok else "error"})

    return app


app = create_app()
