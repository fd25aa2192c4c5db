"""Entry point for the LeaderBox API server."""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import get_settings
from .dependencies import build_profile_repository, build_tmdb_client
from .errors import LeaderBoxError
from .logging_utils import get_logger
from .oauth import build_oauth_providers
from .routers import (
    auth_router,
    decks_router,
    duels_router,
    meta_router,
    movies_router,
    profiles_router,
)
from .version import get_application_version

logger = get_logger("backend")


async def _handle_leaderbox_error(_: Request, exc: LeaderBoxError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _handle_http_exception(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = "not_found" if exc.status_code == 404 else "http_error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": code, "message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _handle_request_validation(_: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request.")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=400,
        content={"error": "validation_error", "message": message},
    )


async def _handle_unexpected(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while serving request.", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Internal server error"},
    )


def create_app() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Build the shared store and HTTP clients, release them on shutdown."""
        repository = build_profile_repository(settings)
        tmdb_client = build_tmdb_client(settings)
        providers = build_oauth_providers(settings)
        app.state.profile_repository = repository
        app.state.tmdb_client = tmdb_client
        app.state.oauth_providers = providers

        if not tmdb_client.configured:
            logger.warning("No TMDB credentials configured; movie search will fail.")
        try:
            await repository.ensure_indexes()
        except Exception:  # pragma: no cover - index creation must not block startup
            logger.exception("Failed to ensure profile indexes during startup.")
        try:
            yield
        finally:
            tmdb_client.close()
            for provider in providers.values():
                provider.close()
            await repository.close()

    app = FastAPI(
        title="LeaderBox API",
        version=get_application_version(),
        description="Profiles, movie decks and duels for LeaderBox.",
        lifespan=lifespan,
    )

    allow_origins = list(settings.cors_allow_origins)
    allow_credentials = True
    if not allow_origins:
        allow_origins = ["*"]
        allow_credentials = False
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LeaderBoxError, _handle_leaderbox_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)

    app.include_router(meta_router)
    app.include_router(profiles_router)
    app.include_router(auth_router)
    app.include_router(movies_router)
    app.include_router(decks_router)
    app.include_router(duels_router)

    return app


app = create_app()
