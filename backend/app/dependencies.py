"""FastAPI dependency providers."""

from typing import Dict

from fastapi import Depends, Request
from motor.motor_asyncio import AsyncIOMotorClient

from .config import Settings, get_settings
from .errors import NotFoundError
from .logging_utils import get_logger
from .oauth import OAuthProvider
from .repositories import (
    JsonFileProfileRepository,
    MongoProfileRepository,
    ProfileRepository,
)
from .tmdb import TmdbClient

logger = get_logger("dependencies")


def build_profile_repository(settings: Settings) -> ProfileRepository:
    """Create the profile store selected by ``LEADERBOX_STORAGE``."""
    if settings.storage_backend == "mongo":
        client = AsyncIOMotorClient(settings.mongo_uri)
        logger.info("Using Mongo profile store '%s'.", settings.mongo_db)
        return MongoProfileRepository(client[settings.mongo_db], on_close=client.close)
    logger.info("Using JSON profile store at '%s'.", settings.profiles_json_path)
    return JsonFileProfileRepository(settings.profiles_json_path)


def build_tmdb_client(settings: Settings) -> TmdbClient:
    return TmdbClient(
        api_key=settings.tmdb_api_key,
        read_access_token=settings.tmdb_read_access_token,
        base_url=settings.tmdb_base_url,
        timeout=settings.http_timeout_seconds,
    )


def get_profile_repository(request: Request) -> ProfileRepository:
    """Return the profile store created during application startup."""
    return request.app.state.profile_repository


def get_tmdb_client(request: Request) -> TmdbClient:
    return request.app.state.tmdb_client


def get_oauth_providers(request: Request) -> Dict[str, OAuthProvider]:
    return request.app.state.oauth_providers


def get_oauth_provider(
    provider: str,
    providers: Dict[str, OAuthProvider] = Depends(get_oauth_providers),
) -> OAuthProvider:
    """Resolve the ``{provider}`` path segment to a configured provider."""
    try:
        return providers[provider.lower()]
    except KeyError:
        raise NotFoundError(f"Unknown provider '{provider}'.") from None


__all__ = [
    "build_profile_repository",
    "build_tmdb_client",
    "get_oauth_provider",
    "get_oauth_providers",
    "get_profile_repository",
    "get_settings",
    "get_tmdb_client",
]
