"""Runtime configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

StorageBackend = Literal["json", "mongo"]

DEFAULT_TMDB_BASE_URL = "https://api.themoviedb.org"
DEFAULT_TIKTOK_AUTHORIZE_URL = "https://www.tiktok.com/v2/auth/authorize/"
DEFAULT_TIKTOK_TOKEN_URL = "https://open.tiktokapis.com/v2/oauth/token/"
DEFAULT_TIKTOK_USERINFO_URL = "https://open.tiktokapis.com/v2/user/info/"


@dataclass(frozen=True)
class Settings:
    """Application settings sourced from environment variables."""

    storage_backend: StorageBackend
    profiles_json_path: str
    mongo_uri: str
    mongo_db: str
    mongo_profiles_collection: str
    tmdb_api_key: str | None
    tmdb_read_access_token: str | None
    tmdb_base_url: str
    tiktok_client_key: str | None
    tiktok_client_secret: str | None
    tiktok_redirect_uri: str | None
    tiktok_authorize_url: str
    tiktok_token_url: str
    tiktok_userinfo_url: str
    tiktok_scopes: str
    auth0_domain: str | None
    auth0_client_id: str | None
    auth0_client_secret: str | None
    letterboxd_redirect_uri: str | None
    http_timeout_seconds: float
    cors_allow_origins: tuple[str, ...]

    @classmethod
    def from_env(cls) -> "Settings":
        """Construct settings using environment variables with sane defaults."""
        return cls(
            storage_backend=_load_storage_backend(),
            profiles_json_path=os.getenv("PROFILES_JSON_PATH", "data/users.json"),
            mongo_uri=os.getenv("MONGO_URI", "mongodb://127.0.0.1:47017"),
            mongo_db=os.getenv("MONGO_DB_NAME", "leaderbox"),
            mongo_profiles_collection=os.getenv("MONGO_PROFILES_COLLECTION", "profiles"),
            tmdb_api_key=_optional_env("TMDB_API_KEY"),
            tmdb_read_access_token=_optional_env("TMDB_READ_ACCESS_TOKEN"),
            tmdb_base_url=os.getenv("TMDB_BASE_URL", DEFAULT_TMDB_BASE_URL),
            tiktok_client_key=_optional_env("TIKTOK_CLIENT_KEY"),
            tiktok_client_secret=_optional_env("TIKTOK_CLIENT_SECRET"),
            tiktok_redirect_uri=_optional_env("TIKTOK_REDIRECT_URI"),
            tiktok_authorize_url=os.getenv("TIKTOK_AUTHORIZE_URL", DEFAULT_TIKTOK_AUTHORIZE_URL),
            tiktok_token_url=os.getenv("TIKTOK_TOKEN_URL", DEFAULT_TIKTOK_TOKEN_URL),
            tiktok_userinfo_url=os.getenv("TIKTOK_USERINFO_URL", DEFAULT_TIKTOK_USERINFO_URL),
            tiktok_scopes=os.getenv("TIKTOK_SCOPES", "user.info.basic"),
            auth0_domain=_optional_env("AUTH0_DOMAIN"),
            auth0_client_id=_optional_env("AUTH0_CLIENT_ID"),
            auth0_client_secret=_optional_env("AUTH0_CLIENT_SECRET"),
            letterboxd_redirect_uri=_optional_env("LETTERBOXD_REDIRECT_URI"),
            http_timeout_seconds=_load_timeout(),
            cors_allow_origins=_load_cors_origins(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()


def _optional_env(name: str) -> str | None:
    """Return the stripped variable value, treating blanks as unset."""
    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    return value or None


def _load_storage_backend() -> StorageBackend:
    raw = (os.getenv("LEADERBOX_STORAGE") or "json").strip().lower()
    if raw == "mongo":
        return "mongo"
    return "json"


def _load_timeout() -> float:
    raw = os.getenv("HTTP_TIMEOUT_SECONDS")
    if not raw:
        return 15.0
    try:
        value = float(raw)
    except ValueError:
        return 15.0
    return value if value > 0 else 15.0


def _load_cors_origins() -> tuple[str, ...]:
    """Return tuple of allowed CORS origins based on environment variables."""
    raw = os.getenv("API_CORS_ALLOW_ORIGINS")
    if raw:
        return tuple(origin.strip() for origin in raw.split(",") if origin.strip())
    # vite dev server defaults
    return ("http://localhost:5173", "http://127.0.0.1:5173")
