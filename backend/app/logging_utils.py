"""Logging setup shared by the LeaderBox API."""

from __future__ import annotations

import logging
import os
from typing import Final, Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

LOGGER_NAME: Final[str] = "leaderbox"
PRIMARY_LEVEL_ENV: Final[str] = "LEADERBOX_LOG_LEVEL"
FALLBACK_LEVEL_ENV: Final[str] = "LOG_LEVEL"
LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

SECRET_QUERY_KEYS: Final[frozenset[str]] = frozenset(
    {"api_key", "access_token", "client_secret", "code", "code_verifier"}
)


def _resolve_log_level() -> int:
    """Map LEADERBOX_LOG_LEVEL (or LOG_LEVEL) to a logging level, INFO when unusable."""
    candidate = (os.getenv(PRIMARY_LEVEL_ENV) or os.getenv(FALLBACK_LEVEL_ENV) or "").strip()
    if not candidate:
        return logging.INFO
    if candidate.lstrip("-").isdigit():
        return int(candidate)
    level = logging.getLevelName(candidate.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging() -> logging.Logger:
    """Attach a console handler to the application logger once and apply the level."""
    logger = logging.getLogger(LOGGER_NAME)
    level = _resolve_log_level()

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
        logger.propagate = False

    for handler in logger.handlers:
        handler.setLevel(level)
    logger.setLevel(level)
    return logger


def get_logger(child: Optional[str] = None) -> logging.Logger:
    """Return the application logger or one of its children."""
    base = configure_logging()
    return base.getChild(child) if child else base


def redact_url(url: str, secret_keys: Iterable[str] = SECRET_QUERY_KEYS) -> str:
    """Mask credential-bearing query parameters so URLs are safe to log."""
    parts = urlsplit(url)
    if not parts.query:
        return url
    hidden = set(secret_keys)
    pairs = [
        (key, "***" if key in hidden else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(pairs, safe="*")))
