"""OAuth code exchange for the supported identity providers."""

from .errors import OAuthError
from .flow import ExchangeFlow, ExchangeResult, ExchangeStatus
from .providers import (
    LetterboxdProvider,
    OAuthProvider,
    TikTokProvider,
    build_oauth_providers,
)

__all__ = [
    "ExchangeFlow",
    "ExchangeResult",
    "ExchangeStatus",
    "LetterboxdProvider",
    "OAuthError",
    "OAuthProvider",
    "TikTokProvider",
    "build_oauth_providers",
]
