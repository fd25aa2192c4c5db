"""Feature routers exposed by the FastAPI application."""

from .auth import router as auth_router
from .decks import router as decks_router
from .duels import router as duels_router
from .meta import router as meta_router
from .movies import router as movies_router
from .profiles import router as profiles_router

__all__ = [
    "auth_router",
    "decks_router",
    "duels_router",
    "meta_router",
    "movies_router",
    "profiles_router",
]
