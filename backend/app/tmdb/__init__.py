"""TMDB movie catalog client."""

from .client import TmdbClient, normalize_movie, poster_url
from .errors import TmdbError

__all__ = ["TmdbClient", "TmdbError", "normalize_movie", "poster_url"]
