"""HTTP client for the TMDB movie search endpoint."""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import anyio
import requests
from requests import Response

from ..errors import MisconfigurationError
from ..logging_utils import get_logger, redact_url
from ..schemas import Movie
from .errors import TmdbError

DEFAULT_BASE_URL = "https://api.themoviedb.org"
POSTER_BASE_URL = "https://image.tmdb.org/t/p/w342"

logger = get_logger("tmdb.client")


def poster_url(poster_path: Optional[str]) -> Optional[str]:
    """Full poster URL for a TMDB ``poster_path``, passing absolute URLs through."""
    if not poster_path or not isinstance(poster_path, str):
        return None
    if poster_path.startswith("http"):
        return poster_path
    return f"{POSTER_BASE_URL}{poster_path}"


def normalize_movie(entry: Dict[str, Any]) -> Movie:
    """Turn a TMDB search result into a deck-ready movie reference."""
    movie = Movie.model_validate(entry)
    if not movie.poster_url:
        movie.poster_url = poster_url(movie.poster_path)
    return movie


class TmdbClient:
    """Thin wrapper around TMDB's v3 search API.

    Credentials are either a v3 ``api_key`` (sent as a query parameter) or a
    v4 read access token (sent as a bearer token); the key wins when both are
    configured. Requests are never retried.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        read_access_token: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.api_key = api_key
        self.read_access_token = read_access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    @property
    def configured(self) -> bool:
        return bool(self.api_key or self.read_access_token)

    async def search_movies(self, query: str, *, page: int = 1) -> List[Movie]:
        """Search movies by title and return normalized results."""
        params: Dict[str, Any] = {
            "query": query,
            "page": page,
            "include_adult": "false",
        }
        payload = await self._request_json("GET", "/3/search/movie", params=params)
        results = payload.get("results") or []
        movies = [normalize_movie(entry) for entry in results if isinstance(entry, dict)]
        logger.info("TMDB search for %r returned %d result(s).", query, len(movies))
        return movies

    def close(self) -> None:
        self._session.close()

    def _auth(self, params: Dict[str, Any]) -> Dict[str, str]:
        if self.api_key:
            params["api_key"] = self.api_key
            return {}
        if self.read_access_token:
            return {"Authorization": f"Bearer {self.read_access_token}"}
        raise MisconfigurationError("TMDB API key not configured on server.")

    def _mask_credentials(self, text: str) -> str:
        for secret in (self.api_key, self.read_access_token):
            if secret:
                text = text.replace(secret, "***")
        return text

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        params = dict(params or {})
        headers = self._auth(params)
        url = f"{self.base_url}{path}"
        started = time.perf_counter()
        try:
            response = await anyio.to_thread.run_sync(
                self._make_request_sync, method, url, params, headers
            )
        except requests.RequestException as exc:
            logger.warning(
                "TMDB request failed due to exception.",
                extra={"tmdb_method": method, "tmdb_url": url, "tmdb_error": type(exc).__name__},
            )
            raise TmdbError("Failed to contact TMDB.") from exc

        duration_ms = round((time.perf_counter() - started) * 1000.0, 2)
        log_extra = {
            "tmdb_method": method,
            "tmdb_url": redact_url(getattr(response, "url", None) or url),
            "tmdb_status": response.status_code,
            "tmdb_duration_ms": duration_ms,
        }
        if not 200 <= response.status_code < 300:
            logger.error(
                "TMDB request returned error status %d: %s",
                response.status_code,
                self._mask_credentials(response.text)[:500],
                extra=log_extra,
            )
            raise TmdbError(
                f"TMDB responded {response.status_code}.",
                upstream_status=response.status_code,
            )
        logger.info("TMDB request succeeded.", extra=log_extra)
        try:
            payload = response.json()
        except ValueError as exc:
            raise TmdbError(f"Failed to parse JSON response from '{path}'.") from exc
        if not isinstance(payload, dict):
            raise TmdbError(f"Unexpected payload shape from '{path}'.")
        return payload

    def _make_request_sync(
        self,
        method: str,
        url: str,
        params: Dict[str, Any],
        headers: Dict[str, str],
    ) -> Response:
        return self._session.request(
            method,
            url,
            params=params,
            headers=headers,
            timeout=self.timeout,
        )
