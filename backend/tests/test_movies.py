"""Tests for the TMDB client and the movie search endpoint."""

from __future__ import annotations

import logging
from pathlib import Path
import sys

import pytest
import requests
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
WORKSPACE_ROOT = ROOT.parent
for path in (ROOT, WORKSPACE_ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from app.errors import MisconfigurationError  # pylint: disable=wrong-import-position
from app.logging_utils import LOGGER_NAME  # pylint: disable=wrong-import-position
from app.tmdb import TmdbClient, TmdbError, normalize_movie, poster_url  # pylint: disable=wrong-import-position
from backend.tests.utils import (  # pylint: disable=wrong-import-position
    StubResponse,
    StubSession,
    StubTmdbClient,
)


SECRET_KEY = "SUPERSECRETKEY"


class _RecordCollector(logging.Handler):
    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def text(self) -> str:
        return "\n".join(f"{record.getMessage()} {record.__dict__!r}" for record in self.records)


@pytest.fixture()
def log_records():
    """Collect every record emitted by the application logger, extras included."""
    logger = logging.getLogger(LOGGER_NAME)
    collector = _RecordCollector()
    logger.addHandler(collector)
    try:
        yield collector
    finally:
        logger.removeHandler(collector)


def _leaky_transport_error() -> requests.ConnectionError:
    return requests.ConnectionError(
        "HTTPSConnectionPool(host='api.themoviedb.org', port=443): Max retries exceeded with url: "
        f"/3/search/movie?query=heat&page=1&include_adult=false&api_key={SECRET_KEY}"
    )


SEARCH_PAYLOAD = {
    "page": 1,
    "results": [
        {
            "id": 694,
            "title": "The Shining",
            "poster_path": "/shining.jpg",
            "vote_average": 8.2,
            "popularity": 41.7,
            "genre_ids": [27, 53],
            "release_date": "1980-05-23",
        },
        {"id": 1, "title": "No Poster", "poster_path": None, "vote_average": None},
    ],
}


def test_poster_url_builds_w342_links() -> None:
    assert poster_url("/abc.jpg") == "https://image.tmdb.org/t/p/w342/abc.jpg"
    assert poster_url("https://cdn.example.com/abc.jpg") == "https://cdn.example.com/abc.jpg"
    assert poster_url(None) is None


def test_normalize_movie_fills_poster_url_and_defaults() -> None:
    movie = normalize_movie({"id": 5, "title": "Heat", "poster_path": "/heat.jpg", "popularity": "n/a"})

    assert movie.poster_url == "https://image.tmdb.org/t/p/w342/heat.jpg"
    assert movie.popularity == 0.0
    assert movie.vote_average == 0.0


@pytest.mark.anyio("asyncio")
async def test_search_uses_api_key_query_parameter() -> None:
    session = StubSession(StubResponse(200, SEARCH_PAYLOAD))
    client = TmdbClient(api_key="secret-key", read_access_token="ignored", session=session)

    movies = await client.search_movies("shining")

    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://api.themoviedb.org/3/search/movie"
    assert call["params"] == {"query": "shining", "page": 1, "include_adult": "false", "api_key": "secret-key"}
    assert call["headers"] == {}
    assert [movie.title for movie in movies] == ["The Shining", "No Poster"]
    assert movies[0].poster_url == "https://image.tmdb.org/t/p/w342/shining.jpg"
    assert movies[1].poster_url is None


@pytest.mark.anyio("asyncio")
async def test_search_falls_back_to_bearer_token() -> None:
    session = StubSession(StubResponse(200, {"results": []}))
    client = TmdbClient(read_access_token="v4-token", session=session)

    assert await client.search_movies("nothing") == []
    assert session.calls[0]["headers"] == {"Authorization": "Bearer v4-token"}
    assert "api_key" not in session.calls[0]["params"]


@pytest.mark.anyio("asyncio")
async def test_search_without_credentials_is_misconfiguration() -> None:
    session = StubSession()
    client = TmdbClient(session=session)

    assert client.configured is False
    with pytest.raises(MisconfigurationError):
        await client.search_movies("anything")
    assert session.calls == []


@pytest.mark.anyio("asyncio")
async def test_search_error_status_raises_upstream_error() -> None:
    session = StubSession(StubResponse(401, {"status_message": "Invalid API key"}))
    client = TmdbClient(api_key="bad", session=session)

    with pytest.raises(TmdbError) as excinfo:
        await client.search_movies("shining")

    assert excinfo.value.upstream_status == 401
    assert excinfo.value.status_code == 502


@pytest.mark.anyio("asyncio")
async def test_search_non_json_body_raises_upstream_error() -> None:
    session = StubSession(StubResponse(200, None, text="<html>"))
    client = TmdbClient(api_key="key", session=session)

    with pytest.raises(TmdbError):
        await client.search_movies("shining")


@pytest.mark.anyio("asyncio")
async def test_search_transport_failure_raises_upstream_error() -> None:
    session = StubSession(requests.ConnectionError("boom"))
    client = TmdbClient(api_key="key", session=session)

    with pytest.raises(TmdbError, match="Failed to contact TMDB"):
        await client.search_movies("shining")


@pytest.mark.anyio("asyncio")
async def test_transport_failure_keeps_api_key_out_of_error_and_logs(log_records) -> None:
    client = TmdbClient(api_key=SECRET_KEY, session=StubSession(_leaky_transport_error()))

    with pytest.raises(TmdbError) as excinfo:
        await client.search_movies("heat")

    assert excinfo.value.message == "Failed to contact TMDB."
    assert SECRET_KEY not in str(excinfo.value.to_payload())
    assert log_records.records
    assert SECRET_KEY not in log_records.text()


@pytest.mark.anyio("asyncio")
async def test_error_status_keeps_upstream_body_out_of_error(log_records) -> None:
    body = f'{{"status_message": "Invalid API key: {SECRET_KEY}"}}'
    session = StubSession(StubResponse(401, None, text=body))
    client = TmdbClient(api_key=SECRET_KEY, session=session)

    with pytest.raises(TmdbError) as excinfo:
        await client.search_movies("heat")

    assert excinfo.value.message == "TMDB responded 401."
    assert "Invalid API key" in log_records.text()
    assert SECRET_KEY not in log_records.text()


def test_search_endpoint_returns_results(api_client: TestClient) -> None:
    api_client.app.state.tmdb_stub = StubTmdbClient(SEARCH_PAYLOAD["results"])

    response = api_client.get("/movies/search", params={"q": "  shining "})

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["title"] == "The Shining"
    assert results[0]["genre_ids"] == [27, 53]
    assert api_client.app.state.tmdb_stub.queries == ["shining"]


@pytest.mark.parametrize("params", [{}, {"q": "   "}])
def test_search_endpoint_requires_query(api_client: TestClient, params: dict) -> None:
    response = api_client.get("/movies/search", params=params)

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


@pytest.mark.parametrize(
    "error,status,code",
    [
        (MisconfigurationError("TMDB API key not configured on server."), 500, "misconfiguration"),
        (TmdbError("TMDB responded 503.", upstream_status=503), 502, "upstream_error"),
    ],
)
def test_search_endpoint_maps_client_errors(api_client: TestClient, error, status, code) -> None:
    api_client.app.state.tmdb_stub = StubTmdbClient(error=error)

    response = api_client.get("/movies/search", params={"q": "shining"})

    assert response.status_code == status
    assert response.json()["error"] == code


@pytest.mark.parametrize(
    "response",
    [_leaky_transport_error(), StubResponse(500, None, text=f"api_key={SECRET_KEY}")],
)
def test_search_endpoint_does_not_leak_api_key(api_client: TestClient, log_records, response) -> None:
    api_client.app.state.tmdb_stub = TmdbClient(api_key=SECRET_KEY, session=StubSession(response))

    result = api_client.get("/movies/search", params={"q": "heat"})

    assert result.status_code == 502
    assert result.json()["error"] == "upstream_error"
    assert SECRET_KEY not in result.text
    assert SECRET_KEY not in log_records.text()
