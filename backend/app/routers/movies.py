"""Movie search passthrough to TMDB."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_tmdb_client
from ..errors import ValidationError
from ..schemas import MovieSearchResponse
from ..tmdb import TmdbClient

router = APIRouter(prefix="/movies", tags=["movies"])


@router.get(
    "/search",
    response_model=MovieSearchResponse,
    summary="Search TMDB for movies by title.",
)
async def search_movies(
    q: Optional[str] = Query(default=None),
    client: TmdbClient = Depends(get_tmdb_client),
) -> MovieSearchResponse:
    query = (q or "").strip()
    if not query:
        raise ValidationError("Missing query parameter 'q'.")
    results = await client.search_movies(query)
    return MovieSearchResponse(results=results)
