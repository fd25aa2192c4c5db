"""Meta endpoints (health, version, level table)."""

from fastapi import APIRouter

from ..schemas import LevelInfo
from ..services.levels import LEVELS
from ..version import get_application_version

router = APIRouter(tags=["meta"])


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Simple health endpoint for uptime checks."""
    return {"status": "ok"}


@router.get("/version")
async def application_version() -> dict[str, str]:
    return {"version": get_application_version()}


@router.get("/levels", response_model=list[LevelInfo], summary="List the level thresholds.")
async def list_levels() -> list[LevelInfo]:
    return list(LEVELS)
