"""Version lookup for the LeaderBox API."""

from __future__ import annotations

from functools import lru_cache
from importlib import metadata
from pathlib import Path

FALLBACK_VERSION = "0.0.0"
VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"


@lru_cache(maxsize=1)
def get_application_version() -> str:
    """Return the version from the repository VERSION file, else the installed distribution."""
    try:
        version = VERSION_FILE.read_text(encoding="utf8").strip()
    except FileNotFoundError:
        version = ""
    if version:
        return version
    try:
        return metadata.version("leaderbox")
    except metadata.PackageNotFoundError:
        return FALLBACK_VERSION
