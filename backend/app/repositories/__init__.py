"""Repository helpers for profile persistence."""

from .profiles import (
    JsonFileProfileRepository,
    MongoProfileRepository,
    ProfileRepository,
)

__all__ = [
    "JsonFileProfileRepository",
    "MongoProfileRepository",
    "ProfileRepository",
]
