"""Profile levels derived from the number of duels won."""

from __future__ import annotations

from typing import Any

from ..schemas import LevelInfo

LEVELS: tuple[LevelInfo, ...] = (
    LevelInfo(level=1, name="Noob", threshold=0),
    LevelInfo(level=2, name="Casual Viewer", threshold=5),
    LevelInfo(level=3, name="Youtuber Movie Critic", threshold=11),
    LevelInfo(level=4, name="Movie Festival Goer", threshold=18),
    LevelInfo(level=5, name="Indie Afficionado", threshold=26),
    LevelInfo(level=6, name="Cult Classics Schoolar", threshold=35),
    LevelInfo(level=7, name="Film Buff", threshold=45),
    LevelInfo(level=8, name="Film Curator", threshold=56),
    LevelInfo(level=9, name="Cinephile", threshold=68),
)


def level_for_wins(wins: Any) -> LevelInfo:
    """Return the highest level whose threshold ``wins`` reaches."""
    try:
        count = int(wins)
    except (TypeError, ValueError):
        count = 0
    current = LEVELS[0]
    for level in LEVELS:
        if count >= level.threshold:
            current = level
    return current

