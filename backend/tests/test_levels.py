"""Tests for the win-based level table."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.services.levels import LEVELS, level_for_wins  # pylint: disable=wrong-import-position


@pytest.mark.parametrize(
    "wins,expected_level,expected_name",
    [
        (0, 1, "Noob"),
        (4, 1, "Noob"),
        (5, 2, "Casual Viewer"),
        (17, 3, "Youtuber Movie Critic"),
        (18, 4, "Movie Festival Goer"),
        (67, 8, "Film Curator"),
        (68, 9, "Cinephile"),
        (500, 9, "Cinephile"),
    ],
)
def test_level_for_wins_picks_highest_reached_threshold(wins, expected_level, expected_name) -> None:
    level = level_for_wins(wins)
    assert level.level == expected_level
    assert level.name == expected_name


def test_level_for_wins_treats_garbage_as_zero() -> None:
    assert level_for_wins(None).level == 1
    assert level_for_wins("many").level == 1


def test_thresholds_increase_monotonically() -> None:
    thresholds = [level.threshold for level in LEVELS]
    assert thresholds == sorted(thresholds)
    assert [level.level for level in LEVELS] == list(range(1, 10))


def test_levels_endpoint_lists_table(api_client: TestClient) -> None:
    response = api_client.get("/levels")

    assert response.status_code == 200
    payload = response.json()
    assert len(payload) == 9
    assert payload[0] == {"level": 1, "name": "Noob", "threshold": 0}
    assert payload[-1]["name"] == "Cinephile"
