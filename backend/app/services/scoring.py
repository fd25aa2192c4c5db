"""Deck scoring: stats, total points and attack point allocation.

Everything here is pure and synchronous. Decks are sequences of movie
mappings (or :class:`~app.schemas.Movie` instances); empty slots are skipped
and missing or malformed numeric fields count as zero.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Sequence

from ..schemas import DeckScore, DeckStats, Movie

MovieLike = Mapping[str, Any] | Movie


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _round_2(value: float) -> float:
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _numeric(movie: MovieLike, field: str) -> float:
    raw = getattr(movie, field, None) if isinstance(movie, Movie) else movie.get(field)
    if raw is None or isinstance(raw, bool):
        return 0.0
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


def _present(movies: Iterable[MovieLike | None] | None) -> list[MovieLike]:
    return [movie for movie in (movies or []) if isinstance(movie, (Mapping, Movie))]


def normalize_popularities(popularities: Sequence[float]) -> list[float]:
    """Min-max scale popularities within the deck, 0.5 for every movie when all are equal."""
    if not popularities:
        return []
    low = min(popularities)
    high = max(popularities)
    if high == low:
        return [0.5 for _ in popularities]
    return [(value - low) / (high - low) for value in popularities]


def normalize_score(score: float) -> float:
    return min(1.0, max(0.0, score / 10))


def movie_contributions(movies: Iterable[MovieLike | None] | None) -> list[tuple[float, float]]:
    """Per-movie (pretentious, rewatch) terms, each in [0, 1], before averaging."""
    deck = _present(movies)
    norm_pops = normalize_popularities([_numeric(movie, "popularity") for movie in deck])
    norm_scores = [normalize_score(_numeric(movie, "vote_average")) for movie in deck]
    return [(ns * (1 - np), ns * np) for ns, np in zip(norm_scores, norm_pops)]


def compute_deck_stats(movies: Iterable[MovieLike | None] | None) -> DeckStats:
    """Return pretentiousness, rewatchability, quality and popularity for a deck."""
    deck = _present(movies)
    if not deck:
        return DeckStats()

    scores = [_numeric(movie, "vote_average") for movie in deck]
    popularities = [_numeric(movie, "popularity") for movie in deck]
    terms = movie_contributions(deck)
    count = len(deck)

    pretentious = sum(pret for pret, _ in terms) / count * 100
    rewatch = sum(rew for _, rew in terms) / count * 100

    return DeckStats(
        pretentious=_round_half_up(pretentious),
        rewatch=_round_half_up(rewatch),
        quality=_round_2(sum(scores) / count),
        popularity=_round_2(sum(popularities) / count),
    )


def compute_total_points(stats: DeckStats) -> int:
    # Percentages are summed with the raw 0-10 quality and unbounded popularity.
    return _round_half_up(stats.pretentious + stats.rewatch + stats.quality + stats.popularity)


def distribute_attack_points(
    total_points: int, movies: Iterable[MovieLike | None] | None
) -> list[int]:
    """Split ``total_points`` across the deck in proportion to each movie's score.

    The returned allocation always sums to ``total_points``. With all-zero
    scores the split is even and the remainder goes to the earliest movies;
    otherwise floored shares are topped up by largest fractional remainder,
    ties resolved in deck order.
    """
    deck = _present(movies)
    if not deck:
        return []

    count = len(deck)
    scores = [max(0.0, _numeric(movie, "vote_average")) for movie in deck]
    total_score = sum(scores)
    if total_score == 0:
        base, remainder = divmod(total_points, count)
        return [base + (1 if index < remainder else 0) for index in range(count)]

    raw_shares = [score / total_score * total_points for score in scores]
    allocation = [math.floor(share) for share in raw_shares]
    remainder = total_points - sum(allocation)
    by_fraction = sorted(
        range(count),
        key=lambda index: (-(raw_shares[index] - allocation[index]), index),
    )
    for position in range(remainder):
        allocation[by_fraction[position % count]] += 1
    return allocation


def score_deck(movies: Iterable[MovieLike | None] | None) -> DeckScore:
    deck = _present(movies)
    stats = compute_deck_stats(deck)
    total = compute_total_points(stats)
    return DeckScore(
        stats=stats,
        total_points=total,
        attack_points=distribute_attack_points(total, deck),
    )


@dataclass(frozen=True, slots=True)
class DuelVerdict:
    """Outcome of comparing two deck totals."""

    challenger: DeckScore
    opponent: DeckScore

    @property
    def draw(self) -> bool:
        return self.challenger.total_points == self.opponent.total_points

    @property
    def challenger_wins(self) -> bool:
        return self.challenger.total_points > self.opponent.total_points


def decide_duel(
    challenger_deck: Iterable[MovieLike | None] | None,
    opponent_deck: Iterable[MovieLike | None] | None,
) -> DuelVerdict:
    """Score both decks; the higher total wins and equal totals draw."""
    return DuelVerdict(challenger=score_deck(challenger_deck), opponent=score_deck(opponent_deck))
