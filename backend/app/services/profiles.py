"""Business rules for LeaderBox profiles and duel bookkeeping."""

from __future__ import annotations

import re
from typing import Any, Mapping

from ..errors import NotFoundError, ValidationError
from ..logging_utils import get_logger
from ..repositories.profiles import COUNTER_FIELDS, ProfileRepository
from ..schemas import MAX_DECK_SIZE, Profile
from .scoring import decide_duel

logger = get_logger("services.profiles")

NICKNAME_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{3,30}$")
PROFILE_FIELDS = ("nickname", "avatar", "wins", "losses", "draws", "level", "deck")


def sanitize_nickname(raw: Any) -> str | None:
    """Trim whitespace and leading ``@`` characters; ``None`` when nothing is left."""
    if raw is None:
        return None
    cleaned = str(raw).strip().lstrip("@").strip()
    return cleaned or None


def is_valid_nickname(raw: Any) -> bool:
    cleaned = sanitize_nickname(raw)
    return bool(cleaned and NICKNAME_PATTERN.match(cleaned))


def display_nickname(raw: Any) -> str | None:
    cleaned = sanitize_nickname(raw)
    return f"@{cleaned}" if cleaned else None


def _coerce_counter(value: Any) -> int | None:
    # Only finite integral numbers are accepted; anything else keeps the stored value.
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float) and value.is_integer():
        return max(0, int(value))
    return None


def build_profile_update(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only the profile fields explicitly present in ``payload``."""
    updates: dict[str, Any] = {}
    for field in PROFILE_FIELDS:
        if field not in payload:
            continue
        value = payload[field]
        if field == "nickname":
            nickname = display_nickname(value)
            if nickname is not None:
                updates["nickname"] = nickname
        elif field == "avatar":
            avatar = value.strip() if isinstance(value, str) else ""
            updates["avatar"] = avatar or None
        elif field in COUNTER_FIELDS:
            counter = _coerce_counter(value)
            if counter is not None:
                updates[field] = counter
        elif field == "level":
            # Derived from wins by the store; a submitted level is ignored.
            logger.debug("Ignoring client-provided level %r.", value)
        elif field == "deck":
            if isinstance(value, list):
                updates["deck"] = _clean_deck(value)
    return updates


def _clean_deck(entries: list[Any]) -> list[dict[str, Any]]:
    deck = [dict(entry) for entry in entries if isinstance(entry, Mapping)]
    if len(deck) > MAX_DECK_SIZE:
        raise ValidationError(f"A deck holds at most {MAX_DECK_SIZE} movies.")
    return deck


def _require_open_id(open_id: Any) -> str:
    if open_id is None or (isinstance(open_id, str) and not open_id.strip()):
        raise ValidationError("Missing open_id")
    if not isinstance(open_id, (str, int)) or isinstance(open_id, bool):
        raise ValidationError("open_id must be a string.")
    return str(open_id).strip()


async def fetch_profile(repository: ProfileRepository, open_id: str) -> Profile:
    document = await repository.get(open_id)
    if not document:
        raise NotFoundError()
    return Profile.model_validate(document)


async def fetch_profile_by_nickname(repository: ProfileRepository, nickname: str) -> Profile:
    document = await repository.get_by_nickname(nickname)
    if not document:
        raise NotFoundError()
    return Profile.model_validate(document)


async def list_profiles(repository: ProfileRepository, limit: int | None = None) -> list[Profile]:
    documents = await repository.list(limit)
    return [Profile.model_validate(document) for document in documents]


async def upsert_profile(repository: ProfileRepository, payload: Mapping[str, Any]) -> Profile:
    """Create the profile with defaults or merge the provided fields into it."""
    open_id = _require_open_id(payload.get("open_id"))
    updates = build_profile_update(payload)
    document = await repository.upsert(open_id, updates)
    logger.info("Saved profile '%s' (fields: %s).", open_id, ", ".join(sorted(updates)) or "none")
    return Profile.model_validate(document)


async def complete_profile(
    repository: ProfileRepository, open_id: Any, nickname: Any, avatar: Any
) -> Profile:
    """Store the nickname and avatar picked after the first login."""
    open_id = _require_open_id(open_id)
    if not is_valid_nickname(nickname):
        raise ValidationError("Invalid nickname (3-30 chars: letters, numbers, -, _).")
    if not isinstance(avatar, str) or not avatar.strip():
        raise ValidationError("Please choose an avatar.")

    taken = await repository.get_by_nickname(nickname)
    if taken and str(taken.get("open_id")) != open_id:
        raise ValidationError("Nickname already taken.")

    document = await repository.upsert(
        open_id,
        {"nickname": display_nickname(nickname), "avatar": avatar.strip()},
    )
    logger.info("Completed profile '%s' as %s.", open_id, document.get("nickname"))
    return Profile.model_validate(document)


async def delete_profile(repository: ProfileRepository, open_id: Any) -> None:
    open_id = _require_open_id(open_id)
    if not await repository.delete(open_id):
        raise NotFoundError()


async def _load_pair(
    repository: ProfileRepository, first: Any, second: Any, *, labels: tuple[str, str]
) -> tuple[dict[str, Any], dict[str, Any]]:
    if not first or not second:
        raise ValidationError(f"Missing {labels[0]} or {labels[1]}")
    first, second = str(first), str(second)
    if first == second:
        raise ValidationError(f"{labels[0].capitalize()} and {labels[1]} must be different profiles.")
    first_doc = await repository.get(first)
    second_doc = await repository.get(second)
    if not first_doc or not second_doc:
        raise NotFoundError("Profile not found")
    return first_doc, second_doc


async def record_duel_result(repository: ProfileRepository, winner: Any, loser: Any) -> None:
    """Apply a reported result unless the stored decks contradict it.

    A report naming the lower-scoring deck as the winner is rejected; equal
    totals are accepted as reported.
    """
    winner_doc, loser_doc = await _load_pair(repository, winner, loser, labels=("winner", "loser"))
    verdict = decide_duel(winner_doc.get("deck"), loser_doc.get("deck"))
    if verdict.opponent.total_points > verdict.challenger.total_points:
        logger.warning(
            "Rejected duel report: '%s' (%d pts) did not beat '%s' (%d pts).",
            winner_doc["open_id"],
            verdict.challenger.total_points,
            loser_doc["open_id"],
            verdict.opponent.total_points,
        )
        raise ValidationError("Reported result does not match the deck scores.")
    await _apply_outcome(repository, winner_doc["open_id"], loser_doc["open_id"], draw=False)


async def run_duel(repository: ProfileRepository, challenger: Any, opponent: Any) -> dict[str, Any]:
    """Score both stored decks, record the outcome and return it."""
    challenger_doc, opponent_doc = await _load_pair(
        repository, challenger, opponent, labels=("challenger", "opponent")
    )
    verdict = decide_duel(challenger_doc.get("deck"), opponent_doc.get("deck"))
    winner = loser = None
    if verdict.draw:
        await _apply_outcome(repository, challenger_doc["open_id"], opponent_doc["open_id"], draw=True)
    else:
        if verdict.challenger_wins:
            winner, loser = challenger_doc["open_id"], opponent_doc["open_id"]
        else:
            winner, loser = opponent_doc["open_id"], challenger_doc["open_id"]
        await _apply_outcome(repository, winner, loser, draw=False)

    return {
        "challenger": {
            "open_id": challenger_doc["open_id"],
            "nickname": challenger_doc.get("nickname") or "",
            "score": verdict.challenger,
        },
        "opponent": {
            "open_id": opponent_doc["open_id"],
            "nickname": opponent_doc.get("nickname") or "",
            "score": verdict.opponent,
        },
        "winner": winner,
        "loser": loser,
        "draw": verdict.draw,
    }


async def _apply_outcome(repository: ProfileRepository, first: str, second: str, *, draw: bool) -> None:
    first_counter, second_counter = ("draws", "draws") if draw else ("wins", "losses")
    if await repository.increment(first, {first_counter: 1}) is None:
        raise NotFoundError("Profile not found")
    if await repository.increment(second, {second_counter: 1}) is None:
        # The second profile vanished after the lookup; take back the first count.
        await repository.increment(first, {first_counter: -1})
        logger.warning("Duel not recorded: profile '%s' disappeared; reverted '%s'.", second, first)
        raise NotFoundError("Profile not found")
    logger.info(
        "Duel recorded: %s.",
        f"draw between '{first}' and '{second}'" if draw else f"'{first}' beat '{second}'",
    )
