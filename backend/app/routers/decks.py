"""Deck scoring endpoint."""

from fastapi import APIRouter

from ..schemas import DeckScore, DeckScoreRequest
from ..services.scoring import score_deck

router = APIRouter(prefix="/decks", tags=["decks"])


@router.post(
    "/score",
    response_model=DeckScore,
    summary="Compute stats, total points and attack allocation for a deck.",
)
async def score_deck_endpoint(payload: DeckScoreRequest) -> DeckScore:
    return score_deck(payload.deck)
