"""Duel endpoints: server-side adjudication and reported results."""

from fastapi import APIRouter, Depends

from ..dependencies import get_profile_repository
from ..repositories import ProfileRepository
from ..schemas import DuelOutcome, DuelRequest, DuelResultReport, OkResponse
from ..services.profiles import record_duel_result, run_duel

router = APIRouter(prefix="/duels", tags=["duels"])


@router.post(
    "",
    response_model=DuelOutcome,
    summary="Score two stored decks against each other and record the outcome.",
)
async def run_duel_endpoint(
    payload: DuelRequest,
    repository: ProfileRepository = Depends(get_profile_repository),
) -> DuelOutcome:
    outcome = await run_duel(repository, payload.challenger, payload.opponent)
    return DuelOutcome.model_validate(outcome)


@router.post(
    "/result",
    response_model=OkResponse,
    summary="Record a duel result computed by the client.",
)
async def record_duel_result_endpoint(
    payload: DuelResultReport,
    repository: ProfileRepository = Depends(get_profile_repository),
) -> OkResponse:
    await record_duel_result(repository, payload.winner, payload.loser)
    return OkResponse()
