"""Routers for profile management endpoints."""

from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Body, Depends, Query

from ..dependencies import get_profile_repository
from ..logging_utils import get_logger
from ..repositories import ProfileRepository
from ..schemas import OkResponse, ProfileCompletion, ProfileEnvelope, ProfileListEnvelope
from ..services.profiles import (
    complete_profile,
    delete_profile,
    fetch_profile,
    fetch_profile_by_nickname,
    list_profiles,
    upsert_profile,
)

router = APIRouter(prefix="/profiles", tags=["profiles"])
logger = get_logger("profiles")


@router.get(
    "",
    response_model=Union[ProfileEnvelope, ProfileListEnvelope],
    summary="Fetch one profile by open_id or nickname, or list profiles.",
)
async def get_profiles(
    open_id: Optional[str] = Query(default=None),
    nickname: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1),
    repository: ProfileRepository = Depends(get_profile_repository),
) -> Union[ProfileEnvelope, ProfileListEnvelope]:
    if open_id:
        return ProfileEnvelope(profile=await fetch_profile(repository, open_id))
    if nickname:
        return ProfileEnvelope(profile=await fetch_profile_by_nickname(repository, nickname))
    profiles = await list_profiles(repository, limit)
    return ProfileListEnvelope(profiles=profiles)


@router.post(
    "",
    response_model=ProfileEnvelope,
    summary="Create a profile or merge the provided fields into it.",
)
async def upsert_profile_endpoint(
    payload: Dict[str, Any] = Body(...),
    repository: ProfileRepository = Depends(get_profile_repository),
) -> ProfileEnvelope:
    profile = await upsert_profile(repository, payload)
    return ProfileEnvelope(profile=profile)


@router.post(
    "/complete",
    response_model=ProfileEnvelope,
    summary="Store the nickname and avatar chosen after the first login.",
)
async def complete_profile_endpoint(
    payload: ProfileCompletion,
    repository: ProfileRepository = Depends(get_profile_repository),
) -> ProfileEnvelope:
    profile = await complete_profile(repository, payload.open_id, payload.nickname, payload.avatar)
    return ProfileEnvelope(profile=profile)


@router.delete("", response_model=OkResponse, summary="Delete a profile.")
async def delete_profile_endpoint(
    open_id: Optional[str] = Query(default=None),
    repository: ProfileRepository = Depends(get_profile_repository),
) -> OkResponse:
    await delete_profile(repository, open_id)
    logger.info("Deleted profile '%s'.", open_id)
    return OkResponse()
