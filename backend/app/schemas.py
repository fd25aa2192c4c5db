"""Pydantic schemas that describe the API payloads."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_DECK_SIZE = 4


class Movie(BaseModel):
    """A TMDB movie reference embedded in a deck."""

    model_config = ConfigDict(extra="allow")

    id: Optional[int] = None
    title: str = ""
    poster_path: Optional[str] = None
    poster_url: Optional[str] = None
    vote_average: float = 0.0
    popularity: float = 0.0
    genres: List[Any] = Field(default_factory=list)
    genre_ids: List[int] = Field(default_factory=list)
    release_date: Optional[str] = None

    @field_validator("vote_average", "popularity", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> float:
        if isinstance(value, bool):
            return 0.0
        try:
            number = float(value)
        except (TypeError, ValueError):
            return 0.0
        if number != number:  # NaN
            return 0.0
        return number

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> str:
        return value if isinstance(value, str) else ""


class Profile(BaseModel):
    """A stored LeaderBox profile."""

    model_config = ConfigDict(extra="ignore")

    open_id: str
    nickname: str
    avatar: Optional[str] = None
    wins: int = 0
    losses: int = 0
    draws: int = 0
    level: int = 1
    deck: List[Dict[str, Any]] = Field(default_factory=list)
    created_at: int
    updated_at: int


class ProfileEnvelope(BaseModel):
    ok: bool = True
    profile: Profile


class ProfileListEnvelope(BaseModel):
    ok: bool = True
    profiles: List[Profile] = Field(default_factory=list)


class OkResponse(BaseModel):
    ok: bool = True


class ProfileCompletion(BaseModel):
    """Nickname and avatar chosen after the first login."""

    open_id: str = ""
    nickname: str = ""
    avatar: Optional[str] = None


class DeckStats(BaseModel):
    """The four summary statistics of a deck."""

    pretentious: int = 0
    rewatch: int = 0
    quality: float = 0.0
    popularity: float = 0.0


class DeckScore(BaseModel):
    """Stats, total points and per-movie attack allocation for a deck."""

    stats: DeckStats = Field(default_factory=DeckStats)
    total_points: int = 0
    attack_points: List[int] = Field(default_factory=list)


class DeckScoreRequest(BaseModel):
    deck: List[Optional[Dict[str, Any]]] = Field(default_factory=list)


class DuelRequest(BaseModel):
    challenger: str
    opponent: str


class DuelResultReport(BaseModel):
    winner: str = ""
    loser: str = ""


class DuelSide(BaseModel):
    open_id: str
    nickname: str
    score: DeckScore


class DuelOutcome(BaseModel):
    """Server-adjudicated duel between two stored decks."""

    ok: bool = True
    challenger: DuelSide
    opponent: DuelSide
    winner: Optional[str] = None
    loser: Optional[str] = None
    draw: bool = False


class MovieSearchResponse(BaseModel):
    results: List[Movie] = Field(default_factory=list)


class TokenExchangeRequest(BaseModel):
    """Authorization code relayed by the OAuth callback page."""

    code: Optional[str] = None
    code_verifier: Optional[str] = None
    redirect_uri: Optional[str] = None
    state: Optional[str] = None
    expected_state: Optional[str] = None


class ProviderIdentity(BaseModel):
    """Identity normalized from an OAuth provider."""

    open_id: str
    nickname: Optional[str] = None
    avatar: Optional[str] = None


class TokenExchangeResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    tokens: Dict[str, Any] = Field(default_factory=dict)
    profile: ProviderIdentity
    is_new_user: bool = False
    redirect_url: str = Field(alias="redirectUrl")


class AuthorizationStart(BaseModel):
    """Everything the client keeps in session storage before redirecting."""

    provider: str
    authorize_url: str
    state: str
    code_verifier: str
    code_challenge: str


class LevelInfo(BaseModel):
    level: int
    name: str
    threshold: int
