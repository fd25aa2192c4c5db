"""Login exchange: validate the callback, trade the code, pick the redirect."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import urlencode

from ..errors import LeaderBoxError, ValidationError
from ..logging_utils import get_logger
from ..repositories.profiles import ProfileRepository
from ..schemas import ProviderIdentity
from .pkce import states_match
from .providers import OAuthProvider

logger = get_logger("oauth.flow")

HOME_PATH = "/"
COMPLETION_PATH = "/choose-profile"


class ExchangeStatus(str, Enum):
    PROCESSING = "processing"
    EXCHANGING = "exchanging"
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class ExchangeResult:
    tokens: Dict[str, Any]
    identity: ProviderIdentity
    is_new_user: bool
    redirect_url: str


def redirect_for(open_id: str, *, existing: bool) -> str:
    if existing:
        return HOME_PATH
    return f"{COMPLETION_PATH}?{urlencode({'open_id': open_id})}"


class ExchangeFlow:
    """One callback handled from ``processing`` to ``success`` or ``error``.

    ``status`` is terminal once the flow reaches ``success`` or ``error``;
    a flow object is not reused across callbacks.
    """

    def __init__(self, provider: OAuthProvider, repository: ProfileRepository) -> None:
        self.provider = provider
        self.repository = repository
        self.status = ExchangeStatus.PROCESSING
        self.error: Optional[str] = None

    def _transition(self, status: ExchangeStatus) -> None:
        logger.debug("%s login: %s -> %s", self.provider.name, self.status.value, status.value)
        self.status = status

    def _fail(self, exc: LeaderBoxError) -> LeaderBoxError:
        self.error = exc.message
        self._transition(ExchangeStatus.ERROR)
        logger.warning("%s login failed: %s", self.provider.name, exc.message)
        return exc

    async def run(
        self,
        *,
        code: Optional[str],
        code_verifier: Optional[str],
        redirect_uri: Optional[str] = None,
        state: Optional[str] = None,
        expected_state: Optional[str] = None,
    ) -> ExchangeResult:
        if self.status is not ExchangeStatus.PROCESSING:
            raise RuntimeError("Exchange flow already finished.")
        if not code:
            raise self._fail(ValidationError("Missing authorization code"))
        if not state or not expected_state:
            raise self._fail(ValidationError("Missing OAuth state"))
        if not states_match(state, expected_state):
            raise self._fail(ValidationError("OAuth state mismatch"))

        self._transition(ExchangeStatus.EXCHANGING)
        try:
            tokens = await self.provider.exchange_code(code, code_verifier, redirect_uri)
            identity = await self.provider.fetch_identity(tokens)
        except LeaderBoxError as exc:
            raise self._fail(exc) from exc

        existing = await self.repository.get(identity.open_id)
        result = ExchangeResult(
            tokens=tokens,
            identity=identity,
            is_new_user=existing is None,
            redirect_url=redirect_for(identity.open_id, existing=existing is not None),
        )
        self._transition(ExchangeStatus.SUCCESS)
        logger.info(
            "%s login succeeded for '%s' (%s).",
            self.provider.name,
            identity.open_id,
            "new user" if result.is_new_user else "returning user",
        )
        return result
