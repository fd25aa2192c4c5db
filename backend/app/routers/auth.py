"""OAuth login endpoints for TikTok and Letterboxd."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_oauth_provider, get_profile_repository
from ..oauth import ExchangeFlow, OAuthProvider
from ..oauth.pkce import code_challenge, generate_code_verifier, generate_state
from ..repositories import ProfileRepository
from ..schemas import AuthorizationStart, TokenExchangeRequest, TokenExchangeResponse

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get(
    "/{provider}/authorize",
    response_model=AuthorizationStart,
    summary="Build the provider authorization URL with fresh PKCE values.",
)
async def start_authorization(
    redirect_uri: Optional[str] = Query(default=None),
    oauth_provider: OAuthProvider = Depends(get_oauth_provider),
) -> AuthorizationStart:
    verifier = generate_code_verifier()
    challenge = code_challenge(verifier)
    state = generate_state()
    url = oauth_provider.authorization_url(state=state, code_challenge=challenge, redirect_uri=redirect_uri)
    return AuthorizationStart(
        provider=oauth_provider.name,
        authorize_url=url,
        state=state,
        code_verifier=verifier,
        code_challenge=challenge,
    )


@router.post(
    "/{provider}/exchange",
    response_model=TokenExchangeResponse,
    response_model_by_alias=True,
    summary="Exchange an authorization code for tokens and the user's identity.",
)
async def exchange_code(
    payload: TokenExchangeRequest,
    oauth_provider: OAuthProvider = Depends(get_oauth_provider),
    repository: ProfileRepository = Depends(get_profile_repository),
) -> TokenExchangeResponse:
    flow = ExchangeFlow(oauth_provider, repository)
    result = await flow.run(
        code=payload.code,
        code_verifier=payload.code_verifier,
        redirect_uri=payload.redirect_uri,
        state=payload.state,
        expected_state=payload.expected_state,
    )
    return TokenExchangeResponse(
        tokens=result.tokens,
        profile=result.identity,
        is_new_user=result.is_new_user,
        redirect_url=result.redirect_url,
    )
