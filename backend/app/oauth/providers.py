"""Token exchange and identity lookup against TikTok and Auth0 (Letterboxd)."""

from __future__ import annotations

import base64
import json
import time
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import anyio
import requests
from requests import Response

from ..config import Settings
from ..errors import MisconfigurationError, ValidationError
from ..logging_utils import get_logger, redact_url
from ..schemas import ProviderIdentity
from .errors import OAuthError

logger = get_logger("oauth.providers")


def _first_text(source: Dict[str, Any], *keys: str) -> Optional[str]:
    for key in keys:
        value = source.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
            return str(value).strip()
    return None


class OAuthProvider:
    """Shared plumbing for authorization-code + PKCE providers.

    Subclasses supply the endpoints and payload shapes; this class performs
    the blocking HTTP calls in a worker thread and turns transport failures,
    error statuses and non-JSON bodies into :class:`OAuthError`.
    """

    name = "oauth"
    label = "OAuth"

    def __init__(self, *, timeout: float = 15.0, session: Optional[requests.Session] = None) -> None:
        self.timeout = timeout
        self._session = session or requests.Session()

    # ------------------------------------------------------------------ #
    # Provider specific hooks                                            #
    # ------------------------------------------------------------------ #

    def authorization_url(self, *, state: str, code_challenge: str, redirect_uri: Optional[str] = None) -> str:
        raise NotImplementedError

    async def exchange_code(
        self, code: str, code_verifier: Optional[str], redirect_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        raise NotImplementedError

    async def fetch_identity(self, tokens: Dict[str, Any]) -> ProviderIdentity:
        raise NotImplementedError

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    async def _send(self, method: str, url: str, **kwargs: Any) -> Response:
        started = time.perf_counter()
        try:
            response = await anyio.to_thread.run_sync(
                lambda: self._session.request(method, url, timeout=self.timeout, **kwargs)
            )
        except requests.RequestException as exc:
            logger.warning(
                "%s request failed due to exception.",
                self.label,
                extra={"oauth_provider": self.name, "oauth_url": redact_url(url), "oauth_error": type(exc).__name__},
            )
            raise OAuthError(f"Failed to contact {self.label}.") from exc
        logger.info(
            "%s %s %s -> %d",
            self.label,
            method,
            redact_url(url),
            response.status_code,
            extra={
                "oauth_provider": self.name,
                "oauth_status": response.status_code,
                "oauth_duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
            },
        )
        return response

    def _json_body(self, response: Response, what: str) -> Dict[str, Any]:
        try:
            payload = response.json()
        except ValueError as exc:
            logger.error(
                "%s %s returned non-JSON (status %d): %s",
                self.label,
                what,
                response.status_code,
                response.text[:500],
            )
            raise OAuthError(
                f"{self.label} returned non-JSON from {what}",
                upstream_status=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise OAuthError(
                f"{self.label} returned an unexpected {what} payload",
                upstream_status=response.status_code,
            )
        return payload

    def _raise_exchange_failure(self, response: Response, body: Dict[str, Any]) -> None:
        error = body.get("error")
        if isinstance(error, dict):
            error = error.get("code")
        logger.error(
            "%s token exchange failed with status %d: %s",
            self.label,
            response.status_code,
            body,
        )
        raise OAuthError(
            f"{self.label} token exchange failed",
            upstream_status=response.status_code,
            details={
                "status": response.status_code,
                "provider_error": error,
                "description": body.get("error_description") or body.get("description"),
            },
        )

    @staticmethod
    def _require_code(code: Optional[str], code_verifier: Optional[str]) -> None:
        if not code:
            raise ValidationError("Missing authorization code")
        if not code_verifier:
            raise ValidationError("Missing code_verifier (PKCE)")


class TikTokProvider(OAuthProvider):
    """TikTok Login Kit v2."""

    name = "tiktok"
    label = "TikTok"
    USER_FIELDS = "open_id,union_id,avatar_url,display_name"

    def __init__(
        self,
        *,
        client_key: Optional[str],
        client_secret: Optional[str],
        redirect_uri: Optional[str] = None,
        authorize_url: str,
        token_url: str,
        userinfo_url: str,
        scopes: str = "user.info.basic",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        self.client_key = client_key
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.authorize_endpoint = authorize_url
        self.token_url = token_url
        self.userinfo_url = userinfo_url
        self.scopes = scopes

    def _credentials(self) -> tuple[str, str]:
        if not self.client_key or not self.client_secret:
            raise MisconfigurationError("Server misconfiguration: missing TikTok credentials")
        return self.client_key, self.client_secret

    def authorization_url(self, *, state: str, code_challenge: str, redirect_uri: Optional[str] = None) -> str:
        client_key, _ = self._credentials()
        redirect = redirect_uri or self.redirect_uri
        if not redirect:
            raise ValidationError("Missing redirect_uri")
        params = {
            "client_key": client_key,
            "response_type": "code",
            "scope": self.scopes,
            "redirect_uri": redirect,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(
        self, code: str, code_verifier: Optional[str], redirect_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        self._require_code(code, code_verifier)
        client_key, client_secret = self._credentials()
        redirect = redirect_uri or self.redirect_uri
        if not redirect:
            raise ValidationError("Missing redirect_uri")

        response = await self._send(
            "POST",
            self.token_url,
            data={
                "client_key": client_key,
                "client_secret": client_secret,
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect,
                "code_verifier": code_verifier,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded", "Accept": "application/json"},
        )
        body = self._json_body(response, "token exchange")
        if not response.ok or not body.get("access_token"):
            self._raise_exchange_failure(response, body)
        return body

    async def fetch_identity(self, tokens: Dict[str, Any]) -> ProviderIdentity:
        token_open_id = _first_text(tokens, "open_id", "openid")
        user: Dict[str, Any] = {}
        access_token = tokens.get("access_token")
        if access_token:
            try:
                response = await self._send(
                    "GET",
                    self.userinfo_url,
                    params={"fields": self.USER_FIELDS},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
                if response.ok:
                    payload = self._json_body(response, "user info")
                    data = payload.get("data") or {}
                    user = data.get("user") or data if isinstance(data, dict) else {}
                else:
                    logger.warning("TikTok user info returned status %d.", response.status_code)
            except OAuthError as exc:
                # The token payload still carries open_id, which is all the login needs.
                logger.warning("TikTok user info lookup failed: %s", exc)

        open_id = _first_text(user, "open_id", "openId") or token_open_id
        if not open_id:
            raise OAuthError("TikTok did not return an open_id")
        return ProviderIdentity(
            open_id=open_id,
            nickname=_first_text(user, "display_name", "nickname", "unique_id", "username"),
            avatar=_first_text(user, "avatar_url", "avatar", "avatar_large"),
        )


class LetterboxdProvider(OAuthProvider):
    """Letterboxd login brokered by an Auth0 tenant."""

    name = "letterboxd"
    label = "Auth0"
    SCOPES = "openid profile email"

    def __init__(
        self,
        *,
        domain: Optional[str],
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_uri: Optional[str] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        super().__init__(timeout=timeout, session=session)
        self.domain = (domain or "").strip().rstrip("/")
        if self.domain.startswith("https://"):
            self.domain = self.domain[len("https://"):]
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri

    def _base_url(self) -> str:
        if not self.domain or not self.client_id or not self.client_secret:
            raise MisconfigurationError("Server misconfiguration: missing Auth0 credentials")
        return f"https://{self.domain}"

    def authorization_url(self, *, state: str, code_challenge: str, redirect_uri: Optional[str] = None) -> str:
        base = self._base_url()
        redirect = redirect_uri or self.redirect_uri
        if not redirect:
            raise ValidationError("Missing redirect_uri")
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": redirect,
            "scope": self.SCOPES,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{base}/authorize?{urlencode(params)}"

    async def exchange_code(
        self, code: str, code_verifier: Optional[str], redirect_uri: Optional[str] = None
    ) -> Dict[str, Any]:
        self._require_code(code, code_verifier)
        base = self._base_url()
        payload: Dict[str, Any] = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "code_verifier": code_verifier,
        }
        redirect = redirect_uri or self.redirect_uri
        if redirect:
            payload["redirect_uri"] = redirect
        response = await self._send("POST", f"{base}/oauth/token", json=payload)
        body = self._json_body(response, "token exchange")
        if not response.ok or not body.get("access_token"):
            self._raise_exchange_failure(response, body)
        return body

    async def fetch_identity(self, tokens: Dict[str, Any]) -> ProviderIdentity:
        base = self._base_url()
        claims: Dict[str, Any] = {}
        response = await self._send(
            "GET",
            f"{base}/userinfo",
            headers={"Authorization": f"Bearer {tokens.get('access_token')}"},
        )
        if response.ok:
            claims = self._json_body(response, "userinfo")
        else:
            logger.warning("Auth0 userinfo returned status %d; using id_token claims.", response.status_code)
            claims = _id_token_claims(tokens.get("id_token"))

        open_id = _first_text(claims, "sub", "user_id") or _first_text(tokens, "sub")
        if not open_id:
            raise OAuthError("Auth0 did not return a subject identifier")
        return ProviderIdentity(
            open_id=open_id,
            nickname=_first_text(claims, "nickname", "name", "email"),
            avatar=_first_text(claims, "picture", "avatar"),
        )


def _id_token_claims(id_token: Any) -> Dict[str, Any]:
    """Decode the payload segment of an ID token received straight from the token endpoint."""
    if not isinstance(id_token, str) or id_token.count(".") != 2:
        return {}
    segment = id_token.split(".")[1]
    segment += "=" * (-len(segment) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(segment.encode("ascii")))
    except ValueError:
        return {}
    return claims if isinstance(claims, dict) else {}


def build_oauth_providers(settings: Settings) -> Dict[str, OAuthProvider]:
    """Instantiate every supported provider from settings, keyed by route name."""
    return {
        TikTokProvider.name: TikTokProvider(
            client_key=settings.tiktok_client_key,
            client_secret=settings.tiktok_client_secret,
            redirect_uri=settings.tiktok_redirect_uri,
            authorize_url=settings.tiktok_authorize_url,
            token_url=settings.tiktok_token_url,
            userinfo_url=settings.tiktok_userinfo_url,
            scopes=settings.tiktok_scopes,
            timeout=settings.http_timeout_seconds,
        ),
        LetterboxdProvider.name: LetterboxdProvider(
            domain=settings.auth0_domain,
            client_id=settings.auth0_client_id,
            client_secret=settings.auth0_client_secret,
            redirect_uri=settings.letterboxd_redirect_uri,
            timeout=settings.http_timeout_seconds,
        ),
    }
