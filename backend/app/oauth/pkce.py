"""PKCE (RFC 7636) and anti-CSRF state helpers."""

from __future__ import annotations

import base64
import hashlib
import secrets

# RFC 7636 allows 43-128 characters; 64 random bytes encode to 86.
VERIFIER_BYTES = 64
STATE_BYTES = 24


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier(num_bytes: int = VERIFIER_BYTES) -> str:
    return _b64url(secrets.token_bytes(num_bytes))


def code_challenge(verifier: str) -> str:
    """S256 challenge: base64url(sha256(verifier)) without padding."""
    return _b64url(hashlib.sha256(verifier.encode("ascii")).digest())


def generate_state(num_bytes: int = STATE_BYTES) -> str:
    return secrets.token_hex(num_bytes)


def states_match(returned: str | None, expected: str | None) -> bool:
    if not returned or not expected:
        return False
    return secrets.compare_digest(returned.encode("utf8"), expected.encode("utf8"))
