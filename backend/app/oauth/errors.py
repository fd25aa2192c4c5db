"""Errors raised while talking to identity providers."""

from __future__ import annotations

from ..errors import UpstreamError


class OAuthError(UpstreamError):
    """The identity provider rejected the exchange or answered garbage.

    The provider's HTTP status is propagated to the caller when it is an
    error status; otherwise the API answers 502.
    """

    propagate_status = True
