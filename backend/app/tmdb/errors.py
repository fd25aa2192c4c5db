"""Errors raised by the TMDB client."""

from __future__ import annotations

from ..errors import UpstreamError


class TmdbError(UpstreamError):
    """TMDB answered with a non-2xx status or a body that is not JSON."""
