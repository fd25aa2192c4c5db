"""Error taxonomy shared by services, clients and the HTTP layer."""

from __future__ import annotations

from typing import Any


class LeaderBoxError(Exception):
    """Base class for errors rendered as ``{"error": code, "message": ...}``."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        self.message = message or self.code.replace("_", " ")
        self.details = details
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(LeaderBoxError):
    """A required field is missing or malformed."""

    code = "validation_error"
    status_code = 400


class NotFoundError(LeaderBoxError):
    """The referenced profile (or provider) does not exist."""

    code = "not_found"
    status_code = 404

    def __init__(self, message: str | None = None, *, details: Any = None) -> None:
        super().__init__(message or "not_found", details=details)


class MisconfigurationError(LeaderBoxError):
    """A credential or setting required by the operation is absent."""

    code = "misconfiguration"
    status_code = 500


class UpstreamError(LeaderBoxError):
    """A third-party service answered with an error or an unreadable body."""

    code = "upstream_error"
    status_code = 502
    propagate_status = False

    def __init__(
        self,
        message: str | None = None,
        *,
        upstream_status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details=details)
        self.upstream_status = upstream_status
        if (
            self.propagate_status
            and upstream_status is not None
            and 400 <= upstream_status < 600
        ):
            self.status_code = upstream_status
