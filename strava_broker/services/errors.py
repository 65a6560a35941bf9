"""Error taxonomy for the token broker.

Every error carries a short ``kind`` and the HTTP status it maps to. Messages
are user facing and must never include credential values.
"""

from __future__ import annotations

from typing import Optional


class BrokerError(Exception):
    status_code = 500
    kind = "internal_error"

    def __init__(self, detail: str, *, upstream_status: Optional[int] = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.upstream_status = upstream_status

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.detail}


class InvalidInput(BrokerError):
    """A required user identifier (or similar input) is missing."""

    status_code = 400
    kind = "invalid_input"


class NoCredentials(BrokerError):
    """No refresh token is available for the user anywhere."""

    status_code = 401
    kind = "no_credentials"


class SessionExpired(BrokerError):
    """The resource server rejected the bearer token."""

    status_code = 401
    kind = "session_expired"


class RefreshFailed(BrokerError):
    """The provider rejected a refresh token."""

    status_code = 401
    kind = "refresh_failed"


class AuthorizationFailed(BrokerError):
    """The provider rejected an authorization code."""

    status_code = 400
    kind = "authorization_failed"


class UpstreamUnavailable(BrokerError):
    """The token store or the provider could not be reached, or answered 5xx."""

    status_code = 502
    kind = "upstream_unavailable"


__all__ = [
    "AuthorizationFailed",
    "BrokerError",
    "InvalidInput",
    "NoCredentials",
    "RefreshFailed",
    "SessionExpired",
    "UpstreamUnavailable",
]
