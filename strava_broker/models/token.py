"""Token record exchanged between the engine, the store and the provider."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from sqlmodel import SQLModel

from ..core.time import as_epoch_seconds


class TokenRecord(SQLModel):
    """One user's current Strava credentials.

    ``expires_at`` is always whole seconds since the epoch.
    """

    user_id: str
    access_token: str
    refresh_token: str
    expires_at: int
    scope: Optional[str] = None
    athlete_username: Optional[str] = None

    @classmethod
    def from_payload(
        cls,
        user_id: str,
        payload: Mapping[str, Any],
        *,
        previous_refresh_token: Optional[str] = None,
    ) -> "TokenRecord":
        """Build a record from a provider or store JSON body.

        Raises ``KeyError`` when ``access_token`` or ``expires_at`` is missing,
        and ``ValueError`` when no refresh token is present or inherited.
        """

        refresh_token = payload.get("refresh_token") or previous_refresh_token
        if not refresh_token:
            raise ValueError("payload has no refresh_token")

        scope = payload.get("scope")
        if isinstance(scope, list):
            scope = ",".join(scope)

        athlete = payload.get("athlete") or {}
        return cls(
            user_id=str(user_id),
            access_token=payload["access_token"],
            refresh_token=refresh_token,
            expires_at=as_epoch_seconds(payload["expires_at"]),
            scope=scope or None,
            athlete_username=athlete.get("username") or athlete.get("firstname"),
        )

    def is_valid(self, now: int, margin: int = 0) -> bool:
        return now + margin < self.expires_at

    def seconds_remaining(self, now: int) -> int:
        return max(0, self.expires_at - now)

    def to_store_payload(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }

    def __repr__(self) -> str:
        return f"TokenRecord(user_id={self.user_id!r}, expires_at={self.expires_at})"

    __str__ = __repr__


__all__ = ["TokenRecord"]
