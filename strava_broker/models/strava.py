"""Database model for Strava OAuth tokens."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class StravaToken(SQLModel, table=True):
    """Persists Strava OAuth credentials, one row per user."""

    __tablename__ = "strava_token"

    user_id: str = ORMField(primary_key=True)
    athlete_username: Optional[str] = None
    access_token: str
    refresh_token: str
    expires_at: int
    scope: Optional[str] = None
    updated_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["StravaToken"]
