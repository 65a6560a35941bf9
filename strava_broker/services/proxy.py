"""Strava resource proxy."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from .engine import TokenLifecycleEngine
from .errors import SessionExpired
from .strava_client import StravaClient

logger = logging.getLogger(__name__)

SESSION_EXPIRED_MESSAGE = "Authentication expired. Please login again at the home page."


class ResourceProxy:
    """Calls Strava resource endpoints on behalf of a user.

    Upstream status and JSON are relayed as-is, except a 401, which becomes
    ``SessionExpired`` so the caller can prompt for a new login.
    """

    def __init__(self, engine: TokenLifecycleEngine, client: StravaClient) -> None:
        self.engine = engine
        self.client = client

    async def get_json(
        self, user_id: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, Any]:
        token = await self.engine.get_valid_token(user_id)
        return await self._call(user_id, token, path, params)

    async def _call(
        self, user_id: str, token: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Tuple[int, Any]:
        response = await self.client.api_get(token, path, params)
        if response.status_code == 401:
            logger.info("Strava rejected the token for user %s on %s", user_id, path)
            raise SessionExpired(SESSION_EXPIRED_MESSAGE, upstream_status=401)
        if not response.is_success:
            logger.warning("Strava GET %s returned %s", path, response.status_code)
        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}
        return response.status_code, body

    async def list_activities(self, user_id: str, page: int = 1, per_page: int = 30) -> Tuple[int, Any]:
        return await self.get_json(
            user_id, "/athlete/activities", params={"page": page, "per_page": per_page}
        )

    async def get_activity(self, user_id: str, activity_id: int) -> Tuple[int, Any]:
        return await self.get_json(user_id, f"/activities/{activity_id}")

    async def get_athlete(self, user_id: str) -> Tuple[int, Any]:
        return await self.get_json(user_id, "/athlete")

    async def get_athlete_stats(self, user_id: str) -> Tuple[int, Any]:
        """Stats are keyed by athlete id, so resolve it from the profile first.

        Both calls share one token; a second lookup could trigger a second
        refresh with a refresh token Strava has already rotated.
        """

        token = await self.engine.get_valid_token(user_id)
        status_code, athlete = await self._call(user_id, token, "/athlete")
        if status_code >= 400 or not isinstance(athlete, dict) or "id" not in athlete:
            return status_code, athlete
        return await self._call(user_id, token, f"/athletes/{athlete['id']}/stats")


__all__ = ["ResourceProxy", "SESSION_EXPIRED_MESSAGE"]
