"""Token lifecycle engine.

Hands out a currently valid Strava access token for a user, refreshing it
through the provider and writing the rotated pair back to the token store
when the stored one has expired.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from typing import Callable, Dict, Optional, Set

from ..core.time import epoch_seconds, iso_from_epoch
from ..models import TokenRecord
from .errors import InvalidInput, NoCredentials, RefreshFailed, UpstreamUnavailable
from .strava_client import StravaClient
from .token_store import TokenStore

logger = logging.getLogger(__name__)


def _require_user(user_id: Optional[str]) -> str:
    user_id = str(user_id).strip() if user_id is not None else ""
    if not user_id:
        raise InvalidInput("A user identifier is required")
    return user_id


class TokenLifecycleEngine:
    """Per-user token state machine backed by an external store.

    The engine keeps no token cache. The only per-user state held in process
    is a bounded map of the last refresh token seen for each user, used when
    the store cannot be reached or missed the last write, and the map of
    refreshes currently running.
    """

    def __init__(
        self,
        store: TokenStore,
        provider: StravaClient,
        *,
        refresh_margin: int = 0,
        fallback_size: int = 128,
        clock: Callable[[], int] = epoch_seconds,
    ) -> None:
        self.store = store
        self.provider = provider
        self.refresh_margin = refresh_margin
        self.fallback_size = fallback_size
        self._clock = clock
        self._fallback: "OrderedDict[str, str]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Task] = {}
        # Users whose latest rotated pair never reached the store.
        self._unsaved: Set[str] = set()

    async def get_valid_token(self, user_id: Optional[str]) -> str:
        user_id = _require_user(user_id)

        record: Optional[TokenRecord] = None
        try:
            record = await self.store.fetch(user_id)
        except UpstreamUnavailable as exc:
            logger.warning("Token lookup for user %s failed, refreshing instead: %s", user_id, exc)

        if record is not None:
            now = self._clock()
            if record.is_valid(now, self.refresh_margin):
                return record.access_token
            logger.info(
                "Token for user %s expired at %s, refreshing",
                user_id,
                iso_from_epoch(record.expires_at),
            )

        known = record.refresh_token if record is not None else None
        return await self.refresh(user_id, known_refresh_token=known)

    async def refresh(self, user_id: Optional[str], known_refresh_token: Optional[str] = None) -> str:
        """Refresh the user's token, sharing one upstream call between concurrent callers."""

        user_id = _require_user(user_id)

        task = self._inflight.get(user_id)
        if task is None or task.done():
            task = asyncio.ensure_future(self._refresh(user_id, known_refresh_token))
            self._inflight[user_id] = task
            task.add_done_callback(lambda done, key=user_id: self._forget_task(key, done))
        return await asyncio.shield(task)

    async def authorize(self, code: Optional[str]) -> TokenRecord:
        """Exchange an authorization code and persist the user's first record."""

        if not code:
            raise InvalidInput("Authorization code is required")

        record = await self.provider.exchange_code(code)
        self._remember(record.user_id, record.refresh_token)
        await self._persist(record)
        logger.info("Authorized user %s", record.user_id)
        return record

    async def lookup(self, user_id: Optional[str]) -> Optional[TokenRecord]:
        return await self.store.fetch(_require_user(user_id))

    async def _refresh(self, user_id: str, known_refresh_token: Optional[str]) -> str:
        refresh_token = await self._current_refresh_token(user_id, known_refresh_token)

        try:
            payload = await self.provider.refresh(refresh_token)
        except (RefreshFailed, UpstreamUnavailable) as exc:
            logger.warning("Token refresh failed for user %s: %s", user_id, exc.detail)
            raise

        try:
            record = TokenRecord.from_payload(
                user_id, payload, previous_refresh_token=refresh_token
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RefreshFailed("Strava returned an incomplete token response") from exc

        self._remember(user_id, record.refresh_token)
        await self._persist(record)
        logger.info(
            "Token refreshed for user %s, valid until %s",
            user_id,
            iso_from_epoch(record.expires_at),
        )
        return record.access_token

    async def _current_refresh_token(self, user_id: str, known: Optional[str]) -> str:
        stored: Optional[str] = None
        try:
            stored = await self.store.fetch_refresh_token(user_id)
        except UpstreamUnavailable as exc:
            logger.warning("Refresh token lookup for user %s failed: %s", user_id, exc)

        remembered = self._fallback.get(user_id)
        if user_id in self._unsaved and remembered:
            # The store still holds a token Strava has already rotated away.
            refresh_token = remembered
        else:
            refresh_token = stored or known or remembered
        if not refresh_token:
            raise NoCredentials("No credentials on record. Please authenticate first.")
        return refresh_token

    async def _persist(self, record: TokenRecord) -> None:
        # The caller already holds a usable token; a failed write only costs a
        # redundant refresh later.
        try:
            await self.store.save(record)
        except UpstreamUnavailable as exc:
            self._unsaved.add(record.user_id)
            logger.error("Failed to persist token for user %s: %s", record.user_id, exc)
        else:
            self._unsaved.discard(record.user_id)

    def _remember(self, user_id: str, refresh_token: str) -> None:
        self._fallback[user_id] = refresh_token
        self._fallback.move_to_end(user_id)
        while len(self._fallback) > self.fallback_size:
            evicted, _ = self._fallback.popitem(last=False)
            self._unsaved.discard(evicted)

    def _forget_task(self, user_id: str, task: asyncio.Task) -> None:
        if self._inflight.get(user_id) is task:
            del self._inflight[user_id]
        if not task.cancelled():
            # Mark the exception retrieved when every waiter was cancelled.
            task.exception()


__all__ = ["TokenLifecycleEngine"]
