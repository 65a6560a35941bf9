"""Token store clients.

The broker treats the token store as the system of record. ``HttpTokenStore``
talks to the external token service; ``SqlTokenStore`` keeps the same contract
in a local SQLModel table; ``InMemoryTokenStore`` is for development runs.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core.time import utcnow
from ..models import StravaToken, TokenRecord
from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


class TokenStore(ABC):
    """Per-user token persistence."""

    @abstractmethod
    async def fetch(self, user_id: str) -> Optional[TokenRecord]:
        """Return the stored record, or None when the user has none."""

    @abstractmethod
    async def fetch_refresh_token(self, user_id: str) -> Optional[str]:
        """Return the current refresh token, or None when the user has none."""

    @abstractmethod
    async def save(self, record: TokenRecord) -> None:
        """Upsert ``record``, replacing whatever was stored for the user."""


class HttpTokenStore(TokenStore):
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            try:
                return await client.request(method, path, **kwargs)
            except httpx.HTTPError as exc:
                logger.warning("Token store %s %s failed: %s", method, path, exc)
                raise UpstreamUnavailable("Token store is unreachable") from exc

    @staticmethod
    def _check(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        logger.warning("Token store %s returned %s", action, response.status_code)
        raise UpstreamUnavailable(
            f"Token store {action} failed with status {response.status_code}",
            upstream_status=response.status_code,
        )

    async def fetch(self, user_id: str) -> Optional[TokenRecord]:
        response = await self._request("GET", f"/tokens/{quote(user_id, safe='')}")
        if response.status_code == 404:
            return None
        self._check(response, "lookup")

        try:
            return TokenRecord.from_payload(user_id, response.json())
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed token record for user %s: %s", user_id, exc)
            return None

    async def fetch_refresh_token(self, user_id: str) -> Optional[str]:
        response = await self._request(
            "GET", f"/refresh-tokens/{quote(user_id, safe='')}"
        )
        if response.status_code == 404:
            return None
        self._check(response, "refresh token lookup")

        try:
            body = response.json()
        except ValueError:
            logger.warning("Token store returned a non-JSON refresh token body")
            return None
        return (body or {}).get("refresh_token") or None

    async def save(self, record: TokenRecord) -> None:
        payload: Dict[str, Any] = record.to_store_payload()
        response = await self._request("POST", "/tokens", json=payload)
        self._check(response, "write")

        # Keep the rotation lookup in step with the full record.
        response = await self._request("POST", "/refresh-tokens", json=payload)
        self._check(response, "refresh token write")


class SqlTokenStore(TokenStore):
    """SQLModel-backed store. Sessions are blocking, so they run in a worker thread."""

    def __init__(self, engine) -> None:
        self.engine = engine

    async def fetch(self, user_id: str) -> Optional[TokenRecord]:
        try:
            return await asyncio.to_thread(self._fetch_row, user_id)
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable("Token database is unavailable") from exc

    async def fetch_refresh_token(self, user_id: str) -> Optional[str]:
        record = await self.fetch(user_id)
        return record.refresh_token if record else None

    async def save(self, record: TokenRecord) -> None:
        try:
            await asyncio.to_thread(self._save_row, record)
        except SQLAlchemyError as exc:
            raise UpstreamUnavailable("Token database is unavailable") from exc

    def _fetch_row(self, user_id: str) -> Optional[TokenRecord]:
        with Session(self.engine) as session:
            row = session.get(StravaToken, user_id)
            if row is None:
                return None
            return TokenRecord(
                user_id=row.user_id,
                access_token=row.access_token,
                refresh_token=row.refresh_token,
                expires_at=row.expires_at,
                scope=row.scope,
                athlete_username=row.athlete_username,
            )

    def _save_row(self, record: TokenRecord) -> None:
        with Session(self.engine) as session:
            existing = session.get(StravaToken, record.user_id)
            if existing:
                existing.access_token = record.access_token
                existing.refresh_token = record.refresh_token
                existing.expires_at = record.expires_at
                existing.scope = record.scope or existing.scope
                existing.athlete_username = record.athlete_username or existing.athlete_username
                existing.updated_at = utcnow()
                session.add(existing)
            else:
                session.add(
                    StravaToken(
                        user_id=record.user_id,
                        athlete_username=record.athlete_username,
                        access_token=record.access_token,
                        refresh_token=record.refresh_token,
                        expires_at=record.expires_at,
                        scope=record.scope,
                    )
                )
            session.commit()


class InMemoryTokenStore(TokenStore):
    def __init__(self) -> None:
        self._records: Dict[str, TokenRecord] = {}

    async def fetch(self, user_id: str) -> Optional[TokenRecord]:
        return self._records.get(user_id)

    async def fetch_refresh_token(self, user_id: str) -> Optional[str]:
        record = self._records.get(user_id)
        return record.refresh_token if record else None

    async def save(self, record: TokenRecord) -> None:
        self._records[record.user_id] = record


__all__ = ["HttpTokenStore", "InMemoryTokenStore", "SqlTokenStore", "TokenStore"]
