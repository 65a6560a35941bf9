"""
Strava API Client
OAuth token exchange and authenticated resource calls.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..models import TokenRecord
from .errors import AuthorizationFailed, RefreshFailed, UpstreamUnavailable

logger = logging.getLogger(__name__)

AUTH_BASE = "https://www.strava.com/oauth/authorize"
TOKEN_URL = "https://www.strava.com/oauth/token"
API_BASE = "https://www.strava.com/api/v3"


def _error_message(response: httpx.Response) -> str:
    """Pull Strava's ``message`` field out of an error body when there is one."""

    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


def _json_object(response: httpx.Response) -> Optional[Dict[str, Any]]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


class StravaClient:
    def __init__(
        self,
        client_id: int,
        client_secret: str,
        redirect_uri: str,
        *,
        scopes: str = "read,activity:read_all",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.scopes = scopes
        self.timeout = timeout
        self._transport = transport

    def auth_url(self, state: Optional[str] = None) -> str:
        """Generate Strava OAuth authorization URL."""

        params: Dict[str, Any] = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "approval_prompt": "auto",
            "scope": self.scopes,
        }
        if state:
            params["state"] = state
        return f"{AUTH_BASE}?{urlencode(params)}"

    async def _post_token(self, data: Dict[str, Any]) -> httpx.Response:
        form = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            **data,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                return await client.post(TOKEN_URL, data=form)
            except httpx.HTTPError as exc:
                logger.warning("Strava token endpoint unreachable: %s", exc)
                raise UpstreamUnavailable("Strava is unreachable") from exc

    async def exchange_code(self, code: str) -> TokenRecord:
        """Exchange an authorization code for the user's first token record."""

        response = await self._post_token({"code": code, "grant_type": "authorization_code"})
        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Strava authorization failed: {_error_message(response)}",
                upstream_status=response.status_code,
            )
        if not response.is_success:
            raise AuthorizationFailed(
                f"Strava authorization failed: {_error_message(response)}",
                upstream_status=response.status_code,
            )

        payload = _json_object(response)
        if payload is None or not payload.get("access_token"):
            raise AuthorizationFailed("Strava returned an incomplete token response")

        athlete = payload.get("athlete")
        athlete_id = athlete.get("id") if isinstance(athlete, dict) else None
        if athlete_id is None:
            athlete_id = await self._fetch_athlete_id(payload["access_token"])
        try:
            return TokenRecord.from_payload(str(athlete_id), payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthorizationFailed("Strava returned an incomplete token response") from exc

    async def refresh(self, refresh_token: str) -> Dict[str, Any]:
        """Trade a refresh token for a new token triple.

        Strava may rotate the refresh token; callers must keep whatever comes
        back rather than the token they sent.
        """

        response = await self._post_token(
            {"refresh_token": refresh_token, "grant_type": "refresh_token"}
        )
        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Strava token refresh failed: {_error_message(response)}",
                upstream_status=response.status_code,
            )
        if not response.is_success:
            raise RefreshFailed(
                f"Strava token refresh failed: {_error_message(response)}",
                upstream_status=response.status_code,
            )

        payload = _json_object(response)
        if payload is None:
            raise UpstreamUnavailable(
                "Strava returned an unreadable token response",
                upstream_status=response.status_code,
            )
        return payload

    async def api_get(
        self, access_token: str, path: str, params: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """Make authenticated GET request to Strava API."""

        url = f"{API_BASE}{path}"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                return await client.get(
                    url,
                    headers={"Authorization": f"Bearer {access_token}"},
                    params=params or {},
                )
            except httpx.HTTPError as exc:
                logger.warning("Strava GET %s failed: %s", path, exc)
                raise UpstreamUnavailable("Strava is unreachable") from exc

    async def _fetch_athlete_id(self, access_token: str) -> int:
        response = await self.api_get(access_token, "/athlete")
        if response.status_code >= 500:
            raise UpstreamUnavailable(
                f"Failed to fetch athlete data: {_error_message(response)}",
                upstream_status=response.status_code,
            )
        if not response.is_success:
            raise AuthorizationFailed(
                f"Failed to fetch athlete data: {_error_message(response)}",
                upstream_status=response.status_code,
            )

        athlete = _json_object(response)
        if athlete is None or athlete.get("id") is None:
            raise AuthorizationFailed("Strava returned athlete data without an id")
        return athlete["id"]


__all__ = ["API_BASE", "AUTH_BASE", "StravaClient", "TOKEN_URL"]
