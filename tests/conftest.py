"""Shared fixtures. Environment is set before the package is imported."""

import os

os.environ.setdefault("STRAVA_CLIENT_ID", "12345")
os.environ.setdefault("STRAVA_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("SECRET_KEY", "test-session-secret")
os.environ.setdefault("TOKEN_STORE_BACKEND", "memory")
os.environ.setdefault("USER_ID_STRATEGY", "session")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.pop("DEFAULT_USER_ID", None)

from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs

import httpx
import pytest

from strava_broker.models import TokenRecord
from strava_broker.services import (
    InMemoryTokenStore,
    StravaClient,
    TokenLifecycleEngine,
    UpstreamUnavailable,
)

NOW = 1_700_000_000


class FlakyStore(InMemoryTokenStore):
    """In-memory store whose reads and writes can be switched off."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_reads = False
        self.fail_writes = False
        self.saves: List[TokenRecord] = []

    async def fetch(self, user_id):
        if self.fail_reads:
            raise UpstreamUnavailable("Token store is unreachable")
        return await super().fetch(user_id)

    async def fetch_refresh_token(self, user_id):
        if self.fail_reads:
            raise UpstreamUnavailable("Token store is unreachable")
        return await super().fetch_refresh_token(user_id)

    async def save(self, record):
        if self.fail_writes:
            raise UpstreamUnavailable("Token store write failed")
        self.saves.append(record)
        await super().save(record)


def _response(status: int, body: Any) -> httpx.Response:
    # Strings are sent as-is, for non-JSON bodies.
    if isinstance(body, str):
        return httpx.Response(status, text=body)
    return httpx.Response(status, json=body)


class StravaStub:
    """httpx handler playing Strava's token and resource endpoints."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.token_responses: List[Tuple[int, Any]] = []
        self.resources: Dict[str, Tuple[int, Any]] = {}

    def queue_token(self, status: int, body: Any) -> None:
        self.token_responses.append((status, body))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            if not self.token_responses:
                return httpx.Response(500, json={"message": "no token response queued"})
            status, body = self.token_responses.pop(0)
            return _response(status, body)

        path = request.url.path.removeprefix("/api/v3")
        status, body = self.resources.get(path, (404, {"message": "Record Not Found"}))
        return _response(status, body)

    def token_forms(self) -> List[Dict[str, str]]:
        forms = []
        for request in self.requests:
            if request.url.path == "/oauth/token":
                parsed = parse_qs(request.content.decode())
                forms.append({key: values[0] for key, values in parsed.items()})
        return forms

    def resource_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/api/v3")]


def make_record(
    user_id: str = "42",
    access_token: str = "a1",
    refresh_token: str = "r1",
    expires_at: int = NOW + 3600,
) -> TokenRecord:
    return TokenRecord(
        user_id=user_id,
        access_token=access_token,
        refresh_token=refresh_token,
        expires_at=expires_at,
    )


def token_payload(
    access_token: str = "a2",
    refresh_token: Optional[str] = "r2",
    expires_at: int = NOW + 21600,
    **extra: Any,
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "token_type": "Bearer",
        "access_token": access_token,
        "expires_at": expires_at,
        "expires_in": expires_at - NOW,
        **extra,
    }
    if refresh_token is not None:
        payload["refresh_token"] = refresh_token
    return payload


@pytest.fixture
def store() -> FlakyStore:
    return FlakyStore()


@pytest.fixture
def strava_stub() -> StravaStub:
    return StravaStub()


@pytest.fixture
def strava_client(strava_stub) -> StravaClient:
    return StravaClient(
        12345,
        "test-client-secret",
        "http://localhost:8080/callback",
        timeout=5.0,
        transport=httpx.MockTransport(strava_stub),
    )


@pytest.fixture
def engine(store, strava_client) -> TokenLifecycleEngine:
    return TokenLifecycleEngine(store, strava_client, clock=lambda: NOW)
