"""Service layer: token lifecycle, storage clients and the resource proxy."""

from .engine import TokenLifecycleEngine
from .errors import (
    AuthorizationFailed,
    BrokerError,
    InvalidInput,
    NoCredentials,
    RefreshFailed,
    SessionExpired,
    UpstreamUnavailable,
)
from .proxy import ResourceProxy
from .strava_client import StravaClient
from .token_store import HttpTokenStore, InMemoryTokenStore, SqlTokenStore, TokenStore

__all__ = [
    "AuthorizationFailed",
    "BrokerError",
    "HttpTokenStore",
    "InMemoryTokenStore",
    "InvalidInput",
    "NoCredentials",
    "RefreshFailed",
    "ResourceProxy",
    "SessionExpired",
    "SqlTokenStore",
    "StravaClient",
    "TokenLifecycleEngine",
    "TokenStore",
    "UpstreamUnavailable",
]
