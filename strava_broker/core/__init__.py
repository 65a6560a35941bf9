"""Core configuration and infrastructure helpers."""

from .config import (
    ALLOWED_CORS_ORIGINS,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    DEFAULT_USER_ID,
    ENVIRONMENT,
    HTTP_TIMEOUT,
    LOG_LEVEL,
    PORT,
    REFRESH_FALLBACK_SIZE,
    SECRET_KEY,
    STRAVA_CLIENT_ID,
    STRAVA_CLIENT_SECRET,
    STRAVA_REDIRECT_URI,
    STRAVA_SCOPES,
    TOKEN_REFRESH_MARGIN,
    TOKEN_STORE_BACKEND,
    TOKEN_STORE_URL,
    USER_ID_STRATEGY,
)
from .database import engine, get_session
from .log import configure_logging
from .time import as_epoch_seconds, epoch_seconds, iso_from_epoch, utcnow

__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DEFAULT_USER_ID",
    "ENVIRONMENT",
    "HTTP_TIMEOUT",
    "LOG_LEVEL",
    "PORT",
    "REFRESH_FALLBACK_SIZE",
    "SECRET_KEY",
    "STRAVA_CLIENT_ID",
    "STRAVA_CLIENT_SECRET",
    "STRAVA_REDIRECT_URI",
    "STRAVA_SCOPES",
    "TOKEN_REFRESH_MARGIN",
    "TOKEN_STORE_BACKEND",
    "TOKEN_STORE_URL",
    "USER_ID_STRATEGY",
    "as_epoch_seconds",
    "configure_logging",
    "engine",
    "epoch_seconds",
    "get_session",
    "iso_from_epoch",
    "utcnow",
]
