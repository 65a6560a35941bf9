"""Application settings and environment helpers."""

from __future__ import annotations

import os
from typing import Iterable, List, Optional

from dotenv import load_dotenv

load_dotenv(override=False)


def _require_env(name: str) -> str:
    """Return a required environment variable or raise an error."""

    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc


def _split_csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# Runtime behaviour ----------------------------------------------------------
ENVIRONMENT = os.getenv("ENVIRONMENT", "development").strip().lower()
PORT = _env_int("PORT", 8080)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()
PUBLIC_URL = os.getenv("PUBLIC_URL", "").rstrip("/")


# Strava OAuth configuration -------------------------------------------------
_STRAVA_CLIENT_ID_RAW = _require_env("STRAVA_CLIENT_ID")
try:
    STRAVA_CLIENT_ID = int(_STRAVA_CLIENT_ID_RAW)
except ValueError as exc:  # pragma: no cover - defensive guard
    raise RuntimeError("STRAVA_CLIENT_ID must be an integer") from exc

STRAVA_CLIENT_SECRET = _require_env("STRAVA_CLIENT_SECRET")
STRAVA_SCOPES = os.getenv("STRAVA_SCOPES", "read,activity:read_all")

# Production deploys call back to the public URL; local runs to the dev port.
if os.getenv("STRAVA_REDIRECT_URI"):
    STRAVA_REDIRECT_URI = os.environ["STRAVA_REDIRECT_URI"]
elif ENVIRONMENT == "production" and PUBLIC_URL:
    STRAVA_REDIRECT_URI = f"{PUBLIC_URL}/callback"
else:
    STRAVA_REDIRECT_URI = f"http://localhost:{PORT}/callback"


# Token storage --------------------------------------------------------------
TOKEN_STORE_BACKEND = os.getenv("TOKEN_STORE_BACKEND", "http").strip().lower()
if TOKEN_STORE_BACKEND not in {"http", "sqlite", "memory"}:
    raise RuntimeError("TOKEN_STORE_BACKEND must be 'http', 'sqlite' or 'memory'")

TOKEN_STORE_URL = os.getenv("TOKEN_STORE_URL", "").rstrip("/")
if TOKEN_STORE_BACKEND == "http" and not TOKEN_STORE_URL:
    raise RuntimeError("TOKEN_STORE_URL is required when TOKEN_STORE_BACKEND=http")

DATABASE_URL = os.getenv("DATABASE_URL", "")

HTTP_TIMEOUT = _env_float("HTTP_TIMEOUT", 10.0)
TOKEN_REFRESH_MARGIN = _env_int("TOKEN_REFRESH_MARGIN", 0)
REFRESH_FALLBACK_SIZE = _env_int("REFRESH_FALLBACK_SIZE", 128)


# User identification --------------------------------------------------------
USER_ID_STRATEGY = os.getenv("USER_ID_STRATEGY", "session").strip().lower()
if USER_ID_STRATEGY not in {"session", "fixed", "path"}:
    raise RuntimeError("USER_ID_STRATEGY must be 'session', 'fixed' or 'path'")

DEFAULT_USER_ID: Optional[str] = os.getenv("DEFAULT_USER_ID") or None
if USER_ID_STRATEGY == "fixed" and not DEFAULT_USER_ID:
    raise RuntimeError("DEFAULT_USER_ID is required when USER_ID_STRATEGY=fixed")


# Application security -------------------------------------------------------
SECRET_KEY = _require_env("SECRET_KEY")

_local_dev_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    f"http://localhost:{PORT}",
    f"http://127.0.0.1:{PORT}",
]

ALLOWED_CORS_ORIGINS = _unique(
    [
        *_split_csv(os.getenv("ALLOWED_CORS_ORIGINS")),
        *_local_dev_origins,
    ]
)

COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
COOKIE_SECURE = _env_bool("COOKIE_SECURE", ENVIRONMENT == "production")
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")


__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DATABASE_URL",
    "DEFAULT_USER_ID",
    "ENVIRONMENT",
    "HTTP_TIMEOUT",
    "LOG_LEVEL",
    "PORT",
    "PUBLIC_URL",
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
]
