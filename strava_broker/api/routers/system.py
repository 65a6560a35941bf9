"""System-level API endpoints."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from ...core import HTTP_TIMEOUT, TOKEN_STORE_BACKEND, USER_ID_STRATEGY
from ...services import StravaClient
from ..dependencies import get_strava

router = APIRouter(tags=["system"])


@router.get("/health")
def health() -> Dict[str, bool]:
    """Simple readiness check."""

    return {"ok": True}


@router.get("/debug-config")
def debug_config(strava: StravaClient = Depends(get_strava)) -> Dict[str, Any]:
    """Debug configuration (no secrets)."""

    return {
        "client_id": strava.client_id,
        "redirect_uri": strava.redirect_uri,
        "scopes": strava.scopes,
        "token_store_backend": TOKEN_STORE_BACKEND,
        "user_id_strategy": USER_ID_STRATEGY,
        "http_timeout": HTTP_TIMEOUT,
        "auth_url": strava.auth_url("test"),
    }


__all__ = ["router"]
