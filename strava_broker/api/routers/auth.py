"""Strava OAuth login and callback routes."""

from __future__ import annotations

from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse

from ...services import StravaClient, TokenLifecycleEngine
from ..dependencies import get_engine, get_strava
from ..identity import SESSION_USER_KEY

router = APIRouter(tags=["auth"])


@router.get("/", response_class=HTMLResponse)
def index(strava: StravaClient = Depends(get_strava)) -> HTMLResponse:
    """Landing page with a login link."""

    return HTMLResponse(f'<a href="{escape(strava.auth_url())}">Login with Strava</a>')


@router.get("/login")
def login(strava: StravaClient = Depends(get_strava)) -> RedirectResponse:
    return RedirectResponse(strava.auth_url())


@router.get("/callback")
async def callback(
    request: Request,
    code: Optional[str] = None,
    error: Optional[str] = None,
    engine: TokenLifecycleEngine = Depends(get_engine),
):
    """Handle OAuth callback from Strava."""

    if error:
        raise HTTPException(400, detail=f"Strava error: {error}")
    if not code:
        raise HTTPException(400, detail="Authorization code is required")

    record = await engine.authorize(code)
    request.session[SESSION_USER_KEY] = record.user_id
    return {
        "ok": True,
        "user_id": record.user_id,
        "message": "Authentication successful! You can now use the API.",
    }


@router.post("/logout")
def logout(request: Request) -> JSONResponse:
    request.session.pop(SESSION_USER_KEY, None)
    return JSONResponse({"ok": True})


__all__ = ["router"]
