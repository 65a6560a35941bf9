"""Read-only Strava resource routes."""

from __future__ import annotations

from typing import Any, Tuple

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from ...services import ResourceProxy
from ..dependencies import current_user_id, get_proxy

router = APIRouter(tags=["strava"])


def _relay(result: Tuple[int, Any]) -> JSONResponse:
    status_code, body = result
    return JSONResponse(status_code=status_code, content=body)


@router.get("/activities")
async def activities(
    page: int = Query(1, ge=1),
    per_page: int = Query(30, ge=1, le=200),
    current_user: str = Depends(current_user_id),
    proxy: ResourceProxy = Depends(get_proxy),
) -> JSONResponse:
    return _relay(await proxy.list_activities(current_user, page=page, per_page=per_page))


@router.get("/activities/{activity_id}")
async def activity(
    activity_id: int,
    current_user: str = Depends(current_user_id),
    proxy: ResourceProxy = Depends(get_proxy),
) -> JSONResponse:
    return _relay(await proxy.get_activity(current_user, activity_id))


@router.get("/athlete")
async def athlete(
    current_user: str = Depends(current_user_id),
    proxy: ResourceProxy = Depends(get_proxy),
) -> JSONResponse:
    return _relay(await proxy.get_athlete(current_user))


@router.get("/athlete/stats")
async def athlete_stats(
    current_user: str = Depends(current_user_id),
    proxy: ResourceProxy = Depends(get_proxy),
) -> JSONResponse:
    return _relay(await proxy.get_athlete_stats(current_user))


__all__ = ["router"]
