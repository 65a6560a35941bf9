"""Aggregate API routers."""

from fastapi import APIRouter

from .auth import router as auth_router
from .strava import router as strava_router
from .system import router as system_router
from .tokens import router as tokens_router

ALL_ROUTERS: tuple[APIRouter, ...] = (
    system_router,
    auth_router,
    strava_router,
    tokens_router,
)

USER_SCOPED_ROUTERS: tuple[APIRouter, ...] = (strava_router,)

__all__ = ["ALL_ROUTERS", "USER_SCOPED_ROUTERS"]
