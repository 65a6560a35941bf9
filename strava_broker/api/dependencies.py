"""FastAPI dependencies shared across routers."""

from __future__ import annotations

from fastapi import Depends, Request

from ..services import InvalidInput, ResourceProxy, StravaClient, TokenLifecycleEngine
from .identity import UserResolver


def get_engine(request: Request) -> TokenLifecycleEngine:
    return request.app.state.engine


def get_proxy(request: Request) -> ResourceProxy:
    return request.app.state.proxy


def get_strava(request: Request) -> StravaClient:
    return request.app.state.strava


def get_resolver(request: Request) -> UserResolver:
    return request.app.state.resolver


def current_user_id(
    request: Request, resolver: UserResolver = Depends(get_resolver)
) -> str:
    """Resolve the acting user or fail with ``InvalidInput``."""

    user_id = resolver.resolve(request)
    if not user_id:
        raise InvalidInput("You need to authenticate first by visiting the home page.")
    return user_id


__all__ = ["current_user_id", "get_engine", "get_proxy", "get_resolver", "get_strava"]
