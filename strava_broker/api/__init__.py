"""API assembly helpers."""

from __future__ import annotations

from fastapi import FastAPI

from .errors import register_error_handlers
from .routers import ALL_ROUTERS, USER_SCOPED_ROUTERS


def register_routes(app: FastAPI, *, path_scoped: bool = False) -> None:
    """Attach all application routers to the given app.

    With ``path_scoped`` the resource routes are also served under
    ``/users/{user_id}`` for the path-based user strategy.
    """

    for router in ALL_ROUTERS:
        app.include_router(router)
    if path_scoped:
        for router in USER_SCOPED_ROUTERS:
            app.include_router(router, prefix="/users/{user_id}")
    register_error_handlers(app)


__all__ = ["register_routes"]
