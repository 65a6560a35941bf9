"""FastAPI application factory and configuration."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import SQLModel
from starlette.middleware.sessions import SessionMiddleware

from . import models  # noqa: F401 - ensure models are registered with SQLModel
from .api import register_routes
from .api.identity import UserResolver, build_resolver
from .core import (
    ALLOWED_CORS_ORIGINS,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    DEFAULT_USER_ID,
    HTTP_TIMEOUT,
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
    configure_logging,
    engine as db_engine,
)
from .services import (
    HttpTokenStore,
    InMemoryTokenStore,
    ResourceProxy,
    SqlTokenStore,
    StravaClient,
    TokenLifecycleEngine,
    TokenStore,
)

logger = logging.getLogger(__name__)


def build_token_store(backend: str = TOKEN_STORE_BACKEND) -> TokenStore:
    if backend == "sqlite":
        return SqlTokenStore(db_engine)
    if backend == "memory":
        return InMemoryTokenStore()
    return HttpTokenStore(TOKEN_STORE_URL, timeout=HTTP_TIMEOUT)


def build_strava_client() -> StravaClient:
    return StravaClient(
        STRAVA_CLIENT_ID,
        STRAVA_CLIENT_SECRET,
        STRAVA_REDIRECT_URI,
        scopes=STRAVA_SCOPES,
        timeout=HTTP_TIMEOUT,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    if isinstance(app.state.engine.store, SqlTokenStore):
        SQLModel.metadata.create_all(app.state.engine.store.engine)
    logger.info(
        "Token broker ready (store=%s, users=%s)",
        type(app.state.engine.store).__name__,
        USER_ID_STRATEGY,
    )
    yield


def create_app(
    *,
    store: Optional[TokenStore] = None,
    strava: Optional[StravaClient] = None,
    resolver: Optional[UserResolver] = None,
    path_scoped: Optional[bool] = None,
) -> FastAPI:
    configure_logging()
    app = FastAPI(title="Strava Token Broker", version="0.3.0", lifespan=lifespan)

    if strava is None:
        strava = build_strava_client()
    if store is None:
        store = build_token_store()
    token_engine = TokenLifecycleEngine(
        store,
        strava,
        refresh_margin=TOKEN_REFRESH_MARGIN,
        fallback_size=REFRESH_FALLBACK_SIZE,
    )
    app.state.strava = strava
    app.state.engine = token_engine
    app.state.proxy = ResourceProxy(token_engine, strava)
    app.state.resolver = resolver or build_resolver(USER_ID_STRATEGY, DEFAULT_USER_ID)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=SECRET_KEY,
        session_cookie="sid",
        https_only=COOKIE_SECURE,
        same_site=COOKIE_SAMESITE,
        domain=COOKIE_DOMAIN,
    )

    if path_scoped is None:
        path_scoped = USER_ID_STRATEGY == "path"
    register_routes(app, path_scoped=path_scoped)
    return app


def main() -> None:
    import uvicorn

    uvicorn.run("strava_broker.app:create_app", factory=True, host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    main()
