"""Translate broker errors into JSON responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..services import BrokerError

logger = logging.getLogger(__name__)


async def broker_error_handler(request: Request, exc: BrokerError) -> JSONResponse:
    log = logger.warning if exc.status_code >= 500 else logger.info
    log("%s %s -> %s: %s", request.method, request.url.path, exc.kind, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BrokerError, broker_error_handler)


__all__ = ["broker_error_handler", "register_error_handlers"]
