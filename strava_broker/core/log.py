"""Logging setup shared by the app and the CLI entry point."""

from __future__ import annotations

import logging
import sys

from .config import LOG_LEVEL

_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s - %(message)s"


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=_FORMAT,
        stream=sys.stdout,
    )
    for noisy in ("httpcore", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


__all__ = ["configure_logging"]
