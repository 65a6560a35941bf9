"""Clock helpers."""

from __future__ import annotations

import time
from datetime import datetime, timezone

# Anything above this is a millisecond timestamp (year 5138 in seconds).
_MILLISECOND_THRESHOLD = 10**11


def utcnow() -> datetime:
    """Return the current UTC datetime."""

    return datetime.now(timezone.utc)


def epoch_seconds() -> int:
    """Return the current Unix time in whole seconds."""

    return int(time.time())


def as_epoch_seconds(value: int | float | str) -> int:
    """Coerce a provider ``expires_at`` value to whole seconds since the epoch."""

    seconds = int(float(value))
    if seconds > _MILLISECOND_THRESHOLD:
        seconds //= 1000
    return seconds


def iso_from_epoch(value: int) -> str:
    return datetime.fromtimestamp(value, tz=timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = ["as_epoch_seconds", "epoch_seconds", "iso_from_epoch", "utcnow"]
