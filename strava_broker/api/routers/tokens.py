"""Raw token record lookup."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request

from ...core import epoch_seconds, iso_from_epoch
from ...services import TokenLifecycleEngine
from ..dependencies import get_engine, get_resolver
from ..identity import UserResolver

router = APIRouter(prefix="/tokens", tags=["tokens"])


@router.get("/{athlete_id}")
async def token_lookup(
    athlete_id: str,
    request: Request,
    engine: TokenLifecycleEngine = Depends(get_engine),
    resolver: UserResolver = Depends(get_resolver),
) -> Dict[str, Any]:
    """Report the stored record for a user.

    The refresh token is never returned; the access token only to the user it
    belongs to, and only while it is still valid.

    The path parameter is ``athlete_id``, not ``user_id``, so the path
    strategy never resolves the caller from the id being looked up.
    """

    record = await engine.lookup(athlete_id)
    if record is None:
        raise HTTPException(404, detail="No token stored for this user")

    now = epoch_seconds()
    valid = record.is_valid(now)
    body: Dict[str, Any] = {
        "user_id": record.user_id,
        "expires_at": record.expires_at,
        "expires_at_iso": iso_from_epoch(record.expires_at),
        "expires_in": record.seconds_remaining(now),
        "valid": valid,
        "scope": record.scope,
    }
    if valid and resolver.resolve(request) == record.user_id:
        body["access_token"] = record.access_token
    return body


__all__ = ["router"]
