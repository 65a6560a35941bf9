"""Strategies for working out which user a request is acting for."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from fastapi import Request

SESSION_USER_KEY = "user_id"


@runtime_checkable
class UserResolver(Protocol):
    def resolve(self, request: Request) -> Optional[str]: ...


class FixedUserResolver:
    """Always the same user; single-athlete deployments."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id

    def resolve(self, request: Request) -> Optional[str]:
        return self.user_id


class PathUserResolver:
    def __init__(self, param: str = "user_id") -> None:
        self.param = param

    def resolve(self, request: Request) -> Optional[str]:
        value = request.path_params.get(self.param)
        return str(value) if value else None


class SessionUserResolver:
    """Reads the id the OAuth callback wrote into the signed session cookie."""

    def __init__(self, key: str = SESSION_USER_KEY) -> None:
        self.key = key

    def resolve(self, request: Request) -> Optional[str]:
        value = request.session.get(self.key)
        return str(value) if value else None


class ChainedUserResolver:
    def __init__(self, *resolvers: UserResolver) -> None:
        self.resolvers = resolvers

    def resolve(self, request: Request) -> Optional[str]:
        for resolver in self.resolvers:
            user_id = resolver.resolve(request)
            if user_id:
                return user_id
        return None


def build_resolver(strategy: str, default_user_id: Optional[str] = None) -> UserResolver:
    if strategy == "fixed":
        if not default_user_id:
            raise ValueError("the fixed strategy needs a default user id")
        return FixedUserResolver(default_user_id)

    if strategy == "path":
        primary: UserResolver = PathUserResolver()
    elif strategy == "session":
        primary = SessionUserResolver()
    else:
        raise ValueError(f"unknown user id strategy: {strategy}")

    if default_user_id:
        return ChainedUserResolver(primary, FixedUserResolver(default_user_id))
    return primary


__all__ = [
    "ChainedUserResolver",
    "FixedUserResolver",
    "PathUserResolver",
    "SESSION_USER_KEY",
    "SessionUserResolver",
    "UserResolver",
    "build_resolver",
]
