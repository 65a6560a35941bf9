"""Database configuration and session helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator

from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from .config import DATABASE_URL

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_DATA_DIR = _PROJECT_ROOT / "data"


def _database_url() -> str:
    if DATABASE_URL:
        return DATABASE_URL
    _DATA_DIR.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{_DATA_DIR / 'tokens.db'}"


_URL = _database_url()
_IN_MEMORY = _URL in ("sqlite://", "sqlite:///:memory:")
engine = create_engine(
    _URL,
    connect_args={"check_same_thread": False} if _URL.startswith("sqlite") else {},
    # One shared connection, so store calls on worker threads see the same tables.
    **({"poolclass": StaticPool} if _IN_MEMORY else {}),
)


def get_session() -> Iterator[Session]:
    """Yield a database session bound to the shared engine."""

    with Session(engine) as session:
        yield session


__all__ = ["engine", "get_session"]
