from __future__ import annotations

import os

from sqlalchemy import event, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import create_engine

# The default store lives in process memory and vanishes with the process.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite://")

_MEMORY_URLS = {"sqlite://", "sqlite:///:memory:"}


def _enable_foreign_keys(dbapi_connection: object, _connection_record: object) -> None:
    cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(url: str | None = None) -> Engine:
    resolved = url or DATABASE_URL
    if not resolved.startswith("sqlite"):
        return create_engine(resolved, pool_pre_ping=True)

    if resolved in _MEMORY_URLS:
        # One shared connection, otherwise every checkout sees an empty database.
        engine = create_engine(
            resolved,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(resolved, connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _enable_foreign_keys)
    return engine


def check_db_ready(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
