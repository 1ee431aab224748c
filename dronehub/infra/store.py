from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, SQLModel, select

from dronehub.domain.models import (
    LOG_RETENTION,
    ControlStation,
    DockingStation,
    Drone,
    LogEntry,
    Project,
    ProjectMember,
    User,
)
from dronehub.infra.db import check_db_ready, create_store_engine

logger = logging.getLogger(__name__)

# Children before parents so foreign keys never block a wipe.
_TABLES_IN_DELETE_ORDER: tuple[type[SQLModel], ...] = (
    ProjectMember,
    Drone,
    ControlStation,
    DockingStation,
    Project,
    User,
    LogEntry,
)


class StoreError(Exception):
    pass


class DuplicateKeyError(StoreError):
    pass


class EntityStore:
    """Process-lifetime home of every fleet collection and the log sequence.

    All access goes through :meth:`session`, which holds one re-entrant lock
    for the whole unit of work. Every service operation therefore runs to
    completion before the next mutation starts, and a failed commit rolls the
    whole operation back.
    """

    def __init__(self, engine: Engine | None = None, *, log_retention: int = LOG_RETENTION) -> None:
        if log_retention < 1:
            raise ValueError("log_retention must be positive")
        self._engine = engine if engine is not None else create_store_engine()
        self._lock = threading.RLock()
        self.log_retention = log_retention
        self.initialized = False
        SQLModel.metadata.create_all(self._engine)

    @contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the store lock across several service calls.

        Sessions opened inside are still sequential; never nest an open
        session inside another one.
        """
        with self._lock:
            yield

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._lock:
            with Session(self._engine, expire_on_commit=False) as session:
                yield session

    def commit(self, session: Session, conflict_message: str) -> None:
        try:
            session.commit()
        except IntegrityError as exc:
            session.rollback()
            raise DuplicateKeyError(conflict_message) from exc

    def is_empty(self) -> bool:
        with self.session() as session:
            for model in (Drone, Project, User):
                if session.exec(select(model.id).limit(1)).first() is not None:
                    return False
        return True

    def counts(self) -> dict[str, int]:
        with self.session() as session:
            return {
                str(model.__tablename__): int(
                    session.execute(sa.select(sa.func.count()).select_from(model)).scalar_one()
                )
                for model in _TABLES_IN_DELETE_ORDER
            }

    def clear(self) -> None:
        with self.session() as session:
            for model in _TABLES_IN_DELETE_ORDER:
                session.execute(sa.delete(model))
            session.commit()
        logger.info("entity store cleared")

    def ready(self) -> bool:
        return check_db_ready(self._engine)
