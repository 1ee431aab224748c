from __future__ import annotations

from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Session, select

from dronehub.domain.models import LogEntry, LogRead, LogSeverity, LogType, row_payload
from dronehub.infra.store import EntityStore


def log_read(entry: LogEntry) -> LogRead:
    return LogRead.model_validate(row_payload(entry))


class LogService:
    """Append-only device and system log, newest entries returned first."""

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    def _trim(self, session: Session) -> None:
        # Keep the newest `log_retention` entries by insertion order.
        cutoff = session.exec(
            select(LogEntry.seq).order_by(LogEntry.seq.desc()).offset(self._store.log_retention).limit(1)  # type: ignore[union-attr]
        ).first()
        if cutoff is not None:
            session.execute(sa.delete(LogEntry).where(LogEntry.seq <= cutoff))

    def stage_log(
        self,
        session: Session,
        *,
        log_type: LogType,
        source: str,
        message: str,
        raw_message: str | None = None,
        data: dict[str, Any] | None = None,
        severity: LogSeverity = LogSeverity.INFO,
    ) -> LogEntry:
        """Append and trim inside an open session; the caller commits."""
        entry = LogEntry(
            type=log_type,
            source=source,
            message=message,
            raw_message=raw_message,
            data=dict(data or {}),
            severity=severity,
        )
        self._stage(session, entry)
        return entry

    def create_log(
        self,
        *,
        log_type: LogType,
        source: str,
        message: str,
        raw_message: str | None = None,
        data: dict[str, Any] | None = None,
        severity: LogSeverity = LogSeverity.INFO,
    ) -> LogRead:
        with self._store.session() as session:
            entry = self.stage_log(
                session,
                log_type=log_type,
                source=source,
                message=message,
                raw_message=raw_message,
                data=data,
                severity=severity,
            )
            session.commit()
            return log_read(entry)

    def restore_log(self, snapshot: LogRead) -> LogRead:
        """Append a log entry carried over from a snapshot, keeping its id and timestamp."""
        return self._append(
            LogEntry(
                id=snapshot.id,
                type=snapshot.type,
                source=snapshot.source,
                message=snapshot.message,
                raw_message=snapshot.raw_message,
                data=dict(snapshot.data),
                severity=snapshot.severity,
                timestamp=snapshot.timestamp,
            )
        )

    def _stage(self, session: Session, entry: LogEntry) -> None:
        session.add(entry)
        session.flush()
        self._trim(session)

    def _append(self, entry: LogEntry) -> LogRead:
        with self._store.session() as session:
            self._stage(session, entry)
            session.commit()
            return log_read(entry)

    def _list(self, *conditions: Any) -> list[LogRead]:
        statement = select(LogEntry)
        for condition in conditions:
            statement = statement.where(condition)
        with self._store.session() as session:
            rows = session.exec(statement.order_by(LogEntry.seq.desc())).all()  # type: ignore[union-attr]
            return [log_read(item) for item in rows]

    def list_logs(self) -> list[LogRead]:
        return self._list()

    def list_logs_by_type(self, log_type: LogType) -> list[LogRead]:
        return self._list(LogEntry.type == log_type)

    def list_logs_by_source(self, source: str) -> list[LogRead]:
        return self._list(LogEntry.source == source)
