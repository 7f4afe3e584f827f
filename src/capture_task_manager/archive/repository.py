"""SQLite persistence for follow-up archive tasks and upload statistics."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.pool import NullPool
from sqlmodel import Session, SQLModel, col, create_engine, select

from capture_task_manager.archive.models import UploadStatsRecord
from capture_task_manager.archive.storage_models import (
    TASK_STATUS_DONE,
    TASK_STATUS_QUEUED,
    ArchiveUpdateTask,
    ArchiveUploadStat,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ArchiveUpdateTaskView:
    """Readable follow-up task view for CLI output."""

    task_id: int
    dataset_name: str
    subdirectory: str
    source_job: int
    status: str
    created_at: datetime


@dataclass(slots=True)
class UploadStatsView:
    """Readable upload attempt view for CLI output."""

    stat_id: int
    record: UploadStatsRecord
    created_at: datetime


class ArchiveRepository:
    """Task queue and upload stats sink backed by SQLModel + SQLite."""

    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = _archive_engine(db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def init_schema(self) -> None:
        SQLModel.metadata.create_all(
            self.engine,
            tables=[
                ArchiveUpdateTask.__table__,  # type: ignore[attr-defined]
                ArchiveUploadStat.__table__,  # type: ignore[attr-defined]
            ],
        )

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()

    def enqueue_archive_update(self, *, dataset_name: str, subdirectory: str, job: int) -> bool:
        """Queue an archive update for one dataset subdirectory.

        Returns false when the same dataset subdirectory is already queued.
        """

        with Session(self.engine) as session:
            existing = session.exec(
                select(ArchiveUpdateTask).where(
                    ArchiveUpdateTask.dataset_name == dataset_name,
                    ArchiveUpdateTask.subdirectory == subdirectory,
                    ArchiveUpdateTask.status == TASK_STATUS_QUEUED,
                ),
            ).first()
            if existing is not None:
                logger.info(
                    "Archive update already queued for dataset %s, subdirectory %s (task %s)",
                    dataset_name,
                    subdirectory,
                    existing.task_id,
                )
                return False

            session.add(
                ArchiveUpdateTask(
                    dataset_name=dataset_name,
                    subdirectory=subdirectory,
                    source_job=job,
                    status=TASK_STATUS_QUEUED,
                    created_at=datetime.now(tz=UTC),
                ),
            )
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                return False
        logger.info(
            "Queued archive update for dataset %s, subdirectory %s",
            dataset_name,
            subdirectory,
        )
        return True

    def complete_task(self, task_id: int) -> bool:
        with Session(self.engine) as session:
            row = session.get(ArchiveUpdateTask, task_id)
            if row is None or row.status != TASK_STATUS_QUEUED:
                return False
            row.status = TASK_STATUS_DONE
            session.add(row)
            session.commit()
        return True

    def list_tasks(
        self,
        *,
        status: str | None = None,
        limit: int = 50,
    ) -> list[ArchiveUpdateTaskView]:
        statement = select(ArchiveUpdateTask)
        if status is not None:
            statement = statement.where(ArchiveUpdateTask.status == status)
        statement = statement.order_by(col(ArchiveUpdateTask.task_id).desc()).limit(limit)
        with Session(self.engine) as session:
            rows = session.exec(statement).all()
            return [
                ArchiveUpdateTaskView(
                    task_id=row.task_id or 0,
                    dataset_name=row.dataset_name,
                    subdirectory=row.subdirectory,
                    source_job=row.source_job,
                    status=row.status,
                    created_at=row.created_at,
                )
                for row in rows
            ]

    def store_upload_stats(self, record: UploadStatsRecord) -> None:
        with Session(self.engine) as session:
            session.add(
                ArchiveUploadStat(
                    dataset_name=record.dataset_name,
                    job=record.job,
                    file_count_new=record.file_count_new,
                    file_count_updated=record.file_count_updated,
                    bytes_uploaded=record.bytes_uploaded,
                    elapsed_seconds=record.elapsed_seconds,
                    status_uri=record.status_uri,
                    error_code=record.error_code,
                    created_at=datetime.now(tz=UTC),
                ),
            )
            session.commit()

    def list_upload_stats(
        self,
        *,
        dataset_name: str | None = None,
        limit: int = 50,
    ) -> list[UploadStatsView]:
        statement = select(ArchiveUploadStat)
        if dataset_name is not None:
            statement = statement.where(ArchiveUploadStat.dataset_name == dataset_name)
        statement = statement.order_by(col(ArchiveUploadStat.stat_id).desc()).limit(limit)
        with Session(self.engine) as session:
            rows = session.exec(statement).all()
            return [
                UploadStatsView(
                    stat_id=row.stat_id or 0,
                    record=UploadStatsRecord(
                        dataset_name=row.dataset_name,
                        job=row.job,
                        file_count_new=row.file_count_new,
                        file_count_updated=row.file_count_updated,
                        bytes_uploaded=row.bytes_uploaded,
                        elapsed_seconds=row.elapsed_seconds,
                        status_uri=row.status_uri,
                        error_code=row.error_code,
                    ),
                    created_at=row.created_at,
                )
                for row in rows
            ]


def _archive_engine(db_path: Path, *, busy_timeout_ms: int) -> Engine:
    """SQLite engine shared by the CLI and the archive step; one connection per session."""

    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={
            "check_same_thread": False,
            "timeout": max(1.0, busy_timeout_ms / 1000.0),
        },
        poolclass=NullPool,
    )

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection: sqlite3.Connection, _connection_record: object) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode = WAL")
        cursor.execute(f"PRAGMA busy_timeout = {max(1, busy_timeout_ms)}")
        cursor.close()

    return engine
