"""SQLModel ORM tables for archive task and upload bookkeeping."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, text
from sqlmodel import Field, SQLModel

TASK_STATUS_QUEUED = "queued"
TASK_STATUS_DONE = "done"


class ArchiveUpdateTask(SQLModel, table=True):
    __tablename__ = "archive_update_tasks"  # type: ignore[bad-override]
    __table_args__ = (
        Index(
            "uq_archive_update_tasks_dataset_subdirectory_queued",
            "dataset_name",
            "subdirectory",
            unique=True,
            sqlite_where=text("status = 'queued'"),
        ),
    )

    task_id: int | None = Field(default=None, primary_key=True)
    dataset_name: str = Field(index=True)
    subdirectory: str
    source_job: int = Field(default=0)
    status: str = Field(default=TASK_STATUS_QUEUED, index=True)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ArchiveUploadStat(SQLModel, table=True):
    __tablename__ = "archive_upload_stats"  # type: ignore[bad-override]

    stat_id: int | None = Field(default=None, primary_key=True)
    dataset_name: str = Field(index=True)
    job: int = Field(default=0, index=True)
    file_count_new: int = Field(default=0)
    file_count_updated: int = Field(default=0)
    bytes_uploaded: int = Field(default=0)
    elapsed_seconds: float = Field(default=0.0)
    status_uri: str = Field(default="")
    error_code: int = Field(default=0)
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
