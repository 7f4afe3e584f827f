"""Controllers for archive CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from capture_task_manager.archive.compressor import DuplicateMethodCompressor
from capture_task_manager.archive.repository import ArchiveRepository
from capture_task_manager.archive.runner import ArchiveTaskRunner
from capture_task_manager.archive.status_check import IngestStatusChecker, IngestStep
from capture_task_manager.archive.uploader import LocalTarUploader
from capture_task_manager.capture.models import TaskDescriptor
from capture_task_manager.config import Settings


@dataclass(slots=True)
class CompressMethodsCommand:
    """CLI inputs for duplicate method compression command."""

    dataset_dir: Path


@dataclass(slots=True)
class LocalTarCommand:
    """CLI inputs for local bundle upload command."""

    db_path: Path | None
    dataset: str
    storage_vol: str
    storage_path: str
    directory: str | None
    job: int
    output_dir: Path | None
    offline: bool


@dataclass(slots=True)
class ArchiveTasksCommand:
    """CLI inputs for follow-up task listing command."""

    db_path: Path | None
    status: str | None
    limit: int


@dataclass(slots=True)
class IngestStatusCommand:
    """CLI inputs for ingest status command."""

    status_uri: str
    step: str


@dataclass(slots=True)
class ArchiveCommandResult:
    """Printable lines plus overall success of an archive command."""

    lines: list[str]
    success: bool


class ArchiveCliController:
    """Coordinates archive command execution."""

    def compress_methods(self, command: CompressMethodsCommand) -> ArchiveCommandResult:
        report = DuplicateMethodCompressor().scan_and_compress(command.dataset_dir)
        lines = [f"Compressed: {path}" for path in report.archives]
        lines.extend(f"Warning: {warning}" for warning in report.warnings)
        if not report.ok:
            lines.append(f"Error: {report.error_message}")
        elif not report.archives:
            lines.append("No duplicate method directories found.")
        return ArchiveCommandResult(lines=lines, success=report.ok)

    def local_tar(self, command: LocalTarCommand) -> ArchiveCommandResult:
        settings = Settings.from_env(db_path=command.db_path)
        settings.validate()
        task = TaskDescriptor(
            dataset_name=command.dataset,
            storage_vol=command.storage_vol,
            storage_vol_external=command.storage_vol,
            storage_path=command.storage_path,
            dataset_directory=command.directory or command.dataset,
            job=command.job,
            debug_test_tar=not command.offline,
            archive_offline=command.offline,
        )
        uploader = LocalTarUploader(
            output_dir=command.output_dir or settings.archive.local_tar_dir,
            max_files_to_archive=settings.archive.max_files_to_archive,
        )
        with _repository(settings) as repository:
            runner = ArchiveTaskRunner(
                settings=settings,
                uploader=uploader,
                task_queue=repository,
                stats_sink=repository,
            )
            result = runner.run(task)

        lines = [
            f"closeout={result.closeout.value} eval_code={result.eval_code.value}",
        ]
        outcome = result.outcome
        if outcome is not None:
            lines.append(
                f"state={outcome.state.value} attempts={outcome.attempts} "
                f"files_new={outcome.file_count_new} bytes={outcome.bytes_uploaded} "
                f"status_uri={outcome.status_uri or '-'}",
            )
            if outcome.warning_message:
                lines.append(f"Warning: {outcome.warning_message}")
        if result.message and (outcome is None or result.message != outcome.warning_message):
            lines.append(result.message)
        bundled = outcome is not None and outcome.file_count_new > 0 and not outcome.error_message
        return ArchiveCommandResult(lines=lines, success=result.succeeded or bundled)

    def tasks(self, command: ArchiveTasksCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            tasks = repository.list_tasks(status=command.status, limit=command.limit)
        if not tasks:
            return ["No archive update tasks found."]
        return [
            f"{task.task_id} status={task.status} dataset={task.dataset_name} "
            f"subdirectory={task.subdirectory} source_job={task.source_job} "
            f"created_at={task.created_at.isoformat()}"
            for task in tasks
        ]

    def status(self, command: IngestStatusCommand) -> ArchiveCommandResult:
        settings = Settings.from_env()
        settings.validate()
        step = IngestStep[command.step.upper()]
        with IngestStatusChecker(
            timeout_seconds=settings.status_check.timeout_seconds,
            max_retries=settings.status_check.max_retries,
        ) as checker:
            status = checker.check(command.status_uri, step)
        lines = [
            f"step={status.step.name.lower()} complete={status.complete} {status.status_message}",
        ]
        if status.error_message:
            lines.append(f"Error: {status.error_message}")
        return ArchiveCommandResult(lines=lines, success=status.complete)


@contextmanager
def _repository(settings: Settings) -> Iterator[ArchiveRepository]:
    repository = ArchiveRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()
