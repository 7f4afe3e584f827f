"""Controllers for capture CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from capture_task_manager.capture.rename import RenameOps
from capture_task_manager.capture.resolver import DatasetFileSearchTool
from capture_task_manager.capture.share_paths import reconcile
from capture_task_manager.config import Settings
from capture_task_manager.taxonomy import classify_instrument


@dataclass(slots=True)
class ResolveCommand:
    """CLI inputs for dataset resolve command."""

    source_dir: Path
    dataset: str
    instrument_class: str | None
    directories_first: bool


@dataclass(slots=True)
class ReconcilePathCommand:
    """CLI inputs for share path reconciliation command."""

    share_root: str
    source_path: str
    capture_subdirectory: str


@dataclass(slots=True)
class RenameCommand:
    """CLI inputs for source rename command."""

    source_dir: Path
    dataset: str
    instrument_file_hash: str


@dataclass(slots=True)
class CaptureCommandResult:
    """Printable lines plus overall success of a capture command."""

    lines: list[str]
    success: bool


class CaptureCliController:
    """Coordinates capture command execution."""

    def resolve(self, command: ResolveCommand) -> CaptureCommandResult:
        settings = Settings.from_env()
        settings.validate()
        tool = DatasetFileSearchTool(trace_mode=settings.capture.trace_mode)

        if command.instrument_class:
            instrument_class = classify_instrument(command.instrument_class)
            result = tool.find_dataset_file_or_directory(
                command.source_dir,
                command.dataset,
                instrument_class,
            )
        else:
            result = tool.resolve(
                command.source_dir,
                command.dataset,
                search_files_first=not command.directories_first,
            )

        if not result.source_directory_exists:
            return CaptureCommandResult(
                lines=[f"Source directory not found: {command.source_dir}"],
                success=False,
            )

        info = result.dataset_info
        lines = [
            f"dataset={info.dataset_name} type={info.dataset_type.value} "
            f"name={info.file_or_directory_name or '-'} files={info.file_count} "
            f"related={len(info.related_files)}",
        ]
        lines.extend(f"  file: {path.name}" for path in info.file_list)
        lines.extend(f"  related: {path.name}" for path in info.related_files)
        if not result.found:
            lines.append(f"Dataset {command.dataset} not found in {command.source_dir}")
        return CaptureCommandResult(lines=lines, success=result.found)

    def reconcile_path(self, command: ReconcilePathCommand) -> list[str]:
        reconciled = reconcile(
            command.share_root,
            command.source_path,
            command.capture_subdirectory,
        )
        return [
            f"source_path={reconciled.source_path} "
            f"capture_subdirectory={reconciled.capture_subdirectory} "
            f"changed={reconciled.changed}",
        ]

    def rename(self, command: RenameCommand) -> CaptureCommandResult:
        settings = Settings.from_env()
        settings.validate()
        ops = RenameOps(search_tool=DatasetFileSearchTool(trace_mode=settings.capture.trace_mode))
        result = ops.rename_dataset(
            command.source_dir,
            command.dataset,
            instrument_file_hash=command.instrument_file_hash,
        )
        if result.already_renamed:
            return CaptureCommandResult(
                lines=[f"Dataset {command.dataset} was already renamed."],
                success=True,
            )
        if not result.success:
            return CaptureCommandResult(lines=[result.error_message], success=False)
        return CaptureCommandResult(
            lines=[f"Renamed: {path.name}" for path in result.renamed],
            success=True,
        )
