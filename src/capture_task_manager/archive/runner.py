"""Archive step tool: compress duplicate methods, upload, and close out the task."""

from __future__ import annotations

import logging
from pathlib import Path

from capture_task_manager.archive.compressor import DuplicateMethodCompressor
from capture_task_manager.archive.models import (
    CloseoutType,
    EvalCode,
    ToolResult,
    UploadDebugMode,
    UploadOutcome,
    UploadRequest,
    UploadState,
)
from capture_task_manager.archive.orchestrator import UploadOrchestrator
from capture_task_manager.archive.uploader import ArchiveTaskQueue, ArchiveUploader, UploadStatsSink
from capture_task_manager.capture.models import TaskDescriptor
from capture_task_manager.config import PERSPECTIVE_CLIENT, Settings

logger = logging.getLogger(__name__)


def dataset_directory_path(task: TaskDescriptor, *, perspective: str) -> Path:
    """Storage server path of the dataset directory, as seen from the given perspective."""

    volume = task.storage_vol_external if perspective == PERSPECTIVE_CLIENT else task.storage_vol
    parts = [part for part in task.storage_path.replace("\\", "/").split("/") if part]
    return Path(volume).joinpath(*parts, task.dataset_directory or task.dataset_name)


def debug_mode_for(task: TaskDescriptor) -> UploadDebugMode:
    if task.debug_test_tar:
        return UploadDebugMode.CREATE_TAR_LOCAL
    if task.archive_offline:
        return UploadDebugMode.OFFLINE
    return UploadDebugMode.DISABLED


class ArchiveTaskRunner:
    """Run the dataset archive step for one task descriptor."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        settings: Settings,
        uploader: ArchiveUploader,
        task_queue: ArchiveTaskQueue | None = None,
        stats_sink: UploadStatsSink | None = None,
        compressor: DuplicateMethodCompressor | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self.settings = settings
        self._logger = log or logger
        self.compressor = compressor or DuplicateMethodCompressor(log=self._logger)
        self.orchestrator = UploadOrchestrator(
            uploader=uploader,
            task_queue=task_queue,
            stats_sink=stats_sink,
            retry_delay_seconds=settings.archive.retry_delay_seconds,
            large_dataset_threshold_gb=settings.archive.large_dataset_threshold_gb,
            log=self._logger,
        )

    def cancel(self) -> None:
        self.orchestrator.cancel()

    def run(self, task: TaskDescriptor) -> ToolResult:
        dataset_path = dataset_directory_path(task, perspective=self.settings.capture.perspective)
        if not dataset_path.is_dir():
            message = f"Dataset directory {dataset_path} not found"
            self._logger.error("Archive failed, dataset %s; %s", task.dataset_name, message)
            return ToolResult(
                closeout=CloseoutType.FAILED,
                eval_code=EvalCode.FAILURE_DO_NOT_RETRY,
                message=message,
            )

        if self.settings.archive.compress_duplicate_methods:
            report = self.compressor.scan_and_compress(dataset_path)
            if not report.ok:
                # Files survive as originals or in a verified zip; upload what is there.
                self._logger.warning(
                    "Duplicate method compression failed for %s; uploading uncompressed: %s",
                    task.dataset_name,
                    report.error_message,
                )

        outcome = self.orchestrator.attempt_upload(
            UploadRequest(
                dataset_name=task.dataset_name,
                dataset_directory=dataset_path,
                job=task.job,
                dataset_id=task.dataset_id,
                operator_username=task.operator_username or "Unknown_Operator",
                ignore_max_file_limit=task.ignore_max_file_limit,
            ),
            max_attempts=self.settings.archive.max_upload_attempts,
            debug_mode=debug_mode_for(task),
        )
        return tool_result_for(outcome)


def tool_result_for(outcome: UploadOutcome) -> ToolResult:
    """Map a terminal upload outcome to the step tool closeout."""

    if outcome.state == UploadState.SUCCEEDED:
        eval_code = (
            EvalCode.ARCHIVE_ALREADY_UP_TO_DATE
            if outcome.already_up_to_date
            else EvalCode.SUBMITTED_TO_ARCHIVE
        )
        return ToolResult(
            closeout=CloseoutType.SUCCESS,
            eval_code=eval_code,
            message=outcome.warning_message,
            outcome=outcome,
        )

    message = outcome.error_message or outcome.warning_message or "Archive upload failed"
    if outcome.state == UploadState.FAILED_FATAL or not outcome.allow_retry:
        return ToolResult(
            closeout=CloseoutType.FAILED,
            eval_code=EvalCode.FAILURE_DO_NOT_RETRY,
            message=message,
            outcome=outcome,
        )
    return ToolResult(closeout=CloseoutType.FAILED, message=message, outcome=outcome)
