"""Bounded-retry archive upload state machine.

An upload moves from ``IDLE`` to ``UPLOADING`` and ends in ``SUCCEEDED``,
``FAILED_RETRYABLE``, ``FAILED_FATAL`` or ``CANCELED``. Fatal failures stop the
retry loop immediately because they recur identically: missing source
directory, operator unknown to EUS, too many files, or a dataset over the
large-dataset threshold. Debug modes never upload and always stop after one
attempt. Success requires both the uploader's report and the upload-completed
acknowledgement delivered through ``UploadRequest.on_upload_completed``.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time

from capture_task_manager.archive.failure_classifier import (
    classify_upload_exception,
    exceeds_large_dataset_threshold,
)
from capture_task_manager.archive.models import (
    CRITICAL_UPLOAD_ERROR,
    DEBUG_MODE_WARNING,
    FAILED_TRANSACTION_SUFFIX,
    LARGE_DATASET_UPLOAD_ERROR,
    UNACKNOWLEDGED_UPLOAD_WARNING,
    ArchiveUploadReport,
    FailureKind,
    UploadDebugMode,
    UploadOutcome,
    UploadRequest,
    UploadState,
    UploadStatsRecord,
)
from capture_task_manager.archive.uploader import ArchiveTaskQueue, ArchiveUploader, UploadStatsSink

logger = logging.getLogger(__name__)

DEFAULT_RETRY_DELAY_SECONDS = 5.0


@dataclasses.dataclass(slots=True)
class _AttemptResult:
    success: bool
    allow_retry: bool


class UploadOrchestrator:
    """Drive one dataset upload through the archive uploader with bounded retries."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        uploader: ArchiveUploader,
        task_queue: ArchiveTaskQueue | None = None,
        stats_sink: UploadStatsSink | None = None,
        retry_delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS,
        large_dataset_threshold_gb: float = 15.0,
        log: logging.Logger | None = None,
    ) -> None:
        self.uploader = uploader
        self.task_queue = task_queue
        self.stats_sink = stats_sink
        self.retry_delay_seconds = retry_delay_seconds
        self.large_dataset_threshold_gb = large_dataset_threshold_gb
        self._logger = log or logger
        self._cancel_event = threading.Event()
        self._state = UploadState.IDLE

    @property
    def state(self) -> UploadState:
        return self._state

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Ask the running upload to stop; takes effect between attempts.

        A cancel issued while idle applies to the next upload. Each cancel stops
        one upload only.
        """

        self._cancel_event.set()

    def attempt_upload(
        self,
        request: UploadRequest,
        *,
        max_attempts: int,
        debug_mode: UploadDebugMode = UploadDebugMode.DISABLED,
    ) -> UploadOutcome:
        max_attempts = max(1, max_attempts)
        outcome = UploadOutcome()
        self._state = UploadState.UPLOADING
        outcome.state = self._state
        started = time.monotonic()

        acknowledged = threading.Event()

        def _on_upload_completed() -> None:
            acknowledged.set()
            request.acknowledge()

        tracked_request = dataclasses.replace(request, on_upload_completed=_on_upload_completed)

        attempt = _AttemptResult(success=False, allow_retry=True)
        for attempt_number in range(1, max_attempts + 1):
            if self.cancel_requested:
                break
            outcome.attempts = attempt_number
            attempt = self._attempt_once(
                tracked_request,
                debug_mode=debug_mode,
                outcome=outcome,
                acknowledged=acknowledged,
            )
            if attempt.success or not attempt.allow_retry:
                break
            if debug_mode != UploadDebugMode.DISABLED:
                break
            if attempt_number < max_attempts:
                self._logger.info(
                    "Upload of %s failed on attempt %d of %d; retrying in %.1f seconds",
                    request.dataset_name,
                    attempt_number,
                    max_attempts,
                    self.retry_delay_seconds,
                )
                self._sleep_with_stop(self.retry_delay_seconds)

        outcome.elapsed_seconds = time.monotonic() - started
        outcome.acknowledged = acknowledged.is_set()
        outcome.allow_retry = attempt.allow_retry
        self._finish(outcome, attempt=attempt, debug_mode=debug_mode)
        self._state = outcome.state
        self._cancel_event.clear()
        return outcome

    def _finish(
        self,
        outcome: UploadOutcome,
        *,
        attempt: _AttemptResult,
        debug_mode: UploadDebugMode,
    ) -> None:
        if debug_mode != UploadDebugMode.DISABLED:
            outcome.add_warning(DEBUG_MODE_WARNING)
            outcome.success = False
            if attempt.allow_retry:
                outcome.state = UploadState.FAILED_RETRYABLE
            else:
                outcome.failure_kind = FailureKind.FATAL_UPLOAD
                outcome.state = UploadState.FAILED_FATAL
            return

        if attempt.success and outcome.acknowledged:
            outcome.success = True
            outcome.state = UploadState.SUCCEEDED
            return

        if attempt.success:
            # Reported success without the acknowledgement is not treated as success.
            self._logger.warning(
                "%s; keeping the task retryable",
                UNACKNOWLEDGED_UPLOAD_WARNING,
            )
            outcome.add_warning(UNACKNOWLEDGED_UPLOAD_WARNING)
            outcome.success = False
            outcome.allow_retry = True
            outcome.failure_kind = FailureKind.RETRYABLE_UPLOAD
            outcome.state = UploadState.FAILED_RETRYABLE
            return

        outcome.success = False
        if not attempt.allow_retry:
            outcome.failure_kind = FailureKind.FATAL_UPLOAD
            outcome.state = UploadState.FAILED_FATAL
        elif self.cancel_requested:
            outcome.state = UploadState.CANCELED
            outcome.add_error("Upload canceled")
        else:
            outcome.failure_kind = FailureKind.RETRYABLE_UPLOAD
            outcome.state = UploadState.FAILED_RETRYABLE

    def _attempt_once(
        self,
        request: UploadRequest,
        *,
        debug_mode: UploadDebugMode,
        outcome: UploadOutcome,
        acknowledged: threading.Event,
    ) -> _AttemptResult:
        outcome.error_message = ""
        self._logger.info(
            "Bundling dataset %s for transmission to the archive",
            request.dataset_name,
        )
        if not request.recurse:
            self._logger.info("Recursion is disabled for dataset %s", request.dataset_name)

        attempt_started = time.monotonic()
        try:
            report = self.uploader.upload(request, debug_mode)
        except Exception as error:  # noqa: BLE001
            return self._handle_upload_exception(
                error,
                request=request,
                outcome=outcome,
                elapsed_seconds=time.monotonic() - attempt_started,
            )
        elapsed_seconds = time.monotonic() - attempt_started

        _copy_report(report, outcome)
        allow_retry = True
        if not report.success:
            self._logger.warning(
                "Archive upload returned false%s",
                f": {report.critical_error_message}" if report.critical_error_message else "",
            )

        if report.critical_error_message or report.status_uri == CRITICAL_UPLOAD_ERROR:
            allow_retry = False
            outcome.add_error(report.critical_error_message or CRITICAL_UPLOAD_ERROR)

        if not report.success and exceeds_large_dataset_threshold(
            report.total_bytes_to_upload,
            self.large_dataset_threshold_gb,
        ):
            # Uploads this large need an admin to check on things
            allow_retry = False
            outcome.add_error(LARGE_DATASET_UPLOAD_ERROR)

        self._logger.info(
            "Upload of %s completed in %.1f seconds%s: %d new files, %d updated files, %d bytes",
            request.dataset_name,
            elapsed_seconds,
            "" if report.success else " (success=false)",
            report.file_count_new,
            report.file_count_updated,
            report.bytes_uploaded,
        )

        if debug_mode != UploadDebugMode.DISABLED:
            return _AttemptResult(success=False, allow_retry=allow_retry)

        if report.status_uri.endswith(FAILED_TRANSACTION_SUFFIX):
            message = (
                f"Archive status URI {report.status_uri} indicates an upload error "
                "(transactionID=-1)"
            )
            self._logger.error(message)
            outcome.add_error(message)
            return _AttemptResult(success=False, allow_retry=allow_retry)

        self._record_stats(
            UploadStatsRecord(
                dataset_name=request.dataset_name,
                job=request.job,
                file_count_new=report.file_count_new,
                file_count_updated=report.file_count_updated,
                bytes_uploaded=report.bytes_uploaded,
                elapsed_seconds=elapsed_seconds,
                status_uri=report.status_uri,
                error_code=0,
            ),
        )

        if not report.success:
            if not outcome.error_message:
                outcome.add_error("Archive upload reported failure")
            return _AttemptResult(success=False, allow_retry=allow_retry)

        if report.skipped_subdirectories:
            if acknowledged.is_set():
                self._create_follow_up_tasks(request, outcome)
            else:
                self._logger.error(
                    "Upload reported success for dataset %s but was not acknowledged; "
                    "need to create archive update tasks for subdirectories %s",
                    request.dataset_name,
                    ", ".join(report.skipped_subdirectories),
                )
        return _AttemptResult(success=True, allow_retry=allow_retry)

    def _handle_upload_exception(
        self,
        error: Exception,
        *,
        request: UploadRequest,
        outcome: UploadOutcome,
        elapsed_seconds: float,
    ) -> _AttemptResult:
        classification = classify_upload_exception(
            error,
            operator_username=request.operator_username,
            job=request.job,
            large_dataset_threshold_gb=self.large_dataset_threshold_gb,
        )
        outcome.add_error(classification.message)
        outcome.failure_kind = classification.failure_kind
        self._logger.error(
            "Archive upload failed, dataset %s; %s (rule=%s)",
            request.dataset_name,
            classification.message,
            classification.matched_rule,
        )
        self._record_stats(
            UploadStatsRecord(
                dataset_name=request.dataset_name,
                job=request.job,
                file_count_new=0,
                file_count_updated=0,
                bytes_uploaded=0,
                elapsed_seconds=elapsed_seconds,
                status_uri="",
                error_code=classification.error_code,
            ),
        )
        return _AttemptResult(success=False, allow_retry=classification.allow_retry)

    def _create_follow_up_tasks(self, request: UploadRequest, outcome: UploadOutcome) -> None:
        if self.task_queue is None:
            self._logger.error(
                "No task queue configured; cannot create archive update tasks for %s: %s",
                request.dataset_name,
                ", ".join(outcome.skipped_subdirectories),
            )
            return

        failed: list[str] = []
        for subdirectory in outcome.skipped_subdirectories:
            try:
                queued = self.task_queue.enqueue_archive_update(
                    dataset_name=request.dataset_name,
                    subdirectory=subdirectory,
                    job=request.job,
                )
            except Exception:  # noqa: BLE001
                self._logger.exception(
                    "Error creating archive update task for dataset %s, subdirectory %s",
                    request.dataset_name,
                    subdirectory,
                )
                queued = False
            if queued:
                outcome.follow_up_tasks_created += 1
            else:
                failed.append(subdirectory)

        if failed:
            self._logger.error(
                "Error creating archive update tasks for dataset %s, subdirectories %s",
                request.dataset_name,
                ", ".join(failed),
            )
        else:
            self._logger.info(
                "Created %d archive update tasks for dataset %s",
                outcome.follow_up_tasks_created,
                request.dataset_name,
            )

    def _record_stats(self, record: UploadStatsRecord) -> None:
        if self.stats_sink is None:
            return
        try:
            self.stats_sink.store_upload_stats(record)
        except Exception:  # noqa: BLE001
            self._logger.exception(
                "Error storing upload stats for dataset %s; status URI %s",
                record.dataset_name,
                record.status_uri or "-",
            )

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self.cancel_requested and time.monotonic() < deadline:
            time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))


def _copy_report(report: ArchiveUploadReport, outcome: UploadOutcome) -> None:
    outcome.file_count_new = report.file_count_new
    outcome.file_count_updated = report.file_count_updated
    outcome.bytes_uploaded = report.bytes_uploaded
    outcome.status_uri = report.status_uri
    outcome.critical_error_message = report.critical_error_message
    outcome.skipped_subdirectories = list(report.skipped_subdirectories)
