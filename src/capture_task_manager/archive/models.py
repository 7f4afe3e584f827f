"""Domain models for archive uploads and step tool results."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

CRITICAL_UPLOAD_ERROR = "Critical Error"
FAILED_TRANSACTION_SUFFIX = "/1323420608"
LARGE_DATASET_UPLOAD_ERROR = "Failure uploading a large amount of data; manual reset required"
DEBUG_MODE_WARNING = (
    "Debug mode was enabled; thus, .tar file was created locally and not uploaded"
)
UNACKNOWLEDGED_UPLOAD_WARNING = "Upload reported success but no upload-completed acknowledgement"
EUS_PORTAL_URL = "https://eus.emsl.pnnl.gov/Portal"

BYTES_PER_GB = 1024**3


class UploadState(str, Enum):
    """Upload orchestration lifecycle states."""

    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_FATAL = "failed_fatal"
    CANCELED = "canceled"


class FailureKind(str, Enum):
    """Failure categories surfaced to operators."""

    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    RETRYABLE_UPLOAD = "retryable_upload"
    FATAL_UPLOAD = "fatal_upload"
    COMPRESSION_INTEGRITY = "compression_integrity"


class UploadDebugMode(str, Enum):
    """Local-only upload modes; neither sends data to the archive."""

    DISABLED = "disabled"
    CREATE_TAR_LOCAL = "create_tar_local"
    OFFLINE = "offline"


class CloseoutType(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class EvalCode(str, Enum):
    """Extra evaluation detail reported with a step tool result."""

    NONE = "none"
    FAILURE_DO_NOT_RETRY = "failure_do_not_retry"
    SUBMITTED_TO_ARCHIVE = "submitted_to_archive"
    ARCHIVE_ALREADY_UP_TO_DATE = "archive_already_up_to_date"


@dataclass(slots=True)
class UploadRequest:
    """One dataset directory to bundle and send to the archive."""

    dataset_name: str
    dataset_directory: Path
    job: int = 0
    dataset_id: int = 0
    operator_username: str = "Unknown_Operator"
    recurse: bool = True
    ignore_max_file_limit: bool = False
    on_upload_completed: Callable[[], None] | None = None

    def acknowledge(self) -> None:
        """Signal that the archive service confirmed the upload completed."""

        if self.on_upload_completed is not None:
            self.on_upload_completed()


@dataclass(slots=True)
class ArchiveUploadReport:
    """What the archive upload collaborator reports for one attempt."""

    success: bool
    status_uri: str = ""
    critical_error_message: str = ""
    file_count_new: int = 0
    file_count_updated: int = 0
    bytes_uploaded: int = 0
    total_bytes_to_upload: int = 0
    skipped_subdirectories: list[str] = field(default_factory=list)


@dataclass(slots=True)
class UploadOutcome:
    """Result of driving one dataset upload to a terminal state."""

    state: UploadState = UploadState.IDLE
    success: bool = False
    attempts: int = 0
    file_count_new: int = 0
    file_count_updated: int = 0
    bytes_uploaded: int = 0
    elapsed_seconds: float = 0.0
    status_uri: str = ""
    allow_retry: bool = True
    critical_error_message: str = ""
    error_message: str = ""
    warning_message: str = ""
    failure_kind: FailureKind | None = None
    acknowledged: bool = False
    skipped_subdirectories: list[str] = field(default_factory=list)
    follow_up_tasks_created: int = 0

    @property
    def already_up_to_date(self) -> bool:
        return self.success and self.file_count_new + self.file_count_updated == 0

    def add_warning(self, message: str) -> None:
        self.warning_message = _append(self.warning_message, message)

    def add_error(self, message: str) -> None:
        self.error_message = _append(self.error_message, message)


@dataclass(slots=True)
class UploadStatsRecord:
    """Per-attempt upload statistics persisted for later review."""

    dataset_name: str
    job: int
    file_count_new: int
    file_count_updated: int
    bytes_uploaded: int
    elapsed_seconds: float
    status_uri: str
    error_code: int


@dataclass(slots=True)
class ToolResult:
    """Closeout of one archive step tool run."""

    closeout: CloseoutType
    eval_code: EvalCode = EvalCode.NONE
    message: str = ""
    outcome: UploadOutcome | None = None

    @property
    def succeeded(self) -> bool:
        return self.closeout == CloseoutType.SUCCESS


def _append(existing: str, message: str) -> str:
    if not existing:
        return message
    return f"{existing}; {message}"
