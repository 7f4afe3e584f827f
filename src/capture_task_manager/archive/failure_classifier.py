"""Deterministic upload failure classification for the archive retry policy."""

from __future__ import annotations

import zlib
from dataclasses import dataclass

from capture_task_manager.archive.models import (
    BYTES_PER_GB,
    EUS_PORTAL_URL,
    LARGE_DATASET_UPLOAD_ERROR,
    FailureKind,
)
from capture_task_manager.archive.uploader import (
    SOURCE_DIRECTORY_NOT_FOUND,
    TOO_MANY_FILES_TO_ARCHIVE,
    UNDEFINED_EUS_OPERATOR_ID,
    ArchiveUploadError,
    SourceDirectoryNotFoundError,
    TooManyFilesError,
    UndefinedOperatorError,
)

UPLOAD_EXCEPTION_MESSAGE = "Exception uploading to the archive"

_SOURCE_DIRECTORY_PATTERNS: tuple[str, ...] = (
    SOURCE_DIRECTORY_NOT_FOUND.lower(),
    "directory not found",
)
_UNDEFINED_OPERATOR_PATTERNS: tuple[str, ...] = (
    UNDEFINED_EUS_OPERATOR_ID.lower(),
    "operator not defined in eus",
)
_TOO_MANY_FILES_PATTERNS: tuple[str, ...] = (
    TOO_MANY_FILES_TO_ARCHIVE.lower(),
    "too many files",
)


@dataclass(slots=True)
class UploadFailureClassification:
    """Normalized failure classification result."""

    failure_kind: FailureKind
    allow_retry: bool
    reason_code: str
    matched_rule: str
    message: str
    error_code: int


def error_code_for(message: str) -> int:
    """Stable, non-zero code derived from an error message."""

    return zlib.crc32(message.encode("utf-8")) or 1


def exceeds_large_dataset_threshold(total_bytes: int, threshold_gb: float) -> bool:
    return total_bytes / BYTES_PER_GB > threshold_gb


def classify_upload_exception(  # noqa: PLR0913
    error: BaseException,
    *,
    operator_username: str,
    job: int,
    total_bytes_to_upload: int = 0,
    large_dataset_threshold_gb: float = 15.0,
) -> UploadFailureClassification:
    """Classify an exception raised by the uploader into a retry class with a remediation hint."""

    detail = str(error)
    haystack = detail.lower()
    error_code = error_code_for(detail)
    if isinstance(error, ArchiveUploadError) and error.total_bytes_to_upload:
        total_bytes_to_upload = max(total_bytes_to_upload, error.total_bytes_to_upload)

    if (
        isinstance(error, (SourceDirectoryNotFoundError, FileNotFoundError, NotADirectoryError))
        or _first_match(haystack, _SOURCE_DIRECTORY_PATTERNS) is not None
    ):
        return UploadFailureClassification(
            failure_kind=FailureKind.FATAL_UPLOAD,
            allow_retry=False,
            reason_code="source_directory_not_found",
            matched_rule="source_directory_not_found",
            message=detail or SOURCE_DIRECTORY_NOT_FOUND,
            error_code=error_code,
        )

    if (
        isinstance(error, UndefinedOperatorError)
        or _first_match(haystack, _UNDEFINED_OPERATOR_PATTERNS) is not None
    ):
        return UploadFailureClassification(
            failure_kind=FailureKind.FATAL_UPLOAD,
            allow_retry=False,
            reason_code="undefined_eus_operator",
            matched_rule="undefined_eus_operator",
            message=(
                f"{UPLOAD_EXCEPTION_MESSAGE}; operator not defined in EUS. "
                f"Have {operator_username} login to {EUS_PORTAL_URL} "
                "then wait for T_EUS_Users to update, "
                "then update job parameters using SP UpdateParametersForJob"
            ),
            error_code=error_code,
        )

    if (
        isinstance(error, TooManyFilesError)
        or _first_match(haystack, _TOO_MANY_FILES_PATTERNS) is not None
    ):
        return UploadFailureClassification(
            failure_kind=FailureKind.FATAL_UPLOAD,
            allow_retry=False,
            reason_code="too_many_files",
            matched_rule="too_many_files",
            message=(
                f"{UPLOAD_EXCEPTION_MESSAGE}: {detail} "
                f"(to ignore this error, use Exec AddUpdateJobParameter {job}, "
                "'StepParameters', 'IgnoreMaxFileLimit', '1')"
            ),
            error_code=error_code,
        )

    if exceeds_large_dataset_threshold(total_bytes_to_upload, large_dataset_threshold_gb):
        return UploadFailureClassification(
            failure_kind=FailureKind.FATAL_UPLOAD,
            allow_retry=False,
            reason_code="large_dataset",
            matched_rule="large_dataset_threshold",
            message=f"{UPLOAD_EXCEPTION_MESSAGE}: {LARGE_DATASET_UPLOAD_ERROR} ({detail})",
            error_code=error_code,
        )

    return UploadFailureClassification(
        failure_kind=FailureKind.RETRYABLE_UPLOAD,
        allow_retry=True,
        reason_code="upload_transient",
        matched_rule="fallback_retryable",
        message=f"{UPLOAD_EXCEPTION_MESSAGE}: {type(error).__name__}: {detail}",
        error_code=error_code,
    )


def _first_match(haystack: str, patterns: tuple[str, ...]) -> str | None:
    for pattern in patterns:
        if pattern in haystack:
            return pattern
    return None
