"""Archive upload collaborators and the local ``.tar`` bundle uploader."""

from __future__ import annotations

import logging
import tarfile
from pathlib import Path
from typing import Protocol

from capture_task_manager.archive.models import (
    ArchiveUploadReport,
    UploadDebugMode,
    UploadRequest,
    UploadStatsRecord,
)

logger = logging.getLogger(__name__)

SOURCE_DIRECTORY_NOT_FOUND = "Source directory not found"
UNDEFINED_EUS_OPERATOR_ID = "Operator does not have an EUS person ID"
TOO_MANY_FILES_TO_ARCHIVE = "Too many files to archive"


class ArchiveUploadError(Exception):
    """Upload failure raised by an archive uploader."""

    def __init__(self, message: str, *, total_bytes_to_upload: int = 0) -> None:
        super().__init__(message)
        self.total_bytes_to_upload = total_bytes_to_upload


class SourceDirectoryNotFoundError(ArchiveUploadError):
    def __init__(self, directory: Path) -> None:
        super().__init__(f"{SOURCE_DIRECTORY_NOT_FOUND}: {directory}")
        self.directory = directory


class UndefinedOperatorError(ArchiveUploadError):
    def __init__(self, operator_username: str) -> None:
        super().__init__(f"{UNDEFINED_EUS_OPERATOR_ID}: {operator_username}")
        self.operator_username = operator_username


class TooManyFilesError(ArchiveUploadError):
    def __init__(self, file_count: int, limit: int, *, total_bytes_to_upload: int = 0) -> None:
        super().__init__(
            f"{TOO_MANY_FILES_TO_ARCHIVE}: {file_count} files exceeds the limit of {limit}",
            total_bytes_to_upload=total_bytes_to_upload,
        )
        self.file_count = file_count
        self.limit = limit


class ArchiveUploader(Protocol):
    """Protocol implemented by archive upload backends."""

    def upload(self, request: UploadRequest, debug_mode: UploadDebugMode) -> ArchiveUploadReport:
        """Bundle the dataset directory and send it to the archive.

        Implementations call ``request.acknowledge()`` once the archive service
        confirms the upload completed.
        """


class ArchiveTaskQueue(Protocol):
    """Protocol for queuing follow-up archive update tasks."""

    def enqueue_archive_update(self, *, dataset_name: str, subdirectory: str, job: int) -> bool:
        """Queue an archive update for one dataset subdirectory; false if it was not queued."""


class UploadStatsSink(Protocol):
    """Protocol for recording per-attempt upload statistics."""

    def store_upload_stats(self, record: UploadStatsRecord) -> None:
        """Persist one upload attempt record."""


class LocalTarUploader:
    """Write the dataset directory into a local ``.tar`` bundle instead of a remote archive.

    Used for debugging and offline operation. The bundle lands in ``output_dir``
    and is treated as complete as soon as it is written.
    """

    def __init__(
        self,
        *,
        output_dir: Path,
        max_files_to_archive: int = 500,
        log: logging.Logger | None = None,
    ) -> None:
        self.output_dir = output_dir
        self.max_files_to_archive = max_files_to_archive
        self._logger = log or logger

    def upload(self, request: UploadRequest, debug_mode: UploadDebugMode) -> ArchiveUploadReport:
        directory = request.dataset_directory
        if not directory.is_dir():
            raise SourceDirectoryNotFoundError(directory)

        files = _collect_files(directory, recurse=request.recurse)
        total_bytes = sum(path.stat().st_size for path in files)
        if len(files) > self.max_files_to_archive and not request.ignore_max_file_limit:
            raise TooManyFilesError(
                len(files),
                self.max_files_to_archive,
                total_bytes_to_upload=total_bytes,
            )

        self.output_dir.mkdir(parents=True, exist_ok=True)
        bundle_path = self.output_dir / _bundle_name(request)
        self._logger.info(
            "Bundling %d files (%d bytes) of dataset %s into %s (mode=%s)",
            len(files),
            total_bytes,
            request.dataset_name,
            bundle_path,
            debug_mode.value,
        )
        with tarfile.open(bundle_path, "w") as bundle:
            for path in files:
                bundle.add(path, arcname=path.relative_to(directory).as_posix())

        request.acknowledge()
        return ArchiveUploadReport(
            success=True,
            status_uri=bundle_path.resolve().as_uri(),
            file_count_new=len(files),
            bytes_uploaded=total_bytes,
            total_bytes_to_upload=total_bytes,
        )


def _bundle_name(request: UploadRequest) -> str:
    if request.job:
        return f"{request.dataset_name}_job{request.job}.tar"
    return f"{request.dataset_name}.tar"


def _collect_files(directory: Path, *, recurse: bool) -> list[Path]:
    pattern = "**/*" if recurse else "*"
    return sorted(path for path in directory.glob(pattern) if path.is_file())
