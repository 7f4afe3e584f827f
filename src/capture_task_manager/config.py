"""Runtime configuration for capture and archive tasks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

PERSPECTIVE_SERVER = "server"
PERSPECTIVE_CLIENT = "client"


@dataclass(slots=True)
class CaptureSettings:
    """Dataset search settings."""

    perspective: str = PERSPECTIVE_SERVER
    trace_mode: bool = False


@dataclass(slots=True)
class ArchiveSettings:
    """Archive upload settings."""

    max_upload_attempts: int = 2
    retry_delay_seconds: float = 5.0
    large_dataset_threshold_gb: float = 15.0
    max_files_to_archive: int = 500
    compress_duplicate_methods: bool = True
    local_tar_dir: Path = Path("archive_bundles")


@dataclass(slots=True)
class StatusCheckSettings:
    """Archive ingest status check settings."""

    timeout_seconds: float = 5.0
    max_retries: int = 3


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".capture_task_manager.db")
    sqlite_busy_timeout_ms: int = 5_000
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    archive: ArchiveSettings = field(default_factory=ArchiveSettings)
    status_check: StatusCheckSettings = field(default_factory=StatusCheckSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with defaults suitable for a single manager."""

        return cls(
            db_path=db_path or Path(os.getenv("CTM_DB_PATH", ".capture_task_manager.db")),
            sqlite_busy_timeout_ms=int(os.getenv("CTM_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            capture=CaptureSettings(
                perspective=os.getenv("CTM_PERSPECTIVE", PERSPECTIVE_SERVER).strip().lower(),
                trace_mode=_env_bool("CTM_TRACE_MODE", default=False),
            ),
            archive=ArchiveSettings(
                max_upload_attempts=int(os.getenv("CTM_UPLOAD_MAX_ATTEMPTS", "2")),
                retry_delay_seconds=float(os.getenv("CTM_UPLOAD_RETRY_DELAY_SECONDS", "5.0")),
                large_dataset_threshold_gb=float(
                    os.getenv("CTM_LARGE_DATASET_THRESHOLD_GB", "15"),
                ),
                max_files_to_archive=int(os.getenv("CTM_MAX_FILES_TO_ARCHIVE", "500")),
                compress_duplicate_methods=_env_bool(
                    "CTM_COMPRESS_DUPLICATE_METHODS",
                    default=True,
                ),
                local_tar_dir=Path(os.getenv("CTM_LOCAL_TAR_DIR", "archive_bundles")),
            ),
            status_check=StatusCheckSettings(
                timeout_seconds=float(os.getenv("CTM_STATUS_CHECK_TIMEOUT_SECONDS", "5.0")),
                max_retries=int(os.getenv("CTM_STATUS_CHECK_MAX_RETRIES", "3")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any setting is out of range."""

        if self.capture.perspective not in {PERSPECTIVE_SERVER, PERSPECTIVE_CLIENT}:
            raise ValueError(
                "CTM_PERSPECTIVE must be 'server' or 'client', "
                f"got {self.capture.perspective!r}.",
            )
        if self.archive.max_upload_attempts < 1:
            raise ValueError("CTM_UPLOAD_MAX_ATTEMPTS must be >= 1.")
        if self.archive.retry_delay_seconds < 0:
            raise ValueError("CTM_UPLOAD_RETRY_DELAY_SECONDS must be >= 0.")
        if self.archive.large_dataset_threshold_gb <= 0:
            raise ValueError("CTM_LARGE_DATASET_THRESHOLD_GB must be > 0.")
        if self.archive.max_files_to_archive <= 0:
            raise ValueError("CTM_MAX_FILES_TO_ARCHIVE must be a positive integer.")
        if self.status_check.timeout_seconds <= 0:
            raise ValueError("CTM_STATUS_CHECK_TIMEOUT_SECONDS must be > 0.")
        if self.status_check.max_retries < 0:
            raise ValueError("CTM_STATUS_CHECK_MAX_RETRIES must be >= 0.")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
