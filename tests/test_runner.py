from __future__ import annotations

from pathlib import Path

import allure

from capture_task_manager.archive.compressor import DuplicateMethodCompressor
from capture_task_manager.archive.models import (
    DEBUG_MODE_WARNING,
    ArchiveUploadReport,
    CloseoutType,
    EvalCode,
    UploadDebugMode,
    UploadOutcome,
    UploadRequest,
    UploadState,
)
from capture_task_manager.archive.runner import (
    ArchiveTaskRunner,
    dataset_directory_path,
    debug_mode_for,
    tool_result_for,
)
from capture_task_manager.archive.uploader import LocalTarUploader, TooManyFilesError
from capture_task_manager.capture.models import TaskDescriptor
from capture_task_manager.config import PERSPECTIVE_CLIENT, PERSPECTIVE_SERVER, Settings

pytestmark = [
    allure.epic("Archive Upload"),
    allure.feature("Archive Task Runner"),
]


class RecordingUploader:
    def __init__(self, report: ArchiveUploadReport | Exception) -> None:
        self.report = report
        self.requests: list[UploadRequest] = []
        self.seen_files: list[list[str]] = []

    def upload(self, request: UploadRequest, debug_mode: UploadDebugMode) -> ArchiveUploadReport:
        self.requests.append(request)
        self.seen_files.append(
            sorted(
                path.relative_to(request.dataset_directory).as_posix()
                for path in request.dataset_directory.rglob("*")
                if path.is_file()
            ),
        )
        if isinstance(self.report, Exception):
            raise self.report
        request.acknowledge()
        return self.report


def _task(tmp_path: Path, **kwargs) -> TaskDescriptor:
    return TaskDescriptor(
        dataset_name="Sample1",
        storage_vol=str(tmp_path / "server"),
        storage_vol_external=str(tmp_path / "client"),
        storage_path="Lumos01\\2026_3",
        dataset_directory="Sample1",
        job=42,
        **kwargs,
    )


def _make_dataset(root: Path) -> Path:
    dataset = root / "Lumos01" / "2026_3" / "Sample1"
    dataset.mkdir(parents=True)
    (dataset / "Sample1.raw").write_bytes(b"raw")
    return dataset


def test_dataset_directory_path_follows_perspective(tmp_path: Path) -> None:
    task = _task(tmp_path)

    assert dataset_directory_path(task, perspective=PERSPECTIVE_SERVER) == (
        tmp_path / "server" / "Lumos01" / "2026_3" / "Sample1"
    )
    assert dataset_directory_path(task, perspective=PERSPECTIVE_CLIENT) == (
        tmp_path / "client" / "Lumos01" / "2026_3" / "Sample1"
    )


def test_debug_mode_for_task_flags(tmp_path: Path) -> None:
    assert debug_mode_for(_task(tmp_path)) == UploadDebugMode.DISABLED
    assert debug_mode_for(_task(tmp_path, debug_test_tar=True)) == UploadDebugMode.CREATE_TAR_LOCAL
    assert debug_mode_for(_task(tmp_path, archive_offline=True)) == UploadDebugMode.OFFLINE


def test_missing_dataset_directory_fails_without_retry(
    tmp_path: Path,
    fast_settings: Settings,
) -> None:
    uploader = RecordingUploader(ArchiveUploadReport(success=True))

    result = ArchiveTaskRunner(settings=fast_settings, uploader=uploader).run(_task(tmp_path))

    assert result.closeout == CloseoutType.FAILED
    assert result.eval_code == EvalCode.FAILURE_DO_NOT_RETRY
    assert "not found" in result.message
    assert uploader.requests == []


def test_successful_upload_is_submitted(tmp_path: Path, fast_settings: Settings) -> None:
    _make_dataset(tmp_path / "server")
    uploader = RecordingUploader(
        ArchiveUploadReport(success=True, status_uri="https://archive.example/1", file_count_new=1),
    )

    result = ArchiveTaskRunner(settings=fast_settings, uploader=uploader).run(_task(tmp_path))

    assert result.succeeded
    assert result.eval_code == EvalCode.SUBMITTED_TO_ARCHIVE
    assert uploader.requests[0].job == 42


def test_nothing_new_is_already_up_to_date(tmp_path: Path, fast_settings: Settings) -> None:
    _make_dataset(tmp_path / "server")
    uploader = RecordingUploader(ArchiveUploadReport(success=True))

    result = ArchiveTaskRunner(settings=fast_settings, uploader=uploader).run(_task(tmp_path))

    assert result.succeeded
    assert result.eval_code == EvalCode.ARCHIVE_ALREADY_UP_TO_DATE


def test_duplicate_methods_are_compressed_before_upload(
    tmp_path: Path,
    fast_settings: Settings,
) -> None:
    dataset = _make_dataset(tmp_path / "server")
    for name in ("a.m", "b.m"):
        method = dataset / "Sample1.m" / name
        method.mkdir(parents=True)
        (method / "method.xml").write_bytes(b"<method/>")
    uploader = RecordingUploader(ArchiveUploadReport(success=True, file_count_new=3))

    ArchiveTaskRunner(settings=fast_settings, uploader=uploader).run(_task(tmp_path))

    assert uploader.seen_files[0] == [
        "Sample1.m/a.m/method.xml",
        "Sample1.m/b.m.zip",
        "Sample1.raw",
    ]


def test_compression_failure_still_uploads(tmp_path: Path, fast_settings: Settings) -> None:
    dataset = _make_dataset(tmp_path / "server")
    for name in ("a.m", "b.m"):
        method = dataset / "Sample1.m" / name
        method.mkdir(parents=True)
        (method / "method.xml").write_bytes(b"<method/>")

    def failing_zipper(source: Path, zip_path: Path) -> None:
        raise OSError("disk full")

    uploader = RecordingUploader(ArchiveUploadReport(success=True, file_count_new=3))
    runner = ArchiveTaskRunner(
        settings=fast_settings,
        uploader=uploader,
        compressor=DuplicateMethodCompressor(zipper=failing_zipper),
    )

    result = runner.run(_task(tmp_path))

    assert result.succeeded
    assert "Sample1.m/b.m/method.xml" in uploader.seen_files[0]


def test_delete_failure_after_compression_still_uploads(
    tmp_path: Path,
    fast_settings: Settings,
) -> None:
    dataset = _make_dataset(tmp_path / "server")
    for name in ("a.m", "b.m"):
        method = dataset / "Sample1.m" / name
        method.mkdir(parents=True)
        (method / "method.xml").write_bytes(b"<method/>")

    def failing_remover(path: Path) -> None:
        raise PermissionError(f"Access is denied: '{path}'")

    uploader = RecordingUploader(ArchiveUploadReport(success=True, file_count_new=3))
    runner = ArchiveTaskRunner(
        settings=fast_settings,
        uploader=uploader,
        compressor=DuplicateMethodCompressor(remover=failing_remover),
    )

    result = runner.run(_task(tmp_path))

    assert result.succeeded
    assert "Sample1.m/b.m.zip" in uploader.seen_files[0]
    assert "Sample1.m/b.m/method.xml" in uploader.seen_files[0]


def test_local_tar_debug_run_is_not_a_success(tmp_path: Path, fast_settings: Settings) -> None:
    _make_dataset(tmp_path / "server")
    uploader = LocalTarUploader(output_dir=tmp_path / "bundles")

    result = ArchiveTaskRunner(settings=fast_settings, uploader=uploader).run(
        _task(tmp_path, debug_test_tar=True),
    )

    assert result.closeout == CloseoutType.FAILED
    assert result.eval_code == EvalCode.NONE
    assert result.message == DEBUG_MODE_WARNING
    assert (tmp_path / "bundles" / "Sample1_job42.tar").is_file()


def test_fatal_upload_failure_is_not_retried(tmp_path: Path, fast_settings: Settings) -> None:
    _make_dataset(tmp_path / "server")
    fast_settings.archive.max_upload_attempts = 4
    uploader = RecordingUploader(TooManyFilesError(900, 500))

    result = ArchiveTaskRunner(settings=fast_settings, uploader=uploader).run(_task(tmp_path))

    assert len(uploader.requests) == 1
    assert result.eval_code == EvalCode.FAILURE_DO_NOT_RETRY
    assert "IgnoreMaxFileLimit" in result.message


def test_tool_result_for_retryable_failure() -> None:
    outcome = UploadOutcome(
        state=UploadState.FAILED_RETRYABLE,
        allow_retry=True,
        error_message="Exception uploading to the archive: TimeoutError: slow",
    )

    result = tool_result_for(outcome)

    assert result.closeout == CloseoutType.FAILED
    assert result.eval_code == EvalCode.NONE
    assert result.outcome is outcome
