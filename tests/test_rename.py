from __future__ import annotations

import hashlib
from pathlib import Path

import allure

from capture_task_manager.capture.models import TaskDescriptor
from capture_task_manager.capture.rename import (
    CAPTURED_PREFIX,
    OPERATOR_SUFFIXES,
    RenameOps,
    candidate_names,
    sha1_of_file,
)

pytestmark = [
    allure.epic("Dataset Capture"),
    allure.feature("Source Rename"),
]


def test_candidate_names_order() -> None:
    names = candidate_names("Sample1")

    assert names[0] == "Sample1"
    assert names[1 : 1 + len(OPERATOR_SUFFIXES)] == [f"Sample1{s}" for s in OPERATOR_SUFFIXES]
    assert names[-2:] == ["x_Sample1", "x_Sample1-bad"]
    assert len(set(OPERATOR_SUFFIXES)) == len(OPERATOR_SUFFIXES)


def test_renames_matching_file(tmp_path: Path) -> None:
    (tmp_path / "Sample1.raw").write_bytes(b"raw")

    result = RenameOps().rename_dataset(tmp_path, "Sample1")

    assert result.success
    assert result.renamed == [tmp_path / "x_Sample1.raw"]
    assert (tmp_path / "x_Sample1.raw").is_file()
    assert not (tmp_path / "Sample1.raw").exists()


def test_renames_matching_files_and_directories(tmp_path: Path) -> None:
    (tmp_path / "Sample1.raw").write_bytes(b"raw")
    (tmp_path / "Sample1.d").mkdir()
    (tmp_path / "Sample1.d" / "analysis.baf").write_bytes(b"baf")

    result = RenameOps().rename_dataset(tmp_path, "Sample1")

    assert result.success
    assert result.renamed_count == 2
    assert (tmp_path / "x_Sample1.d" / "analysis.baf").is_file()
    assert (tmp_path / "x_Sample1.raw").is_file()


def test_renames_operator_flagged_dataset(tmp_path: Path) -> None:
    (tmp_path / "Sample1-bad.raw").write_bytes(b"raw")

    result = RenameOps().rename_dataset(tmp_path, "Sample1")

    assert result.success
    assert result.renamed == [tmp_path / "x_Sample1-bad.raw"]


def test_already_renamed_dataset_counts_as_success(tmp_path: Path) -> None:
    (tmp_path / f"{CAPTURED_PREFIX}Sample1.raw").write_bytes(b"raw")

    result = RenameOps().rename_dataset(tmp_path, "Sample1")

    assert result.success
    assert result.already_renamed
    assert result.renamed == []


def test_missing_dataset_is_an_error(tmp_path: Path) -> None:
    (tmp_path / "Other.raw").write_bytes(b"raw")

    result = RenameOps().rename_dataset(tmp_path, "Sample1")

    assert not result.success
    assert result.error_message == (
        "Data file and/or directory not found on the instrument; cannot rename"
    )


def test_missing_source_directory_is_an_error(tmp_path: Path) -> None:
    result = RenameOps().rename_dataset(tmp_path / "missing", "Sample1")

    assert not result.success
    assert result.error_message.startswith("Remote directory not found")


def test_existing_target_is_never_overwritten(tmp_path: Path) -> None:
    (tmp_path / "Sample1.raw").write_bytes(b"new")
    (tmp_path / "x_Sample1.raw").write_bytes(b"old")

    result = RenameOps().rename_dataset(tmp_path, "Sample1")

    assert not result.success
    assert "already exists" in result.error_message
    assert (tmp_path / "Sample1.raw").read_bytes() == b"new"
    assert (tmp_path / "x_Sample1.raw").read_bytes() == b"old"


def test_normalized_match_requires_matching_hash(tmp_path: Path) -> None:
    data_file = tmp_path / "Sample 1.raw"
    data_file.write_bytes(b"instrument data")
    expected_hash = hashlib.sha1(b"instrument data").hexdigest()  # noqa: S324

    rejected = RenameOps().rename_dataset(tmp_path, "Sample_1", instrument_file_hash="0" * 40)
    assert not rejected.success
    assert data_file.exists()

    accepted = RenameOps().rename_dataset(
        tmp_path,
        "Sample_1",
        instrument_file_hash=expected_hash.upper(),
    )
    assert accepted.success
    assert accepted.renamed == [tmp_path / "x_Sample 1.raw"]


def test_run_uses_task_source_paths(tmp_path: Path) -> None:
    instrument_dir = tmp_path / "Instrument" / "Run1"
    instrument_dir.mkdir(parents=True)
    (instrument_dir / "Sample1.raw").write_bytes(b"raw")
    task = TaskDescriptor(
        dataset_name="Sample1",
        source_vol=str(tmp_path),
        source_path="Instrument",
        capture_subdirectory="Run1",
    )

    result = RenameOps().run(task)

    assert result.success
    assert (instrument_dir / "x_Sample1.raw").is_file()


def test_sha1_of_file(tmp_path: Path) -> None:
    path = tmp_path / "data.bin"
    path.write_bytes(b"abc" * 1000)

    assert sha1_of_file(path) == hashlib.sha1(b"abc" * 1000).hexdigest()  # noqa: S324
