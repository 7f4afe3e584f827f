from __future__ import annotations

from pathlib import Path

import allure
import pytest

from capture_task_manager.capture.share_paths import (
    ReconciledPath,
    reconcile,
    resolve_source_directory,
)

pytestmark = [
    allure.epic("Dataset Capture"),
    allure.feature("Share Paths"),
]

UNC_ROOT = "\\\\host\\share\\"


def test_parent_segment_is_folded_into_source_path() -> None:
    result = reconcile(UNC_ROOT, "ProteomicsData", "..\\ProteomicsData2")

    assert result == ReconciledPath(
        source_path="ProteomicsData2",
        capture_subdirectory="",
        changed=True,
    )


def test_remaining_segments_stay_in_capture_subdirectory() -> None:
    result = reconcile(UNC_ROOT, "Data\\Instrument", "..\\Other\\Run1\\Sub")

    assert result.source_path == "Data\\Other"
    assert result.capture_subdirectory == "Run1\\Sub"
    assert result.changed


def test_forward_slashes_are_accepted() -> None:
    result = reconcile("//host/share/", "ProteomicsData/", "../ProteomicsData2/Run1")

    assert result.source_path == "ProteomicsData2"
    assert result.capture_subdirectory == "Run1"
    assert result.changed


def test_extra_parent_segments_stop_at_the_share_root() -> None:
    result = reconcile(UNC_ROOT, "ProteomicsData", "..\\..\\Other")

    assert result.source_path == "Other"
    assert result.capture_subdirectory == ""


def test_parent_segment_alone_trims_source_path() -> None:
    result = reconcile(UNC_ROOT, "Data\\Instrument", "..")

    assert result.source_path == "Data"
    assert result.capture_subdirectory == ""
    assert result.changed


@pytest.mark.parametrize(
    ("share_root", "capture_subdirectory"),
    [
        (UNC_ROOT, "Run1\\Sub"),
        (UNC_ROOT, ""),
        (UNC_ROOT, "Run..1"),
        ("/mnt/share", "..\\ProteomicsData2"),
        ("C:\\share", "..\\ProteomicsData2"),
    ],
)
def test_reconcile_is_a_no_op_without_leading_parent_on_unc_share(
    share_root: str,
    capture_subdirectory: str,
) -> None:
    result = reconcile(share_root, "ProteomicsData", capture_subdirectory)

    assert result == ReconciledPath("ProteomicsData", capture_subdirectory, changed=False)


def test_resolve_source_directory_appends_subdirectory(tmp_path: Path) -> None:
    assert resolve_source_directory(tmp_path, "Run1\\Sub", "Sample1") == tmp_path / "Run1" / "Sub"
    assert resolve_source_directory(tmp_path, "", "Sample1") == tmp_path
    assert resolve_source_directory(tmp_path, "\\", "Sample1") == tmp_path


def test_subdirectory_equal_to_dataset_folder_is_not_appended(tmp_path: Path) -> None:
    (tmp_path / "Sample1").mkdir()

    assert resolve_source_directory(tmp_path, "Sample1", "Sample1") == tmp_path
    assert resolve_source_directory(tmp_path, "sample1\\", "Sample1") == tmp_path


def test_subdirectory_ending_with_missing_dataset_folder_is_ignored(tmp_path: Path) -> None:
    assert resolve_source_directory(tmp_path, "Run1\\Sample1", "Sample1") == tmp_path


def test_subdirectory_ending_with_existing_dataset_folder_is_appended(tmp_path: Path) -> None:
    target = tmp_path / "Run1" / "Sample1"
    target.mkdir(parents=True)

    assert resolve_source_directory(tmp_path, "Run1/Sample1", "Sample1") == target
