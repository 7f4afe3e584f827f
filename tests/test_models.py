from __future__ import annotations

import allure
import pytest

from capture_task_manager.archive.models import UploadOutcome
from capture_task_manager.capture.models import TaskDescriptor
from capture_task_manager.taxonomy import InstrumentClass, RawDataType

pytestmark = [
    allure.epic("Dataset Capture"),
    allure.feature("Task Descriptor"),
]


def test_from_params_matches_names_case_insensitively() -> None:
    task = TaskDescriptor.from_params(
        {
            "dataset": "Sample1",
            "SOURCE_VOL": "\\\\proto-5\\",
            "Source_Path": "ProteomicsData",
            "Capture_Subfolder": "Run1",
            "Instrument_Class": "brukermaldi_imaging",
            "RawDataType": "Bruker_FT",
            "Storage_Vol": "/mnt/proto",
            "Storage_Path": "Lumos01/2026_3",
            "Folder": "Sample1_dir",
            "Dataset_ID": "1234",
            "Job": "42",
            "DebugTestTar": "True",
        },
    )

    assert task.dataset_name == "Sample1"
    assert task.source_directory == "\\\\proto-5\\ProteomicsData"
    assert task.capture_subdirectory == "Run1"
    assert task.instrument_class == InstrumentClass.BRUKER_MALDI_IMAGING
    assert task.raw_data_type == RawDataType.BRUKER_FT
    assert task.dataset_directory == "Sample1_dir"
    assert task.dataset_id == 1234
    assert task.job == 42
    assert task.debug_test_tar
    assert not task.archive_offline
    assert task.operator_username == "Unknown_Operator"


def test_from_params_tolerates_unrecognized_values() -> None:
    task = TaskDescriptor.from_params(
        {"Dataset": "Sample1", "Instrument_Class": "Orbitrap 9000", "Job": "n/a"},
    )

    assert task.instrument_class == InstrumentClass.UNKNOWN
    assert task.raw_data_type == RawDataType.UNKNOWN
    assert task.job == 0
    assert task.dataset_directory == "Sample1"


def test_from_params_requires_dataset() -> None:
    with pytest.raises(ValueError, match="non-empty 'Dataset'"):
        TaskDescriptor.from_params({"Dataset": "  ", "Job": "1"})


def test_source_directory_joins_volume_and_path() -> None:
    unc = TaskDescriptor("S", source_vol="\\\\host\\share", source_path="Data")
    posix = TaskDescriptor("S", source_vol="/mnt/share/", source_path="Data")

    assert unc.source_directory == "\\\\host\\share\\Data"
    assert posix.source_directory == "/mnt/share/Data"
    assert TaskDescriptor("S", source_path="Data").source_directory == "Data"


def test_outcome_messages_accumulate() -> None:
    outcome = UploadOutcome()
    outcome.add_error("first")
    outcome.add_error("second")

    assert outcome.error_message == "first; second"
    assert not outcome.already_up_to_date
