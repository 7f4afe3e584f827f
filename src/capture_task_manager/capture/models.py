"""Domain models for dataset capture and file search."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from capture_task_manager.taxonomy import (
    InstrumentClass,
    RawDataType,
    classify_instrument,
    classify_raw_data_type,
)


class InstrumentFileLayout(str, Enum):
    """How a dataset is laid out on the instrument share."""

    NONE = "none"
    FILE = "file"
    MULTI_FILE = "multi_file"
    DIRECTORY_NO_EXT = "directory_no_ext"
    DIRECTORY_EXT = "directory_ext"
    BRUKER_IMAGING = "bruker_imaging"
    BRUKER_SPOT = "bruker_spot"


@dataclass(slots=True, frozen=True)
class TaskDescriptor:
    """One capture or archive job as handed out by the task source."""

    dataset_name: str
    source_vol: str = ""
    source_path: str = ""
    capture_subdirectory: str = ""
    instrument_class: InstrumentClass = InstrumentClass.UNKNOWN
    raw_data_type: RawDataType = RawDataType.UNKNOWN
    storage_vol: str = ""
    storage_vol_external: str = ""
    storage_path: str = ""
    dataset_directory: str = ""
    dataset_id: int = 0
    job: int = 0
    step_tool: str = ""
    operator_username: str = ""
    source_folder_name: str = ""
    instrument_file_hash: str = ""
    debug_test_tar: bool = False
    archive_offline: bool = False
    ignore_max_file_limit: bool = False

    @property
    def source_directory(self) -> str:
        return _join_share_path(self.source_vol, self.source_path)

    @classmethod
    def from_params(cls, params: Mapping[str, object]) -> TaskDescriptor:
        """Build a descriptor from task-source parameter names, matched case-insensitively."""

        lookup = {str(key).lower(): value for key, value in params.items()}

        def text(*names: str) -> str:
            for name in names:
                value = lookup.get(name.lower())
                if value is not None and str(value).strip():
                    return str(value).strip()
            return ""

        dataset_name = text("Dataset")
        if not dataset_name:
            raise ValueError("Task parameters must include a non-empty 'Dataset' value.")

        return cls(
            dataset_name=dataset_name,
            source_vol=text("Source_Vol"),
            source_path=text("Source_Path"),
            capture_subdirectory=text("Capture_Subdirectory", "Capture_Subfolder"),
            instrument_class=classify_instrument(text("Instrument_Class")),
            raw_data_type=classify_raw_data_type(text("RawDataType", "Raw_Data_Type")),
            storage_vol=text("Storage_Vol"),
            storage_vol_external=text("Storage_Vol_External"),
            storage_path=text("Storage_Path"),
            dataset_directory=text("Directory", "Folder") or dataset_name,
            dataset_id=_as_int(text("Dataset_ID")),
            job=_as_int(text("Job")),
            step_tool=text("StepTool"),
            operator_username=text("Operator_Username", "Operator_PRN") or "Unknown_Operator",
            source_folder_name=text("Source_Folder_Name"),
            instrument_file_hash=text("Instrument_File_Hash"),
            debug_test_tar=_as_bool(text("DebugTestTar")),
            archive_offline=_as_bool(text("MyEMSLOffline", "ArchiveOffline")),
            ignore_max_file_limit=_as_bool(text("IgnoreMaxFileLimit")),
        )


@dataclass(slots=True)
class DatasetInfo:
    """Dataset located on an instrument share."""

    dataset_name: str
    dataset_type: InstrumentFileLayout = InstrumentFileLayout.NONE
    file_or_directory_name: str = ""
    file_list: list[Path] = field(default_factory=list)
    related_files: list[Path] = field(default_factory=list)

    @property
    def file_count(self) -> int:
        return len(self.file_list)


@dataclass(slots=True)
class ResolveResult:
    """Outcome of one dataset search."""

    dataset_info: DatasetInfo
    matched_directory: bool
    source_directory_exists: bool = True

    @property
    def found(self) -> bool:
        return self.dataset_info.dataset_type != InstrumentFileLayout.NONE


def _join_share_path(volume: str, path: str) -> str:
    if not volume:
        return path
    if not path:
        return volume
    separator = "" if volume.endswith(("\\", "/")) else "\\"
    return f"{volume}{separator}{path}"


def _as_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}
