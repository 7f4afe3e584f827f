"""Mark captured datasets on the instrument by prefixing them with ``x_``."""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path

from capture_task_manager.capture.models import TaskDescriptor
from capture_task_manager.capture.resolver import DatasetFileSearchTool, matches_dataset_name
from capture_task_manager.capture.share_paths import reconcile, resolve_source_directory

logger = logging.getLogger(__name__)

CAPTURED_PREFIX = "x_"

# Suffixes operators append to a dataset name to flag a bad acquisition.
OPERATOR_SUFFIXES: tuple[str, ...] = (
    "-bad",
    "_bad",
    "-corrupt",
    "_corrupt",
    "-corrupted",
    "_corrupted",
    "-chromooff",
    "-flatline",
    "-LCFroze",
    "-mixer",
    "-NoN2",
    "-plugged",
    "-pluggedSPE",
    "-plunger",
    "-pumpOFF",
    "-slow",
    "-wrongLCmethod",
    "-air",
    "-badQC",
    "-plug",
    "-plugsplit",
    "-rotor",
    "-slowsplit",
)

_HASH_CHUNK_BYTES = 1024 * 1024


@dataclass(slots=True)
class RenameResult:
    """Outcome of marking one dataset as captured."""

    success: bool
    renamed: list[Path]
    already_renamed: bool = False
    error_message: str = ""

    @property
    def renamed_count(self) -> int:
        return len(self.renamed)


def candidate_names(dataset_name: str) -> list[str]:
    """Dataset name, operator-flagged variants, then the already-captured names."""

    return [
        dataset_name,
        *(f"{dataset_name}{suffix}" for suffix in OPERATOR_SUFFIXES),
        f"{CAPTURED_PREFIX}{dataset_name}",
        f"{CAPTURED_PREFIX}{dataset_name}-bad",
    ]


def sha1_of_file(path: Path) -> str:
    digest = hashlib.sha1(usedforsecurity=False)  # noqa: S324
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_HASH_CHUNK_BYTES), b""):
            digest.update(chunk)
    return digest.hexdigest()


class RenameOps:
    """Rename a dataset's file or directory on the instrument once it has been captured."""

    def __init__(
        self,
        *,
        search_tool: DatasetFileSearchTool | None = None,
        log: logging.Logger | None = None,
    ) -> None:
        self._logger = log or logger
        self._search_tool = search_tool or DatasetFileSearchTool(log=self._logger)

    def run(self, task: TaskDescriptor) -> RenameResult:
        """Reconcile the share path from task parameters, then rename the dataset."""

        reconciled = reconcile(task.source_vol, task.source_path, task.capture_subdirectory)
        source_directory = Path(task.source_vol).joinpath(
            *[part for part in reconciled.source_path.replace("\\", "/").split("/") if part],
        )
        source_directory = resolve_source_directory(
            source_directory,
            reconciled.capture_subdirectory,
            task.source_folder_name or task.dataset_name,
        )
        return self.rename_dataset(
            source_directory,
            task.dataset_name,
            instrument_file_hash=task.instrument_file_hash,
        )

    def rename_dataset(
        self,
        source_directory: Path,
        dataset_name: str,
        *,
        instrument_file_hash: str = "",
    ) -> RenameResult:
        if not source_directory.is_dir():
            self._logger.error(
                "Instrument directory not found for dataset %s: %s",
                dataset_name,
                source_directory,
            )
            return RenameResult(
                success=False,
                renamed=[],
                error_message=f"Remote directory not found: {source_directory}",
            )

        result = self._rename_first_match(source_directory, dataset_name, instrument_file_hash)
        if result.success:
            return result
        if not result.error_message:
            result.error_message = (
                "Data file and/or directory not found on the instrument; cannot rename"
            )
        self._logger.error("Dataset %s: %s", dataset_name, result.error_message)
        return result

    def _rename_first_match(
        self,
        source_directory: Path,
        dataset_name: str,
        instrument_file_hash: str,
    ) -> RenameResult:
        logged_not_found = False
        for name in candidate_names(dataset_name):
            already_renamed = (
                not dataset_name.startswith(CAPTURED_PREFIX) and name.startswith(CAPTURED_PREFIX)
            )
            entries = [
                path for path in source_directory.iterdir() if matches_dataset_name(path.name, name)
            ]
            matched_files = [path for path in entries if path.is_file()]
            matched_directories = [path for path in entries if path.is_dir()]

            if not entries:
                verified = self._find_by_hash(source_directory, name, instrument_file_hash)
                if verified is None:
                    if not logged_not_found:
                        self._logger.warning(
                            "Dataset %s: data file and/or directory not found using %s.*",
                            name,
                            name,
                        )
                        logged_not_found = True
                    continue
                matched_files.append(verified)

            if already_renamed:
                self._logger.info(
                    "Skipping dataset %s since data file and/or directory already renamed",
                    name,
                )
                return RenameResult(success=True, renamed=[], already_renamed=True)

            renamed: list[Path] = []
            for path in [*matched_files, *matched_directories]:
                error_message = _prefix_entry(path, self._logger)
                if error_message:
                    return RenameResult(success=False, renamed=renamed, error_message=error_message)
                renamed.append(path.with_name(f"{CAPTURED_PREFIX}{path.name}"))
            return RenameResult(success=bool(renamed), renamed=renamed)

        return RenameResult(success=False, renamed=[])

    def _find_by_hash(
        self,
        source_directory: Path,
        name: str,
        instrument_file_hash: str,
    ) -> Path | None:
        info = self._search_tool.find_dataset_file(source_directory, name).dataset_info
        if info.file_count != 1:
            return None

        candidate = info.file_list[0]
        self._logger.debug("Match found: %s", candidate)
        actual_hash = sha1_of_file(candidate)
        if actual_hash == instrument_file_hash.lower():
            self._logger.info("Hashes match for %s: %s", candidate, instrument_file_hash)
            return candidate

        self._logger.warning(
            "Hashes do not match for %s: %s on instrument vs. %s on storage server",
            candidate,
            actual_hash,
            instrument_file_hash,
        )
        return None


def _prefix_entry(path: Path, log: logging.Logger) -> str:
    """Rename ``path`` to ``x_<name>``; returns an error message, empty on success."""

    kind = "directory" if path.is_dir() else "file"
    if not path.exists():
        return ""

    target = path.with_name(f"{CAPTURED_PREFIX}{path.name}")
    if target.exists():
        message = f"Error renaming {kind} {path.name}; new {kind} name already exists: {target}"
        log.error(message)
        return message

    try:
        path.rename(target)
    except PermissionError:
        log.exception("Error renaming %s %s to %s", kind, path, target)
        return f"Error renaming {kind}: access is denied"
    except OSError as error:
        log.exception("Error renaming %s %s to %s", kind, path, target)
        return f"Error renaming {kind}: {type(error).__name__}"

    log.info("Renamed %s to %s", kind, target)
    return ""
