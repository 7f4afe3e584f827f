"""Locate a dataset on an instrument share as a file, several files, or a directory."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path

from capture_task_manager.capture.models import DatasetInfo, InstrumentFileLayout, ResolveResult
from capture_task_manager.capture.normalizer import (
    DEFAULT_SUBSTITUTIONS,
    auto_fix_filename,
    replace_invalid_chars,
    split_extension,
)
from capture_task_manager.taxonomy import InstrumentClass, prefers_directories

logger = logging.getLogger(__name__)

REALTIME_SEARCH_SUFFIXES: tuple[str, ...] = ("_realtimesearch.tsv", "_realtimelibsearch.tsv")

_DIRECTORY_OVERRIDES: dict[InstrumentClass, InstrumentFileLayout] = {
    InstrumentClass.BRUKER_MALDI_IMAGING: InstrumentFileLayout.BRUKER_IMAGING,
    InstrumentClass.BRUKER_MALDI_SPOT: InstrumentFileLayout.BRUKER_SPOT,
}


class DatasetFileSearchTool:
    """Four-pass dataset search: exact and normalized names, files and directories.

    When searching files first the passes run as exact files, normalized files,
    exact directories, normalized directories; otherwise directories come first.
    The first pass with a match wins. Only the top level of the source directory
    is examined.
    """

    def __init__(
        self,
        *,
        substitutions: Mapping[str, str] = DEFAULT_SUBSTITUTIONS,
        trace_mode: bool = False,
        log: logging.Logger | None = None,
    ) -> None:
        self._substitutions = substitutions
        self._trace_mode = trace_mode
        self._logger = log or logger

    @property
    def substitutions(self) -> Mapping[str, str]:
        return self._substitutions

    def auto_fix_filename(self, dataset_name: str, file_name: str) -> str:
        return auto_fix_filename(dataset_name, file_name, self._substitutions)

    def find_dataset_file(self, source_directory: Path, dataset_name: str) -> ResolveResult:
        """Search for a dataset file only; a directory match is reported as not found."""

        result = self.resolve(source_directory, dataset_name, search_files_first=True)
        if not result.matched_directory:
            return result

        info = result.dataset_info
        info.dataset_type = InstrumentFileLayout.NONE
        info.file_or_directory_name = ""
        info.file_list.clear()
        return result

    def find_dataset_file_or_directory(
        self,
        source_directory: Path,
        dataset_name: str,
        instrument_class: InstrumentClass,
    ) -> ResolveResult:
        """Search in the order preferred by the instrument class.

        Directory matches for Bruker MALDI imaging and spot instruments are
        reported with their instrument-specific layout.
        """

        result = self.resolve(
            source_directory,
            dataset_name,
            search_files_first=not prefers_directories(instrument_class),
        )
        if not result.matched_directory:
            return result

        override = _DIRECTORY_OVERRIDES.get(instrument_class)
        if override is not None:
            result.dataset_info.dataset_type = override
        return result

    def resolve(
        self,
        source_directory: Path,
        dataset_name: str,
        *,
        search_files_first: bool,
    ) -> ResolveResult:
        info = DatasetInfo(dataset_name=dataset_name)

        if not source_directory.is_dir():
            self._logger.error("Source directory not found: [%s]", source_directory)
            return ResolveResult(
                dataset_info=info,
                matched_directory=False,
                source_directory_exists=False,
            )

        look_for_files = search_files_first
        for pass_number in range(1, 5):
            if pass_number == 3:
                look_for_files = not look_for_files
            normalized = pass_number % 2 == 0

            if look_for_files:
                self._trace(
                    "Looking for a dataset file, replace invalid characters is %s",
                    normalized,
                )
                found_files = self._match_files(
                    source_directory,
                    dataset_name,
                    normalized=normalized,
                )
                if not found_files:
                    continue
                self._describe_files(info, source_directory, found_files, pass_number=pass_number)
                return ResolveResult(dataset_info=info, matched_directory=False)

            self._trace(
                "Looking for a dataset directory, replace invalid characters is %s",
                normalized,
            )
            directory = self._match_directory(source_directory, dataset_name, normalized=normalized)
            if directory is None:
                continue

            _, extension = split_extension(directory.name)
            info.file_or_directory_name = directory.name
            info.dataset_type = (
                InstrumentFileLayout.DIRECTORY_EXT
                if extension
                else InstrumentFileLayout.DIRECTORY_NO_EXT
            )
            self._trace(
                "Matched directory %s; dataset type = %s",
                directory.name,
                info.dataset_type.value,
            )
            if search_files_first:
                self._logger.info(
                    "Dataset name did not match a file, but it did match directory %s, "
                    "dataset type is %s",
                    info.file_or_directory_name,
                    info.dataset_type.value,
                )
            return ResolveResult(dataset_info=info, matched_directory=True)

        return ResolveResult(dataset_info=info, matched_directory=False)

    def _match_files(
        self,
        source_directory: Path,
        dataset_name: str,
        *,
        normalized: bool,
    ) -> list[Path]:
        target = dataset_name.lower()
        matches: list[Path] = []
        for candidate in _list_entries(source_directory, files=True):
            if normalized:
                base_name, _ = split_extension(candidate.name)
                if replace_invalid_chars(base_name, self._substitutions).lower() == target:
                    matches.append(candidate)
                continue
            if matches_dataset_name(candidate.name, dataset_name):
                matches.append(candidate)
        return matches

    def _match_directory(
        self,
        source_directory: Path,
        dataset_name: str,
        *,
        normalized: bool,
    ) -> Path | None:
        target = dataset_name.lower()
        for candidate in _list_entries(source_directory, files=False):
            stem, _ = split_extension(candidate.name)
            if normalized:
                stem = replace_invalid_chars(stem, self._substitutions)
            if stem.lower() == target:
                return candidate
        return None

    def _describe_files(
        self,
        info: DatasetInfo,
        source_directory: Path,
        found_files: list[Path],
        *,
        pass_number: int,
    ) -> None:
        info.file_list.extend(found_files)

        if info.file_count > 1:
            info.file_or_directory_name = info.dataset_name
            info.dataset_type = InstrumentFileLayout.MULTI_FILE
            self._logger.warning(
                "Dataset name matched multiple files for pass %d in directory %s: %s",
                pass_number,
                source_directory,
                ", ".join(path.name for path in found_files[:5]),
            )
        else:
            info.file_or_directory_name = found_files[0].name
            info.dataset_type = InstrumentFileLayout.FILE
            info.related_files.extend(
                find_realtime_search_files(source_directory, found_files[0].name),
            )
            if info.related_files:
                self._logger.info(
                    "Dataset has realtime search files in directory %s: %s",
                    source_directory,
                    ", ".join(path.name for path in info.related_files[:5]),
                )

        self._trace(
            "Matched file %s; dataset type = %s",
            info.file_or_directory_name,
            info.dataset_type.value,
        )

    def _trace(self, message: str, *args: object) -> None:
        if self._trace_mode:
            self._logger.debug(message, *args)


def matches_dataset_name(entry_name: str, dataset_name: str) -> bool:
    """Whether ``entry_name`` matches the ``<dataset>.*`` share glob, case-insensitively.

    As on the instrument shares, the pattern also matches the bare dataset name.
    """

    name = entry_name.lower()
    target = dataset_name.lower()
    return name == target or name.startswith(f"{target}.")


def find_realtime_search_files(source_directory: Path, file_name: str) -> list[Path]:
    """Sidecar ``.tsv`` files written next to a raw file by instrument realtime search."""

    stem, _ = split_extension(file_name)
    prefix = f"{stem}_".lower()
    candidates = _list_entries(source_directory, files=True)
    related: list[Path] = []
    for suffix in REALTIME_SEARCH_SUFFIXES:
        # <stem>_*<suffix>; the suffix itself starts with an underscore
        related.extend(
            path
            for path in candidates
            if path.name.lower().startswith(prefix)
            and path.name.lower().endswith(suffix)
            and len(path.name) >= len(prefix) + len(suffix)
        )
    return related


def _list_entries(directory: Path, *, files: bool) -> list[Path]:
    if files:
        return [path for path in directory.iterdir() if path.is_file()]
    return [path for path in directory.iterdir() if path.is_dir()]
