"""Collapse duplicate vendor method directories into zip files before upload.

Some acquisition software copies the same ``*.m`` method directory into every
dataset subdirectory. Duplicates add hundreds of files to an archive upload, so
each sibling ``*.m`` directory that matches the alphabetically first one (same
relative paths, same byte lengths) is replaced by a zip file next to it.
"""

from __future__ import annotations

import logging
import shutil
import zipfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

METHOD_DIRECTORY_SUFFIX = ".m"

Zipper = Callable[[Path, Path], None]
Remover = Callable[[Path], None]


@dataclass(slots=True)
class CompressionReport:
    """Outcome of one duplicate-method scan."""

    ok: bool = True
    archives: list[Path] = field(default_factory=list)
    error_message: str = ""
    warnings: list[str] = field(default_factory=list)


def zip_directory(source: Path, zip_path: Path) -> None:
    """Write every file under ``source`` into ``zip_path`` with paths relative to ``source``."""

    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(source.rglob("*")):
            if path.is_file():
                archive.write(path, arcname=path.relative_to(source).as_posix())


class DuplicateMethodCompressor:
    """Find and zip duplicate ``*.m`` directories below a dataset directory."""

    def __init__(
        self,
        *,
        zipper: Zipper = zip_directory,
        remover: Remover = shutil.rmtree,
        log: logging.Logger | None = None,
    ) -> None:
        self._zipper = zipper
        self._remover = remover
        self._logger = log or logger

    def compress_duplicates(self, dataset_directory: Path) -> bool:
        return self.scan_and_compress(dataset_directory).ok

    def scan_and_compress(self, dataset_directory: Path) -> CompressionReport:
        report = CompressionReport()
        if not dataset_directory.is_dir():
            report.ok = False
            report.error_message = f"Dataset directory not found: {dataset_directory}"
            self._logger.error(report.error_message)
            return report

        method_directories = sorted(
            path for path in dataset_directory.rglob(f"*{METHOD_DIRECTORY_SUFFIX}") if path.is_dir()
        )
        for method_directory in method_directories:
            # Earlier compression may already have removed this directory.
            if not method_directory.is_dir():
                continue
            if not self._compress_siblings(method_directory, report):
                return report
        return report

    def _compress_siblings(self, parent: Path, report: CompressionReport) -> bool:
        siblings = sorted(
            (
                child
                for child in parent.iterdir()
                if child.is_dir() and child.suffix.lower() == METHOD_DIRECTORY_SUFFIX
            ),
            key=lambda path: path.name.lower(),
        )
        if len(siblings) < 2:
            return True

        baseline = siblings[0]
        baseline_files = file_signature(baseline)
        if not baseline_files:
            return True

        for sibling in siblings[1:]:
            if file_signature(sibling) != baseline_files:
                continue

            zip_path = sibling.with_name(f"{sibling.name}.zip")
            if zip_path.exists():
                message = f"Zip file already exists; not compressing {sibling}"
                self._logger.warning(message)
                report.warnings.append(message)
                continue

            self._logger.info(
                "Compressing duplicate method directory %s (matches %s)",
                sibling,
                baseline.name,
            )
            error_message = self._zip_and_verify(
                sibling,
                zip_path,
                expected_entries=len(baseline_files),
            )
            if error_message:
                report.ok = False
                report.error_message = error_message
                self._logger.error(error_message)
                _remove_unverified_zip(zip_path, self._logger)
                return False

            report.archives.append(zip_path)
            try:
                self._remover(sibling)
            except OSError as error:
                report.ok = False
                report.error_message = f"Error deleting {sibling} after compression: {error}"
                self._logger.error(report.error_message)
                return False
        return True

    def _zip_and_verify(self, source: Path, zip_path: Path, *, expected_entries: int) -> str:
        try:
            self._zipper(source, zip_path)
        except (OSError, zipfile.BadZipFile) as error:
            return f"Error zipping {source}: {error}"

        if not zip_path.is_file():
            return f"Zip file was not created: {zip_path}"

        try:
            with zipfile.ZipFile(zip_path) as archive:
                entry_count = sum(1 for info in archive.infolist() if not info.is_dir())
        except (OSError, zipfile.BadZipFile) as error:
            return f"Unable to read zip file {zip_path}: {error}"

        if entry_count < expected_entries:
            return (
                f"Zip file {zip_path} has {entry_count} entries but {source} has "
                f"{expected_entries} files; aborting compression"
            )
        return ""


def file_signature(directory: Path) -> dict[str, int]:
    """Relative POSIX path to byte length for every file below ``directory``.

    Keys are case-sensitive; files differing only in case stay distinct.
    """

    return {
        path.relative_to(directory).as_posix(): path.stat().st_size
        for path in directory.rglob("*")
        if path.is_file()
    }


def _remove_unverified_zip(zip_path: Path, log: logging.Logger) -> None:
    try:
        zip_path.unlink(missing_ok=True)
    except OSError:
        log.warning("Unable to delete unverified zip file %s", zip_path, exc_info=True)
