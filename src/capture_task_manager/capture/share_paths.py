"""Share path fix-ups applied before a dataset search."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\\/]+")
_UNC_PREFIXES = ("\\\\", "//")


@dataclass(slots=True, frozen=True)
class ReconciledPath:
    """Source path and capture subdirectory after share reconciliation."""

    source_path: str
    capture_subdirectory: str
    changed: bool


def reconcile(share_root: str, source_path: str, capture_subdirectory: str) -> ReconciledPath:
    """Fold leading ``..`` segments of the capture subdirectory into the source path.

    Some instruments share a directory under an alternate name, so the trigger file
    describes the dataset as ``\\\\host\\ProteomicsData\\..\\ProteomicsData2``.
    Each leading ``..`` drops one trailing segment of ``source_path``; the first real
    segment is appended to what remains of it, and the rest stays as the capture
    subdirectory. Only UNC share roots are rewritten.
    """

    unchanged = ReconciledPath(source_path, capture_subdirectory, changed=False)
    if not capture_subdirectory.lstrip("\\/").startswith(".."):
        return unchanged
    if not share_root.startswith(_UNC_PREFIXES):
        return unchanged

    logger.info(
        "Updating share path, old: '%s' '%s' '%s'",
        share_root,
        source_path,
        capture_subdirectory,
    )

    source_parts = _split(source_path)
    capture_parts = _split(capture_subdirectory)

    index = 0
    while index < len(capture_parts) and capture_parts[index] == "..":
        if source_parts:
            source_parts.pop()
        index += 1

    if index < len(capture_parts):
        source_parts.append(capture_parts[index])
        index += 1

    reconciled = ReconciledPath(
        source_path="\\".join(source_parts),
        capture_subdirectory="\\".join(capture_parts[index:]),
        changed=True,
    )
    logger.info(
        "Updating share path, new: '%s' '%s' '%s'",
        share_root,
        reconciled.source_path,
        reconciled.capture_subdirectory,
    )
    return reconciled


def resolve_source_directory(
    source_directory: Path,
    capture_subdirectory: str,
    source_folder_name: str,
) -> Path:
    """Append the capture subdirectory to the source directory.

    Operators occasionally put the dataset directory name itself into the capture
    subdirectory. When it equals or ends with ``source_folder_name``, it is only
    appended if that directory exists and the subdirectory is not just the dataset
    directory name; otherwise the source directory is returned unchanged.
    """

    subdirectory = capture_subdirectory.strip("\\/")
    if not subdirectory:
        return source_directory

    candidate = source_directory.joinpath(*_split(subdirectory))
    folder_name = source_folder_name.strip()
    if not folder_name or not _names_folder(subdirectory, folder_name):
        return candidate

    if not candidate.is_dir():
        logger.warning(
            "Capture subdirectory ends with the dataset name. Gracefully ignoring because "
            "this appears to be a data entry error; directory not found: %s",
            candidate,
        )
        return source_directory

    if subdirectory.lower() == folder_name.lower():
        logger.warning(
            "Capture subdirectory is the dataset name; leaving the capture path as %s "
            "so that the entire dataset directory will be copied",
            source_directory,
        )
        return source_directory

    logger.info("Appending capture subdirectory to source directory, giving: %s", candidate)
    return candidate


def _names_folder(subdirectory: str, folder_name: str) -> bool:
    parts = _split(subdirectory)
    return bool(parts) and parts[-1].lower() == folder_name.lower()


def _split(path: str) -> list[str]:
    return [part for part in _SEPARATORS.split(path) if part and part != "."]
