"""Character substitutions that reconcile hand-edited file names with dataset names.

Instrument operators sometimes save data files with spaces, percent signs or extra
periods that the dataset name does not allow. Substitutions are applied once each,
in mapping order; an earlier substitution is never revisited, so order matters.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from types import MappingProxyType

DEFAULT_SUBSTITUTIONS: Mapping[str, str] = MappingProxyType({" ": "_", "%": "pct", ".": "pt"})


def split_extension(file_name: str) -> tuple[str, str]:
    """Split ``name.ext`` into base name and extension (with the leading period)."""

    return os.path.splitext(file_name)


def replace_invalid_chars(
    text: str,
    substitutions: Mapping[str, str] = DEFAULT_SUBSTITUTIONS,
) -> str:
    """Apply every substitution to ``text`` in mapping order."""

    updated = text
    for char, replacement in substitutions.items():
        updated = updated.replace(char, replacement)
    return updated


def normalize(file_name: str, substitutions: Mapping[str, str] = DEFAULT_SUBSTITUTIONS) -> str:
    """Substitute characters in the base name only and reattach the extension."""

    base_name, extension = split_extension(file_name)
    return replace_invalid_chars(base_name, substitutions) + extension


def auto_fix_filename(
    dataset_name: str,
    file_name: str,
    substitutions: Mapping[str, str] = DEFAULT_SUBSTITUTIONS,
) -> str:
    """Return the substituted file name if it then matches the dataset name, else ``file_name``.

    The base name is recomputed after every substitution, so a period replaced in one
    step is never mistaken for the extension separator in the next.
    """

    if not any(char in file_name for char in substitutions):
        return file_name

    _, extension = split_extension(file_name)
    updated = file_name
    for char, replacement in substitutions.items():
        base_name, _ = split_extension(updated)
        if char not in base_name:
            continue
        updated = base_name.replace(char, replacement) + extension

    base_name, _ = split_extension(updated)
    if base_name.lower() == dataset_name.lower():
        return updated
    return file_name
