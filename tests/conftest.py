"""Shared test fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from capture_task_manager.config import ArchiveSettings, Settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Drop CTM_* variables from the developer environment."""
    for name in list(os.environ):
        if name.startswith("CTM_"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def fast_settings(tmp_path: Path) -> Settings:
    """Settings with no retry delay and a throwaway database."""
    return Settings(
        db_path=tmp_path / "ctm.db",
        archive=ArchiveSettings(
            retry_delay_seconds=0.0,
            local_tar_dir=tmp_path / "bundles",
        ),
    )
