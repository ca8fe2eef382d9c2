"""Shared test fixtures for ctxsync."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ctxsync.config import write_default_config

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture()
def tmp_project(tmp_path: Path) -> Path:
    """Create an initialized project with an empty global directory."""
    write_default_config(tmp_path)
    (tmp_path / "ctx").mkdir()
    return tmp_path
