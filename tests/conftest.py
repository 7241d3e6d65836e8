"""Pytest configuration for tdsweb tests."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

_TEST_CONFIG_DIR = Path(tempfile.mkdtemp(prefix="tdsweb-test-config-"))
os.environ.setdefault("TDSWEB_CONFIG_DIR", str(_TEST_CONFIG_DIR))


@pytest.fixture(autouse=True)
def _isolate_settings_path(monkeypatch):
    """Keep tests off any settings file named in the environment."""
    monkeypatch.setenv("TDSWEB_SETTINGS_PATH", "")
    yield
