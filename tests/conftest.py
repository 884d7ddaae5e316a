"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

import pytest

# Add src to Python path so tests run without an editable install
project_root = Path(__file__).parent.parent
src_path = project_root / "src"

sys.path.insert(0, str(src_path))


@pytest.fixture(autouse=True)
def _isolate_vestbond_env(monkeypatch):
    """Keep VESTBOND_* variables from the developer shell out of config tests."""
    import os

    for key in list(os.environ):
        if key.startswith("VESTBOND_"):
            monkeypatch.delenv(key, raising=False)
