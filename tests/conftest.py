"""
Pytest configuration and fixtures.
"""

import os
import sys
import zipfile
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from core.directories import BaseDirectories  # noqa: E402


@pytest.fixture
def environ():
    """Isolated environment store, so tests never touch os.environ."""
    return {}


@pytest.fixture
def home(tmp_path):
    """Empty installation directory."""
    path = (tmp_path / "home").resolve()
    path.mkdir()
    return path


@pytest.fixture
def directories(home):
    """Directories with base == home."""
    return BaseDirectories(home=home, base=home)


@pytest.fixture
def write_tree():
    """Write {relative path: text} under a root directory."""
    def _write(root: Path, files: dict[str, str]) -> Path:
        root.mkdir(parents=True, exist_ok=True)
        for relative, text in files.items():
            target = root / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(text, encoding="utf-8")
        return root
    return _write


@pytest.fixture
def write_archive():
    """Write {member name: text} into a zip archive."""
    def _write(path: Path, files: dict[str, str]) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as archive:
            for member, text in files.items():
                archive.writestr(member, text)
        return path
    return _write
