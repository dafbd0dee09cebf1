"""Tests for version utility helpers."""

import tomllib
from pathlib import Path

from src.utils.version import get_pyproject_version


def test_get_pyproject_version_matches_pyproject() -> None:
    """Test that get_pyproject_version matches the version in pyproject.toml."""
    with Path("pyproject.toml").open("rb") as f:
        pyproject = tomllib.load(f)

    expected_version = pyproject["project"]["version"]

    assert get_pyproject_version() == expected_version


def test_get_pyproject_version_unknown_without_file(tmp_path: Path) -> None:
    assert get_pyproject_version(tmp_path / "missing.toml") == "unknown"


def test_get_pyproject_version_reads_explicit_file(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text('[project]\nname = "x"\nversion = "2.3.4"\n', encoding="utf-8")

    assert get_pyproject_version(pyproject) == "2.3.4"
