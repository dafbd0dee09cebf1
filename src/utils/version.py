"""Version helpers."""

from pathlib import Path

import tomlkit

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def get_pyproject_version(pyproject_path: Path | None = None) -> str:
    """Get WatchlistBridge's version from the pyproject.toml file.

    Args:
        pyproject_path (Path | None): Explicit pyproject.toml location; defaults to
            the one at the project root.

    Returns:
        str: The declared version, or ``"unknown"`` if it cannot be read
    """
    toml_file = pyproject_path or PROJECT_ROOT / "pyproject.toml"
    if not toml_file.is_file():
        return "unknown"

    with toml_file.open(encoding="utf-8") as f:
        toml_data = tomlkit.load(f)

    project = toml_data.get("project", {})
    return str(project.get("version", "unknown"))


def get_docker_status() -> bool:
    """Check if WatchlistBridge is running inside a Docker container."""
    return Path("/.dockerenv").is_file()
