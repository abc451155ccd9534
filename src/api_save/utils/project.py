"""
Project metadata lookups used to stamp log records (service name and version).

The installed distribution metadata is preferred; a source checkout falls back
to the nearest pyproject.toml.
"""
from pathlib import Path
from importlib import metadata as importlib_metadata
from typing import Any
import tomllib

DISTRIBUTION_NAME = "api-save"


def find_pyproject(start: Path, max_up: int = 5) -> Path | None:
    p = start
    for _ in range(max_up):
        candidate = p / "pyproject.toml"
        if candidate.exists():
            return candidate
        if p.parent == p:
            break
        p = p.parent
    return None


def get_pyproject_value(key: str, start: Path | None = None, max_up: int = 5, default: Any = None) -> Any:
    """
    Return the value for a dot-separated `key` (e.g. "project.version") from the
    nearest pyproject.toml, or `default` when the file or key is missing.
    """
    start_path = start or Path(__file__).resolve().parent
    pyproject = find_pyproject(start_path, max_up=max_up)
    if pyproject is None:
        return default

    try:
        with pyproject.open("rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError):
        return default

    cur: Any = data
    for part in key.split("."):
        if isinstance(cur, dict) and part in cur:
            cur = cur[part]
        else:
            return default
    return cur


def get_project_name(default: str = DISTRIBUTION_NAME) -> str:
    return get_pyproject_value("project.name", default=default)


def get_project_version(default: str = "unknown") -> str:
    try:
        return importlib_metadata.version(DISTRIBUTION_NAME)
    except importlib_metadata.PackageNotFoundError:
        pass
    return get_pyproject_value("project.version", default=default)


__all__ = [
    "find_pyproject",
    "get_pyproject_value",
    "get_project_name",
    "get_project_version",
]
