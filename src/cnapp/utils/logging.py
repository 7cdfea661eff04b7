"""
Service name and version stamped on structured log records.

The installed distribution wins; a source checkout without an install falls
back to the `[project]` table of the closest pyproject.toml above this package.
"""

from functools import lru_cache
from importlib import metadata as importlib_metadata
from pathlib import Path
import logging
import tomllib

logger = logging.getLogger(__name__)

DISTRIBUTION_NAME = "cnapp"
UNKNOWN_VERSION = "unknown"


def find_pyproject(start: Path, levels: int = 5) -> Path | None:
    """Walk up from `start` (at most `levels` directories) looking for pyproject.toml."""
    for directory in [start, *start.parents][:levels]:
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def read_project_table(start: Path | None = None) -> dict:
    """
    Return the `[project]` table of the nearest pyproject.toml, or {}.

    An unreadable file counts as missing; it only costs the log stamp.
    """
    start = start or Path(__file__).resolve().parent
    pyproject = find_pyproject(start)
    if pyproject is None:
        return {}
    try:
        with pyproject.open("rb") as fh:
            data = tomllib.load(fh)
    except (OSError, tomllib.TOMLDecodeError):
        logger.debug("metadata.pyproject_unreadable", extra={"path": str(pyproject)})
        return {}
    project = data.get("project")
    return project if isinstance(project, dict) else {}


@lru_cache()
def get_project_name() -> str:
    return read_project_table().get("name") or DISTRIBUTION_NAME


@lru_cache()
def get_project_version() -> str:
    try:
        return importlib_metadata.version(DISTRIBUTION_NAME)
    except importlib_metadata.PackageNotFoundError:
        return read_project_table().get("version") or UNKNOWN_VERSION
