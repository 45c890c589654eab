"""Path helpers for locating branchtix data directories and files."""

import hashlib
import os
import string
from pathlib import Path

from platformdirs import user_data_dir

BRANCHTIX_APP_NAME = "branchtix"
DATA_DIR_ENV = "BRANCHTIX_DATA_DIR"
PROJECTS_DIRNAME = "projects"
WORKING_DIRNAME = "working"
INDEX_FILENAME = "index"
STATE_FILENAME = "state.json"
SETTINGS_FILENAME = "config.json"

_URL_SAFE_CHARS = set(string.ascii_letters + string.digits + "-._~")


def data_dir() -> Path:
    """Return the base branchtix data directory.

    ``BRANCHTIX_DATA_DIR`` overrides the platform user data directory.

    Example:
        >>> isinstance(data_dir(), Path)
        True
    """
    override = os.environ.get(DATA_DIR_ENV, "").strip()
    if override:
        return Path(override).expanduser()
    return Path(user_data_dir(BRANCHTIX_APP_NAME))


def _short_hash(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]


def _normalize_filespace(value: str) -> str:
    raw = value.strip(" .\t\r\n")
    normalized = "".join(char if char in _URL_SAFE_CHARS else "-" for char in raw)
    return normalized.strip(" .\t\r\n")


def project_dir_name(repo_root: Path) -> str:
    """Return the directory name holding local state for a repository.

    Example:
        >>> project_dir_name(Path("/path/to/gumshoe")).startswith("gumshoe-")
        True
    """
    resolved = str(repo_root)
    base = _normalize_filespace(Path(resolved).name)
    suffix = _short_hash(resolved)
    if not base:
        return suffix
    return f"{base}-{suffix}"


def project_dir(repo_root: Path, root: Path | None = None) -> Path:
    """Return the local state directory for a repository."""
    return (root or data_dir()) / PROJECTS_DIRNAME / project_dir_name(repo_root)


def working_dir(project: Path) -> Path:
    """Return the private ticket-branch work tree."""
    return project / WORKING_DIRNAME


def index_file(project: Path) -> Path:
    """Return the private git index file for the ticket branch."""
    return project / INDEX_FILENAME


def state_path(project: Path) -> Path:
    return project / STATE_FILENAME


def settings_path(project: Path) -> Path:
    return project / SETTINGS_FILENAME


def ensure_dir(path: Path) -> None:
    """Create ``path`` and its parents when missing."""
    path.mkdir(parents=True, exist_ok=True)
