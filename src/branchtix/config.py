"""Configuration helpers for branchtix.

This module reads and writes the per-project ``config.json`` settings document
(saved queries), validates it with Pydantic models, and resolves environment
overrides.

Example:
    >>> from branchtix.config import resolve_branch
    >>> isinstance(resolve_branch(), str)
    True
"""

import json
import os
from pathlib import Path

from pydantic import BaseModel, ValidationError

from . import log as branchtix_log
from . import paths
from .models import QueryOptions, Settings

DEFAULT_BRANCH = "ticgit"
BRANCH_ENV = "BRANCHTIX_BRANCH"
GIT_PATH_ENV = "BRANCHTIX_GIT"


def resolve_branch(value: str | None = None) -> str:
    """Return the ticket branch name from an explicit value or the environment."""
    for candidate in (value, os.environ.get(BRANCH_ENV)):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return DEFAULT_BRANCH


def resolve_git_path(value: str | None = None) -> str:
    """Return the git executable from an explicit value or the environment."""
    for candidate in (value, os.environ.get(GIT_PATH_ENV)):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return "git"


def load_json(path: Path) -> dict | None:
    """Load a JSON file if it exists.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed payload, or ``None`` if the file does not exist.

    Example:
        >>> from pathlib import Path
        >>> load_json(Path("missing.json")) is None
        True
    """
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def write_json(path: Path, payload: dict | BaseModel) -> None:
    """Write a JSON payload to disk, creating parent directories."""
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", exclude_none=True)
    paths.ensure_dir(path.parent)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, sort_keys=True)
        fh.write("\n")


def load_settings(path: Path) -> Settings:
    """Load the settings document, treating absent or malformed files as empty."""
    try:
        payload = load_json(path)
    except (OSError, ValueError) as exc:
        branchtix_log.warning(f"ignoring unreadable settings at {path}: {exc}")
        return Settings()
    if payload is None:
        return Settings()
    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        branchtix_log.warning(f"ignoring invalid settings at {path}:\n{exc}")
        return Settings()


def write_settings(path: Path, settings: Settings) -> None:
    write_json(path, settings)


def save_query(settings: Settings, name: str, options: QueryOptions) -> Settings:
    """Return settings with ``options`` stored under ``name``."""
    saved = dict(settings.saved_queries)
    saved[name] = options
    return settings.model_copy(update={"saved_queries": saved})
