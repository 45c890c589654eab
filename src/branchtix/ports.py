"""Typed ports for the versioned tree backend consumed by the ticket store."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True)
class CommitInfo:
    """One commit from the ticket branch history."""

    commit_id: str
    timestamp: int
    author: str
    subject: str


class WorkTree(Protocol):
    """Backend operations bound to a private index file and work tree."""

    @property
    def path(self) -> Path: ...

    def in_sync(self, branch: str) -> bool: ...

    def materialize(self) -> None: ...

    def stage(self, pathspec: str) -> None: ...

    def remove(self, path: str) -> None: ...

    def commit(self, message: str) -> None: ...


class TreeStore(Protocol):
    """Versioned tree backend primitives.

    Every method may raise ``StoreUnavailableError``.
    """

    @property
    def repo_root(self) -> Path: ...

    def config_value(self, key: str) -> str | None: ...

    def tree_entries(self, ref: str) -> list[tuple[str, str]]: ...

    def read_blob(self, blob_id: str) -> bytes: ...

    def head(self) -> str: ...

    def set_head(self, ref: str) -> None: ...

    def branch_exists(self, branch: str) -> bool: ...

    def branch_head(self, branch: str) -> str | None: ...

    def bind(self, index_file: Path, work_tree: Path) -> WorkTree: ...

    def log(self, ref: str, *, path: str | None = None, limit: int | None = None) -> list[CommitInfo]: ...
