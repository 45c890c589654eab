"""Run ticket mutations on the ticket branch without touching the user checkout.

``HEAD`` is pointed at the ticket branch only for the duration of a
transaction, and git is bound to a private index file and work tree under the
project data directory. The previous ``HEAD`` is restored on every exit path.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TypeVar

from . import log as branchtix_log
from . import paths
from .codec import HOLD_FILENAME
from .errors import StoreUnavailableError, TransactionFailureError
from .ports import TreeStore, WorkTree

T = TypeVar("T")


class TicketBranch:
    """Transaction manager for the dedicated ticket branch.

    Args:
        backend: Tree store for the repository.
        branch: Ticket branch name (without ``refs/heads/``).
        project: Local state directory holding the private work tree and index.
    """

    def __init__(self, backend: TreeStore, branch: str, project: Path) -> None:
        self._backend = backend
        self.branch = branch
        self.project = project

    @property
    def ref(self) -> str:
        return f"refs/heads/{self.branch}"

    @property
    def work_dir(self) -> Path:
        return paths.working_dir(self.project)

    @property
    def index_file(self) -> Path:
        return paths.index_file(self.project)

    def exists(self) -> bool:
        return self._backend.branch_exists(self.branch)

    def run(self, op: Callable[[WorkTree], T]) -> T:
        """Run ``op`` against the ticket branch work tree.

        ``op`` receives the bound work tree and must commit its changes. The
        ticket branch is created first when missing.
        """
        if not self.exists():
            self._bootstrap()
        with self.checked_out() as worktree:
            return op(worktree)

    def _bootstrap(self) -> None:
        branchtix_log.info(f"creating ticket branch {self.branch}")
        if self.index_file.exists():
            self.index_file.unlink()
        with self.checked_out() as worktree:
            hold = worktree.path / HOLD_FILENAME
            hold.write_text("hold\n", encoding="utf-8")
            worktree.stage(HOLD_FILENAME)
            worktree.commit(f"creating the {self.branch} branch")

    @contextmanager
    def checked_out(self) -> Iterator[WorkTree]:
        """Point ``HEAD`` at the ticket branch and yield the bound work tree."""
        work_dir = self.work_dir
        needs_materialize = not work_dir.is_dir() or not (work_dir / HOLD_FILENAME).exists()
        paths.ensure_dir(work_dir)
        worktree = self._backend.bind(self.index_file, work_dir)
        try:
            previous = self._backend.head()
            self._backend.set_head(self.ref)
        except StoreUnavailableError as exc:
            raise TransactionFailureError(
                f"failed to switch to ticket branch {self.branch}: {exc}"
            ) from exc
        branchtix_log.trace(f"HEAD -> {self.ref} (was {previous})")
        try:
            if self.exists() and (needs_materialize or not worktree.in_sync(self.branch)):
                worktree.materialize()
            yield worktree
        except StoreUnavailableError as exc:
            raise TransactionFailureError(
                f"ticket branch transaction failed: {exc}",
                recovery_hint=f"the {self.branch} branch is unchanged unless a commit succeeded",
            ) from exc
        finally:
            self._backend.set_head(previous)
            branchtix_log.trace(f"HEAD -> {previous}")
