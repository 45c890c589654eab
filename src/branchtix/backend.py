"""Git implementation of the ``TreeStore`` port."""

from __future__ import annotations

from pathlib import Path

from . import git
from . import log as branchtix_log
from .errors import RepoNotFoundError, StoreUnavailableError
from .ports import CommitInfo

_HEADS_PREFIX = "refs/heads/"


def _branch_ref(branch: str) -> str:
    if branch.startswith("refs/"):
        return branch
    return f"{_HEADS_PREFIX}{branch}"


class GitWorkTree:
    """Git operations bound to a private index file and work tree."""

    def __init__(
        self,
        git_dir: Path,
        index_file: Path,
        work_tree: Path,
        *,
        git_path: str | None = None,
    ) -> None:
        self._path = work_tree
        self._git_dir = git_dir
        self._git_path = git_path
        self._env = git.bound_env(git_dir, index_file, work_tree)

    @property
    def path(self) -> Path:
        return self._path

    def in_sync(self, branch: str) -> bool:
        """Return whether the bound index records the same tree as ``branch``."""
        branch_tree = git.git_rev_parse(
            self._git_dir, f"{_branch_ref(branch)}^{{tree}}", git_path=self._git_path
        )
        if branch_tree is None:
            return False
        index_tree = git.git_write_tree(self._env, self._path, git_path=self._git_path)
        return index_tree == branch_tree

    def materialize(self) -> None:
        branchtix_log.debug(f"materializing ticket work tree at {self._path}")
        git.git_reset_hard(self._env, self._path, git_path=self._git_path)

    def stage(self, pathspec: str) -> None:
        git.git_add_all(self._env, self._path, pathspec, git_path=self._git_path)

    def remove(self, path: str) -> None:
        git.git_rm(self._env, self._path, path, git_path=self._git_path)

    def commit(self, message: str) -> None:
        branchtix_log.debug(f"commit: {message}")
        git.git_commit(self._env, self._path, message, git_path=self._git_path)


class GitTreeStore:
    """``TreeStore`` backed by the ``git`` executable.

    Args:
        start: Any path inside the repository.
        git_path: Optional git executable.

    Raises:
        RepoNotFoundError: when ``start`` is not inside a git work tree.
    """

    def __init__(self, start: Path, *, git_path: str | None = None) -> None:
        self._git_path = git_path
        root = git.git_repo_root(start, git_path=git_path)
        if root is None:
            raise RepoNotFoundError(
                f"no git repository found from {start}",
                recovery_hint="run inside a git work tree",
            )
        self._repo_root = root
        self._git_dir = git.git_dir(root, git_path=git_path)

    @property
    def repo_root(self) -> Path:
        return self._repo_root

    def config_value(self, key: str) -> str | None:
        return git.git_config_value(self._repo_root, key, git_path=self._git_path)

    def tree_entries(self, ref: str) -> list[tuple[str, str]]:
        return git.git_ls_tree(self._repo_root, _branch_ref(ref), git_path=self._git_path)

    def read_blob(self, blob_id: str) -> bytes:
        return git.git_cat_blob(self._repo_root, blob_id, git_path=self._git_path)

    def head(self) -> str:
        """Return the symbolic ref ``HEAD`` points at, or its commit when detached."""
        ref = git.git_symbolic_head(self._repo_root, git_path=self._git_path)
        if ref:
            return ref
        commit_id = git.git_rev_parse(self._repo_root, "HEAD", git_path=self._git_path)
        if commit_id is None:
            raise StoreUnavailableError(f"cannot resolve HEAD in {self._repo_root}")
        return commit_id

    def set_head(self, ref: str) -> None:
        if ref.startswith("refs/"):
            git.git_set_symbolic_head(self._repo_root, ref, git_path=self._git_path)
        else:
            git.git_set_detached_head(self._repo_root, ref, git_path=self._git_path)

    def branch_exists(self, branch: str) -> bool:
        return git.git_ref_exists(self._repo_root, _branch_ref(branch), git_path=self._git_path)

    def branch_head(self, branch: str) -> str | None:
        return git.git_rev_parse(self._repo_root, _branch_ref(branch), git_path=self._git_path)

    def bind(self, index_file: Path, work_tree: Path) -> GitWorkTree:
        return GitWorkTree(self._git_dir, index_file, work_tree, git_path=self._git_path)

    def log(
        self, ref: str, *, path: str | None = None, limit: int | None = None
    ) -> list[CommitInfo]:
        return git.git_log(
            self._repo_root, _branch_ref(ref), path=path, limit=limit, git_path=self._git_path
        )
