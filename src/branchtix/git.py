"""Git helper functions used by the branchtix git backend."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path

from . import exec as exec_util
from .errors import StoreUnavailableError
from .ports import CommitInfo

_LOG_FIELD_SEP = "\x1f"


def git_command(args: list[str], *, git_path: str | None = None) -> list[str]:
    """Build a git command using an optional executable path.

    Example:
        >>> git_command(["status"])
        ['git', 'status']
    """
    resolved = git_path.strip() if isinstance(git_path, str) else ""
    if not resolved:
        resolved = "git"
    return [resolved, *args]


def _run_git(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    text: bool = True,
) -> exec_util.CommandResult:
    request = exec_util.CommandRequest(
        argv=tuple(cmd),
        cwd=cwd,
        env=env,
        text=text,
    )
    result = exec_util.run_with_runner(request)
    if result is None:
        raise StoreUnavailableError(
            f"missing required command: {cmd[0]}",
            recovery_hint="install git or set BRANCHTIX_GIT",
        )
    return result


def _run_git_or_raise(
    cmd: list[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    text: bool = True,
) -> exec_util.CommandResult:
    result = _run_git(cmd, cwd=cwd, env=env, text=text)
    if result.returncode != 0:
        request = exec_util.CommandRequest(argv=tuple(cmd), cwd=cwd)
        raise StoreUnavailableError(exec_util.command_failure_detail(request, result))
    return result


def bound_env(git_dir: Path, index_file: Path, work_tree: Path) -> dict[str, str]:
    """Return an environment that points git at a private index and work tree."""
    env = dict(os.environ)
    env["GIT_DIR"] = str(git_dir)
    env["GIT_INDEX_FILE"] = str(index_file)
    env["GIT_WORK_TREE"] = str(work_tree)
    return env


def git_repo_root(start: Path, *, git_path: str | None = None) -> Path | None:
    """Return the git repository root for a starting path.

    Returns:
        Repo root path or ``None`` if not inside a git work tree.
    """
    result = _run_git(
        git_command(["-C", str(start), "rev-parse", "--show-toplevel"], git_path=git_path)
    )
    if result.returncode != 0:
        return None
    resolved = result.stdout.strip()
    if not resolved:
        return None
    return Path(resolved)


def git_dir(repo_dir: Path, *, git_path: str | None = None) -> Path:
    """Return the absolute ``.git`` directory for a repository."""
    result = _run_git_or_raise(
        git_command(["-C", str(repo_dir), "rev-parse", "--absolute-git-dir"], git_path=git_path)
    )
    return Path(result.stdout.strip())


def git_config_value(repo_dir: Path, key: str, *, git_path: str | None = None) -> str | None:
    """Return a git config value, or ``None`` when it is unset."""
    result = _run_git(
        git_command(["-C", str(repo_dir), "config", "--get", key], git_path=git_path)
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_ls_tree(repo_dir: Path, ref: str, *, git_path: str | None = None) -> list[tuple[str, str]]:
    """Return ``(path, blob_id)`` for every blob reachable from ``ref``."""
    result = _run_git_or_raise(
        git_command(
            ["-C", str(repo_dir), "ls-tree", "-r", "-z", "--full-tree", ref],
            git_path=git_path,
        )
    )
    entries: list[tuple[str, str]] = []
    for record in result.stdout.split("\0"):
        if not record:
            continue
        meta, sep, path = record.partition("\t")
        if not sep:
            continue
        parts = meta.split()
        if len(parts) != 3 or parts[1] != "blob":
            continue
        entries.append((path, parts[2]))
    return entries


def git_cat_blob(repo_dir: Path, blob_id: str, *, git_path: str | None = None) -> bytes:
    """Return the raw content of a blob."""
    result = _run_git_or_raise(
        git_command(["-C", str(repo_dir), "cat-file", "blob", blob_id], git_path=git_path),
        text=False,
    )
    return result.stdout_bytes


def git_symbolic_head(repo_dir: Path, *, git_path: str | None = None) -> str | None:
    """Return the ref ``HEAD`` points at, or ``None`` when detached."""
    result = _run_git(
        git_command(["-C", str(repo_dir), "symbolic-ref", "-q", "HEAD"], git_path=git_path)
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_rev_parse(repo_dir: Path, ref: str, *, git_path: str | None = None) -> str | None:
    """Resolve a ref to its object id.

    Returns:
        Object id or ``None`` on failure.
    """
    result = _run_git(
        git_command(["-C", str(repo_dir), "rev-parse", "--verify", "-q", ref], git_path=git_path)
    )
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def git_set_symbolic_head(repo_dir: Path, ref: str, *, git_path: str | None = None) -> None:
    """Point ``HEAD`` at a branch ref without touching any work tree."""
    _run_git_or_raise(
        git_command(["-C", str(repo_dir), "symbolic-ref", "HEAD", ref], git_path=git_path)
    )


def git_set_detached_head(repo_dir: Path, commit_id: str, *, git_path: str | None = None) -> None:
    """Detach ``HEAD`` at a commit without touching any work tree."""
    _run_git_or_raise(
        git_command(
            ["-C", str(repo_dir), "update-ref", "--no-deref", "HEAD", commit_id],
            git_path=git_path,
        )
    )


def git_ref_exists(repo_dir: Path, ref: str, *, git_path: str | None = None) -> bool:
    """Check whether a git ref exists.

    Args:
        repo_dir: Git repository directory.
        ref: Ref name (e.g., ``refs/heads/main``).

    Returns:
        ``True`` if the ref exists.
    """
    result = _run_git(
        git_command(
            ["-C", str(repo_dir), "show-ref", "--verify", "--quiet", ref],
            git_path=git_path,
        )
    )
    return result.returncode == 0


def git_log(
    repo_dir: Path,
    ref: str,
    *,
    path: str | None = None,
    limit: int | None = None,
    git_path: str | None = None,
) -> list[CommitInfo]:
    """Return commits reachable from ``ref``, most recent first."""
    args = [
        "-C",
        str(repo_dir),
        "log",
        f"--format=%H{_LOG_FIELD_SEP}%ct{_LOG_FIELD_SEP}%ae{_LOG_FIELD_SEP}%s",
    ]
    if limit is not None:
        args.append(f"--max-count={max(0, limit)}")
    args.append(ref)
    if path:
        args.extend(["--", path])
    result = _run_git_or_raise(git_command(args, git_path=git_path))
    commits: list[CommitInfo] = []
    for line in result.stdout.splitlines():
        parts = line.split(_LOG_FIELD_SEP)
        if len(parts) < 4:
            continue
        commit_id, timestamp, author, subject = parts[:4]
        try:
            epoch = int(timestamp.strip())
        except ValueError:
            epoch = 0
        commits.append(
            CommitInfo(
                commit_id=commit_id.strip(),
                timestamp=epoch,
                author=author.strip(),
                subject=subject.strip(),
            )
        )
    return commits


def git_write_tree(env: Mapping[str, str], cwd: Path, *, git_path: str | None = None) -> str:
    """Return the tree id for the index bound in ``env``."""
    result = _run_git_or_raise(git_command(["write-tree"], git_path=git_path), cwd=cwd, env=env)
    return result.stdout.strip()


def git_reset_hard(env: Mapping[str, str], cwd: Path, *, git_path: str | None = None) -> None:
    """Reset the bound index and work tree to ``HEAD``."""
    _run_git_or_raise(git_command(["reset", "-q", "--hard"], git_path=git_path), cwd=cwd, env=env)


def git_add_all(
    env: Mapping[str, str], cwd: Path, pathspec: str, *, git_path: str | None = None
) -> None:
    """Stage every change (including deletions) under ``pathspec``."""
    _run_git_or_raise(
        git_command(["add", "-A", "--", pathspec], git_path=git_path), cwd=cwd, env=env
    )


def git_rm(env: Mapping[str, str], cwd: Path, path: str, *, git_path: str | None = None) -> None:
    """Remove a path from the bound index and work tree."""
    _run_git_or_raise(
        git_command(["rm", "-q", "-f", "--ignore-unmatch", "--", path], git_path=git_path),
        cwd=cwd,
        env=env,
    )


def git_commit(env: Mapping[str, str], cwd: Path, message: str, *, git_path: str | None = None) -> None:
    """Commit the bound index to the branch ``HEAD`` points at."""
    _run_git_or_raise(
        git_command(
            ["commit", "-q", "--no-verify", "--no-gpg-sign", "-m", message],
            git_path=git_path,
        ),
        cwd=cwd,
        env=env,
    )
