# ruff: noqa: E402

from __future__ import annotations

import hashlib
import random
import sys
from dataclasses import dataclass, field
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from branchtix.errors import StoreUnavailableError
from branchtix.ports import CommitInfo
from branchtix.store import TicketStore

USER_EMAIL = "alice@example.com"
START_EPOCH = 1_700_000_000


def blob_id_for(content: bytes) -> str:
    """Return the git blob id for ``content``."""
    header = f"blob {len(content)}\0".encode()
    return hashlib.sha1(header + content).hexdigest()


class FakeClock:
    def __init__(self, now: int = START_EPOCH) -> None:
        self.now = now

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int = 60) -> None:
        self.now += seconds


@dataclass
class FakeCommit:
    commit_id: str
    tree: dict[str, str]
    parent: FakeCommit | None
    message: str
    timestamp: int
    author: str


@dataclass
class FakeWorkTree:
    """Work tree bound to a private index, backed by a real directory."""

    store: FakeTreeStore
    index_file: Path
    work_tree: Path

    @property
    def path(self) -> Path:
        return self.work_tree

    @property
    def _index(self) -> dict[str, str]:
        return self.store.indexes.setdefault(self.index_file, {})

    def in_sync(self, branch: str) -> bool:
        commit = self.store.tip(branch)
        if commit is None:
            return False
        return self._index == commit.tree

    def materialize(self) -> None:
        self.store.calls.append("materialize")
        commit = self.store.tip(self.store.head_branch())
        tree = dict(commit.tree) if commit else {}
        for path in list(self._index):
            if path not in tree:
                target = self.work_tree / path
                if target.exists():
                    target.unlink()
        for path, blob_id in tree.items():
            target = self.work_tree / path
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self.store.blobs[blob_id])
        self.store.indexes[self.index_file] = tree

    def stage(self, pathspec: str) -> None:
        self.store.maybe_fail("stage")
        index = self._index
        prefix = pathspec.rstrip("/")
        for path in [p for p in index if p == prefix or p.startswith(f"{prefix}/")]:
            del index[path]
        target = self.work_tree / prefix
        files = [target] if target.is_file() else sorted(p for p in target.rglob("*") if p.is_file())
        for file in files:
            relative = file.relative_to(self.work_tree).as_posix()
            index[relative] = self.store.put_blob(file.read_bytes())

    def remove(self, path: str) -> None:
        self.store.maybe_fail("remove")
        self._index.pop(path, None)
        target = self.work_tree / path
        if target.exists():
            target.unlink()

    def commit(self, message: str) -> None:
        self.store.maybe_fail("commit")
        branch = self.store.head_branch()
        parent = self.store.tip(branch)
        tree = dict(self._index)
        seed = f"{parent.commit_id if parent else ''}{message}{sorted(tree.items())}"
        commit = FakeCommit(
            commit_id=hashlib.sha1(seed.encode()).hexdigest(),
            tree=tree,
            parent=parent,
            message=message,
            timestamp=self.store.clock_value(),
            author=self.store.config.get("user.email", ""),
        )
        self.store.branches.setdefault(branch, []).append(commit)
        self.store.commit_count += 1


@dataclass
class FakeTreeStore:
    """In-memory ``TreeStore`` with a git-like branch and blob model."""

    root: Path
    config: dict[str, str] = field(default_factory=lambda: {"user.email": USER_EMAIL})
    blobs: dict[str, bytes] = field(default_factory=dict)
    branches: dict[str, list[FakeCommit]] = field(default_factory=dict)
    indexes: dict[Path, dict[str, str]] = field(default_factory=dict)
    current_head: str = "refs/heads/main"
    head_history: list[str] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    fail_on: set[str] = field(default_factory=set)
    commit_count: int = 0
    clock: FakeClock | None = None

    @property
    def repo_root(self) -> Path:
        return self.root

    def maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise StoreUnavailableError(f"simulated {operation} failure")

    def clock_value(self) -> int:
        return self.clock.now if self.clock else START_EPOCH

    def put_blob(self, content: bytes) -> str:
        blob_id = blob_id_for(content)
        self.blobs[blob_id] = content
        return blob_id

    def tip(self, branch: str) -> FakeCommit | None:
        commits = self.branches.get(branch.removeprefix("refs/heads/"))
        return commits[-1] if commits else None

    def head_branch(self) -> str:
        if not self.current_head.startswith("refs/heads/"):
            raise StoreUnavailableError("HEAD is detached")
        return self.current_head.removeprefix("refs/heads/")

    def seed(self, branch: str, files: dict[str, bytes], message: str = "seed") -> None:
        """Commit ``files`` directly onto ``branch``."""
        tree = {path: self.put_blob(content) for path, content in files.items()}
        parent = self.tip(branch)
        commit = FakeCommit(
            commit_id=hashlib.sha1(f"{message}{sorted(tree.items())}".encode()).hexdigest(),
            tree=tree,
            parent=parent,
            message=message,
            timestamp=self.clock_value(),
            author=self.config.get("user.email", ""),
        )
        self.branches.setdefault(branch, []).append(commit)

    def seed_tree(self, branch: str, tree: dict[str, str]) -> None:
        """Commit a tree of explicit blob ids onto ``branch``."""
        for blob_id in tree.values():
            self.blobs.setdefault(blob_id, b"")
        commit = FakeCommit(
            commit_id=hashlib.sha1(repr(sorted(tree.items())).encode()).hexdigest(),
            tree=dict(tree),
            parent=self.tip(branch),
            message="seed",
            timestamp=self.clock_value(),
            author="",
        )
        self.branches.setdefault(branch, []).append(commit)

    def config_value(self, key: str) -> str | None:
        return self.config.get(key)

    def tree_entries(self, ref: str) -> list[tuple[str, str]]:
        self.maybe_fail("tree_entries")
        commit = self.tip(ref)
        if commit is None:
            raise StoreUnavailableError(f"unknown ref {ref}")
        return sorted(commit.tree.items())

    def read_blob(self, blob_id: str) -> bytes:
        return self.blobs[blob_id]

    def head(self) -> str:
        return self.current_head

    def set_head(self, ref: str) -> None:
        self.maybe_fail("set_head")
        self.head_history.append(ref)
        self.current_head = ref

    def branch_exists(self, branch: str) -> bool:
        return self.tip(branch) is not None

    def branch_head(self, branch: str) -> str | None:
        commit = self.tip(branch)
        return commit.commit_id if commit else None

    def bind(self, index_file: Path, work_tree: Path) -> FakeWorkTree:
        return FakeWorkTree(self, index_file, work_tree)

    def log(
        self, ref: str, *, path: str | None = None, limit: int | None = None
    ) -> list[CommitInfo]:
        commits: list[CommitInfo] = []
        for commit in reversed(self.branches.get(ref.removeprefix("refs/heads/"), [])):
            if path and not _touches(commit, path):
                continue
            commits.append(
                CommitInfo(
                    commit_id=commit.commit_id,
                    timestamp=commit.timestamp,
                    author=commit.author,
                    subject=commit.message,
                )
            )
        return commits[:limit] if limit is not None else commits


def _touches(commit: FakeCommit, path: str) -> bool:
    def scoped(tree: dict[str, str]) -> dict[str, str]:
        return {key: value for key, value in tree.items() if key.startswith(f"{path}/")}

    before = scoped(commit.parent.tree) if commit.parent else {}
    return scoped(commit.tree) != before


def make_store(
    backend: FakeTreeStore,
    data_root: Path,
    *,
    clock: FakeClock | None = None,
    seed: int = 7,
) -> TicketStore:
    active_clock = clock or backend.clock or FakeClock()
    backend.clock = active_clock
    return TicketStore(
        backend=backend,
        data_root=data_root,
        clock=active_clock,
        rng=random.Random(seed),
    )
