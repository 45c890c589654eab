"""Ticket store: index ownership, reference resolution, and mutations.

The store decodes the whole ticket branch into an in-memory index, runs every
mutation as a single-commit transaction on that branch, and rebuilds the index
from scratch afterwards. Rebuilding costs one tree listing per mutation, which
bounds the store to human-scale ticket counts.
"""

from __future__ import annotations

import random
import re
import shutil
import time
from collections.abc import Callable
from pathlib import Path

from . import cache, codec, paths
from . import config as config_util
from . import log as branchtix_log
from .backend import GitTreeStore
from .codec import Attachment, Index, Ticket
from .errors import TransactionFailureError, ValidationFailedError
from .models import QueryOptions, SessionState, Settings, Snapshot
from .ports import CommitInfo, TreeStore, WorkTree
from .query import DEFAULT_OPTIONS, merge_options, query
from .transaction import TicketBranch

VALID_STATES = ("open", "resolved", "invalid", "hold")
ANONYMOUS_EMAIL = "anon"
RECENT_LIMIT = 20

_POSITION_RE = re.compile(r"^[0-9]+$")
_NAME_SUFFIX_LIMIT = 999


def _write_marker(path: Path, content: str) -> None:
    if content and not content.endswith("\n"):
        content = f"{content}\n"
    path.write_text(content, encoding="utf-8")


class TicketStore:
    """Authoritative ticket index for one repository.

    Args:
        start: Path inside the repository (defaults to the current directory).
        backend: Tree store to use instead of the git executable.
        data_root: Base directory for local state (defaults to the user data
            directory).
        branch: Ticket branch name.
        git_path: Git executable.
        clock: Returns the current epoch seconds.
        rng: Random source for ticket name suffixes.

    Raises:
        RepoNotFoundError: when no repository is found from ``start``.
    """

    def __init__(
        self,
        start: Path | None = None,
        *,
        backend: TreeStore | None = None,
        data_root: Path | None = None,
        branch: str | None = None,
        git_path: str | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self._backend = backend or GitTreeStore(
            start or Path.cwd(), git_path=config_util.resolve_git_path(git_path)
        )
        self.project = paths.project_dir(self._backend.repo_root, data_root)
        self.ticket_branch = TicketBranch(
            self._backend, config_util.resolve_branch(branch), self.project
        )
        self._clock = clock
        self._rng = rng or random.Random()
        self.settings: Settings = config_util.load_settings(paths.settings_path(self.project))
        self.session = SessionState()
        self.index: Index = {}
        self._branch_head: str | None = None
        self._decoded: dict[str, Ticket] | None = None
        if not self._load_snapshot():
            self.reset()

    @property
    def branch(self) -> str:
        return self.ticket_branch.branch

    @property
    def current_ticket(self) -> str | None:
        return self.session.current_ticket

    @property
    def last_tickets(self) -> list[str]:
        return list(self.session.last_tickets)

    # -- index and snapshot -------------------------------------------------

    def _load_snapshot(self) -> bool:
        snapshot = cache.load_snapshot(paths.state_path(self.project))
        if snapshot is None:
            return False
        self.session = snapshot.session
        current_head = self._backend.branch_head(self.branch)
        if snapshot.branch_head != current_head:
            branchtix_log.debug(f"ticket cache is stale for {self.branch}; rebuilding")
            return False
        self.index = snapshot.index
        self._branch_head = current_head
        self._decoded = None
        return True

    def rebuild(self) -> None:
        """Decode the whole ticket branch into a fresh index."""
        if self.ticket_branch.exists():
            entries = self._backend.tree_entries(self.branch)
            self.index = codec.decode_tree(entries)
            self._branch_head = self._backend.branch_head(self.branch)
        else:
            self.index = {}
            self._branch_head = None
        self._decoded = None
        branchtix_log.trace(f"indexed {len(self.index)} tickets from {self.branch}")

    def save_state(self) -> None:
        snapshot = Snapshot(
            branch_head=self._branch_head,
            index=self.index,
            session=self.session,
        )
        cache.write_snapshot(paths.state_path(self.project), snapshot)

    def reset(self) -> None:
        """Rebuild the index and persist the snapshot."""
        self.rebuild()
        self.save_state()

    def _decoded_tickets(self) -> dict[str, Ticket]:
        if self._decoded is None:
            self._decoded = {
                name: codec.decode_ticket(name, bucket, self._backend.read_blob)
                for name, bucket in self.index.items()
            }
        return self._decoded

    def tickets(self) -> list[Ticket]:
        """Return every ticket in index order."""
        return list(self._decoded_tickets().values())

    def ticket(self, name: str) -> Ticket | None:
        if name not in self.index:
            return None
        return self._decoded_tickets().get(name)

    # -- lookups ------------------------------------------------------------

    def user_email(self) -> str:
        return self._backend.config_value("user.email") or ANONYMOUS_EMAIL

    def resolve(self, ref: str | None = None) -> str | None:
        """Resolve a ticket reference to a ticket name.

        An empty reference means the checked-out ticket, digits select a
        1-based position in the most recent listing, and anything else is
        matched as a prefix of a ticket id. Ambiguous prefixes resolve to the
        first match in index order.
        """
        value = (ref or "").strip()
        if not value:
            return self.session.current_ticket
        if _POSITION_RE.match(value):
            position = int(value)
            last = self.session.last_tickets
            if 1 <= position <= len(last):
                return last[position - 1]
            return None
        for name, bucket in self.index.items():
            ticket_id = codec.ticket_id_of(bucket)
            if ticket_id and ticket_id.startswith(value):
                return name
        return None

    def show(self, ref: str | None = None) -> Ticket | None:
        name = self.resolve(ref)
        if name is None:
            return None
        return self.ticket(name)

    def checkout(self, ref: str) -> str | None:
        """Record the referenced ticket as the current ticket."""
        name = self.resolve(ref)
        if name is None:
            return None
        self.session.current_ticket = name
        self.save_state()
        return name

    def saved_queries(self) -> dict[str, QueryOptions]:
        return dict(self.settings.saved_queries)

    def list_tickets(
        self,
        options: QueryOptions | None = None,
        *,
        saved: str | None = None,
        save_as: str | None = None,
    ) -> list[Ticket]:
        """Query tickets and remember the result order for positional refs.

        Args:
            options: Caller filter/order options.
            saved: Name of a saved query merged under ``options``.
            save_as: Save the effective options under this name.
        """
        supplied = options or QueryOptions()
        stored: QueryOptions | None = None
        if saved:
            stored = self.settings.saved_queries.get(saved)
            if stored is None:
                branchtix_log.warning(f"no saved query named {saved!r}")
        effective = merge_options(stored, supplied)
        if effective.is_empty() and not saved and not save_as:
            effective = DEFAULT_OPTIONS
        result = query(self.tickets(), effective)
        if save_as:
            self._save_query(save_as, effective)
        self.session.last_tickets = [ticket.name for ticket in result]
        self.save_state()
        return result

    def _save_query(self, name: str, options: QueryOptions) -> None:
        self.settings = config_util.save_query(self.settings, name, options)
        settings_path = paths.settings_path(self.project)
        try:
            config_util.write_settings(settings_path, self.settings)
        except OSError as exc:
            branchtix_log.warning(f"failed to write settings {settings_path}: {exc}")

    def recent(self, ref: str | None = None, *, limit: int | None = RECENT_LIMIT) -> list[CommitInfo]:
        """Return recent ticket-branch commits, optionally for one ticket."""
        if not self.ticket_branch.exists():
            return []
        path: str | None = None
        if ref is not None:
            path = self.resolve(ref)
            if path is None:
                return []
        return self._backend.log(self.branch, path=path, limit=limit)

    def attachment_content(self, attachment: Attachment) -> bytes:
        return self._backend.read_blob(attachment.blob_id)

    # -- mutations ----------------------------------------------------------

    def _unique_name(self, title: str, epoch: int) -> str:
        for _ in range(_NAME_SUFFIX_LIMIT * 2):
            name = codec.ticket_name(title, epoch, self._rng.randrange(_NAME_SUFFIX_LIMIT))
            if name not in self.index:
                return name
        raise ValidationFailedError(f"could not generate a unique name for {title!r}")

    def _commit(
        self, name: str, message: str, apply: Callable[[WorkTree, Path], list[str]]
    ) -> Ticket | None:
        """Commit one mutation of ticket ``name``.

        ``apply`` writes marker files into the ticket directory and returns
        their filenames. Only those files are staged; removals go through
        ``WorkTree.remove`` and are staged by it.
        """

        def op(worktree: WorkTree) -> None:
            ticket_dir = worktree.path / name
            paths.ensure_dir(ticket_dir)
            for filename in apply(worktree, ticket_dir):
                worktree.stage(f"{name}/{filename}")
            worktree.commit(message)

        self.ticket_branch.run(op)
        self.reset()
        return self.ticket(name)

    def _markers(self, name: str, prefix: str) -> list[str]:
        return [filename for filename, _ in self.index.get(name, []) if filename.startswith(prefix)]

    def _free_filename(self, name: str, build: Callable[[int], str]) -> str:
        existing = {filename for filename, _ in self.index.get(name, [])}
        epoch = int(self._clock())
        filename = build(epoch)
        while filename in existing:
            epoch += 1
            filename = build(epoch)
        return filename

    def create(
        self,
        title: str,
        *,
        comment: str | None = None,
        tags: str | list[str] | None = None,
    ) -> Ticket:
        """Create a ticket assigned to the current user in state ``open``.

        Raises:
            ValidationFailedError: when the title is empty.
        """
        clean_title = (title or "").strip()
        if not clean_title:
            raise ValidationFailedError("a ticket title is required")
        epoch = int(self._clock())
        name = self._unique_name(clean_title, epoch)
        email = self.user_email()
        tag_files: dict[str, str] = {}
        for tag in codec.split_tags(tags):
            filename = codec.tag_filename(tag)
            if filename and filename not in tag_files:
                tag_files[filename] = tag

        markers = {
            codec.TICKET_ID_FILENAME: name,
            codec.assigned_filename(email): email,
            codec.state_filename(codec.DEFAULT_STATE): codec.DEFAULT_STATE,
            **tag_files,
        }

        def apply(_worktree: WorkTree, ticket_dir: Path) -> list[str]:
            branchtix_log.info(f"saving {name}")
            for filename, content in markers.items():
                _write_marker(ticket_dir / filename, content)
            written = list(markers)
            if comment and comment.strip():
                comment_file = codec.comment_filename(epoch, email)
                (ticket_dir / comment_file).write_text(comment, encoding="utf-8")
                written.append(comment_file)
            return written

        ticket = self._commit(name, f"added ticket {name}", apply)
        if ticket is None:
            raise TransactionFailureError(f"ticket {name} is missing after its commit")
        return ticket

    def change_state(self, new_state: str, ref: str | None = None) -> Ticket | None:
        """Move a ticket to ``new_state``; unchanged states commit nothing.

        Raises:
            ValidationFailedError: when ``new_state`` is not a valid state.
        """
        state = (new_state or "").strip()
        if state not in VALID_STATES:
            raise ValidationFailedError(
                f"invalid state {state!r}",
                recovery_hint=f"choose from: {', '.join(VALID_STATES)}",
            )
        name = self.resolve(ref)
        if name is None:
            return None
        ticket = self.ticket(name)
        if ticket is None or ticket.state == state:
            return ticket
        old_markers = self._markers(name, codec.STATE_PREFIX)

        def apply(worktree: WorkTree, ticket_dir: Path) -> list[str]:
            for filename in old_markers:
                worktree.remove(f"{name}/{filename}")
            marker = codec.state_filename(state)
            _write_marker(ticket_dir / marker, state)
            return [marker]

        return self._commit(name, f"added state ({state}) to ticket {name}", apply)

    def assign(self, assignee: str | None = None, ref: str | None = None) -> Ticket | None:
        """Assign a ticket, defaulting to the current user; no-ops commit nothing."""
        target = (assignee or "").strip() or self.user_email()
        name = self.resolve(ref)
        if name is None:
            return None
        ticket = self.ticket(name)
        if ticket is None or ticket.assigned == target:
            return ticket
        old_markers = self._markers(name, codec.ASSIGNED_PREFIX)

        def apply(worktree: WorkTree, ticket_dir: Path) -> list[str]:
            for filename in old_markers:
                worktree.remove(f"{name}/{filename}")
            marker = codec.assigned_filename(target)
            _write_marker(ticket_dir / marker, target)
            return [marker]

        return self._commit(name, f"assigned {target} to ticket {name}", apply)

    def add_tags(self, tags: str | list[str], ref: str | None = None) -> Ticket | None:
        """Add comma-delimited tags; tags already present commit nothing."""
        name = self.resolve(ref)
        if name is None:
            return None
        ticket = self.ticket(name)
        if ticket is None:
            return None
        additions: dict[str, str] = {}
        for tag in codec.split_tags(tags):
            filename = codec.tag_filename(tag)
            if filename is None or filename in additions:
                continue
            if filename[len(codec.TAG_PREFIX) :] in ticket.tags:
                continue
            additions[filename] = tag
        if not additions:
            return ticket

        def apply(_worktree: WorkTree, ticket_dir: Path) -> list[str]:
            for filename, tag in additions.items():
                _write_marker(ticket_dir / filename, tag)
            return list(additions)

        label = ", ".join(additions.values())
        return self._commit(name, f"added tags ({label}) to ticket {name}", apply)

    def remove_tags(self, tags: str | list[str], ref: str | None = None) -> Ticket | None:
        """Remove comma-delimited tags; absent tags commit nothing."""
        name = self.resolve(ref)
        if name is None:
            return None
        ticket = self.ticket(name)
        if ticket is None:
            return None
        doomed = {codec.normalize(tag) for tag in codec.split_tags(tags)} & ticket.tags
        if not doomed:
            return ticket
        removals = [
            filename
            for filename in self._markers(name, codec.TAG_PREFIX)
            if codec.normalize(filename[len(codec.TAG_PREFIX) :]) in doomed
        ]

        def apply(worktree: WorkTree, _ticket_dir: Path) -> list[str]:
            for filename in removals:
                worktree.remove(f"{name}/{filename}")
            return []

        label = ", ".join(sorted(doomed))
        return self._commit(name, f"removed tags ({label}) from ticket {name}", apply)

    def add_comment(self, body: str, ref: str | None = None) -> Ticket | None:
        """Append a comment authored by the current user.

        Raises:
            ValidationFailedError: when the comment is blank.
        """
        if body is None or not body.strip():
            raise ValidationFailedError("comment is empty")
        name = self.resolve(ref)
        if name is None:
            return None
        email = self.user_email()
        filename = self._free_filename(name, lambda epoch: codec.comment_filename(epoch, email))

        def apply(_worktree: WorkTree, ticket_dir: Path) -> list[str]:
            (ticket_dir / filename).write_text(body, encoding="utf-8")
            return [filename]

        return self._commit(name, f"added comment to ticket {name}", apply)

    def add_attachment(self, source: Path | str, ref: str | None = None) -> Ticket | None:
        """Copy a file into the ticket as an attachment.

        Raises:
            ValidationFailedError: when ``source`` is not a readable file.
        """
        source_path = Path(source)
        if not source_path.is_file():
            raise ValidationFailedError(f"attachment {source_path} is not a file")
        name = self.resolve(ref)
        if name is None:
            return None
        email = self.user_email()
        filename = self._free_filename(
            name, lambda epoch: codec.attachment_filename(epoch, email, source_path.name)
        )

        def apply(_worktree: WorkTree, ticket_dir: Path) -> list[str]:
            shutil.copyfile(source_path, ticket_dir / filename)
            return [filename]

        return self._commit(
            name, f"added attachment {source_path.name} to ticket {name}", apply
        )
