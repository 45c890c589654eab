"""Encode and decode tickets stored as marker files in a git tree.

Each ticket is a top-level directory named ``<epoch>_<slug>_<suffix>``. Every
file inside it is a *marker* whose filename carries one attribute:

- ``TICKET_ID`` (blob id is the ticket id)
- ``STATE_<state>`` and ``ASSIGNED_<email>``
- ``TAG_<normalized tag>``
- ``COMMENT_<epoch>_<email>`` (blob is the body)
- ``ATTACHMENT_<epoch>_<email>@@<filename>`` (blob is the content)

Example:
    >>> normalize("Bug Fix")
    'bug-fix'
    >>> parse_ticket_name("1206206148_add-attachment_138")
    ('add attachment', 1206206148)
"""

from __future__ import annotations

import datetime as dt
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from .errors import FormatCorruptionError

DEFAULT_STATE = "open"
HOLD_FILENAME = ".hold"
TICKET_ID_FILENAME = "TICKET_ID"
STATE_PREFIX = "STATE_"
ASSIGNED_PREFIX = "ASSIGNED_"
TAG_PREFIX = "TAG_"
COMMENT_PREFIX = "COMMENT_"
ATTACHMENT_PREFIX = "ATTACHMENT_"
ATTACHMENT_SEPARATOR = "@@"

_NON_SLUG_RE = re.compile(r"[^a-z0-9]+")
_TICKET_NAME_RE = re.compile(r"^(?P<epoch>[0-9]+)_(?P<slug>[a-z0-9-]*)_(?P<suffix>[0-9]+)$")

Bucket = list[tuple[str, str]]
Index = dict[str, Bucket]
BlobReader = Callable[[str], bytes]


def normalize(text: str) -> str:
    """Lowercase text and collapse runs of non ``[a-z0-9]`` characters to ``-``.

    Example:
        >>> normalize("bug-fix") == normalize("Bug  Fix")
        True
    """
    return _NON_SLUG_RE.sub("-", text.lower())


def ticket_name(title: str, epoch: int, suffix: int) -> str:
    """Build the directory name for a new ticket.

    Example:
        >>> ticket_name("Fix login bug", 1700000000, 42)
        '1700000000_fix-login-bug_42'
    """
    return f"{epoch}_{normalize(title)}_{suffix}"


def parse_ticket_name(name: str) -> tuple[str, int]:
    """Return ``(title, epoch)`` for a ticket directory name.

    Raises:
        FormatCorruptionError: when the name does not follow the grammar.
    """
    match = _TICKET_NAME_RE.match(name)
    if match is None:
        raise FormatCorruptionError(
            f"malformed ticket directory name: {name!r}",
            recovery_hint="expected <epoch>_<slug>_<suffix>",
        )
    return match.group("slug").replace("-", " "), int(match.group("epoch"))


def split_tags(text: str | Iterable[str] | None) -> list[str]:
    """Split comma-delimited tag text into trimmed, non-empty tags.

    Example:
        >>> split_tags("backend, ui,,  ")
        ['backend', 'ui']
    """
    if text is None:
        return []
    values = text.split(",") if isinstance(text, str) else list(text)
    tags: list[str] = []
    for value in values:
        for part in str(value).split(","):
            stripped = part.strip()
            if stripped:
                tags.append(stripped)
    return tags


def state_filename(state: str) -> str:
    return f"{STATE_PREFIX}{state}"


def assigned_filename(email: str) -> str:
    return f"{ASSIGNED_PREFIX}{email}"


def tag_filename(tag: str) -> str | None:
    """Return the marker filename for a tag, or ``None`` for empty tags."""
    stripped = tag.strip()
    if not stripped:
        return None
    return f"{TAG_PREFIX}{normalize(stripped)}"


def comment_filename(epoch: int, email: str) -> str:
    return f"{COMMENT_PREFIX}{epoch}_{email}"


def attachment_filename(epoch: int, email: str, filename: str) -> str:
    return f"{ATTACHMENT_PREFIX}{epoch}_{email}{ATTACHMENT_SEPARATOR}{filename}"


@dataclass(frozen=True)
class IdMarker:
    blob_id: str


@dataclass(frozen=True)
class AssignedMarker:
    email: str


@dataclass(frozen=True)
class StateMarker:
    state: str


@dataclass(frozen=True)
class TagMarker:
    tag: str


@dataclass(frozen=True)
class CommentMarker:
    epoch: int
    author: str
    blob_id: str


@dataclass(frozen=True)
class AttachmentMarker:
    epoch: int
    author: str
    filename: str
    blob_id: str


Marker = IdMarker | AssignedMarker | StateMarker | TagMarker | CommentMarker | AttachmentMarker


def _corrupt(filename: str, reason: str) -> FormatCorruptionError:
    return FormatCorruptionError(f"malformed marker {filename!r}: {reason}")


def _required(filename: str, prefix: str) -> str:
    value = filename[len(prefix) :]
    if not value:
        raise _corrupt(filename, "missing value")
    return value


def _epoch_and_rest(filename: str, prefix: str) -> tuple[int, str]:
    epoch_text, sep, rest = filename[len(prefix) :].partition("_")
    if not sep or not epoch_text.isdigit():
        raise _corrupt(filename, "expected <epoch>_<author>")
    if not rest:
        raise _corrupt(filename, "missing author")
    return int(epoch_text), rest


def parse_marker(filename: str, blob_id: str) -> Marker | None:
    """Decode one marker filename.

    Returns ``None`` for unknown markers so newer encodings stay readable.

    Raises:
        FormatCorruptionError: when a known marker carries a malformed payload.

    Example:
        >>> parse_marker("STATE_resolved", "abc")
        StateMarker(state='resolved')
        >>> parse_marker("MILESTONE_v1", "abc") is None
        True
    """
    if filename == TICKET_ID_FILENAME:
        return IdMarker(blob_id=blob_id)
    if filename.startswith(ASSIGNED_PREFIX):
        return AssignedMarker(email=_required(filename, ASSIGNED_PREFIX))
    if filename.startswith(STATE_PREFIX):
        return StateMarker(state=_required(filename, STATE_PREFIX))
    if filename.startswith(TAG_PREFIX):
        return TagMarker(tag=normalize(_required(filename, TAG_PREFIX)))
    if filename.startswith(COMMENT_PREFIX):
        epoch, author = _epoch_and_rest(filename, COMMENT_PREFIX)
        return CommentMarker(epoch=epoch, author=author, blob_id=blob_id)
    if filename.startswith(ATTACHMENT_PREFIX):
        epoch, rest = _epoch_and_rest(filename, ATTACHMENT_PREFIX)
        author, sep, original = rest.partition(ATTACHMENT_SEPARATOR)
        if not sep or not author or not original:
            raise _corrupt(filename, "expected <author>@@<filename>")
        return AttachmentMarker(
            epoch=epoch, author=author, filename=original, blob_id=blob_id
        )
    return None


def _utc(epoch: int) -> dt.datetime:
    return dt.datetime.fromtimestamp(epoch, tz=dt.timezone.utc)


@dataclass
class Comment:
    """Ticket comment whose body is read from git on first access."""

    author: str
    epoch: int
    blob_id: str
    _reader: BlobReader | None = field(default=None, repr=False, compare=False)
    _body: str | None = field(default=None, repr=False, compare=False)

    @property
    def added(self) -> dt.datetime:
        return _utc(self.epoch)

    @property
    def body(self) -> str:
        if self._body is None:
            if self._reader is None:
                return ""
            self._body = self._reader(self.blob_id).decode("utf-8", errors="replace")
        return self._body


@dataclass(frozen=True)
class Attachment:
    author: str
    epoch: int
    filename: str
    blob_id: str

    @property
    def added(self) -> dt.datetime:
        return _utc(self.epoch)


@dataclass
class Ticket:
    """Decoded ticket record."""

    name: str
    id: str
    title: str
    epoch: int
    state: str = DEFAULT_STATE
    assigned: str | None = None
    tags: set[str] = field(default_factory=set)
    comments: list[Comment] = field(default_factory=list)
    attachments: list[Attachment] = field(default_factory=list)

    @property
    def opened(self) -> dt.datetime:
        return _utc(self.epoch)

    @property
    def assigned_name(self) -> str:
        if not self.assigned:
            return ""
        return self.assigned.split("@", 1)[0]


def decode_tree(entries: Iterable[tuple[str, str]]) -> Index:
    """Group ``(path, blob_id)`` tree entries into per-ticket buckets.

    Only entries exactly two levels deep are considered, so stray top-level
    files such as the ``.hold`` sentinel are skipped.

    Raises:
        FormatCorruptionError: when a ticket directory name is malformed.
    """
    index: Index = {}
    for path, blob_id in entries:
        parts = path.split("/")
        if len(parts) != 2:
            continue
        directory, filename = parts
        bucket = index.get(directory)
        if bucket is None:
            parse_ticket_name(directory)
            bucket = index[directory] = []
        bucket.append((filename, blob_id))
    return index


def decode_ticket(name: str, bucket: Bucket, read_blob: BlobReader | None = None) -> Ticket:
    """Build a ``Ticket`` from one bucket of marker entries.

    Raises:
        FormatCorruptionError: when the name or a marker is malformed, or when
            the bucket has no ``TICKET_ID`` marker.
    """
    title, epoch = parse_ticket_name(name)
    ticket_id: str | None = None
    state = DEFAULT_STATE
    assigned: str | None = None
    tags: set[str] = set()
    comments: list[Comment] = []
    attachments: list[Attachment] = []
    for filename, blob_id in bucket:
        marker = parse_marker(filename, blob_id)
        if isinstance(marker, IdMarker):
            ticket_id = marker.blob_id
        elif isinstance(marker, AssignedMarker):
            assigned = marker.email
        elif isinstance(marker, StateMarker):
            state = marker.state
        elif isinstance(marker, TagMarker):
            tags.add(marker.tag)
        elif isinstance(marker, CommentMarker):
            comments.append(
                Comment(
                    author=marker.author,
                    epoch=marker.epoch,
                    blob_id=marker.blob_id,
                    _reader=read_blob,
                )
            )
        elif isinstance(marker, AttachmentMarker):
            attachments.append(
                Attachment(
                    author=marker.author,
                    epoch=marker.epoch,
                    filename=marker.filename,
                    blob_id=marker.blob_id,
                )
            )
    if ticket_id is None:
        raise FormatCorruptionError(f"ticket {name!r} has no {TICKET_ID_FILENAME} marker")
    return Ticket(
        name=name,
        id=ticket_id,
        title=title,
        epoch=epoch,
        state=state,
        assigned=assigned,
        tags=tags,
        comments=comments,
        attachments=attachments,
    )


def ticket_id_of(bucket: Bucket) -> str | None:
    """Return the ``TICKET_ID`` blob id recorded in a bucket."""
    for filename, blob_id in bucket:
        if filename == TICKET_ID_FILENAME:
            return blob_id
    return None
