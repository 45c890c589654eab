"""Terminal rendering for tickets and ticket history."""

from __future__ import annotations

import datetime as dt
import textwrap

from rich import box
from rich.table import Table

from . import log as branchtix_log
from .codec import Ticket
from .io import say
from .models import QueryOptions
from .ports import CommitInfo

SHORT_ID_LENGTH = 6
COMMENT_WIDTH = 80
COMMENT_PREVIEW_LINES = 6


def short_id(ticket: Ticket) -> str:
    return ticket.id[:SHORT_ID_LENGTH]


def ticket_table(tickets: list[Ticket], *, current: str | None = None) -> Table:
    table = Table(box=box.SIMPLE_HEAD, pad_edge=False)
    table.add_column(" ", no_wrap=True)
    table.add_column("#", justify="right", no_wrap=True)
    table.add_column("TicId", no_wrap=True)
    table.add_column("Title")
    table.add_column("State", no_wrap=True)
    table.add_column("Date", no_wrap=True)
    table.add_column("Assgn", no_wrap=True)
    table.add_column("Tags")
    for position, ticket in enumerate(tickets, start=1):
        table.add_row(
            "*" if ticket.name == current else "",
            str(position),
            short_id(ticket),
            ticket.title,
            ticket.state,
            ticket.opened.strftime("%m/%d"),
            ticket.assigned_name,
            ",".join(sorted(ticket.tags)),
        )
    return table


def print_ticket_list(tickets: list[Ticket], *, current: str | None = None) -> None:
    if not tickets:
        say("No tickets found.")
        return
    branchtix_log.console().print(ticket_table(tickets, current=current))


def print_saved_queries(saved: dict[str, QueryOptions]) -> None:
    if not saved:
        say("No saved queries.")
        return
    for name, options in sorted(saved.items()):
        values = ", ".join(
            f"{key}={value}" for key, value in options.model_dump(exclude_none=True).items()
        )
        say(f"{name}\t{values}")


def _wrap_comment(body: str) -> list[str]:
    lines: list[str] = []
    for line in body.splitlines():
        if len(line) > COMMENT_WIDTH:
            lines.extend(textwrap.wrap(line, COMMENT_WIDTH))
        else:
            lines.append(line)
    return [f"\t{line}" for line in lines]


def print_ticket(ticket: Ticket, *, now: dt.datetime | None = None) -> None:
    """Print a ticket header followed by its comments, newest first."""
    reference = now or dt.datetime.now(tz=dt.timezone.utc)
    days_ago = round((reference - ticket.opened).total_seconds() / 86400)
    say("")
    say(f"{'Title':<10}: {ticket.title}")
    say(f"{'TicId':<10}: {ticket.id}")
    say("")
    say(f"{'Assigned':<10}: {ticket.assigned or ''}")
    say(f"{'Opened':<10}: {ticket.opened:%Y-%m-%d %H:%M:%S %Z} ({days_ago} days)")
    say(f"{'State':<10}: {ticket.state.upper()}")
    if ticket.tags:
        say(f"{'Tags':<10}: {', '.join(sorted(ticket.tags))}")
    if ticket.attachments:
        names = ", ".join(attachment.filename for attachment in ticket.attachments)
        say(f"{'Files':<10}: {names}")
    say("")
    if not ticket.comments:
        return
    say(f"Comments ({len(ticket.comments)}):")
    for comment in reversed(ticket.comments):
        say(f"  * Added {comment.added:%m/%d %H:%M} by {comment.author}")
        wrapped = _wrap_comment(comment.body)
        if len(wrapped) > COMMENT_PREVIEW_LINES:
            say("\n".join(wrapped[:COMMENT_PREVIEW_LINES]))
            say("\t** more... **")
        else:
            say("\n".join(wrapped))
        say("")


def print_recent(commits: list[CommitInfo]) -> None:
    for commit in commits:
        stamp = dt.datetime.fromtimestamp(commit.timestamp, tz=dt.timezone.utc)
        say(f"{commit.commit_id[:7]}  {stamp:%m/%d %H:%M}\t{commit.subject}")
