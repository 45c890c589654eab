"""Command-line interface for branchtix (``tix``)."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer

from . import __version__
from . import log as branchtix_log
from . import render
from .codec import Ticket
from .errors import TicketError
from .io import die, say
from .models import QueryOptions
from .store import TicketStore

COMMENT_FILE_LIMIT = 2048

app = typer.Typer(
    help="Track tickets on a dedicated branch of the current git repository.",
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        say(f"tix {__version__}")
        raise typer.Exit()


def _log_level_callback(value: str | None) -> str | None:
    if value is None:
        return None
    normalized = value.strip().lower()
    if normalized not in branchtix_log.LEVEL_NAMES:
        raise typer.BadParameter(f"expected one of: {', '.join(branchtix_log.LEVEL_NAMES)}")
    return normalized


@app.callback()
def main_callback(
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            help="Log verbosity: trace, debug, info, success, warning, error.",
            callback=_log_level_callback,
        ),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="Disable colored output.")
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version", callback=_version_callback, is_eager=True, help="Show version and exit."
        ),
    ] = False,
) -> None:
    if log_level is not None:
        branchtix_log.set_level(log_level)
    if no_color:
        branchtix_log.set_no_color(True)


def _open_store() -> TicketStore:
    return TicketStore(Path.cwd())


@contextmanager
def _handled() -> Iterator[None]:
    try:
        yield
    except TicketError as exc:
        message = str(exc)
        if exc.recovery_hint:
            message = f"{message} ({exc.recovery_hint})"
        die(message)


def _found(ticket: Ticket | None) -> Ticket:
    if ticket is None:
        die("ticket not found")
    return ticket


def _split_ref(values: list[str], label: str) -> tuple[str | None, str]:
    """Split ``[ref] value`` positional arguments."""
    if len(values) == 1:
        return None, values[0]
    if len(values) == 2:
        return values[0], values[1]
    raise typer.BadParameter(f"expected [TICKET] {label}")


@app.command("new")
def new_cmd(
    title: Annotated[str, typer.Option("--title", "-t", help="Ticket title.")],
    comment: Annotated[
        str | None, typer.Option("--comment", "-m", help="Initial comment.")
    ] = None,
    tags: Annotated[
        list[str] | None,
        typer.Option("--tag", "-g", help="Tag (repeatable, comma-delimited)."),
    ] = None,
) -> None:
    """Create a new ticket."""
    with _handled():
        store = _open_store()
        ticket = store.create(title, comment=comment, tags=",".join(tags or []))
    render.print_ticket(ticket)


@app.command("list")
def list_cmd(
    saved: Annotated[str | None, typer.Argument(help="Saved query name.")] = None,
    order: Annotated[
        str | None,
        typer.Option("--order", "-o", help="assigned, state or date; suffix .desc to reverse."),
    ] = None,
    tag: Annotated[str | None, typer.Option("--tag", "-t", help="Only tickets with this tag.")] = None,
    state: Annotated[
        str | None, typer.Option("--state", "-s", help="State regular expression.")
    ] = None,
    assigned: Annotated[
        str | None, typer.Option("--assigned", "-a", help="Assignee regular expression.")
    ] = None,
    save_as: Annotated[
        str | None, typer.Option("--saveas", "-S", help="Save this query under a name.")
    ] = None,
    show_saved: Annotated[
        bool, typer.Option("--list", "-l", help="List saved queries.")
    ] = False,
) -> None:
    """List tickets (open tickets when no filter is given)."""
    with _handled():
        store = _open_store()
        if show_saved:
            render.print_saved_queries(store.saved_queries())
            return
        try:
            options = QueryOptions(order=order, tag=tag, state=state, assigned=assigned)
        except ValueError as exc:
            die(f"invalid query options: {exc}")
        tickets = store.list_tickets(options, saved=saved, save_as=save_as)
        render.print_ticket_list(tickets, current=store.current_ticket)


@app.command("show")
def show_cmd(
    ref: Annotated[str | None, typer.Argument(help="Ticket id prefix or list position.")] = None,
) -> None:
    """Show a ticket (the checked-out ticket by default)."""
    with _handled():
        ticket = _found(_open_store().show(ref))
    render.print_ticket(ticket)


def _checkout(ref: str) -> None:
    with _handled():
        name = _open_store().checkout(ref)
    if name is None:
        die("ticket not found")
    branchtix_log.success(f"checked out {name}")


@app.command("checkout")
def checkout_cmd(
    ref: Annotated[str, typer.Argument(help="Ticket id prefix or list position.")],
) -> None:
    """Make a ticket the current ticket."""
    _checkout(ref)


@app.command("co", hidden=True)
def co_cmd(ref: Annotated[str, typer.Argument()]) -> None:
    """Alias for ``checkout``."""
    _checkout(ref)


@app.command("state")
def state_cmd(
    values: Annotated[list[str], typer.Argument(metavar="[TICKET] STATE")],
) -> None:
    """Change a ticket state (open, resolved, invalid, hold)."""
    ref, new_state = _split_ref(values, "STATE")
    with _handled():
        ticket = _found(_open_store().change_state(new_state, ref))
    branchtix_log.success(f"{ticket.name} is {ticket.state}")


@app.command("assign")
def assign_cmd(
    user: Annotated[
        str | None, typer.Option("--user", "-u", help="Assignee (defaults to you).")
    ] = None,
    checkout: Annotated[
        str | None, typer.Option("--checkout", "-c", help="Ticket to assign.")
    ] = None,
    ref: Annotated[str | None, typer.Argument(help="Ticket id prefix or list position.")] = None,
) -> None:
    """Assign a ticket."""
    with _handled():
        ticket = _found(_open_store().assign(user, checkout or ref))
    branchtix_log.success(f"{ticket.name} assigned to {ticket.assigned}")


@app.command("tag")
def tag_cmd(
    values: Annotated[list[str], typer.Argument(metavar="[TICKET] TAGS")],
    delete: Annotated[bool, typer.Option("--delete", "-d", help="Remove the tags.")] = False,
) -> None:
    """Add (or remove) comma-delimited tags."""
    ref, tags = _split_ref(values, "TAGS")
    with _handled():
        store = _open_store()
        if delete:
            ticket = _found(store.remove_tags(tags, ref))
        else:
            ticket = _found(store.add_tags(tags, ref))
    branchtix_log.success(f"{ticket.name} tags: {', '.join(sorted(ticket.tags)) or '(none)'}")


@app.command("comment")
def comment_cmd(
    ref: Annotated[str | None, typer.Argument(help="Ticket id prefix or list position.")] = None,
    message: Annotated[
        str | None, typer.Option("--message", "-m", help="Comment text.")
    ] = None,
    file: Annotated[
        Path | None, typer.Option("--file", "-f", help="Read the comment from a file.")
    ] = None,
) -> None:
    """Comment on a ticket."""
    if message is None and file is None:
        die("provide a comment with --message or --file")
    body = message
    if file is not None:
        try:
            if file.stat().st_size > COMMENT_FILE_LIMIT:
                die(f"comment file must be at most {COMMENT_FILE_LIMIT} bytes")
            body = file.read_text(encoding="utf-8")
        except OSError as exc:
            die(f"failed to read {file}: {exc}")
    with _handled():
        ticket = _found(_open_store().add_comment(body or "", ref))
    branchtix_log.success(f"comment added to {ticket.name}")


@app.command("attach")
def attach_cmd(
    values: Annotated[list[str], typer.Argument(metavar="[TICKET] FILE")],
) -> None:
    """Attach a file to a ticket."""
    ref, source = _split_ref(values, "FILE")
    with _handled():
        ticket = _found(_open_store().add_attachment(Path(source), ref))
    branchtix_log.success(f"attached {Path(source).name} to {ticket.name}")


@app.command("recent")
def recent_cmd(
    ref: Annotated[str | None, typer.Argument(help="Limit to one ticket.")] = None,
) -> None:
    """Show recent ticket-branch history."""
    with _handled():
        commits = _open_store().recent(ref)
    render.print_recent(commits)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
