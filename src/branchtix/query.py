"""Filter and order decoded tickets."""

from __future__ import annotations

import re
from collections.abc import Iterable

from .codec import DEFAULT_STATE, Ticket, normalize
from .errors import ValidationFailedError
from .models import QueryOptions

DEFAULT_OPTIONS = QueryOptions(state=DEFAULT_STATE)


def merge_options(saved: QueryOptions | None, options: QueryOptions) -> QueryOptions:
    """Merge saved options under caller options; caller values win."""
    if saved is None:
        return options
    merged = saved.model_dump(exclude_none=True)
    merged.update(options.model_dump(exclude_none=True))
    return QueryOptions.model_validate(merged)


def _compile(label: str, pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValidationFailedError(f"invalid {label} pattern {pattern!r}: {exc}") from exc


def _sort_value(ticket: Ticket, field: str) -> object:
    if field == "assigned":
        return ticket.assigned or ""
    if field == "state":
        return ticket.state
    return ticket.epoch


def query(tickets: Iterable[Ticket], options: QueryOptions) -> list[Ticket]:
    """Return tickets matching ``options`` in the requested order.

    ``state`` and ``assigned`` are regular-expression searches; ``tag`` must
    be present in the ticket's normalized tag set. Descending order reverses
    the ascending result.
    """
    field, descending = options.order_key()
    ordered = sorted(tickets, key=lambda ticket: _sort_value(ticket, field))
    if descending:
        ordered.reverse()

    if options.tag:
        tag = normalize(options.tag.strip())
        ordered = [ticket for ticket in ordered if tag in ticket.tags]
    if options.state:
        state_re = _compile("state", options.state)
        ordered = [ticket for ticket in ordered if state_re.search(ticket.state)]
    if options.assigned:
        assigned_re = _compile("assigned", options.assigned)
        ordered = [
            ticket
            for ticket in ordered
            if ticket.assigned is not None and assigned_re.search(ticket.assigned)
        ]
    return ordered
