import pytest
from pydantic import ValidationError

from branchtix.codec import Ticket
from branchtix.errors import ValidationFailedError
from branchtix.models import QueryOptions
from branchtix.query import DEFAULT_OPTIONS, merge_options, query


def _ticket(
    name: str,
    epoch: int,
    *,
    state: str = "open",
    assigned: str | None = None,
    tags: set[str] | None = None,
) -> Ticket:
    return Ticket(
        name=name,
        id=f"id-{name}",
        title=name,
        epoch=epoch,
        state=state,
        assigned=assigned,
        tags=tags or set(),
    )


TICKETS = [
    _ticket("c", 300, state="resolved", assigned="carol@example.com", tags={"ui"}),
    _ticket("a", 100, assigned="bob@example.com", tags={"backend"}),
    _ticket("b", 200, state="hold", tags={"backend", "ui"}),
    _ticket("d", 400, assigned="alice@example.com"),
]


def _names(tickets: list[Ticket]) -> list[str]:
    return [ticket.name for ticket in tickets]


def test_default_options_return_open_tickets_by_opened_time() -> None:
    assert _names(query(TICKETS, DEFAULT_OPTIONS)) == ["a", "d"]


def test_empty_options_return_everything_by_date() -> None:
    assert _names(query(TICKETS, QueryOptions())) == ["a", "b", "c", "d"]


def test_descending_order_reverses_ascending_order() -> None:
    assert _names(query(TICKETS, QueryOptions(order="date.desc"))) == ["d", "c", "b", "a"]


def test_order_by_assigned_sorts_unassigned_first() -> None:
    assert _names(query(TICKETS, QueryOptions(order="assigned"))) == ["b", "d", "a", "c"]


def test_order_by_state() -> None:
    assert _names(query(TICKETS, QueryOptions(order="state"))) == ["b", "a", "d", "c"]


def test_tag_filter_matches_normalized_tag() -> None:
    assert _names(query(TICKETS, QueryOptions(tag="UI"))) == ["b", "c"]
    assert _names(query(TICKETS, QueryOptions(tag="backend"))) == ["a", "b"]


def test_state_filter_is_a_regular_expression_search() -> None:
    assert _names(query(TICKETS, QueryOptions(state="res|hol"))) == ["b", "c"]


def test_assigned_filter_skips_unassigned_tickets() -> None:
    assert _names(query(TICKETS, QueryOptions(assigned="example"))) == ["a", "c", "d"]
    assert _names(query(TICKETS, QueryOptions(assigned="^bob"))) == ["a"]


def test_invalid_pattern_raises_validation_failure() -> None:
    with pytest.raises(ValidationFailedError):
        query(TICKETS, QueryOptions(state="("))


def test_unknown_order_field_is_rejected() -> None:
    with pytest.raises(ValidationError):
        QueryOptions(order="priority")
    with pytest.raises(ValidationError):
        QueryOptions(order="date.sideways")


def test_merge_options_prefers_caller_values() -> None:
    saved = QueryOptions(state="open", tag="ui", order="date.desc")

    merged = merge_options(saved, QueryOptions(state="resolved"))

    assert merged == QueryOptions(state="resolved", tag="ui", order="date.desc")
    assert merge_options(None, QueryOptions(tag="x")) == QueryOptions(tag="x")
