"""Pydantic models for branchtix settings, queries, and cached state."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

ORDER_FIELDS = ("assigned", "state", "date")
DESCENDING_SUFFIX = "desc"


def _optional_string(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, str):
        normalized = value.strip()
        return normalized or None
    return value


class QueryOptions(BaseModel):
    """Filter and ordering options for a ticket listing.

    Attributes:
        order: ``assigned``, ``state`` or ``date``, optionally suffixed with
            ``.desc``.
        tag: Tag that listed tickets must carry.
        state: Regular expression searched in each ticket state.
        assigned: Regular expression searched in each ticket assignee.

    Example:
        >>> QueryOptions(order="date.desc").order_key()
        ('date', True)
    """

    model_config = ConfigDict(extra="ignore")

    order: str | None = None
    tag: str | None = None
    state: str | None = None
    assigned: str | None = None

    @field_validator("order", "tag", "state", "assigned", mode="before")
    @classmethod
    def normalize_optional_strings(cls, value: object) -> object:
        return _optional_string(value)

    @field_validator("order", mode="after")
    @classmethod
    def validate_order(cls, value: str | None) -> str | None:
        if value is None:
            return None
        field, _, direction = value.partition(".")
        if field not in ORDER_FIELDS:
            raise ValueError(f"order must be one of: {', '.join(ORDER_FIELDS)}")
        if direction and direction not in {"asc", DESCENDING_SUFFIX}:
            raise ValueError("order direction must be 'asc' or 'desc'")
        return value

    def order_key(self) -> tuple[str, bool]:
        """Return ``(field, descending)``; ``date`` ascending by default."""
        if self.order is None:
            return "date", False
        field, _, direction = self.order.partition(".")
        return field, direction == DESCENDING_SUFFIX

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class Settings(BaseModel):
    """Human-editable per-project settings document.

    Example:
        >>> Settings().saved_queries
        {}
    """

    model_config = ConfigDict(extra="allow")

    saved_queries: dict[str, QueryOptions] = Field(default_factory=dict)


class SessionState(BaseModel):
    """Session pointers carried between invocations."""

    last_tickets: list[str] = Field(default_factory=list)
    current_ticket: str | None = None


class Snapshot(BaseModel):
    """Serialized ticket index plus session pointers.

    ``branch_head`` records the ticket-branch commit the index was decoded
    from; a mismatch on load forces a rebuild.
    """

    version: int = 1
    branch_head: str | None = None
    index: dict[str, list[tuple[str, str]]] = Field(default_factory=dict)
    session: SessionState = Field(default_factory=SessionState)
