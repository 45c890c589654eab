"""Failure contracts for ticket operations.

Store and transaction code raise ``TicketError`` subclasses for expected
domain/runtime failures. Programmer bugs raise normal exceptions. A failed
reference lookup is not an error: lookups return ``None``.
"""

from __future__ import annotations

from typing import Literal

TicketErrorCode = Literal[
    "repo_not_found",
    "format_corruption",
    "store_unavailable",
    "transaction_failed",
    "validation_failed",
]


class TicketError(Exception):
    """Expected failure raised by the ticket store.

    Callers catch ``TicketError`` and handle it per their interface (the CLI
    dies with the message). Use ``raise ... from exc`` to chain a cause.
    """

    def __init__(
        self,
        code: TicketErrorCode,
        message: str,
        *,
        recovery_hint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.recovery_hint = recovery_hint


class RepoNotFoundError(TicketError):
    """No git repository is discoverable from the starting path."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("repo_not_found", message, recovery_hint=recovery_hint)


class FormatCorruptionError(TicketError):
    """A ticket directory or marker filename violates the encoding grammar."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("format_corruption", message, recovery_hint=recovery_hint)


class StoreUnavailableError(TicketError):
    """A git primitive failed or git itself is missing."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("store_unavailable", message, recovery_hint=recovery_hint)


class TransactionFailureError(TicketError):
    """A git primitive failed inside a ticket-branch transaction."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("transaction_failed", message, recovery_hint=recovery_hint)


class ValidationFailedError(TicketError):
    """Invalid input (empty title, unknown state, bad query option)."""

    def __init__(self, message: str, *, recovery_hint: str | None = None) -> None:
        super().__init__("validation_failed", message, recovery_hint=recovery_hint)
