"""Exception types raised by the ledger services."""

from typing import Any


class LedgerError(Exception):
    """Base exception for ledger errors.

    Carries the entity kind and ids involved so callers can decide whether
    to refresh and retry or abort.
    """

    def __init__(
        self,
        message: str,
        entity: str | None = None,
        entity_ids: list[Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.entity_ids = list(entity_ids or [])


class ValidationError(LedgerError):
    """Malformed input, rejected before any write."""

    pass


class ConflictError(LedgerError):
    """A conditional write lost against the current stored state."""

    pass


class NotFoundError(LedgerError):
    """Referenced entry, rule or invoice does not exist."""

    pass


class SequenceExhaustionError(LedgerError):
    """The invoice counter reached its configured maximum."""

    pass
