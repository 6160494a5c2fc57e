"""Invoice number allocation."""

from sqlalchemy.engine import Connection

from .. import audit
from ..config import BillingConfig
from ..db import Database, SequenceCounter
from ..errors import ConflictError, SequenceExhaustionError, ValidationError


class InvoiceSequencer:
    """Issues collision-free, monotonically increasing invoice numbers.

    Every allocation is a single ``UPDATE ... RETURNING`` against the
    settings row, so concurrent sessions can never read the same value.
    A consumed value is gone for good, even if the invoice that asked for
    it is never written.
    """

    def __init__(self, db: Database, config: BillingConfig | None = None):
        self.db = db
        self.config = config or BillingConfig()

    def peek(self) -> SequenceCounter:
        """Current counter, for display only. Does not reserve anything."""
        return self.db.get_settings().counter

    def next_number(
        self,
        prefix: str | None = None,
        conn: Connection | None = None,
    ) -> tuple[str, int]:
        """Consume the next sequence value.

        Args:
            prefix: Number prefix. Defaults to the stored invoice prefix.
            conn: Optional transaction to join. Callers that want the value
                to survive their own rollback must not pass one.

        Returns:
            (invoice number, sequence value), e.g. ("INV-1000", 1000).

        Raises:
            SequenceExhaustionError: If the counter passed max_sequence.
        """
        allocated = self.db.increment_sequence(self.config.max_sequence, conn=conn)
        if allocated is None:
            raise SequenceExhaustionError(
                f"Invoice sequence exhausted (max {self.config.max_sequence})",
                "sequence",
            )
        stored_prefix, value = allocated
        counter = SequenceCounter(
            prefix=stored_prefix if prefix is None else prefix,
            next_value=value,
        )
        number = counter.format()
        audit.log_sequence_allocated(number, value)
        return number, value

    def advance_to(self, value: int) -> SequenceCounter:
        """Jump the counter forward, e.g. when migrating from another system."""
        if value < 0 or value > self.config.max_sequence + 1:
            raise ValidationError(f"Sequence value out of range: {value}", "sequence")
        if self.db.advance_sequence(value) == 0:
            current = self.peek()
            raise ConflictError(
                f"Counter is at {current.next_value}; it cannot move back to {value}",
                "sequence",
            )
        return self.peek()
