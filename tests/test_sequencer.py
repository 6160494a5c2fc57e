"""Tests for invoice number allocation."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from openledger.config import BillingConfig
from openledger.db import SequenceCounter
from openledger.errors import ConflictError, SequenceExhaustionError, ValidationError
from openledger.ledger import InvoiceSequencer


class TestSequenceCounter:
    """Tests for number formatting."""

    def test_format_next(self):
        assert SequenceCounter(prefix="INV-", next_value=1000).format() == "INV-1000"

    def test_format_value(self):
        assert SequenceCounter(prefix="", next_value=1).format(42) == "42"


class TestNextNumber:
    """Tests for next_number."""

    def test_consecutive_numbers(self, sequencer):
        assert sequencer.next_number() == ("INV-1000", 1000)
        assert sequencer.next_number() == ("INV-1001", 1001)
        assert sequencer.peek().next_value == 1002

    def test_prefix_override(self, sequencer):
        assert sequencer.next_number(prefix="CR-") == ("CR-1000", 1000)
        assert sequencer.next_number() == ("INV-1001", 1001)

    def test_peek_does_not_consume(self, sequencer):
        sequencer.peek()
        sequencer.peek()
        assert sequencer.next_number()[1] == 1000

    def test_value_survives_rollback(self, sequencer, db):
        """A value consumed inside a failed transaction is still gone."""
        with pytest.raises(RuntimeError):
            with db.transaction():
                sequencer.next_number()
                raise RuntimeError("invoice write failed")

        # Own transaction already committed before the caller's failed
        assert sequencer.next_number()[1] == 1001

    def test_joined_transaction_rolls_back(self, sequencer, db):
        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                sequencer.next_number(conn=conn)
                raise RuntimeError("rolled back")

        assert sequencer.next_number()[1] == 1000

    def test_exhaustion(self, db):
        sequencer = InvoiceSequencer(db, BillingConfig(max_sequence=1001))

        sequencer.next_number()
        sequencer.next_number()
        with pytest.raises(SequenceExhaustionError):
            sequencer.next_number()
        assert sequencer.peek().next_value == 1002

    def test_distinct_under_threads(self, sequencer):
        """Parallel allocations never hand out the same value."""
        with ThreadPoolExecutor(max_workers=4) as pool:
            values = list(pool.map(lambda _: sequencer.next_number()[1], range(20)))

        assert sorted(values) == list(range(1000, 1020))


class TestAdvanceTo:
    """Tests for moving the counter forward."""

    def test_advance(self, sequencer):
        counter = sequencer.advance_to(5000)
        assert counter.next_value == 5000
        assert sequencer.next_number() == ("INV-5000", 5000)

    def test_cannot_move_back(self, sequencer):
        sequencer.next_number()
        with pytest.raises(ConflictError):
            sequencer.advance_to(999)

    def test_out_of_range(self, sequencer):
        with pytest.raises(ValidationError):
            sequencer.advance_to(-1)
