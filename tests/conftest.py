"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path

import pytest

from openledger.config import BillingConfig
from openledger.db import Database, TimeEntry
from openledger.ledger import (
    InvoiceAssembler,
    InvoiceSequencer,
    RecurringExpenseScheduler,
    TimeLedger,
)


@pytest.fixture
def temp_db():
    """Create a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        yield Path(f.name)
    os.unlink(f.name)


@pytest.fixture
def billing_config() -> BillingConfig:
    """Billing settings used to seed test databases."""
    return BillingConfig(invoice_prefix="INV-", starting_sequence=1000, default_hourly_rate=100.0)


@pytest.fixture
def db(temp_db, billing_config):
    """Initialized database, closed after the test."""
    database = Database(temp_db)
    database.initialize(billing_config.settings_seed())
    yield database
    database.close()


@pytest.fixture
def ledger(db) -> TimeLedger:
    return TimeLedger(db)


@pytest.fixture
def scheduler(db) -> RecurringExpenseScheduler:
    return RecurringExpenseScheduler(db)


@pytest.fixture
def sequencer(db, billing_config) -> InvoiceSequencer:
    return InvoiceSequencer(db, billing_config)


@pytest.fixture
def assembler(db, billing_config, ledger, sequencer) -> InvoiceAssembler:
    return InvoiceAssembler(db, billing_config, time_ledger=ledger, sequencer=sequencer)


@pytest.fixture
def log_entry(ledger):
    """Factory for unbilled time entries."""

    def _log(
        hours: float = 2.0,
        description: str = "Consulting",
        on: str = "2024-03-05",
        client: str | None = "acme",
        rate: float | None = None,
        billable: bool = True,
    ) -> TimeEntry:
        return ledger.log_time(
            TimeEntry(
                id=None,
                date=on,
                hours=hours,
                description=description,
                billable=billable,
                rate=rate,
                client_reference=client,
            )
        )

    return _log
