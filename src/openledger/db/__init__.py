"""Database layer with SQLAlchemy Core abstraction.

Supports SQLite (default) and PostgreSQL for production.
"""

from .engine import create_db_engine, get_dialect, initialize_schema
from .repository import (
    ActiveTimer,
    Database,
    Expense,
    Invoice,
    InvoiceLineItem,
    RecurringExpenseRule,
    SequenceCounter,
    Settings,
    TimeEntry,
)
from .tables import SCHEMA_VERSION, metadata

__all__ = [
    "ActiveTimer",
    "Database",
    "Expense",
    "Invoice",
    "InvoiceLineItem",
    "RecurringExpenseRule",
    "SCHEMA_VERSION",
    "SequenceCounter",
    "Settings",
    "TimeEntry",
    "create_db_engine",
    "get_dialect",
    "initialize_schema",
    "metadata",
]
