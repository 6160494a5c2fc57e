"""SQLAlchemy table definitions for openledger."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    func,
)

# Use naming convention for constraints (helps with migrations)
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Schema version tracking
schema_version = Table(
    "schema_version",
    metadata,
    Column("version", Integer, primary_key=True),
    Column("applied_at", DateTime, server_default=func.now()),
)

# Finance settings (single row, id = 1). Holds the invoice sequence counter.
settings = Table(
    "settings",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("invoice_prefix", String(20), nullable=False, server_default="INV-"),
    Column("next_invoice_seq", Integer, nullable=False, server_default="1000"),
    Column("default_hourly_rate", Float, nullable=False, server_default="100"),
    Column("payment_info", Text),
    Column("payment_qr_url", String(500)),
    Column("business_name", String(200)),
    Column("invoice_footer_note", Text),
    Column("updated_at", DateTime, server_default=func.now()),
    CheckConstraint("id = 1", name="single_row_check"),
    CheckConstraint("next_invoice_seq >= 0", name="sequence_check"),
)

# Invoices
invoices = Table(
    "invoices",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("number", String(50), nullable=False, unique=True),
    Column("sequence_number", Integer, nullable=False),
    Column("client_reference", String(200), nullable=False),
    Column("issue_date", String(10), nullable=False),  # YYYY-MM-DD
    Column("due_date", String(10), nullable=False),
    Column("status", String(20), nullable=False, server_default="draft"),
    Column("total_amount", Float, nullable=False),
    Column("payment_info", Text),
    Column("payment_qr_url", String(500)),
    Column("notes", Text),
    Column("created_at", DateTime, server_default=func.now()),
    Column("updated_at", DateTime),
    CheckConstraint(
        "status IN ('draft', 'sent', 'paid')",
        name="status_check",
    ),
)

Index("idx_invoices_client", invoices.c.client_reference)
Index("idx_invoices_issue_date", invoices.c.issue_date)

# Invoice line items (snapshots, never rewritten after creation)
invoice_line_items = Table(
    "invoice_line_items",
    metadata,
    Column("id", Integer, primary_key=True),
    Column(
        "invoice_id",
        Integer,
        ForeignKey("invoices.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("position", Integer, nullable=False),
    Column("description", Text, nullable=False),
    Column("quantity", Float, nullable=False),
    Column("unit_price", Float, nullable=False),
    Column("amount", Float, nullable=False),
    Column("source_time_entry_id", Integer),  # Not a FK: entries may be deleted later
    UniqueConstraint("invoice_id", "position", name="uq_invoice_line_items_position"),
)

Index("idx_line_items_invoice", invoice_line_items.c.invoice_id)

# Logged work
time_entries = Table(
    "time_entries",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
    Column("hours", Float, nullable=False),
    Column("description", Text, nullable=False),
    Column("billable", Boolean, nullable=False, server_default="1"),
    Column("rate", Float),  # Overrides settings.default_hourly_rate
    Column("client_reference", String(200)),
    Column("status", String(20), nullable=False, server_default="unbilled"),
    Column(
        "invoice_id",
        Integer,
        ForeignKey("invoices.id", ondelete="RESTRICT"),
        nullable=True,
    ),
    Column("created_at", DateTime, server_default=func.now()),
    CheckConstraint("hours >= 0", name="hours_check"),
    CheckConstraint(
        "status IN ('unbilled', 'billed', 'paid')",
        name="status_check",
    ),
    CheckConstraint(
        "(status = 'unbilled' AND invoice_id IS NULL)"
        " OR (status != 'unbilled' AND invoice_id IS NOT NULL)",
        name="invoice_link_check",
    ),
)

Index("idx_time_entries_status", time_entries.c.status)
Index("idx_time_entries_client", time_entries.c.client_reference)
Index("idx_time_entries_invoice", time_entries.c.invoice_id)

# Running timer (single row, id = 1)
active_timers = Table(
    "active_timers",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("started_at", DateTime, nullable=False),
    Column("description", Text),
    Column("client_reference", String(200)),
    CheckConstraint("id = 1", name="single_timer_check"),
)

# Standing cost rules
recurring_expense_rules = Table(
    "recurring_expense_rules",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("description", Text, nullable=False),
    Column("amount", Float, nullable=False),
    Column("category", String(100), nullable=False),
    Column("frequency", String(20), nullable=False),
    Column("day_of_period", Integer, nullable=False),
    Column("month_of_year", Integer, nullable=False, server_default="1"),
    Column("last_materialized_period", String(7)),  # YYYY-MM or YYYY
    Column("created_at", DateTime, server_default=func.now()),
    CheckConstraint("amount > 0", name="amount_check"),
    CheckConstraint(
        "frequency IN ('monthly', 'yearly')",
        name="frequency_check",
    ),
    CheckConstraint(
        "day_of_period BETWEEN 1 AND 31",
        name="day_of_period_check",
    ),
    CheckConstraint(
        "month_of_year BETWEEN 1 AND 12",
        name="month_of_year_check",
    ),
)

# Expense ledger
expenses = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("date", String(10), nullable=False),  # YYYY-MM-DD
    Column("description", Text, nullable=False),
    Column("amount", Float, nullable=False),
    Column("category", String(100), nullable=False),
    Column("receipt_reference", String(500)),
    Column(
        "origin_rule_id",
        Integer,
        ForeignKey("recurring_expense_rules.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("period_key", String(7)),  # Set only for materialized expenses
    Column("created_at", DateTime, server_default=func.now()),
    CheckConstraint("amount > 0", name="amount_check"),
    UniqueConstraint(
        "origin_rule_id",
        "period_key",
        name="uq_expenses_rule_period",
    ),
)

Index("idx_expenses_date", expenses.c.date)

SCHEMA_VERSION = 1
