"""Data access layer using SQLAlchemy Core."""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.engine import Connection, Engine

from .engine import create_db_engine, get_dialect, initialize_schema
from .tables import (
    active_timers,
    expenses,
    invoice_line_items,
    invoices,
    recurring_expense_rules,
    settings,
    time_entries,
)


@dataclass
class TimeEntry:
    """Logged work record."""

    id: int | None
    date: str
    hours: float
    description: str
    billable: bool = True
    rate: float | None = None
    client_reference: str | None = None
    status: str = "unbilled"  # unbilled, billed, paid
    invoice_id: int | None = None
    created_at: str | None = None


@dataclass
class ActiveTimer:
    """Running timer record."""

    started_at: str
    description: str | None = None
    client_reference: str | None = None


@dataclass
class Expense:
    """Expense ledger record."""

    id: int | None
    date: str
    description: str
    amount: float
    category: str
    receipt_reference: str | None = None
    origin_rule_id: int | None = None
    period_key: str | None = None  # Period a recurring rule fired for
    created_at: str | None = None


@dataclass
class RecurringExpenseRule:
    """Standing cost rule."""

    id: int | None
    description: str
    amount: float
    category: str
    frequency: str  # monthly, yearly
    day_of_period: int
    month_of_year: int = 1  # Yearly rules only
    last_materialized_period: str | None = None
    created_at: str | None = None


@dataclass
class InvoiceLineItem:
    """Invoice line snapshot."""

    description: str
    quantity: float
    unit_price: float
    amount: float = 0.0
    source_time_entry_id: int | None = None
    id: int | None = None
    invoice_id: int | None = None
    position: int = 0


@dataclass
class Invoice:
    """Invoice record with its line items."""

    id: int | None
    number: str
    sequence_number: int
    client_reference: str
    issue_date: str
    due_date: str
    status: str  # draft, sent, paid
    total_amount: float
    payment_info: str | None = None
    payment_qr_url: str | None = None
    notes: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    line_items: list[InvoiceLineItem] = field(default_factory=list)


@dataclass
class SequenceCounter:
    """Invoice number counter."""

    prefix: str
    next_value: int

    def format(self, value: int | None = None) -> str:
        """Render an invoice number."""
        return f"{self.prefix}{self.next_value if value is None else value}"


@dataclass
class Settings:
    """Finance settings record."""

    invoice_prefix: str
    next_invoice_seq: int
    default_hourly_rate: float
    payment_info: str | None = None
    payment_qr_url: str | None = None
    business_name: str | None = None
    invoice_footer_note: str | None = None
    updated_at: str | None = None

    @property
    def counter(self) -> SequenceCounter:
        return SequenceCounter(prefix=self.invoice_prefix, next_value=self.next_invoice_seq)


# Settings columns an operator may edit. next_invoice_seq is owned by the sequencer.
EDITABLE_SETTINGS = (
    "invoice_prefix",
    "default_hourly_rate",
    "payment_info",
    "payment_qr_url",
    "business_name",
    "invoice_footer_note",
)


def _row_to_dict(row: Any) -> dict:
    """Convert SQLAlchemy row to dict."""
    return dict(row._mapping)


def _format_datetime(dt: datetime | str | None) -> str | None:
    """Format datetime to ISO string."""
    if dt is None:
        return None
    if isinstance(dt, str):
        return dt
    return dt.isoformat()


class Database:
    """Database connection and operations using SQLAlchemy Core.

    Methods that take a ``conn`` argument join the caller's transaction when
    one is passed, so services can combine several writes into one atomic
    unit. Conditional writes return the affected row count and leave the
    decision of what a zero count means to the caller.
    """

    def __init__(self, db_path: Path | str):
        """Initialize database connection.

        Args:
            db_path: Path to SQLite database file, or full connection string.
        """
        self._engine: Engine | None = None
        self._db_path = db_path

    @property
    def engine(self) -> Engine:
        """Get or create database engine."""
        if self._engine is None:
            self._engine = create_db_engine(self._db_path)
        return self._engine

    @property
    def dialect(self) -> str:
        """Get database dialect (sqlite, postgresql)."""
        return get_dialect(self.engine)

    def close(self) -> None:
        """Close database connection."""
        if self._engine:
            self._engine.dispose()
            self._engine = None

    def initialize(self, seed_settings: dict | None = None) -> None:
        """Initialize database schema.

        Args:
            seed_settings: Initial settings values, applied only on first run.
        """
        initialize_schema(self.engine, seed_settings)

    @contextmanager
    def transaction(self, conn: Connection | None = None) -> Iterator[Connection]:
        """Join the caller's transaction or open a new one.

        A new transaction commits on success and rolls back on error.
        """
        if conn is not None:
            yield conn
        else:
            with self.engine.begin() as new_conn:
                yield new_conn

    # Settings operations

    def get_settings(self, conn: Connection | None = None) -> Settings:
        """Get the finance settings row."""
        with self.transaction(conn) as c:
            row = c.execute(select(settings).where(settings.c.id == 1)).fetchone()
            if row is None:
                raise RuntimeError("Settings row missing; call Database.initialize() first")
            row_dict = _row_to_dict(row)
            row_dict.pop("id")
            row_dict["updated_at"] = _format_datetime(row_dict["updated_at"])
            return Settings(**row_dict)

    def update_settings(self, **values: Any) -> Settings:
        """Update editable settings columns."""
        unknown = set(values) - set(EDITABLE_SETTINGS)
        if unknown:
            raise ValueError(f"Settings not editable: {', '.join(sorted(unknown))}")
        if values:
            with self.engine.begin() as conn:
                conn.execute(
                    update(settings)
                    .where(settings.c.id == 1)
                    .values(updated_at=datetime.now(), **values)
                )
        return self.get_settings()

    def increment_sequence(
        self, max_value: int, conn: Connection | None = None
    ) -> tuple[str, int] | None:
        """Consume one invoice sequence value in a single statement.

        Returns:
            (stored prefix, consumed value), or None if the counter is past
            max_value.
        """
        with self.transaction(conn) as c:
            row = c.execute(
                update(settings)
                .where(settings.c.id == 1)
                .where(settings.c.next_invoice_seq <= max_value)
                .values(next_invoice_seq=settings.c.next_invoice_seq + 1)
                .returning(settings.c.invoice_prefix, settings.c.next_invoice_seq)
            ).fetchone()
            if row is None:
                return None
            return row.invoice_prefix, row.next_invoice_seq - 1

    def advance_sequence(self, value: int) -> int:
        """Move the counter forward to value. Never moves it backwards."""
        with self.engine.begin() as conn:
            result = conn.execute(
                update(settings)
                .where(settings.c.id == 1)
                .where(settings.c.next_invoice_seq <= value)
                .values(next_invoice_seq=value, updated_at=datetime.now())
            )
            return result.rowcount

    # Time entry operations

    def _time_entry_from_row(self, row) -> TimeEntry:
        row_dict = _row_to_dict(row)
        row_dict["billable"] = bool(row_dict["billable"])
        row_dict["created_at"] = _format_datetime(row_dict["created_at"])
        return TimeEntry(**row_dict)

    def insert_time_entry(self, entry: TimeEntry, conn: Connection | None = None) -> TimeEntry:
        """Insert a new unbilled time entry."""
        now = datetime.now()
        with self.transaction(conn) as c:
            result = c.execute(
                time_entries.insert().values(
                    date=entry.date,
                    hours=entry.hours,
                    description=entry.description,
                    billable=entry.billable,
                    rate=entry.rate,
                    client_reference=entry.client_reference,
                    status="unbilled",
                    invoice_id=None,
                    created_at=now,
                )
            )
            return TimeEntry(
                id=result.inserted_primary_key[0],
                date=entry.date,
                hours=entry.hours,
                description=entry.description,
                billable=entry.billable,
                rate=entry.rate,
                client_reference=entry.client_reference,
                status="unbilled",
                invoice_id=None,
                created_at=now.isoformat(),
            )

    def get_time_entry(self, entry_id: int, conn: Connection | None = None) -> TimeEntry | None:
        """Get a time entry by ID."""
        with self.transaction(conn) as c:
            row = c.execute(select(time_entries).where(time_entries.c.id == entry_id)).fetchone()
            return self._time_entry_from_row(row) if row else None

    def get_time_entries(
        self, entry_ids: list[int], conn: Connection | None = None
    ) -> list[TimeEntry]:
        """Get time entries by ID, in the order requested. Missing IDs are omitted."""
        if not entry_ids:
            return []
        with self.transaction(conn) as c:
            rows = c.execute(
                select(time_entries).where(time_entries.c.id.in_(entry_ids))
            ).fetchall()
        by_id = {row.id: self._time_entry_from_row(row) for row in rows}
        return [by_id[entry_id] for entry_id in entry_ids if entry_id in by_id]

    def list_time_entries(
        self,
        status: str | None = None,
        client_reference: str | None = None,
        billable: bool | None = None,
        invoice_id: int | None = None,
        include_untagged: bool = False,
    ) -> list[TimeEntry]:
        """List time entries, newest first.

        With include_untagged, entries without a client_reference also match
        a client filter.
        """
        with self.engine.connect() as conn:
            stmt = select(time_entries)
            if status:
                stmt = stmt.where(time_entries.c.status == status)
            if client_reference is not None:
                matches = time_entries.c.client_reference == client_reference
                if include_untagged:
                    matches = or_(matches, time_entries.c.client_reference.is_(None))
                stmt = stmt.where(matches)
            if billable is not None:
                stmt = stmt.where(time_entries.c.billable == billable)
            if invoice_id is not None:
                stmt = stmt.where(time_entries.c.invoice_id == invoice_id)
            stmt = stmt.order_by(time_entries.c.date.desc(), time_entries.c.id.desc())
            rows = conn.execute(stmt).fetchall()
            return [self._time_entry_from_row(row) for row in rows]

    def update_unbilled_time_entry(self, entry_id: int, values: dict[str, Any]) -> int:
        """Update an entry only while it is still unbilled."""
        with self.engine.begin() as conn:
            result = conn.execute(
                update(time_entries)
                .where(time_entries.c.id == entry_id)
                .where(time_entries.c.status == "unbilled")
                .values(**values)
            )
            return result.rowcount

    def delete_unbilled_time_entry(self, entry_id: int) -> int:
        """Delete an entry only while it is still unbilled."""
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(time_entries)
                .where(time_entries.c.id == entry_id)
                .where(time_entries.c.status == "unbilled")
            )
            return result.rowcount

    def mark_entries_billed(
        self, entry_ids: list[int], invoice_id: int, conn: Connection | None = None
    ) -> set[int]:
        """Move billable, unbilled entries to billed in one statement.

        Returns:
            IDs of the entries that were moved.
        """
        with self.transaction(conn) as c:
            rows = c.execute(
                update(time_entries)
                .where(time_entries.c.id.in_(entry_ids))
                .where(time_entries.c.status == "unbilled")
                .where(time_entries.c.billable == True)  # noqa: E712
                .values(status="billed", invoice_id=invoice_id)
                .returning(time_entries.c.id)
            ).fetchall()
            return {row.id for row in rows}

    def release_invoice_entries(self, invoice_id: int, conn: Connection | None = None) -> int:
        """Return every entry linked to an invoice to unbilled."""
        with self.transaction(conn) as c:
            result = c.execute(
                update(time_entries)
                .where(time_entries.c.invoice_id == invoice_id)
                .values(status="unbilled", invoice_id=None)
            )
            return result.rowcount

    def set_invoice_entries_status(
        self,
        invoice_id: int,
        from_status: str,
        to_status: str,
        conn: Connection | None = None,
    ) -> int:
        """Move entries linked to an invoice between billed and paid."""
        with self.transaction(conn) as c:
            result = c.execute(
                update(time_entries)
                .where(time_entries.c.invoice_id == invoice_id)
                .where(time_entries.c.status == from_status)
                .values(status=to_status)
            )
            return result.rowcount

    # Timer operations

    def get_timer(self) -> ActiveTimer | None:
        """Get the running timer, if any."""
        with self.engine.connect() as conn:
            row = conn.execute(select(active_timers).where(active_timers.c.id == 1)).fetchone()
            if row is None:
                return None
            return ActiveTimer(
                started_at=_format_datetime(row.started_at),
                description=row.description,
                client_reference=row.client_reference,
            )

    def start_timer(
        self,
        started_at: datetime,
        description: str | None = None,
        client_reference: str | None = None,
    ) -> bool:
        """Start the timer unless one is already running."""
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(active_timers.c.id).where(active_timers.c.id == 1)
            ).fetchone()
            if existing:
                return False
            conn.execute(
                active_timers.insert().values(
                    id=1,
                    started_at=started_at,
                    description=description,
                    client_reference=client_reference,
                )
            )
            return True

    def take_timer(self, conn: Connection) -> tuple[datetime, str | None, str | None] | None:
        """Remove the running timer inside the caller's transaction.

        Returns:
            (started_at, description, client_reference), or None if no timer
            was running or another session stopped it first.
        """
        row = conn.execute(select(active_timers).where(active_timers.c.id == 1)).fetchone()
        if row is None:
            return None
        result = conn.execute(delete(active_timers).where(active_timers.c.id == 1))
        if result.rowcount == 0:
            return None
        started_at = row.started_at
        if isinstance(started_at, str):
            started_at = datetime.fromisoformat(started_at)
        return started_at, row.description, row.client_reference

    # Recurring rule operations

    def _rule_from_row(self, row) -> RecurringExpenseRule:
        row_dict = _row_to_dict(row)
        row_dict["created_at"] = _format_datetime(row_dict["created_at"])
        return RecurringExpenseRule(**row_dict)

    def insert_rule(self, rule: RecurringExpenseRule) -> RecurringExpenseRule:
        """Insert a recurring expense rule."""
        now = datetime.now()
        with self.engine.begin() as conn:
            result = conn.execute(
                recurring_expense_rules.insert().values(
                    description=rule.description,
                    amount=rule.amount,
                    category=rule.category,
                    frequency=rule.frequency,
                    day_of_period=rule.day_of_period,
                    month_of_year=rule.month_of_year,
                    last_materialized_period=rule.last_materialized_period,
                    created_at=now,
                )
            )
            rule_id = result.inserted_primary_key[0]
        return RecurringExpenseRule(
            id=rule_id,
            description=rule.description,
            amount=rule.amount,
            category=rule.category,
            frequency=rule.frequency,
            day_of_period=rule.day_of_period,
            month_of_year=rule.month_of_year,
            last_materialized_period=rule.last_materialized_period,
            created_at=now.isoformat(),
        )

    def get_rule(
        self, rule_id: int, conn: Connection | None = None
    ) -> RecurringExpenseRule | None:
        """Get a recurring rule by ID."""
        with self.transaction(conn) as c:
            row = c.execute(
                select(recurring_expense_rules).where(recurring_expense_rules.c.id == rule_id)
            ).fetchone()
            return self._rule_from_row(row) if row else None

    def list_rules(self) -> list[RecurringExpenseRule]:
        """List all recurring rules."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(recurring_expense_rules).order_by(recurring_expense_rules.c.id)
            ).fetchall()
            return [self._rule_from_row(row) for row in rows]

    def delete_rule(self, rule_id: int) -> int:
        """Delete a rule. Expenses it created keep their rows."""
        with self.engine.begin() as conn:
            # ondelete=SET NULL only fires when SQLite foreign keys are on; be explicit.
            conn.execute(
                update(expenses)
                .where(expenses.c.origin_rule_id == rule_id)
                .values(origin_rule_id=None)
            )
            result = conn.execute(
                delete(recurring_expense_rules).where(recurring_expense_rules.c.id == rule_id)
            )
            return result.rowcount

    def advance_rule_period(
        self, rule_id: int, period_key: str, conn: Connection | None = None
    ) -> int:
        """Set last_materialized_period only if it is still behind period_key."""
        with self.transaction(conn) as c:
            result = c.execute(
                update(recurring_expense_rules)
                .where(recurring_expense_rules.c.id == rule_id)
                .where(
                    or_(
                        recurring_expense_rules.c.last_materialized_period.is_(None),
                        recurring_expense_rules.c.last_materialized_period < period_key,
                    )
                )
                .values(last_materialized_period=period_key)
            )
            return result.rowcount

    # Expense operations

    def _expense_from_row(self, row) -> Expense:
        row_dict = _row_to_dict(row)
        row_dict["created_at"] = _format_datetime(row_dict["created_at"])
        return Expense(**row_dict)

    def insert_expense(self, expense: Expense, conn: Connection | None = None) -> Expense:
        """Insert an expense."""
        now = datetime.now()
        with self.transaction(conn) as c:
            result = c.execute(
                expenses.insert().values(
                    date=expense.date,
                    description=expense.description,
                    amount=expense.amount,
                    category=expense.category,
                    receipt_reference=expense.receipt_reference,
                    origin_rule_id=expense.origin_rule_id,
                    period_key=expense.period_key,
                    created_at=now,
                )
            )
            expense_id = result.inserted_primary_key[0]
        return Expense(
            id=expense_id,
            date=expense.date,
            description=expense.description,
            amount=expense.amount,
            category=expense.category,
            receipt_reference=expense.receipt_reference,
            origin_rule_id=expense.origin_rule_id,
            period_key=expense.period_key,
            created_at=now.isoformat(),
        )

    def get_expense(self, expense_id: int) -> Expense | None:
        """Get an expense by ID."""
        with self.engine.connect() as conn:
            row = conn.execute(select(expenses).where(expenses.c.id == expense_id)).fetchone()
            return self._expense_from_row(row) if row else None

    def list_expenses(
        self,
        start: str | None = None,
        end: str | None = None,
        category: str | None = None,
        origin_rule_id: int | None = None,
    ) -> list[Expense]:
        """List expenses dated within [start, end], newest first."""
        with self.engine.connect() as conn:
            stmt = select(expenses)
            if start:
                stmt = stmt.where(expenses.c.date >= start)
            if end:
                stmt = stmt.where(expenses.c.date <= end)
            if category:
                stmt = stmt.where(expenses.c.category == category)
            if origin_rule_id is not None:
                stmt = stmt.where(expenses.c.origin_rule_id == origin_rule_id)
            stmt = stmt.order_by(expenses.c.date.desc(), expenses.c.id.desc())
            rows = conn.execute(stmt).fetchall()
            return [self._expense_from_row(row) for row in rows]

    def delete_expense(self, expense_id: int) -> int:
        """Delete an expense."""
        with self.engine.begin() as conn:
            result = conn.execute(delete(expenses).where(expenses.c.id == expense_id))
            return result.rowcount

    # Invoice operations

    def _invoice_from_row(self, row, items: list[InvoiceLineItem]) -> Invoice:
        row_dict = _row_to_dict(row)
        row_dict["created_at"] = _format_datetime(row_dict["created_at"])
        row_dict["updated_at"] = _format_datetime(row_dict["updated_at"])
        return Invoice(**row_dict, line_items=items)

    def _line_items_for(self, conn: Connection, invoice_ids: list[int]) -> dict[int, list]:
        grouped: dict[int, list[InvoiceLineItem]] = {invoice_id: [] for invoice_id in invoice_ids}
        if not invoice_ids:
            return grouped
        rows = conn.execute(
            select(invoice_line_items)
            .where(invoice_line_items.c.invoice_id.in_(invoice_ids))
            .order_by(invoice_line_items.c.invoice_id, invoice_line_items.c.position)
        ).fetchall()
        for row in rows:
            grouped[row.invoice_id].append(InvoiceLineItem(**_row_to_dict(row)))
        return grouped

    def insert_invoice(self, invoice: Invoice, conn: Connection | None = None) -> int:
        """Insert an invoice and its line items. Returns the new invoice ID."""
        with self.transaction(conn) as c:
            result = c.execute(
                invoices.insert().values(
                    number=invoice.number,
                    sequence_number=invoice.sequence_number,
                    client_reference=invoice.client_reference,
                    issue_date=invoice.issue_date,
                    due_date=invoice.due_date,
                    status=invoice.status,
                    total_amount=invoice.total_amount,
                    payment_info=invoice.payment_info,
                    payment_qr_url=invoice.payment_qr_url,
                    notes=invoice.notes,
                    created_at=datetime.now(),
                )
            )
            invoice_id = result.inserted_primary_key[0]
            if invoice.line_items:
                c.execute(
                    invoice_line_items.insert(),
                    [
                        {
                            "invoice_id": invoice_id,
                            "position": position,
                            "description": item.description,
                            "quantity": item.quantity,
                            "unit_price": item.unit_price,
                            "amount": item.amount,
                            "source_time_entry_id": item.source_time_entry_id,
                        }
                        for position, item in enumerate(invoice.line_items)
                    ],
                )
            return invoice_id

    def get_invoice(self, invoice_id: int, conn: Connection | None = None) -> Invoice | None:
        """Get an invoice with its line items."""
        with self.transaction(conn) as c:
            row = c.execute(select(invoices).where(invoices.c.id == invoice_id)).fetchone()
            if row is None:
                return None
            items = self._line_items_for(c, [invoice_id])[invoice_id]
            return self._invoice_from_row(row, items)

    def list_invoices(
        self,
        status: str | None = None,
        client_reference: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> list[Invoice]:
        """List invoices with line items, newest issue date first."""
        with self.engine.connect() as conn:
            stmt = select(invoices)
            if status:
                stmt = stmt.where(invoices.c.status == status)
            if client_reference is not None:
                stmt = stmt.where(invoices.c.client_reference == client_reference)
            if start:
                stmt = stmt.where(invoices.c.issue_date >= start)
            if end:
                stmt = stmt.where(invoices.c.issue_date <= end)
            stmt = stmt.order_by(invoices.c.issue_date.desc(), invoices.c.id.desc())
            rows = conn.execute(stmt).fetchall()
            grouped = self._line_items_for(conn, [row.id for row in rows])
            return [self._invoice_from_row(row, grouped[row.id]) for row in rows]

    def update_invoice_status(
        self, invoice_id: int, status: str, conn: Connection | None = None
    ) -> int:
        """Set an invoice's status."""
        with self.transaction(conn) as c:
            result = c.execute(
                update(invoices)
                .where(invoices.c.id == invoice_id)
                .values(status=status, updated_at=datetime.now())
            )
            return result.rowcount

    def delete_invoice(self, invoice_id: int, conn: Connection | None = None) -> int:
        """Delete an invoice and its line items."""
        with self.transaction(conn) as c:
            c.execute(
                delete(invoice_line_items).where(invoice_line_items.c.invoice_id == invoice_id)
            )
            result = c.execute(delete(invoices).where(invoices.c.id == invoice_id))
            return result.rowcount

    def count_orphaned_billed_entries(self) -> int:
        """Count entries whose billed/paid status points at no invoice."""
        with self.engine.connect() as conn:
            stmt = (
                select(time_entries.c.id)
                .select_from(
                    time_entries.outerjoin(invoices, invoices.c.id == time_entries.c.invoice_id)
                )
                .where(and_(time_entries.c.status != "unbilled", invoices.c.id.is_(None)))
            )
            return len(conn.execute(stmt).fetchall())
