"""Logged work items and their billing status."""

from datetime import date, datetime
from typing import Any

from sqlalchemy.engine import Connection

from .. import audit
from ..db import Database, TimeEntry
from ..errors import ConflictError, NotFoundError, ValidationError
from ..logging import get_logger

logger = get_logger(__name__)

EDITABLE_FIELDS = ("date", "hours", "description", "billable", "rate", "client_reference")


def parse_date(value: str | date, field_name: str = "date") -> str:
    """Normalize a date or YYYY-MM-DD string to ISO format."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return date.fromisoformat(value).isoformat()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {field_name}: {value!r} (expected YYYY-MM-DD)") from None


def _validate_fields(values: dict[str, Any]) -> dict[str, Any]:
    cleaned = dict(values)
    if "date" in cleaned:
        cleaned["date"] = parse_date(cleaned["date"])
    if "hours" in cleaned:
        hours = cleaned["hours"]
        if hours is None or hours < 0:
            raise ValidationError(f"Hours must be zero or positive, got {hours}", "time_entry")
        cleaned["hours"] = float(hours)
    if "description" in cleaned:
        if not cleaned["description"] or not str(cleaned["description"]).strip():
            raise ValidationError("Description is required", "time_entry")
        cleaned["description"] = str(cleaned["description"]).strip()
    if cleaned.get("rate") is not None and cleaned["rate"] < 0:
        raise ValidationError(f"Rate must be zero or positive, got {cleaned['rate']}", "time_entry")
    if "client_reference" in cleaned:
        cleaned["client_reference"] = cleaned["client_reference"] or None
    return cleaned


class TimeLedger:
    """Service for time entries.

    Entries are created unbilled. The only way to bill them is
    :meth:`mark_billed`, called by the invoice assembler inside the same
    transaction that writes the invoice.
    """

    def __init__(self, db: Database):
        self.db = db

    def log_time(self, entry: TimeEntry) -> TimeEntry:
        """Create an unbilled entry. Status and invoice_id on the input are ignored."""
        values = _validate_fields(
            {
                "date": entry.date,
                "hours": entry.hours,
                "description": entry.description,
                "rate": entry.rate,
                "client_reference": entry.client_reference,
            }
        )
        created = self.db.insert_time_entry(
            TimeEntry(id=None, billable=bool(entry.billable), **values)
        )
        audit.log_time_logged(created.id, created.date, created.hours, created.client_reference)
        return created

    def get_entry(self, entry_id: int) -> TimeEntry:
        entry = self.db.get_time_entry(entry_id)
        if entry is None:
            raise NotFoundError(f"Time entry {entry_id} not found", "time_entry", [entry_id])
        return entry

    def list_entries(
        self,
        status: str | None = None,
        client_reference: str | None = None,
    ) -> list[TimeEntry]:
        return self.db.list_time_entries(status=status, client_reference=client_reference)

    def list_unbilled(self, client_reference: str | None = None) -> list[TimeEntry]:
        """Billable, unbilled entries for a client, newest first.

        Entries without a client are listed for every client, since they can
        be billed to any of them. With no client filter, every billable
        unbilled entry is returned.
        """
        return self.db.list_time_entries(
            status="unbilled",
            client_reference=client_reference,
            billable=True,
            include_untagged=True,
        )

    def update_entry(self, entry_id: int, **changes: Any) -> TimeEntry:
        """Edit an entry while it is unbilled.

        Billed entries are frozen; their invoice holds a snapshot anyway.
        """
        unknown = set(changes) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(
                f"Cannot edit time entry fields: {', '.join(sorted(unknown))}",
                "time_entry",
                [entry_id],
            )
        values = _validate_fields(changes)
        if not values:
            return self.get_entry(entry_id)
        if self.db.update_unbilled_time_entry(entry_id, values) == 0:
            current = self.get_entry(entry_id)
            raise ConflictError(
                f"Time entry {entry_id} is {current.status} and can no longer be edited",
                "time_entry",
                [entry_id],
            )
        return self.get_entry(entry_id)

    def delete_entry(self, entry_id: int) -> None:
        """Delete an unbilled entry."""
        if self.db.delete_unbilled_time_entry(entry_id) == 0:
            current = self.get_entry(entry_id)
            raise ConflictError(
                f"Time entry {entry_id} is {current.status} on invoice {current.invoice_id}; "
                "delete or release the invoice first",
                "time_entry",
                [entry_id],
            )
        audit.log_time_deleted(entry_id)

    def mark_billed(
        self,
        entry_ids: list[int],
        invoice_id: int,
        conn: Connection | None = None,
    ) -> None:
        """Move all entries to billed, or none of them.

        Raises:
            ConflictError: If any entry is missing, not billable or not
                currently unbilled. Nothing is changed.
        """
        ids = list(dict.fromkeys(entry_ids))
        if not ids:
            return

        with self.db.transaction(conn) as c:
            updated = self.db.mark_entries_billed(ids, invoice_id, conn=c)
            if len(updated) != len(ids):
                offending = [i for i in ids if i not in updated]
                # Raising inside the transaction rolls back the partial update
                raise ConflictError(
                    f"Time entries not billable or already billed: {offending}",
                    "time_entry",
                    offending,
                )

        logger.debug("time_entries_billed", invoice_id=invoice_id, count=len(ids))
        # Inside a caller's transaction the caller audits after commit
        if conn is None:
            audit.log_time_billed(ids, invoice_id)

    def release_invoice(self, invoice_id: int, conn: Connection | None = None) -> int:
        """Return the entries of an invoice to unbilled."""
        return self.db.release_invoice_entries(invoice_id, conn=conn)

    def set_invoice_entries_status(
        self, invoice_id: int, paid: bool, conn: Connection | None = None
    ) -> int:
        """Cascade an invoice's paid state onto its entries."""
        if paid:
            return self.db.set_invoice_entries_status(invoice_id, "billed", "paid", conn=conn)
        return self.db.set_invoice_entries_status(invoice_id, "paid", "billed", conn=conn)

    # Timer

    def get_timer(self):
        return self.db.get_timer()

    def start_timer(
        self,
        description: str | None = None,
        client_reference: str | None = None,
        now: datetime | None = None,
    ) -> None:
        """Start the shared timer."""
        started = self.db.start_timer(
            now or datetime.now(),
            description=description,
            client_reference=client_reference or None,
        )
        if not started:
            raise ConflictError("A timer is already running", "timer")

    def stop_timer(self, now: datetime | None = None, billable: bool = True) -> TimeEntry:
        """Stop the timer and log the elapsed time as an unbilled entry."""
        now = now or datetime.now()
        with self.db.transaction() as conn:
            taken = self.db.take_timer(conn)
            if taken is None:
                raise NotFoundError("No timer is running", "timer")
            started_at, description, client_reference = taken
            elapsed = max((now - started_at).total_seconds(), 0.0)
            entry = self.db.insert_time_entry(
                TimeEntry(
                    id=None,
                    date=now.date().isoformat(),
                    hours=round(elapsed / 3600, 2),
                    description=description or "Tracked Time",
                    billable=billable,
                    client_reference=client_reference,
                ),
                conn=conn,
            )
        audit.log_time_logged(entry.id, entry.date, entry.hours, entry.client_reference)
        return entry
