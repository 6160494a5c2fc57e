"""Invoice assembly, status changes and deletion."""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from .. import audit
from ..config import BillingConfig
from ..db import Database, Invoice, InvoiceLineItem, Settings, TimeEntry
from ..errors import ConflictError, LedgerError, NotFoundError, ValidationError
from ..logging import get_logger
from .sequencer import InvoiceSequencer
from .time_ledger import TimeLedger, parse_date

logger = get_logger(__name__)

INVOICE_STATUSES = ("draft", "sent", "paid")


@dataclass
class PaymentDetails:
    """Payment instructions printed on an invoice."""

    payment_info: str | None = None
    payment_qr_url: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentDetails":
        return cls(payment_info=settings.payment_info, payment_qr_url=settings.payment_qr_url)


def line_amount(quantity: float, unit_price: float) -> float:
    """Amount of one line, rounded to cents before it is summed."""
    return round(quantity * unit_price, 2)


def invoice_total(items: list[InvoiceLineItem]) -> float:
    """Sum of the cent-rounded line amounts.

    Amounts are recomputed from quantity and unit_price, so stored amounts are
    not trusted. The total always equals the sum of the printed lines, which
    can differ from rounding the unrounded products once.
    """
    return round(sum(line_amount(item.quantity, item.unit_price) for item in items), 2)


def snapshot_time_entry(entry: TimeEntry, default_rate: float) -> InvoiceLineItem:
    """Copy a time entry into a line item that later edits cannot change."""
    # A zero or missing rate bills at the default
    unit_price = entry.rate or default_rate
    return InvoiceLineItem(
        description=f"{entry.description} ({entry.date})",
        quantity=entry.hours,
        unit_price=unit_price,
        amount=line_amount(entry.hours, unit_price),
        source_time_entry_id=entry.id,
    )


def _manual_line(item: InvoiceLineItem | Mapping[str, Any]) -> InvoiceLineItem:
    if isinstance(item, Mapping):
        description = item.get("description")
        quantity = item.get("quantity", 1)
        unit_price = item.get("unit_price")
    else:
        description, quantity, unit_price = item.description, item.quantity, item.unit_price

    if not description or not str(description).strip():
        raise ValidationError("Line item description is required", "invoice")
    try:
        quantity = float(quantity)
        unit_price = float(unit_price)
    except (TypeError, ValueError):
        raise ValidationError(
            f"Line item {description!r} needs numeric quantity and unit_price", "invoice"
        ) from None
    if quantity < 0 or unit_price < 0:
        raise ValidationError(
            f"Line item {description!r} has negative quantity or unit_price", "invoice"
        )
    # Any caller-supplied amount is discarded
    return InvoiceLineItem(
        description=str(description).strip(),
        quantity=quantity,
        unit_price=unit_price,
        amount=line_amount(quantity, unit_price),
    )


class InvoiceAssembler:
    """Builds invoices from manual items and unbilled time.

    Writing the invoice, its line items and billing the selected time
    entries happen in one transaction: either all of it is committed or
    none of it is. The invoice number is allocated beforehand in its own
    transaction, so a failed creation skips a number rather than reusing it.
    """

    def __init__(
        self,
        db: Database,
        config: BillingConfig | None = None,
        time_ledger: TimeLedger | None = None,
        sequencer: InvoiceSequencer | None = None,
    ):
        self.db = db
        self.config = config or BillingConfig()
        self.time_ledger = time_ledger or TimeLedger(db)
        self.sequencer = sequencer or InvoiceSequencer(db, self.config)

    def _select_entries(self, client_reference: str, entry_ids: list[int]) -> list[TimeEntry]:
        entries = self.db.get_time_entries(entry_ids)
        found = {e.id for e in entries}
        missing = [i for i in entry_ids if i not in found]
        if missing:
            raise NotFoundError(f"Time entries not found: {missing}", "time_entry", missing)

        not_billable = [e.id for e in entries if not e.billable]
        if not_billable:
            raise ValidationError(
                f"Time entries are not billable: {not_billable}", "time_entry", not_billable
            )
        already_billed = [e.id for e in entries if e.status != "unbilled"]
        if already_billed:
            raise ConflictError(
                f"Time entries already billed: {already_billed}", "time_entry", already_billed
            )
        other_client = [
            e.id
            for e in entries
            if e.client_reference is not None and e.client_reference != client_reference
        ]
        if other_client:
            raise ValidationError(
                f"Time entries belong to another client: {other_client}",
                "time_entry",
                other_client,
            )
        return entries

    def create_invoice(
        self,
        client_reference: str,
        manual_items: list[InvoiceLineItem | Mapping[str, Any]] | None = None,
        time_entry_ids: list[int] | None = None,
        issue_date: str | date | None = None,
        due_date: str | date | None = None,
        payment_details: PaymentDetails | None = None,
        status: str = "draft",
        notes: str | None = None,
    ) -> Invoice:
        """Create an invoice and bill the selected time entries.

        Raises:
            ValidationError: No line items, bad dates or malformed items.
            NotFoundError: A referenced time entry does not exist.
            ConflictError: A referenced entry is already billed, including
                when another session billed it after validation.
            SequenceExhaustionError: No invoice numbers left.
        """
        if not client_reference or not str(client_reference).strip():
            raise ValidationError("Client reference is required", "invoice")
        if status not in INVOICE_STATUSES:
            raise ValidationError(f"Invalid invoice status: {status!r}", "invoice")

        entry_ids = list(dict.fromkeys(time_entry_ids or []))
        lines = [_manual_line(item) for item in manual_items or []]
        if not lines and not entry_ids:
            raise ValidationError("An invoice needs at least one line item", "invoice")

        issue = parse_date(issue_date or date.today(), "issue_date")
        if due_date is None:
            terms = timedelta(days=self.config.payment_terms_days)
            due = (date.fromisoformat(issue) + terms).isoformat()
        else:
            due = parse_date(due_date, "due_date")
        if due < issue:
            raise ValidationError(f"Due date {due} is before issue date {issue}", "invoice")

        settings = self.db.get_settings()
        entries = self._select_entries(client_reference, entry_ids)
        lines.extend(snapshot_time_entry(e, settings.default_hourly_rate) for e in entries)
        total = invoice_total(lines)
        payment = payment_details or PaymentDetails.from_settings(settings)

        number, sequence = self.sequencer.next_number()

        invoice = Invoice(
            id=None,
            number=number,
            sequence_number=sequence,
            client_reference=client_reference,
            issue_date=issue,
            due_date=due,
            status=status,
            total_amount=total,
            payment_info=payment.payment_info,
            payment_qr_url=payment.payment_qr_url,
            notes=notes,
            line_items=lines,
        )
        try:
            with self.db.transaction() as conn:
                invoice_id = self.db.insert_invoice(invoice, conn=conn)
                self.time_ledger.mark_billed(entry_ids, invoice_id, conn=conn)
                if status == "paid":
                    self.time_ledger.set_invoice_entries_status(invoice_id, paid=True, conn=conn)
        except (LedgerError, SQLAlchemyError) as e:
            logger.warning(
                "invoice_creation_failed",
                number=number,
                client=client_reference,
                error=str(e),
            )
            raise

        if entry_ids:
            audit.log_time_billed(entry_ids, invoice_id)
        audit.log_invoice_created(
            invoice_id, number, client_reference, total, len(lines), len(entry_ids)
        )
        return self.get_invoice(invoice_id)

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.db.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", "invoice", [invoice_id])
        return invoice

    def list_invoices(
        self,
        status: str | None = None,
        client_reference: str | None = None,
    ) -> list[Invoice]:
        return self.db.list_invoices(status=status, client_reference=client_reference)

    def update_status(self, invoice_id: int, new_status: str) -> Invoice:
        """Move an invoice between draft, sent and paid in any direction.

        Linked time entries follow: they become paid with the invoice and
        drop back to billed when it leaves paid.
        """
        if new_status not in INVOICE_STATUSES:
            raise ValidationError(f"Invalid invoice status: {new_status!r}", "invoice")

        with self.db.transaction() as conn:
            invoice = self.db.get_invoice(invoice_id, conn=conn)
            if invoice is None:
                raise NotFoundError(f"Invoice {invoice_id} not found", "invoice", [invoice_id])
            old_status = invoice.status
            if old_status == new_status:
                return invoice
            self.db.update_invoice_status(invoice_id, new_status, conn=conn)
            if new_status == "paid":
                self.time_ledger.set_invoice_entries_status(invoice_id, paid=True, conn=conn)
            elif old_status == "paid":
                self.time_ledger.set_invoice_entries_status(invoice_id, paid=False, conn=conn)

        audit.log_invoice_status_changed(invoice_id, invoice.number, old_status, new_status)
        return self.get_invoice(invoice_id)

    def delete_invoice(self, invoice_id: int) -> int:
        """Delete an invoice and release its time entries to unbilled.

        Returns:
            Number of time entries released.
        """
        with self.db.transaction() as conn:
            invoice = self.db.get_invoice(invoice_id, conn=conn)
            if invoice is None:
                raise NotFoundError(f"Invoice {invoice_id} not found", "invoice", [invoice_id])
            released = self.time_ledger.release_invoice(invoice_id, conn=conn)
            self.db.delete_invoice(invoice_id, conn=conn)

        audit.log_time_released(invoice_id, released)
        audit.log_invoice_deleted(invoice_id, invoice.number, released)
        return released
