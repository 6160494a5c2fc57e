"""Audit trail of ledger writes.

Every committed change to time entries, expenses, rules, the invoice
sequence or invoices produces one INFO record named ``<entity>.<action>``
(``invoice.created``, ``time.billed``) on the ``openledger.audit`` logger.
Records carry ``event_type`` and ``action`` fields next to the ids and
amounts involved, and are rendered by whatever ``logging.format`` selects.
Setting ``logging.enabled: false`` silences the trail without touching the
application log.
"""

from typing import Any

import structlog

_trail: structlog.BoundLogger | None = None
_recording: bool = True


def configure(enabled: bool = True) -> None:
    """Turn the audit trail on or off."""
    global _recording
    _recording = enabled


def trail_logger() -> structlog.BoundLogger:
    global _trail
    if _trail is None:
        _trail = structlog.get_logger("openledger.audit")
    return _trail


def _emit(entity: str, action: str, **fields: Any) -> None:
    """Record one ``entity.action`` event if the trail is on."""
    if _recording:
        trail_logger().info(f"{entity}.{action}", event_type=entity, action=action, **fields)


# Time events
def log_time_logged(entry_id: int, date: str, hours: float, client: str | None) -> None:
    """Log a new time entry."""
    _emit("time", "logged", entry_id=entry_id, date=date, hours=hours, client=client or "")


def log_time_billed(entry_ids: list[int], invoice_id: int) -> None:
    """Log entries moving to billed."""
    _emit(
        "time",
        "billed",
        entry_ids=",".join(str(i) for i in entry_ids),
        count=len(entry_ids),
        invoice_id=invoice_id,
    )


def log_time_released(invoice_id: int, count: int) -> None:
    """Log entries returned to unbilled."""
    _emit("time", "released", invoice_id=invoice_id, count=count)


def log_time_deleted(entry_id: int) -> None:
    """Log a time entry deletion."""
    _emit("time", "deleted", entry_id=entry_id)


# Expense events
def log_expense_created(expense_id: int, date: str, amount: float, category: str) -> None:
    """Log a directly entered expense."""
    _emit(
        "expense",
        "created",
        expense_id=expense_id,
        date=date,
        amount=round(amount, 2),
        category=category,
    )


def log_expense_materialized(
    expense_id: int,
    rule_id: int,
    period: str,
    amount: float,
) -> None:
    """Log an expense created by a recurring rule."""
    _emit(
        "expense",
        "materialized",
        expense_id=expense_id,
        rule_id=rule_id,
        period=period,
        amount=round(amount, 2),
    )


def log_expense_deleted(expense_id: int) -> None:
    """Log an expense deletion."""
    _emit("expense", "deleted", expense_id=expense_id)


# Rule events
def log_rule_created(rule_id: int, frequency: str, amount: float) -> None:
    """Log a recurring rule creation."""
    _emit("rule", "created", rule_id=rule_id, frequency=frequency, amount=round(amount, 2))


def log_rule_deleted(rule_id: int) -> None:
    """Log a recurring rule deletion."""
    _emit("rule", "deleted", rule_id=rule_id)


# Invoice events
def log_sequence_allocated(number: str, sequence: int) -> None:
    """Log an invoice number allocation."""
    _emit("sequence", "allocated", number=number, sequence=sequence)


def log_invoice_created(
    invoice_id: int,
    number: str,
    client: str,
    total_amount: float,
    line_count: int,
    time_entry_count: int,
) -> None:
    """Log an invoice creation."""
    _emit(
        "invoice",
        "created",
        invoice_id=invoice_id,
        number=number,
        client=client,
        total_amount=round(total_amount, 2),
        line_count=line_count,
        time_entry_count=time_entry_count,
    )


def log_invoice_status_changed(
    invoice_id: int,
    number: str,
    old_status: str,
    new_status: str,
) -> None:
    """Log an invoice status change."""
    _emit(
        "invoice",
        "status_changed",
        invoice_id=invoice_id,
        number=number,
        old_status=old_status,
        new_status=new_status,
    )


def log_invoice_deleted(invoice_id: int, number: str, released_entries: int) -> None:
    """Log an invoice deletion."""
    _emit(
        "invoice",
        "deleted",
        invoice_id=invoice_id,
        number=number,
        released_entries=released_entries,
    )
