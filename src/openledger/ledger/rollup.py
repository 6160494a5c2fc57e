"""Income, expense and profit figures derived from ledger records."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from ..db import Database, Expense, Invoice


def _in_range(day: str, start: str | None, end: str | None) -> bool:
    if start and day < start:
        return False
    if end and day > end:
        return False
    return True


def total_income(
    invoices: Iterable[Invoice],
    start: str | None = None,
    end: str | None = None,
) -> float:
    """Sum of paid invoice totals, filtered on issue date."""
    return round(
        sum(
            i.total_amount
            for i in invoices
            if i.status == "paid" and _in_range(i.issue_date, start, end)
        ),
        2,
    )


def outstanding(
    invoices: Iterable[Invoice],
    start: str | None = None,
    end: str | None = None,
) -> float:
    """Sum of sent but unpaid invoice totals."""
    return round(
        sum(
            i.total_amount
            for i in invoices
            if i.status == "sent" and _in_range(i.issue_date, start, end)
        ),
        2,
    )


def total_expenses(
    expenses: Iterable[Expense],
    start: str | None = None,
    end: str | None = None,
) -> float:
    """Sum of one-time and materialized recurring expenses dated in range."""
    return round(sum(e.amount for e in expenses if _in_range(e.date, start, end)), 2)


def expenses_by_category(
    expenses: Iterable[Expense],
    start: str | None = None,
    end: str | None = None,
) -> dict[str, float]:
    """Expense totals per category, largest first."""
    totals: dict[str, float] = {}
    for e in expenses:
        if _in_range(e.date, start, end):
            totals[e.category] = totals.get(e.category, 0.0) + e.amount
    return {k: round(v, 2) for k, v in sorted(totals.items(), key=lambda kv: -kv[1])}


def net_profit(
    invoices: Iterable[Invoice],
    expenses: Iterable[Expense],
    start: str | None = None,
    end: str | None = None,
) -> float:
    """Paid income minus expenses."""
    return round(total_income(invoices, start, end) - total_expenses(expenses, start, end), 2)


@dataclass
class RollupSummary:
    """Financial figures for a date range."""

    start: str | None
    end: str | None
    income: float = 0.0
    outstanding: float = 0.0
    expenses: float = 0.0
    expenses_by_category: dict[str, float] = field(default_factory=dict)
    invoice_count: int = 0
    expense_count: int = 0

    @property
    def net_profit(self) -> float:
        return round(self.income - self.expenses, 2)


def summarize(
    invoices: list[Invoice],
    expenses: list[Expense],
    start: str | None = None,
    end: str | None = None,
) -> RollupSummary:
    """Compute every rollup figure at once."""
    return RollupSummary(
        start=start,
        end=end,
        income=total_income(invoices, start, end),
        outstanding=outstanding(invoices, start, end),
        expenses=total_expenses(expenses, start, end),
        expenses_by_category=expenses_by_category(expenses, start, end),
        invoice_count=sum(1 for i in invoices if _in_range(i.issue_date, start, end)),
        expense_count=sum(1 for e in expenses if _in_range(e.date, start, end)),
    )


def summarize_ledger(
    db: Database,
    start: str | None = None,
    end: str | None = None,
) -> RollupSummary:
    """Load invoices and expenses for the range and summarize them."""
    return summarize(
        db.list_invoices(start=start, end=end),
        db.list_expenses(start=start, end=end),
        start,
        end,
    )
