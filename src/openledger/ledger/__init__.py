"""Billing and time-reconciliation services."""

from .invoices import InvoiceAssembler, PaymentDetails
from .rollup import RollupSummary, net_profit, summarize, total_expenses, total_income
from .scheduler import EvaluationResult, RecurringExpenseScheduler
from .sequencer import InvoiceSequencer
from .time_ledger import TimeLedger

__all__ = [
    "EvaluationResult",
    "InvoiceAssembler",
    "InvoiceSequencer",
    "PaymentDetails",
    "RecurringExpenseScheduler",
    "RollupSummary",
    "TimeLedger",
    "net_profit",
    "summarize",
    "total_expenses",
    "total_income",
]
