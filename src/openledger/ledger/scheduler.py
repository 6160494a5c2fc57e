"""Recurring expense rules and their idempotent materialization.

A rule fires at most once per period. The period key is ``YYYY-MM`` for
monthly rules and ``YYYY`` for yearly ones. Whether a rule is due is a pure
function of the rule and the evaluation date; the only write is a
conditional update of ``last_materialized_period`` that succeeds only while
the stored key is still behind, committed together with the new expense.
Two sessions evaluating the same rule at once therefore produce one expense.
"""

import calendar
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .. import audit
from ..db import Database, Expense, RecurringExpenseRule
from ..errors import ConflictError, LedgerError, NotFoundError, ValidationError
from ..logging import get_logger
from .time_ledger import parse_date

logger = get_logger(__name__)

FREQUENCIES = ("monthly", "yearly")


def period_key(rule: RecurringExpenseRule, as_of: date) -> str:
    """Calendar bucket containing as_of for this rule's frequency."""
    if rule.frequency == "yearly":
        return f"{as_of.year:04d}"
    if rule.frequency == "monthly":
        return f"{as_of.year:04d}-{as_of.month:02d}"
    raise ValidationError(f"Unknown frequency {rule.frequency!r}", "rule", [rule.id])


def scheduled_date(rule: RecurringExpenseRule, as_of: date) -> date:
    """Date the rule fires within the period containing as_of.

    A day_of_period past the end of the month fires on the month's last day
    (31 in a 30-day month fires on the 30th).
    """
    year = as_of.year
    month = rule.month_of_year if rule.frequency == "yearly" else as_of.month
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(rule.day_of_period, last_day))


def is_due(rule: RecurringExpenseRule, as_of: date) -> bool:
    """True if the rule has not fired for as_of's period and its day has come."""
    key = period_key(rule, as_of)
    last = rule.last_materialized_period
    if last is not None and last >= key:
        return False
    return as_of >= scheduled_date(rule, as_of)


def _in_bounds(value, low: int, high: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and low <= value <= high


def validate_rule(rule: RecurringExpenseRule) -> None:
    """Reject malformed rules, whether new or handed to evaluate()."""
    if not isinstance(rule.description, str) or not rule.description.strip():
        raise ValidationError("Rule description is required", "rule", [rule.id])
    if not isinstance(rule.amount, (int, float)) or rule.amount <= 0:
        raise ValidationError(
            f"Rule amount must be positive, got {rule.amount}", "rule", [rule.id]
        )
    if rule.frequency not in FREQUENCIES:
        raise ValidationError(
            f"Frequency must be one of {', '.join(FREQUENCIES)}, got {rule.frequency!r}",
            "rule",
            [rule.id],
        )
    if not _in_bounds(rule.day_of_period, 1, 31):
        raise ValidationError(
            f"day_of_period must be between 1 and 31, got {rule.day_of_period}",
            "rule",
            [rule.id],
        )
    if not _in_bounds(rule.month_of_year, 1, 12):
        raise ValidationError(
            f"month_of_year must be between 1 and 12, got {rule.month_of_year}",
            "rule",
            [rule.id],
        )


@dataclass
class RuleFailure:
    """A rule whose evaluation raised."""

    rule_id: int | None
    message: str


@dataclass
class EvaluationResult:
    """Outcome of one evaluation pass."""

    as_of: str
    created: list[Expense] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)  # Not due yet or already ran
    conflicts: list[int] = field(default_factory=list)  # Another session won the write
    errors: list[RuleFailure] = field(default_factory=list)

    @property
    def total_created(self) -> float:
        return sum(e.amount for e in self.created)


class RecurringExpenseScheduler:
    """Service for recurring rules and the expense ledger."""

    def __init__(self, db: Database):
        self.db = db

    # Rules

    def create_rule(self, rule: RecurringExpenseRule) -> RecurringExpenseRule:
        validate_rule(rule)
        created = self.db.insert_rule(rule)
        audit.log_rule_created(created.id, created.frequency, created.amount)
        return created

    def get_rule(self, rule_id: int) -> RecurringExpenseRule:
        rule = self.db.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Recurring rule {rule_id} not found", "rule", [rule_id])
        return rule

    def list_rules(self) -> list[RecurringExpenseRule]:
        return self.db.list_rules()

    def delete_rule(self, rule_id: int) -> None:
        if self.db.delete_rule(rule_id) == 0:
            raise NotFoundError(f"Recurring rule {rule_id} not found", "rule", [rule_id])
        audit.log_rule_deleted(rule_id)

    # Expenses

    def add_expense(self, expense: Expense) -> Expense:
        """Record a one-time expense."""
        if expense.amount is None or expense.amount <= 0:
            raise ValidationError(
                f"Expense amount must be positive, got {expense.amount}", "expense"
            )
        if not expense.description or not expense.description.strip():
            raise ValidationError("Expense description is required", "expense")
        created = self.db.insert_expense(
            Expense(
                id=None,
                date=parse_date(expense.date),
                description=expense.description.strip(),
                amount=float(expense.amount),
                category=expense.category or "General",
                receipt_reference=expense.receipt_reference or None,
            )
        )
        audit.log_expense_created(created.id, created.date, created.amount, created.category)
        return created

    def list_expenses(self, start: str | None = None, end: str | None = None) -> list[Expense]:
        return self.db.list_expenses(start=start, end=end)

    def delete_expense(self, expense_id: int) -> None:
        if self.db.delete_expense(expense_id) == 0:
            raise NotFoundError(f"Expense {expense_id} not found", "expense", [expense_id])
        audit.log_expense_deleted(expense_id)

    # Evaluation

    def materialize(self, rule: RecurringExpenseRule, as_of: date) -> Expense:
        """Create the rule's expense for as_of's period.

        Raises:
            ConflictError: If the period was already materialized, possibly
                by a concurrent session. Nothing is written.
            NotFoundError: If the rule is no longer stored.
        """
        key = period_key(rule, as_of)
        fires_on = scheduled_date(rule, as_of)
        try:
            with self.db.transaction() as conn:
                if self.db.advance_rule_period(rule.id, key, conn=conn) == 0:
                    if self.db.get_rule(rule.id, conn=conn) is None:
                        raise NotFoundError(
                            f"Recurring rule {rule.id} not found", "rule", [rule.id]
                        )
                    raise ConflictError(
                        f"Rule {rule.id} already materialized for {key}",
                        "rule",
                        [rule.id],
                    )
                expense = self.db.insert_expense(
                    Expense(
                        id=None,
                        date=fires_on.isoformat(),
                        description=rule.description,
                        amount=rule.amount,
                        category=rule.category,
                        origin_rule_id=rule.id,
                        period_key=key,
                    ),
                    conn=conn,
                )
        except IntegrityError:
            # Only the (origin_rule_id, period_key) unique constraint is a lost race
            if not self._materialized(rule.id, key):
                raise
            raise ConflictError(
                f"Rule {rule.id} already materialized for {key}", "rule", [rule.id]
            ) from None

        audit.log_expense_materialized(expense.id, rule.id, key, expense.amount)
        return expense

    def _materialized(self, rule_id: int, key: str) -> bool:
        return any(
            e.period_key == key for e in self.db.list_expenses(origin_rule_id=rule_id)
        )

    def evaluate(
        self,
        as_of: date,
        rules: list[RecurringExpenseRule] | None = None,
    ) -> EvaluationResult:
        """Materialize every due rule for as_of.

        Each rule runs in its own transaction. A rule that is malformed,
        missing or fails to write is recorded in the result and does not
        stop the others.

        Args:
            as_of: Evaluation date. Injected so scheduling is testable.
            rules: Rules to evaluate. Defaults to all stored rules.
        """
        if rules is None:
            rules = self.db.list_rules()

        result = EvaluationResult(as_of=as_of.isoformat())
        for rule in rules:
            try:
                validate_rule(rule)
                if not is_due(rule, as_of):
                    result.skipped.append(rule.id)
                    continue
                result.created.append(self.materialize(rule, as_of))
            except ConflictError:
                logger.info("recurring_rule_conflict", rule_id=rule.id, as_of=result.as_of)
                result.conflicts.append(rule.id)
            except (LedgerError, SQLAlchemyError, TypeError, ValueError) as e:
                logger.error(
                    "recurring_rule_failed",
                    rule_id=rule.id,
                    as_of=result.as_of,
                    error=str(e),
                )
                result.errors.append(RuleFailure(rule_id=rule.id, message=str(e)))

        logger.info(
            "recurring_rules_evaluated",
            as_of=result.as_of,
            created=len(result.created),
            skipped=len(result.skipped),
            conflicts=len(result.conflicts),
            errors=len(result.errors),
        )
        return result
