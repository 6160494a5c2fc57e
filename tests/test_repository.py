"""Tests for database repository operations."""

import pytest
from sqlalchemy import inspect, update
from sqlalchemy.exc import IntegrityError

from openledger.db import Database, Expense, RecurringExpenseRule, TimeEntry
from openledger.db.tables import time_entries


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_initialize_creates_tables(self, temp_db):
        """Initialize creates schema tables."""
        db = Database(temp_db)
        db.initialize()

        tables = set(inspect(db.engine).get_table_names())

        assert "settings" in tables
        assert "time_entries" in tables
        assert "expenses" in tables
        assert "recurring_expense_rules" in tables
        assert "invoices" in tables
        assert "invoice_line_items" in tables
        assert "active_timers" in tables
        db.close()

    def test_initialize_idempotent(self, temp_db):
        """Initialize can be called multiple times."""
        db = Database(temp_db)
        db.initialize()
        db.initialize()  # Should not raise
        db.close()

    def test_seed_applied_once(self, temp_db):
        """A second initialize does not reset the stored counter."""
        db = Database(temp_db)
        db.initialize({"invoice_prefix": "A-", "next_invoice_seq": 10})
        db.increment_sequence(100)
        db.initialize({"invoice_prefix": "B-", "next_invoice_seq": 500})

        settings = db.get_settings()
        assert settings.invoice_prefix == "A-"
        assert settings.next_invoice_seq == 11
        db.close()

    def test_default_settings(self, temp_db):
        """Without a seed the column defaults apply."""
        db = Database(temp_db)
        db.initialize()

        settings = db.get_settings()
        assert settings.invoice_prefix == "INV-"
        assert settings.next_invoice_seq == 1000
        assert settings.default_hourly_rate == 100.0
        db.close()

    def test_engine_lazy(self, temp_db):
        """Engine is created lazily."""
        db = Database(temp_db)
        assert db._engine is None

        _ = db.engine
        assert db._engine is not None
        db.close()

    def test_close_disposes_engine(self, temp_db):
        """Close disposes the engine."""
        db = Database(temp_db)
        db.initialize()
        db.close()
        assert db._engine is None

    def test_dialect(self, db):
        assert db.dialect == "sqlite"


class TestSettingsOperations:
    """Tests for the settings row and sequence counter."""

    def test_update_settings(self, db):
        settings = db.update_settings(payment_info="IBAN XX00", default_hourly_rate=120.0)
        assert settings.payment_info == "IBAN XX00"
        assert settings.default_hourly_rate == 120.0

    def test_update_settings_rejects_counter(self, db):
        """The counter is not an editable setting."""
        with pytest.raises(ValueError):
            db.update_settings(next_invoice_seq=1)

    def test_increment_sequence_returns_consumed_value(self, db):
        assert db.increment_sequence(999_999) == ("INV-", 1000)
        assert db.increment_sequence(999_999) == ("INV-", 1001)
        assert db.get_settings().next_invoice_seq == 1002

    def test_increment_sequence_past_max(self, db):
        assert db.increment_sequence(999) is None
        assert db.get_settings().next_invoice_seq == 1000

    def test_advance_sequence_forward_only(self, db):
        assert db.advance_sequence(2000) == 1
        assert db.advance_sequence(1500) == 0
        assert db.get_settings().next_invoice_seq == 2000


class TestTimeEntryOperations:
    """Tests for time entry storage."""

    def test_insert_and_get(self, db):
        entry = db.insert_time_entry(
            TimeEntry(id=None, date="2024-01-02", hours=1.5, description="Review")
        )

        fetched = db.get_time_entry(entry.id)
        assert fetched.hours == 1.5
        assert fetched.status == "unbilled"
        assert fetched.invoice_id is None
        assert fetched.billable is True

    def test_get_time_entries_keeps_order(self, db):
        ids = [
            db.insert_time_entry(
                TimeEntry(id=None, date="2024-01-02", hours=1, description=f"task {i}")
            ).id
            for i in range(3)
        ]

        fetched = db.get_time_entries([ids[2], 9999, ids[0]])
        assert [e.id for e in fetched] == [ids[2], ids[0]]

    def test_list_filters(self, db):
        db.insert_time_entry(
            TimeEntry(id=None, date="2024-01-01", hours=1, description="a", client_reference="x")
        )
        db.insert_time_entry(
            TimeEntry(id=None, date="2024-01-03", hours=1, description="b", client_reference="y")
        )
        db.insert_time_entry(
            TimeEntry(id=None, date="2024-01-02", hours=1, description="c", billable=False)
        )

        assert [e.description for e in db.list_time_entries()] == ["b", "c", "a"]
        assert [e.description for e in db.list_time_entries(client_reference="x")] == ["a"]
        assert [e.description for e in db.list_time_entries(billable=False)] == ["c"]

    def test_billed_entry_requires_invoice(self, db):
        """The schema rejects a billed entry with no invoice link."""
        entry = db.insert_time_entry(
            TimeEntry(id=None, date="2024-01-02", hours=1, description="x")
        )
        with pytest.raises(IntegrityError):
            with db.engine.begin() as conn:
                conn.execute(
                    update(time_entries)
                    .where(time_entries.c.id == entry.id)
                    .values(status="billed")
                )

    def test_negative_hours_rejected_by_schema(self, db):
        with pytest.raises(IntegrityError):
            db.insert_time_entry(TimeEntry(id=None, date="2024-01-02", hours=-1, description="x"))

    def test_conditional_update_skips_billed(self, db):
        entry = db.insert_time_entry(
            TimeEntry(id=None, date="2024-01-02", hours=1, description="x")
        )
        assert db.update_unbilled_time_entry(entry.id, {"hours": 2.0}) == 1
        assert db.get_time_entry(entry.id).hours == 2.0


class TestRuleAndExpenseOperations:
    """Tests for recurring rule and expense storage."""

    def _rule(self, db, **overrides) -> RecurringExpenseRule:
        values = dict(
            id=None,
            description="Hosting",
            amount=20.0,
            category="Infrastructure",
            frequency="monthly",
            day_of_period=1,
        )
        values.update(overrides)
        return db.insert_rule(RecurringExpenseRule(**values))

    def test_advance_rule_period_only_forward(self, db):
        rule = self._rule(db)

        assert db.advance_rule_period(rule.id, "2024-03") == 1
        assert db.advance_rule_period(rule.id, "2024-03") == 0
        assert db.advance_rule_period(rule.id, "2024-02") == 0
        assert db.advance_rule_period(rule.id, "2024-04") == 1
        assert db.get_rule(rule.id).last_materialized_period == "2024-04"

    def test_unique_rule_period(self, db):
        """One expense per rule per period, enforced by the schema."""
        rule = self._rule(db)
        expense = Expense(
            id=None,
            date="2024-03-01",
            description="Hosting",
            amount=20.0,
            category="Infrastructure",
            origin_rule_id=rule.id,
            period_key="2024-03",
        )
        db.insert_expense(expense)

        with pytest.raises(IntegrityError):
            db.insert_expense(expense)

    def test_delete_rule_keeps_expenses(self, db):
        rule = self._rule(db)
        created = db.insert_expense(
            Expense(
                id=None,
                date="2024-03-01",
                description="Hosting",
                amount=20.0,
                category="Infrastructure",
                origin_rule_id=rule.id,
                period_key="2024-03",
            )
        )

        assert db.delete_rule(rule.id) == 1
        kept = db.get_expense(created.id)
        assert kept is not None
        assert kept.origin_rule_id is None

    def test_list_expenses_range(self, db):
        for day in ("2024-01-15", "2024-02-15", "2024-03-15"):
            db.insert_expense(
                Expense(id=None, date=day, description="x", amount=1.0, category="General")
            )

        dates = [e.date for e in db.list_expenses(start="2024-02-01", end="2024-03-31")]
        assert dates == ["2024-03-15", "2024-02-15"]
