"""Tests for logging configuration, formatters and audit events."""

import json
import re
from unittest.mock import MagicMock

import pytest

from openledger import audit
from openledger.logging import json_processor, splunk_processor


class TestSplunkProcessor:
    """Tests for splunk_processor function."""

    def test_basic_format(self):
        """Basic message formatting."""
        result = splunk_processor(None, "info", {"level": "INFO", "event": "Test message"})

        assert "INFO" in result
        assert "Test message" in result
        assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}Z", result)

    def test_with_key_value_pairs(self):
        event_dict = {
            "level": "INFO",
            "event": "invoice.created",
            "line_count": 3,
            "total_amount": 360.0,
        }

        result = splunk_processor(None, "info", event_dict)

        assert "line_count=3" in result
        assert "total_amount=360.0" in result

    def test_quotes_values_with_spaces(self):
        event_dict = {"level": "INFO", "event": "Operation", "client": "Acme Corp"}

        result = splunk_processor(None, "info", event_dict)

        assert 'client="Acme Corp"' in result

    def test_list_values_joined(self):
        event_dict = {"level": "INFO", "event": "time.billed", "entry_ids": [3, 4]}

        assert "entry_ids=3,4" in splunk_processor(None, "info", event_dict)

    def test_none_rendered_empty(self):
        event_dict = {"level": "INFO", "event": "x", "client": None}

        assert splunk_processor(None, "info", event_dict).endswith(" client=")

    def test_default_level(self):
        """Missing level defaults to INFO."""
        assert "INFO" in splunk_processor(None, "info", {"event": "No level"})

    def test_skips_internal_keys(self):
        event_dict = {"level": "INFO", "event": "Test", "_record": "x", "visible": "yes"}

        result = splunk_processor(None, "info", event_dict)

        assert "_record" not in result
        assert "visible=yes" in result

    def test_sorted_keys(self):
        event_dict = {"level": "INFO", "event": "Test", "zebra": "z", "alpha": "a"}

        result = splunk_processor(None, "info", event_dict)

        assert result.find("alpha=") < result.find("zebra=")

    def test_empty_kvs(self):
        result = splunk_processor(None, "info", {"level": "INFO", "event": "Simple message"})
        assert result.endswith("Simple message")


class TestJsonProcessor:
    """Tests for json_processor function."""

    def test_adds_timestamp(self):
        result = json_processor(None, "info", {"event": "Test message"})

        assert re.match(r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}", result["timestamp"])

    def test_level_uppercase(self):
        assert json_processor(None, "debug", {"level": "debug", "event": "x"})["level"] == "DEBUG"

    def test_serializable(self):
        result = json_processor(None, "info", {"event": "Test", "entry_ids": "1,2"})
        json.dumps(result)


class TestAuditEvents:
    """Tests for audit event emission."""

    @pytest.fixture
    def audit_logger(self, monkeypatch):
        logger = MagicMock()
        monkeypatch.setattr(audit, "trail_logger", lambda: logger)
        monkeypatch.setattr(audit, "_recording", True)
        return logger

    def test_invoice_created(self, audit_logger):
        audit.log_invoice_created(7, "INV-1000", "acme", 360.004, 3, 2)

        audit_logger.info.assert_called_once()
        args, kwargs = audit_logger.info.call_args
        assert args == ("invoice.created",)
        assert kwargs["event_type"] == "invoice"
        assert kwargs["number"] == "INV-1000"
        assert kwargs["total_amount"] == 360.0

    def test_time_billed_joins_ids(self, audit_logger):
        audit.log_time_billed([3, 4], invoice_id=9)

        kwargs = audit_logger.info.call_args.kwargs
        assert kwargs["entry_ids"] == "3,4"
        assert kwargs["count"] == 2

    def test_disabled(self, audit_logger):
        audit.configure(enabled=False)

        audit.log_rule_deleted(1)

        audit_logger.info.assert_not_called()

    def test_service_emits(self, audit_logger, assembler):
        assembler.create_invoice(
            "acme", manual_items=[{"description": "Setup", "quantity": 1, "unit_price": 5}]
        )

        events = [call.args[0] for call in audit_logger.info.call_args_list]
        assert events == ["sequence.allocated", "invoice.created"]

    def test_billing_audited_after_commit(self, audit_logger, assembler, log_entry):
        entry = log_entry()

        assembler.create_invoice("acme", time_entry_ids=[entry.id], issue_date="2024-03-31")

        events = [call.args[0] for call in audit_logger.info.call_args_list]
        assert events == ["sequence.allocated", "time.billed", "invoice.created"]

    def test_rolled_back_billing_not_audited(self, audit_logger, assembler, ledger, db, log_entry):
        invoice = assembler.create_invoice(
            "acme", manual_items=[{"description": "Setup", "quantity": 1, "unit_price": 5}]
        )
        entry = log_entry()
        audit_logger.reset_mock()

        with pytest.raises(RuntimeError):
            with db.transaction() as conn:
                ledger.mark_billed([entry.id], invoice.id, conn=conn)
                raise RuntimeError("abort")

        events = [call.args[0] for call in audit_logger.info.call_args_list]
        assert "time.billed" not in events
        assert ledger.get_entry(entry.id).status == "unbilled"
