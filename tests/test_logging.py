"""
Structured logging tests.

Verifies:
- Pipeline records carry the bound ledger context: one correlation id per
  call, the event id once the event exists, the company id only around the
  journal write of that company
- Journal writes, skipped companies and validation failures are logged with
  their ledger fields
- Kernel errors render their code and structured data; amounts keep scale
- configure_logging installs one handler and reset_logging removes only it
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest

from ledger_kernel.domain.event_types import EventType
from ledger_kernel.exceptions import ClosedPeriodError, ImmutabilityViolationError
from ledger_kernel.logging_config import (
    CONTEXT_FIELDS,
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)
from ledger_kernel.services.event_repository import EventRepository
from tests.conftest import (
    COMPANY_A,
    COMPANY_B,
    expense_approved_payload,
    management_fee_payload,
)


def _by_message(records: list[dict], message: str) -> list[dict]:
    return [r for r in records if r["message"] == message]


def _format(message: str, exc: BaseException | None = None, **extra) -> dict:
    record = logging.LogRecord(
        "ledger_kernel.test", logging.ERROR, __file__, 0, message, (),
        (type(exc), exc, None) if exc is not None else None,
    )
    record.__dict__.update(extra)
    return json.loads(StructuredFormatter().format(record))


# ---------------------------------------------------------------------------
# Context bound by the pipeline
# ---------------------------------------------------------------------------


class TestPipelineContext:

    def _approve(self, pipeline, actor_id=None, companies=(COMPANY_A,)):
        return pipeline.create_and_process(
            EventType.EXPENSE_APPROVED,
            date(2024, 6, 10),
            list(companies),
            expense_approved_payload(),
            actor_id=actor_id,
        )

    def test_one_correlation_id_per_call(self, pipeline, captured_logs, test_actor_id):
        self._approve(pipeline, test_actor_id)
        first = captured_logs()
        self._approve(pipeline, test_actor_id)
        second = captured_logs()[len(first):]

        first_ids = {r["correlation_id"] for r in first}
        second_ids = {r["correlation_id"] for r in second}
        assert len(first_ids) == len(second_ids) == 1
        assert first_ids != second_ids
        assert {r["actor_id"] for r in first} == {str(test_actor_id)}

    def test_event_id_bound_once_created(self, pipeline, captured_logs):
        result = self._approve(pipeline)

        records = captured_logs()
        created = _by_message(records, "event_created")[0]
        after = records[records.index(created) + 1:]
        assert after
        assert {r["event_id"] for r in after} == {str(result.event_id)}

    def test_company_bound_around_each_write(self, pipeline, captured_logs):
        pipeline.create_and_process(
            EventType.MANAGEMENT_FEE_RECOGNIZED,
            date(2024, 5, 31),
            [COMPANY_A, COMPANY_B],
            management_fee_payload(COMPANY_A, COMPANY_B),
        )

        records = captured_logs()
        written = _by_message(records, "journal_entry_written")
        assert [r["company_id"] for r in written] == [str(COMPANY_A), str(COMPANY_B)]
        (processed,) = _by_message(records, "event_processed")
        assert "company_id" not in processed

    def test_context_restored_after_call(self, pipeline):
        with LogContext.bind(correlation_id="batch-7"):
            self._approve(pipeline)
            assert LogContext.get_all() == {"correlation_id": "batch-7"}
        assert LogContext.get_all() == {}

    def test_process_event_binds_stored_event(self, pipeline, captured_logs):
        event = pipeline.events.create(
            EventType.EXPENSE_APPROVED, date(2024, 6, 10), [COMPANY_A],
            expense_approved_payload(),
        )
        before = len(captured_logs())

        pipeline.process_event(event.id)

        records = captured_logs()[before:]
        assert _by_message(records, "event_processed")
        assert {r["event_id"] for r in records} == {str(event.id)}
        assert all("correlation_id" not in r for r in records)


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


class TestLedgerRecords:

    def test_journal_entry_written_fields(self, pipeline, captured_logs):
        result = pipeline.create_and_process(
            EventType.EXPENSE_APPROVED,
            date(2024, 6, 10),
            [COMPANY_A],
            expense_approved_payload(),
        )

        (written,) = _by_message(captured_logs(), "journal_entry_written")
        assert written["entry_id"] == str(result.journal_entry_ids[0])
        assert written["reference_number"] == "JE-2024-0001"
        assert written["status"] == "draft"
        assert written["total_debit"] == written["total_credit"] == "3210.00"
        assert written["line_count"] == 4
        assert written["source_event_id"] == str(result.event_id)

    def test_skipped_company_logged(self, pipeline, settings_service, captured_logs):
        settings_service.upsert_setting(COMPANY_B, EventType.EXPENSE_APPROVED, is_enabled=False)

        pipeline.create_and_process(
            EventType.EXPENSE_APPROVED,
            date(2024, 6, 10),
            [COMPANY_B],
            expense_approved_payload(),
        )

        records = captured_logs()
        (skipped,) = _by_message(records, "company_skipped")
        assert skipped["company_id"] == str(COMPANY_B)
        assert skipped["event_type"] == EventType.EXPENSE_APPROVED.value
        (processed,) = _by_message(records, "event_processed")
        assert processed["journal_entry_count"] == 0
        assert processed["skipped_companies"] == [str(COMPANY_B)]
        assert not _by_message(records, "journal_entry_written")

    def test_validation_failure_logged(self, pipeline, captured_logs):
        pipeline.create_and_process(
            EventType.EXPENSE_APPROVED,
            date(2024, 6, 10),
            [COMPANY_A],
            expense_approved_payload(total_amount="9999.00"),
        )

        records = captured_logs()
        (invalid,) = _by_message(records, "event_validation_failed")
        assert invalid["level"] == "INFO"
        assert invalid["error"]
        (failed,) = _by_message(records, "event_failed")
        assert failed["error"] == invalid["error"]
        assert failed["retry_count"] == 1

    def test_payload_edit_logged_as_blocked(self, session, deterministic_clock, captured_logs):
        events = EventRepository(session, deterministic_clock)
        event = events.create(
            EventType.EXPENSE_APPROVED, date(2024, 6, 10), [COMPANY_A], {"amount": "5.00"}
        )
        event.payload["amount"] = "6.00"

        with pytest.raises(ImmutabilityViolationError):
            session.flush()

        (blocked,) = _by_message(captured_logs(), "immutability_violation_blocked")
        assert blocked["level"] == "ERROR"
        assert blocked["entity_type"] == "AccountingEvent"
        assert blocked["entity_id"] == str(event.id)


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TestRendering:

    def test_kernel_error_code_and_fields(self):
        rendered = _format(
            "posting_refused", ClosedPeriodError(str(COMPANY_A), "2024-06", "locked")
        )

        assert rendered["exc_type"] == "ClosedPeriodError"
        assert rendered["exc_code"] == "PERIOD_CLOSED"
        assert rendered["exc_period_code"] == "2024-06"
        assert rendered["exc_status"] == "locked"
        assert "traceback" in rendered

    def test_foreign_error_has_no_code(self):
        rendered = _format("crashed", KeyError("line_items"))

        assert rendered["exc_type"] == "KeyError"
        assert "exc_code" not in rendered

    def test_ledger_values(self):
        entry_id = UUID("00000000-0000-0000-0000-0000000000e1")

        rendered = _format(
            "totals",
            entry_id=entry_id,
            entry_date=date(2024, 12, 31),
            net_income=Decimal("600.00"),
        )

        assert rendered["entry_id"] == str(entry_id)
        assert rendered["entry_date"] == "2024-12-31"
        assert rendered["net_income"] == "600.00"

    def test_bound_context_wins_over_extra(self):
        with LogContext.bind(company_id=COMPANY_A):
            rendered = _format("write", company_id="other")

        assert rendered["company_id"] == str(COMPANY_A)


# ---------------------------------------------------------------------------
# LogContext
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_nested_bind_restores_each_level(self):
        with LogContext.bind(event_id="evt-1"):
            with LogContext.bind(company_id="co-a"):
                assert LogContext.get_all() == {"event_id": "evt-1", "company_id": "co-a"}
            assert LogContext.get_all() == {"event_id": "evt-1"}
        assert LogContext.get_all() == {}

    def test_bind_restores_after_error(self):
        with pytest.raises(RuntimeError):
            with LogContext.bind(entry_id="e-1"):
                raise RuntimeError("write failed")

        assert LogContext.get_all() == {}

    def test_none_values_leave_fields_alone(self):
        LogContext.set(actor_id="a-1")
        LogContext.set(actor_id=None, event_id="evt-2")
        with LogContext.bind(actor_id=None):
            assert LogContext.get_all() == {"actor_id": "a-1", "event_id": "evt-2"}

    def test_unknown_field_refused(self):
        with pytest.raises(TypeError):
            LogContext.set(producer="x")
        with pytest.raises(TypeError):
            with LogContext.bind(trace_id="x"):
                pass

    def test_clear(self):
        LogContext.set(**{name: name for name in CONTEXT_FIELDS})
        assert set(LogContext.get_all()) == set(CONTEXT_FIELDS)

        LogContext.clear()

        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# configure_logging
# ---------------------------------------------------------------------------


@pytest.fixture
def fresh_logging():
    """Drop the suite's handler for one test, then put it back."""
    reset_logging()
    yield
    reset_logging()
    configure_logging(level=logging.DEBUG)


class TestConfigureLogging:

    def test_idempotent(self, fresh_logging):
        first = logging.StreamHandler(StringIO())
        second = logging.StreamHandler(StringIO())

        assert configure_logging(handler=first) is first
        assert configure_logging(handler=second) is first

        handlers = logging.getLogger("ledger_kernel").handlers
        assert first in handlers
        assert second not in handlers

    def test_reset_keeps_other_handlers(self, fresh_logging):
        other = logging.NullHandler()
        root = logging.getLogger("ledger_kernel")
        root.addHandler(other)
        try:
            installed = configure_logging()
            reset_logging()

            assert installed not in root.handlers
            assert other in root.handlers
        finally:
            root.removeHandler(other)

    def test_stream_receives_json(self, fresh_logging):
        stream = StringIO()
        configure_logging(stream=stream, level=logging.DEBUG)

        get_logger("services.period").debug("fiscal_year_periods_created")

        record = json.loads(stream.getvalue().splitlines()[0])
        assert record["logger"] == "ledger_kernel.services.period"
        assert record["level"] == "DEBUG"
        assert record["message"] == "fiscal_year_periods_created"
