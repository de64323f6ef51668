"""
Pytest fixtures for the ledger kernel test suite.

Provides:
- An in-memory SQLite database per test (savepoint-capable engine)
- The packaged ledger configuration and the kernel inputs built from it
- A wired EventPipeline with the full handler registry
- Payload builders shared by pipeline, recognition and year-end tests

Environment Variables:
- DATABASE_URL: run against another database (e.g. PostgreSQL) instead of
  in-memory SQLite.  Tables are created and dropped around every test.
"""

import json
import logging
import os
from datetime import date, datetime, timezone
from io import StringIO
from uuid import UUID, uuid4

import pytest

from ledger_config import get_active_config
from ledger_config.bridges import build_account_defaults, build_chart_rows
from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import EventRecord
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.handlers.registry import build_default_registry
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.services.chart_of_accounts import seed_chart_of_accounts
from ledger_kernel.services.event_pipeline import EventPipeline
from ledger_kernel.services.settings_service import SettingsService
from ledger_kernel.utils.hashing import normalize_payload

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

COMPANY_A = UUID("00000000-0000-0000-0000-00000000000a")
COMPANY_B = UUID("00000000-0000-0000-0000-00000000000b")


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, pipeline):
            pipeline.create_and_process(...)
            logs = captured_logs()
            assert any(r["message"] == "event_processed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", "sqlite://")


@pytest.fixture
def engine():
    """Fresh engine and schema for every test."""
    engine = init_engine_from_url(get_database_url(), echo=False)
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    """Session whose uncommitted work is discarded after the test."""
    session = get_session()
    yield session
    session.rollback()
    session.close()


# =============================================================================
# Time and identity
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock fixed at 2024-06-15 12:00 UTC."""
    return DeterministicClock(datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def test_actor_id() -> UUID:
    return TEST_ACTOR_ID


@pytest.fixture
def company_a() -> UUID:
    return COMPANY_A


@pytest.fixture
def company_b() -> UUID:
    return COMPANY_B


# =============================================================================
# Configuration and wiring
# =============================================================================


@pytest.fixture(scope="session")
def ledger_config():
    return get_active_config()


@pytest.fixture(scope="session")
def account_defaults(ledger_config):
    return build_account_defaults(ledger_config)


@pytest.fixture(scope="session")
def handler_registry(account_defaults):
    return build_default_registry(account_defaults)


@pytest.fixture
def pipeline(session, handler_registry, account_defaults, deterministic_clock) -> EventPipeline:
    return EventPipeline(session, handler_registry, account_defaults, deterministic_clock)


@pytest.fixture
def settings_service(session, deterministic_clock) -> SettingsService:
    return SettingsService(session, deterministic_clock)


@pytest.fixture
def chart_of_accounts(session, ledger_config):
    """Seeded chart of accounts; returns the number of rows created."""
    return seed_chart_of_accounts(session, build_chart_rows(ledger_config))


@pytest.fixture
def auto_post(settings_service, test_actor_id):
    """Enable auto-post for an event type and company: ``auto_post(company, type)``."""

    def _enable(company_id: UUID, event_type: EventType) -> None:
        settings_service.upsert_setting(
            company_id, event_type, is_enabled=True, auto_post=True, actor_id=test_actor_id
        )

    return _enable


# =============================================================================
# Payload builders
# =============================================================================


def make_event(
    event_type: EventType,
    payload: dict,
    companies: tuple[UUID, ...] = (COMPANY_A,),
    event_date: date = date(2024, 6, 15),
) -> EventRecord:
    """EventRecord as the pipeline hands it to a handler (JSON-normalized)."""
    return EventRecord(
        event_id=uuid4(),
        event_type=event_type,
        event_date=event_date,
        affected_companies=tuple(companies),
        payload=normalize_payload(payload),
    )


def expense_approved_payload(**overrides) -> dict:
    """Two lines (1000 + 2000) at 7% VAT."""
    payload = {
        "expense_id": "EXP-1",
        "expense_number": "EX-2024-0001",
        "vendor_name": "Marina Supplies",
        "expense_date": "2024-06-10",
        "line_items": [
            {"description": "Fuel", "account_code": "5000", "amount": "1000.00"},
            {"description": "Office rent", "account_code": "6100", "amount": "2000.00"},
        ],
        "total_vat_amount": "210.00",
        "total_amount": "3210.00",
    }
    payload.update(overrides)
    return payload


def receipt_payload(**overrides) -> dict:
    """Day charter receipt: 1000 revenue + 70 VAT, paid into 1010."""
    payload = {
        "receipt_id": "RCPT-1",
        "receipt_number": "RC-2024-0001",
        "receipt_date": "2024-06-15",
        "client_name": "Jane Client",
        "charter_type": "day_charter",
        "payments": [{"amount": "1070.00", "bank_account_gl_code": "1010"}],
        "line_items": [
            {"description": "Day charter", "amount": "1000.00", "charter_type": "day_charter"},
        ],
        "total_vat_amount": "70.00",
        "total_amount": "1070.00",
    }
    payload.update(overrides)
    return payload


def management_fee_payload(project_company: UUID, management_company: UUID, **overrides) -> dict:
    payload = {
        "project_company_id": str(project_company),
        "management_company_id": str(management_company),
        "project_id": "PRJ-1",
        "project_name": "Yacht Alpha",
        "fee_amount": "10000.00",
        "fee_percentage": "10",
        "gross_income": "100000.00",
        "period_from": "2024-05-01",
        "period_to": "2024-05-31",
    }
    payload.update(overrides)
    return payload
