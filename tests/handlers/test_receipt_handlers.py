"""
Income-side handler tests: RECEIPT_RECEIVED and PROJECT_SERVICE_COMPLETED.
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import LineSide
from ledger_kernel.domain.event_types import EventType
from tests.conftest import make_event, receipt_payload


@pytest.fixture
def receipt(handler_registry):
    return handler_registry.get(EventType.RECEIPT_RECEIVED)


@pytest.fixture
def completed(handler_registry):
    return handler_registry.get(EventType.PROJECT_SERVICE_COMPLETED)


class TestReceiptReceived:

    def test_recognized_receipt_credits_charter_revenue(self, receipt):
        event = make_event(EventType.RECEIPT_RECEIVED, receipt_payload())
        assert receipt.validate(event.payload).is_valid

        spec = receipt.generate_journals(event)[0]

        assert [(l.side, l.account_code, l.amount) for l in spec.lines] == [
            (LineSide.DEBIT, "1010", Decimal("1070.00")),
            (LineSide.CREDIT, "4010", Decimal("1000.00")),
            (LineSide.CREDIT, "2200", Decimal("70.00")),
        ]
        assert spec.description == "Receipt - RC-2024-0001 - Jane Client"

    @pytest.mark.parametrize("status", ["pending", "needs_review"])
    def test_deferred_receipt_credits_deferred_revenue(self, receipt, status):
        event = make_event(
            EventType.RECEIPT_RECEIVED, receipt_payload(recognition_status=status)
        )

        spec = receipt.generate_journals(event)[0]

        revenue = spec.lines[1]
        assert revenue.account_code == "2300"
        assert revenue.description.startswith("Deferred revenue - ")
        # VAT is never deferred
        assert spec.lines[2].account_code == "2200"

    def test_explicit_line_code_wins_over_charter_type(self, receipt):
        payload = receipt_payload(line_items=[
            {"description": "Custom", "amount": "1000.00", "account_code": "4040",
             "charter_type": "day_charter"},
        ])
        spec = receipt.generate_journals(make_event(EventType.RECEIPT_RECEIVED, payload))[0]
        assert spec.lines[1].account_code == "4040"

    def test_unknown_charter_type_uses_default_revenue(self, receipt):
        payload = receipt_payload(
            charter_type=None,
            line_items=[{"description": "Other", "amount": "1000.00", "charter_type": "kayak"}],
        )
        spec = receipt.generate_journals(make_event(EventType.RECEIPT_RECEIVED, payload))[0]
        assert spec.lines[1].account_code == "4490"

    def test_line_without_type_or_code_left_for_resolution(self, receipt):
        payload = receipt_payload(
            charter_type=None,
            line_items=[{"description": "Other", "amount": "1000.00"}],
        )
        spec = receipt.generate_journals(make_event(EventType.RECEIPT_RECEIVED, payload))[0]

        line = spec.lines[1]
        assert line.account_code is None
        assert line.fallback_role.value == "DEFAULT_REVENUE"

    def test_payment_without_bank_code_falls_back_to_cash(self, receipt):
        payload = receipt_payload(payments=[{"amount": "1070.00"}])
        spec = receipt.generate_journals(make_event(EventType.RECEIPT_RECEIVED, payload))[0]
        assert spec.lines[0].fallback_role.value == "CASH"

    def test_payments_must_sum_to_total(self, receipt):
        payload = receipt_payload(payments=[{"amount": "1000.00", "bank_account_gl_code": "1010"}])
        assert receipt.validate(payload).error == "Payments do not sum to total amount"

    def test_payments_and_lines_must_agree(self, receipt):
        payload = receipt_payload(
            payments=[{"amount": "100.01", "bank_account_gl_code": "1010"}],
            line_items=[{"description": "Day charter", "amount": "99.99",
                         "charter_type": "day_charter"}],
            total_vat_amount="0",
            total_amount="100.00",
        )

        result = receipt.validate(payload)

        assert result.error == "Payments do not match line items and VAT"

    def test_missing_receipt_id(self, receipt):
        payload = receipt_payload()
        del payload["receipt_id"]
        assert receipt.validate(payload).error == "Missing receiptId"

    def test_no_payments(self, receipt):
        assert receipt.validate(receipt_payload(payments=[])).error == (
            "No payment records provided"
        )


class TestProjectServiceCompleted:

    def test_moves_deferred_to_revenue(self, completed):
        payload = {
            "amount": "1000.00",
            "description": "Day charter",
            "client_name": "Jane Client",
            "charter_type": "overnight_charter",
            "recognition_date": "2024-07-10",
        }
        event = make_event(EventType.PROJECT_SERVICE_COMPLETED, payload)

        spec = completed.generate_journals(event)[0]

        debit, credit = spec.lines
        assert debit.side == LineSide.DEBIT and debit.account_code is None
        assert debit.fallback_role.value == "DEFERRED_REVENUE"
        assert credit.side == LineSide.CREDIT and credit.account_code == "4020"
        assert spec.entry_date.isoformat() == "2024-07-10"
        assert spec.description == "Revenue Recognition - Day charter - Jane Client"

    def test_explicit_accounts_are_used(self, completed):
        payload = {
            "amount": "500",
            "deferred_revenue_account": "2300",
            "revenue_account": "4050",
        }
        spec = completed.generate_journals(
            make_event(EventType.PROJECT_SERVICE_COMPLETED, payload)
        )[0]
        assert [l.account_code for l in spec.lines] == ["2300", "4050"]

    @pytest.mark.parametrize("value", [None, "0", "-5", "abc"])
    def test_amount_must_be_positive(self, completed, value):
        result = completed.validate({"amount": value})
        assert result.error == "Invalid recognition amount"
