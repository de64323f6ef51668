"""
Expense-side handler tests.

Verifies:
- EXPENSE_APPROVED accrues lines + input VAT against accounts payable
- EXPENSE_PAID clears the payable against bank, cash on hand or petty cash
- CAPEX_INCURRED capitalizes the asset and picks the credit by payment method
- Validation messages name what is wrong
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import LineSide
from ledger_kernel.domain.event_types import EventType
from tests.conftest import COMPANY_A, expense_approved_payload, make_event


@pytest.fixture
def approved(handler_registry):
    return handler_registry.get(EventType.EXPENSE_APPROVED)


@pytest.fixture
def paid(handler_registry):
    return handler_registry.get(EventType.EXPENSE_PAID)


@pytest.fixture
def capex(handler_registry):
    return handler_registry.get(EventType.CAPEX_INCURRED)


def _sides(spec):
    return [(line.side, line.account_code, line.amount) for line in spec.lines]


class TestExpenseApproved:
    """Accrual on approval."""

    def test_two_lines_with_vat(self, approved):
        event = make_event(EventType.EXPENSE_APPROVED, expense_approved_payload())
        assert approved.validate(event.payload).is_valid

        specs = approved.generate_journals(event)

        assert len(specs) == 1
        spec = specs[0]
        assert spec.company_id == COMPANY_A
        assert _sides(spec) == [
            (LineSide.DEBIT, "5000", Decimal("1000.00")),
            (LineSide.DEBIT, "6100", Decimal("2000.00")),
            (LineSide.DEBIT, "1170", Decimal("210.00")),
            (LineSide.CREDIT, "2050", Decimal("3210.00")),
        ]
        assert spec.is_balanced()
        assert spec.description == "Expense Approved - EX-2024-0001 - Marina Supplies"
        assert spec.entry_date.isoformat() == "2024-06-10"

    def test_line_without_code_falls_back_to_default_expense_role(self, approved):
        payload = expense_approved_payload(
            line_items=[{"description": "Misc", "amount": "3000.00"}],
        )
        spec = approved.generate_journals(make_event(EventType.EXPENSE_APPROVED, payload))[0]

        first = spec.lines[0]
        assert first.account_code is None
        assert first.fallback_role is not None
        assert first.fallback_role.value == "DEFAULT_EXPENSE"

    def test_no_vat_line_when_vat_is_zero(self, approved):
        payload = expense_approved_payload(total_vat_amount="0", total_amount="3000.00")
        spec = approved.generate_journals(make_event(EventType.EXPENSE_APPROVED, payload))[0]

        assert "1170" not in [line.account_code for line in spec.lines]
        assert spec.total_credit == Decimal("3000.00")

    def test_missing_expense_number_is_reported(self, approved):
        payload = expense_approved_payload()
        del payload["expense_number"]

        result = approved.validate(payload)

        assert not result.is_valid
        assert "expense_number" in result.error

    def test_empty_line_items_rejected(self, approved):
        result = approved.validate(expense_approved_payload(line_items=[]))
        assert result.error == "No line items provided"

    def test_lines_must_sum_to_total(self, approved):
        result = approved.validate(expense_approved_payload(total_amount="3300.00"))
        assert result.error == "Line items and VAT do not sum to total amount"

    def test_rounding_within_tolerance_accepted(self, approved):
        result = approved.validate(expense_approved_payload(total_amount="3210.01"))
        assert result.is_valid

    def test_non_mapping_payload_rejected(self, approved):
        result = approved.validate(["not", "a", "dict"])
        assert not result.is_valid


class TestExpensePaid:
    """Settlement of an approved expense."""

    def _payload(self, **overrides):
        payload = {
            "expense_id": "EXP-1",
            "expense_number": "EX-2024-0001",
            "vendor_name": "Marina Supplies",
            "payment_amount": "3210.00",
            "payment_date": "2024-06-20",
            "payment_method": "bank",
            "bank_account_gl_code": "1010",
        }
        payload.update(overrides)
        return payload

    def test_bank_payment(self, paid):
        spec = paid.generate_journals(make_event(EventType.EXPENSE_PAID, self._payload()))[0]

        assert _sides(spec) == [
            (LineSide.DEBIT, "2050", Decimal("3210.00")),
            (LineSide.CREDIT, "1010", Decimal("3210.00")),
        ]
        assert spec.entry_date.isoformat() == "2024-06-20"

    def test_cash_payment_credits_cash_on_hand(self, paid):
        payload = self._payload(payment_method="cash", bank_account_gl_code=None)
        assert paid.validate(payload).is_valid

        spec = paid.generate_journals(make_event(EventType.EXPENSE_PAID, payload))[0]

        assert spec.lines[1].account_code == "1020"

    def test_petty_cash_payment_uses_currency_wallet(self, paid):
        payload = self._payload(
            payment_method="petty_cash", bank_account_gl_code=None, currency="EUR"
        )
        spec = paid.generate_journals(make_event(EventType.EXPENSE_PAID, payload))[0]

        assert spec.lines[1].account_code == "1001"

    def test_bank_payment_requires_gl_code(self, paid):
        result = paid.validate(self._payload(bank_account_gl_code=None))
        assert result.error == "Missing bank account GL code for bank payment"

    def test_unknown_payment_method_rejected(self, paid):
        result = paid.validate(self._payload(payment_method="cheque"))
        assert not result.is_valid

    def test_zero_payment_rejected(self, paid):
        result = paid.validate(self._payload(payment_amount="0"))
        assert result.error == "Invalid payment amount"


class TestCapexIncurred:
    """Capitalized purchases."""

    def _payload(self, **overrides):
        payload = {
            "expense_id": "EXP-9",
            "expense_number": "EX-2024-0009",
            "asset_account_code": "1500",
            "asset_description": "Outboard engine",
            "subtotal": "50000.00",
            "vat_amount": "3500.00",
            "total_amount": "53500.00",
        }
        payload.update(overrides)
        return payload

    def test_defaults_to_accounts_payable(self, capex):
        spec = capex.generate_journals(make_event(EventType.CAPEX_INCURRED, self._payload()))[0]

        assert _sides(spec) == [
            (LineSide.DEBIT, "1500", Decimal("50000.00")),
            (LineSide.DEBIT, "1170", Decimal("3500.00")),
            (LineSide.CREDIT, "2050", Decimal("53500.00")),
        ]

    def test_bank_method_credits_given_bank(self, capex):
        payload = self._payload(payment_method="bank", bank_account_gl_code="1010")
        spec = capex.generate_journals(make_event(EventType.CAPEX_INCURRED, payload))[0]
        assert spec.lines[-1].account_code == "1010"

    def test_asset_without_code_is_left_unresolved(self, capex):
        payload = self._payload(asset_account_code=None)
        spec = capex.generate_journals(make_event(EventType.CAPEX_INCURRED, payload))[0]

        assert spec.unresolved_lines == (spec.lines[0],)
        assert spec.lines[0].fallback_role is None

    def test_parts_must_sum_to_total(self, capex):
        result = capex.validate(self._payload(total_amount="60000.00"))
        assert result.error == "Asset amount and VAT do not sum to total amount"
