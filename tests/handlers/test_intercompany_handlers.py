"""
Multi-company handler tests.

Verifies:
- Each intercompany type emits exactly two specs, one per company
- Both specs carry the same amount and date
- The payable side of one company mirrors the receivable side of the other
- Same-company payloads are rejected
"""

from decimal import Decimal

import pytest

from ledger_kernel.domain.dtos import LineSide
from ledger_kernel.domain.event_types import EventType
from tests.conftest import COMPANY_A, COMPANY_B, make_event, management_fee_payload


def _lines(spec):
    return [(l.side, l.account_code, l.amount) for l in spec.lines]


class TestManagementFee:

    def test_mirrored_entries(self, handler_registry):
        handler = handler_registry.get(EventType.MANAGEMENT_FEE_RECOGNIZED)
        payload = management_fee_payload(COMPANY_A, COMPANY_B)
        assert handler.validate(payload).is_valid

        project, management = handler.generate_journals(
            make_event(EventType.MANAGEMENT_FEE_RECOGNIZED, payload, (COMPANY_A, COMPANY_B))
        )

        fee = Decimal("10000.00")
        assert project.company_id == COMPANY_A
        assert _lines(project) == [
            (LineSide.DEBIT, "6800", fee),
            (LineSide.CREDIT, "2700", fee),
        ]
        assert management.company_id == COMPANY_B
        assert _lines(management) == [
            (LineSide.DEBIT, "1180", fee),
            (LineSide.CREDIT, "4800", fee),
        ]
        assert project.entry_date == management.entry_date
        assert project.description == (
            "Management Fee - Yacht Alpha (2024-05-01 to 2024-05-31)"
        )

    def test_same_company_rejected(self, handler_registry):
        handler = handler_registry.get(EventType.MANAGEMENT_FEE_RECOGNIZED)
        result = handler.validate(management_fee_payload(COMPANY_A, COMPANY_A))
        assert result.error == "Project company and management company cannot be the same"

    def test_missing_period_dates(self, handler_registry):
        handler = handler_registry.get(EventType.MANAGEMENT_FEE_RECOGNIZED)
        result = handler.validate(management_fee_payload(COMPANY_A, COMPANY_B, period_to=None))
        assert result.error == "Missing period dates"

    def test_invalid_company_id(self, handler_registry):
        handler = handler_registry.get(EventType.MANAGEMENT_FEE_RECOGNIZED)
        result = handler.validate(
            management_fee_payload(COMPANY_A, COMPANY_B, project_company_id="not-a-uuid")
        )
        assert not result.is_valid
        assert "project_company_id" in result.error


class TestIntercompanySettlement:

    def _payload(self, **overrides):
        payload = {
            "from_company_id": str(COMPANY_A),
            "to_company_id": str(COMPANY_B),
            "settlement_amount": "2500.00",
            "settlement_date": "2024-06-30",
            "from_bank_gl_code": "1010",
            "to_bank_gl_code": "1010",
            "reference": "SET-7",
        }
        payload.update(overrides)
        return payload

    def test_mirrored_entries(self, handler_registry):
        handler = handler_registry.get(EventType.INTERCOMPANY_SETTLEMENT)
        paying, receiving = handler.generate_journals(
            make_event(EventType.INTERCOMPANY_SETTLEMENT, self._payload(), (COMPANY_A, COMPANY_B))
        )

        amount = Decimal("2500.00")
        assert _lines(paying) == [
            (LineSide.DEBIT, "2700", amount),
            (LineSide.CREDIT, "1010", amount),
        ]
        assert _lines(receiving) == [
            (LineSide.DEBIT, "1010", amount),
            (LineSide.CREDIT, "1180", amount),
        ]
        assert paying.description == "Intercompany Settlement - payment - SET-7"
        assert receiving.entry_date.isoformat() == "2024-06-30"

    def test_requires_both_bank_codes(self, handler_registry):
        handler = handler_registry.get(EventType.INTERCOMPANY_SETTLEMENT)
        result = handler.validate(self._payload(to_bank_gl_code=""))
        assert result.error == "Missing bank GL code for receiving company"


class TestReceiptReceivedIntercompany:

    def _payload(self, **overrides):
        payload = {
            "receipt_id": "RCPT-9",
            "receipt_number": "RC-2024-0009",
            "receipt_date": "2024-06-15",
            "client_name": "Jane Client",
            "total_amount": "4000.00",
            "bank_company_id": str(COMPANY_A),
            "bank_company_name": "Holding Co",
            "charter_company_id": str(COMPANY_B),
            "charter_company_name": "Charter Co",
            "bank_account_gl_code": "1010",
            "uses_deferred_revenue": True,
        }
        payload.update(overrides)
        return payload

    def test_bank_and_charter_sides(self, handler_registry):
        handler = handler_registry.get(EventType.RECEIPT_RECEIVED_INTERCOMPANY)
        bank, charter = handler.generate_journals(
            make_event(
                EventType.RECEIPT_RECEIVED_INTERCOMPANY, self._payload(), (COMPANY_A, COMPANY_B)
            )
        )

        amount = Decimal("4000.00")
        assert bank.company_id == COMPANY_A
        assert _lines(bank) == [
            (LineSide.DEBIT, "1010", amount),
            (LineSide.CREDIT, "2700", amount),
        ]
        assert charter.company_id == COMPANY_B
        assert _lines(charter) == [
            (LineSide.DEBIT, "1180", amount),
            (LineSide.CREDIT, "2300", amount),
        ]

    @pytest.mark.parametrize("flag", [False, "false", None])
    def test_without_deferral_credits_revenue(self, handler_registry, flag):
        handler = handler_registry.get(EventType.RECEIPT_RECEIVED_INTERCOMPANY)
        _, charter = handler.generate_journals(
            make_event(
                EventType.RECEIPT_RECEIVED_INTERCOMPANY,
                self._payload(uses_deferred_revenue=flag),
                (COMPANY_A, COMPANY_B),
            )
        )
        assert charter.lines[1].account_code == "4490"

    def test_same_company_rejected(self, handler_registry):
        handler = handler_registry.get(EventType.RECEIPT_RECEIVED_INTERCOMPANY)
        result = handler.validate(self._payload(charter_company_id=str(COMPANY_A)))
        assert result.error == (
            "Bank and charter company must be different for intercompany transactions"
        )


class TestExpensePaidIntercompany:

    def test_paying_and_receiving_sides(self, handler_registry):
        handler = handler_registry.get(EventType.EXPENSE_PAID_INTERCOMPANY)
        payload = {
            "expense_id": "EXP-3",
            "expense_number": "EX-2024-0003",
            "vendor_name": "Boatyard",
            "payment_amount": "800.00",
            "payment_date": "2024-06-12",
            "paying_company_id": str(COMPANY_A),
            "receiving_company_id": str(COMPANY_B),
            "bank_account_gl_code": "1010",
        }
        assert handler.validate(payload).is_valid

        paying, receiving = handler.generate_journals(
            make_event(EventType.EXPENSE_PAID_INTERCOMPANY, payload, (COMPANY_A, COMPANY_B))
        )

        amount = Decimal("800.00")
        assert _lines(paying) == [
            (LineSide.DEBIT, "1180", amount),
            (LineSide.CREDIT, "1010", amount),
        ]
        assert _lines(receiving) == [
            (LineSide.DEBIT, "2050", amount),
            (LineSide.CREDIT, "2700", amount),
        ]
