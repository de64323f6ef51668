"""
Income-side handlers: customer receipts and service completion.

    RECEIPT_RECEIVED            Dr bank per payment / Cr revenue (or deferred
                                revenue) per line / Cr VAT payable
    PROJECT_SERVICE_COMPLETED   Dr deferred revenue / Cr revenue

The receipt handler reads ``recognition_status`` from the payload.  The
revenue recognition service stamps it before posting: while the service is
still pending (or its dates are unknown) revenue lines credit the shared
deferred revenue liability.  VAT is always credited immediately.
"""

from __future__ import annotations

from typing import Any, Mapping

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.accounts import AccountRole
from ledger_kernel.domain.dtos import EventRecord, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.domain.recognition import RecognitionStatus
from ledger_kernel.handlers.base import (
    EventHandler,
    amount,
    items,
    require_items,
    require_non_negative,
    require_positive,
    require_text,
    sum_amounts,
    text,
)

DEFERRED_STATUSES = frozenset({
    RecognitionStatus.PENDING.value,
    RecognitionStatus.NEEDS_REVIEW.value,
})


class ReceiptReceivedHandler(EventHandler):
    """
    Customer payment for a receipt.

    Payload: receipt_id, receipt_number, receipt_date, client_name,
    payments [{amount, bank_account_gl_code}], line_items [{description,
    amount, account_code, charter_type}], total_vat_amount, total_amount,
    charter_type, recognition_status.
    """

    event_type = EventType.RECEIPT_RECEIVED

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "receipt_id", "Missing receiptId")
        require_text(payload, "receipt_number", "Missing receiptNumber")
        payments = require_items(payload, "payments", "No payment records provided")
        lines = require_items(payload, "line_items", "No line items provided")
        total = require_positive(payload, "total_amount", "Invalid total amount")
        for payment in payments:
            require_positive(payment, "amount", "Invalid payment amount")
        for line in lines:
            require_non_negative(line, "amount", "Invalid line item amount")
        vat = require_non_negative(
            payload, "total_vat_amount", "Invalid VAT amount", optional=True
        )
        paid = sum_amounts(payments, "amount")
        billed = sum_amounts(lines, "amount") + vat
        self.require_sum(total, paid, "Payments do not sum to total amount")
        self.require_sum(total, billed, "Line items and VAT do not sum to total amount")
        # Both sides may sit within tolerance of the total yet not of each other.
        self.require_sum(paid, billed, "Payments do not match line items and VAT")

    def revenue_line(self, data: Mapping[str, Any], item: Mapping[str, Any]) -> JournalLineSpec:
        line_amount = amount(item, "amount")
        description = text(item, "description") or f"Receipt {data['receipt_number']}"
        if text(data, "recognition_status") in DEFERRED_STATUSES:
            return JournalLineSpec.credit(
                self.account(AccountRole.DEFERRED_REVENUE),
                line_amount,
                f"Deferred revenue - {description}",
            )
        code = text(item, "account_code")
        if code is None:
            charter_type = text(item, "charter_type") or text(data, "charter_type")
            if charter_type:
                code = self.defaults.revenue_account_for(charter_type)
        return JournalLineSpec.credit(
            code, line_amount, description, fallback_role=AccountRole.DEFAULT_REVENUE,
        )

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        client = text(data, "client_name") or "customer"
        lines: list[JournalLineSpec] = []

        for payment in items(data, "payments"):
            paid = amount(payment, "amount")
            if paid > ZERO:
                lines.append(JournalLineSpec.debit(
                    text(payment, "bank_account_gl_code"),
                    paid,
                    f"Received from {client}",
                    fallback_role=AccountRole.CASH,
                ))

        for item in items(data, "line_items"):
            if amount(item, "amount") > ZERO:
                lines.append(self.revenue_line(data, item))

        vat = amount(data, "total_vat_amount")
        if vat > ZERO:
            lines.append(JournalLineSpec.credit(
                self.account(AccountRole.VAT_PAYABLE), vat, "Output VAT",
            ))

        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "receipt_date"),
            f"Receipt - {data['receipt_number']} - {client}",
            lines,
        )]


class ProjectServiceCompletedHandler(EventHandler):
    """
    Releases deferred revenue once the service has been delivered.

    Payload: amount, description, client_name, recognition_id, receipt_id,
    deferred_revenue_account, revenue_account, charter_type.
    """

    event_type = EventType.PROJECT_SERVICE_COMPLETED

    def check(self, payload: Mapping[str, Any]) -> None:
        require_positive(payload, "amount", "Invalid recognition amount")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        recognized = amount(data, "amount")
        description = text(data, "description") or "Service completed"
        revenue_account = text(data, "revenue_account")
        if revenue_account is None and text(data, "charter_type"):
            revenue_account = self.defaults.revenue_account_for(data["charter_type"])

        lines = [
            JournalLineSpec.debit(
                text(data, "deferred_revenue_account"),
                recognized,
                f"Release deferred revenue - {description}",
                fallback_role=AccountRole.DEFERRED_REVENUE,
            ),
            JournalLineSpec.credit(
                revenue_account,
                recognized,
                f"Revenue recognized - {description}",
                fallback_role=AccountRole.DEFAULT_REVENUE,
            ),
        ]
        client = text(data, "client_name")
        suffix = f" - {client}" if client else ""
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "recognition_date"),
            f"Revenue Recognition - {description}{suffix}",
            lines,
        )]
