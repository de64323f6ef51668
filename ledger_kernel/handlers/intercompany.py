"""
Multi-company handlers.  Each event produces one mirrored entry per company.

    RECEIPT_RECEIVED_INTERCOMPANY
        bank company     Dr bank                       / Cr intercompany payable
        charter company  Dr intercompany receivable    / Cr deferred or other revenue

    EXPENSE_PAID_INTERCOMPANY
        paying company     Dr intercompany receivable  / Cr bank
        receiving company  Dr accounts payable         / Cr intercompany payable

    MANAGEMENT_FEE_RECOGNIZED
        project company     Dr management fee expense  / Cr intercompany payable
        management company  Dr intercompany receivable / Cr management fee income

    INTERCOMPANY_SETTLEMENT
        paying company     Dr intercompany payable     / Cr bank
        receiving company  Dr bank                     / Cr intercompany receivable

The two sides always carry the same amount, so the group's intercompany
receivable and payable balances net to zero after every event.
"""

from __future__ import annotations

from typing import Any, Mapping

from ledger_kernel.domain.accounts import AccountRole
from ledger_kernel.domain.dtos import EventRecord, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.handlers.base import (
    EventHandler,
    InvalidPayload,
    amount,
    company_id,
    parse_date,
    require_company,
    require_date,
    require_distinct,
    require_positive,
    require_text,
    text,
)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return bool(value)


class ReceiptReceivedIntercompanyHandler(EventHandler):
    """
    A customer pays into one company's bank for a charter run by another.

    Payload: receipt_id, receipt_number, receipt_date, client_name,
    total_amount, bank_company_id, bank_company_name, charter_company_id,
    charter_company_name, bank_account_gl_code, uses_deferred_revenue,
    charter_date_from, project_name.
    """

    event_type = EventType.RECEIPT_RECEIVED_INTERCOMPANY
    multi_company = True

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "receipt_id", "Missing receiptId")
        require_positive(payload, "total_amount", "Invalid receipt amount")
        require_date(payload, "receipt_date", "Missing receipt date")
        bank = require_company(payload, "bank_company_id", "Missing bank company ID")
        charter = require_company(payload, "charter_company_id", "Missing charter company ID")
        require_distinct(
            bank, charter,
            "Bank and charter company must be different for intercompany transactions",
        )
        require_text(payload, "bank_account_gl_code", "Missing bank account GL code")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        total = amount(data, "total_amount")
        entry_date = self.entry_date(event, "receipt_date")
        number = text(data, "receipt_number") or data["receipt_id"]
        client = text(data, "client_name") or "customer"
        bank_name = text(data, "bank_company_name") or "bank company"
        charter_name = text(data, "charter_company_name") or "charter company"
        project = text(data, "project_name")
        about = f"{number} - {client}" + (f" ({project})" if project else "")

        if _truthy(data.get("uses_deferred_revenue")):
            revenue_account = self.account(AccountRole.DEFERRED_REVENUE)
            revenue_text = "Deferred revenue"
        else:
            revenue_account = self.account(AccountRole.DEFAULT_REVENUE)
            revenue_text = "Revenue"

        bank_side = self.spec(
            company_id(data, "bank_company_id"),
            entry_date,
            f"Intercompany Receipt - {about} - collected for {charter_name}",
            [
                JournalLineSpec.debit(
                    data["bank_account_gl_code"], total, f"Received from {client}",
                ),
                JournalLineSpec.credit(
                    self.account(AccountRole.INTERCOMPANY_PAYABLE),
                    total,
                    f"Due to {charter_name}",
                ),
            ],
        )
        charter_side = self.spec(
            company_id(data, "charter_company_id"),
            entry_date,
            f"Intercompany Receipt - {about} - collected by {bank_name}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.INTERCOMPANY_RECEIVABLE),
                    total,
                    f"Due from {bank_name}",
                ),
                JournalLineSpec.credit(revenue_account, total, f"{revenue_text} - {client}"),
            ],
        )
        return [bank_side, charter_side]


class ExpensePaidIntercompanyHandler(EventHandler):
    """
    One company pays a vendor bill that belongs to another.

    Payload: expense_id, expense_number, vendor_name, payment_amount,
    payment_date, paying_company_id, paying_company_name,
    receiving_company_id, receiving_company_name, bank_account_gl_code,
    project_name.
    """

    event_type = EventType.EXPENSE_PAID_INTERCOMPANY
    multi_company = True

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "expense_id", "Missing expenseId")
        require_positive(payload, "payment_amount", "Invalid payment amount")
        require_date(payload, "payment_date", "Missing payment date")
        paying = require_company(payload, "paying_company_id", "Missing paying company ID")
        receiving = require_company(
            payload, "receiving_company_id", "Missing receiving company ID"
        )
        require_distinct(
            paying, receiving,
            "Paying and receiving company must be different for intercompany transactions",
        )
        require_text(payload, "bank_account_gl_code", "Missing bank account GL code")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        paid = amount(data, "payment_amount")
        entry_date = self.entry_date(event, "payment_date")
        number = text(data, "expense_number") or data["expense_id"]
        vendor = text(data, "vendor_name") or "vendor"
        paying_name = text(data, "paying_company_name") or "paying company"
        receiving_name = text(data, "receiving_company_name") or "receiving company"

        paying_side = self.spec(
            company_id(data, "paying_company_id"),
            entry_date,
            f"Intercompany Expense Payment - {number} - {vendor} - paid for {receiving_name}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.INTERCOMPANY_RECEIVABLE),
                    paid,
                    f"Due from {receiving_name}",
                ),
                JournalLineSpec.credit(
                    data["bank_account_gl_code"], paid, f"Payment to {vendor}",
                ),
            ],
        )
        receiving_side = self.spec(
            company_id(data, "receiving_company_id"),
            entry_date,
            f"Intercompany Expense Payment - {number} - {vendor} - paid by {paying_name}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.ACCOUNTS_PAYABLE),
                    paid,
                    f"Clear payable to {vendor}",
                ),
                JournalLineSpec.credit(
                    self.account(AccountRole.INTERCOMPANY_PAYABLE),
                    paid,
                    f"Due to {paying_name}",
                ),
            ],
        )
        return [paying_side, receiving_side]


class ManagementFeeRecognizedHandler(EventHandler):
    """
    Management fee charged by the management company to a project company.

    Payload: project_company_id, management_company_id, project_id,
    project_name, fee_amount, fee_percentage, gross_income, period_from,
    period_to.
    """

    event_type = EventType.MANAGEMENT_FEE_RECOGNIZED
    multi_company = True

    def check(self, payload: Mapping[str, Any]) -> None:
        project = require_company(payload, "project_company_id", "Missing projectCompanyId")
        management = require_company(
            payload, "management_company_id", "Missing managementCompanyId"
        )
        require_distinct(
            project, management, "Project company and management company cannot be the same"
        )
        require_positive(payload, "fee_amount", "Invalid fee amount")
        if parse_date(payload.get("period_from")) is None or parse_date(
            payload.get("period_to")
        ) is None:
            raise InvalidPayload("Missing period dates", "period_from")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        fee = amount(data, "fee_amount")
        project = text(data, "project_name") or text(data, "project_id") or "project"
        period = f"({data['period_from']} to {data['period_to']})"

        project_side = self.spec(
            company_id(data, "project_company_id"),
            event.event_date,
            f"Management Fee - {project} {period}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.MANAGEMENT_FEE_EXPENSE), fee, "Management fee",
                ),
                JournalLineSpec.credit(
                    self.account(AccountRole.INTERCOMPANY_PAYABLE),
                    fee,
                    "Due to management company",
                ),
            ],
        )
        management_side = self.spec(
            company_id(data, "management_company_id"),
            event.event_date,
            f"Management Fee Income - {project} {period}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.INTERCOMPANY_RECEIVABLE),
                    fee,
                    "Due from project company",
                ),
                JournalLineSpec.credit(
                    self.account(AccountRole.MANAGEMENT_FEE_INCOME), fee, "Management fee income",
                ),
            ],
        )
        return [project_side, management_side]


class IntercompanySettlementHandler(EventHandler):
    """
    Cash settlement of an intercompany balance.

    Payload: from_company_id (pays), to_company_id (receives),
    settlement_amount, settlement_date, from_bank_gl_code, to_bank_gl_code,
    reference.
    """

    event_type = EventType.INTERCOMPANY_SETTLEMENT
    multi_company = True

    def check(self, payload: Mapping[str, Any]) -> None:
        paying = require_company(
            payload, "from_company_id", "Missing fromCompanyId (paying company)"
        )
        receiving = require_company(
            payload, "to_company_id", "Missing toCompanyId (receiving company)"
        )
        require_distinct(paying, receiving, "From and To companies cannot be the same")
        require_positive(payload, "settlement_amount", "Invalid settlement amount")
        require_date(payload, "settlement_date", "Missing settlement date")
        require_text(payload, "from_bank_gl_code", "Missing bank GL code for paying company")
        require_text(payload, "to_bank_gl_code", "Missing bank GL code for receiving company")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        settled = amount(data, "settlement_amount")
        entry_date = self.entry_date(event, "settlement_date")
        reference = text(data, "reference")
        suffix = f" - {reference}" if reference else ""

        paying_side = self.spec(
            company_id(data, "from_company_id"),
            entry_date,
            f"Intercompany Settlement - payment{suffix}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.INTERCOMPANY_PAYABLE),
                    settled,
                    "Settle intercompany payable",
                ),
                JournalLineSpec.credit(
                    data["from_bank_gl_code"], settled, "Settlement paid",
                ),
            ],
        )
        receiving_side = self.spec(
            company_id(data, "to_company_id"),
            entry_date,
            f"Intercompany Settlement - receipt{suffix}",
            [
                JournalLineSpec.debit(data["to_bank_gl_code"], settled, "Settlement received"),
                JournalLineSpec.credit(
                    self.account(AccountRole.INTERCOMPANY_RECEIVABLE),
                    settled,
                    "Settle intercompany receivable",
                ),
            ],
        )
        return [paying_side, receiving_side]
