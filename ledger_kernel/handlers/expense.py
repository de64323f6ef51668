"""
Expense-side handlers: approval accrual, payment and capital expenditure.

    EXPENSE_APPROVED   Dr expense lines + VAT receivable / Cr accounts payable
    EXPENSE_PAID       Dr accounts payable / Cr bank, cash on hand or petty cash
    CAPEX_INCURRED     Dr asset + VAT receivable / Cr cash on hand, bank or payable
"""

from __future__ import annotations

from typing import Any, Mapping

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.accounts import AccountRole
from ledger_kernel.domain.dtos import EventRecord, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.handlers.base import (
    EventHandler,
    InvalidPayload,
    amount,
    items,
    require_items,
    require_non_negative,
    require_one_of,
    require_positive,
    require_text,
    sum_amounts,
    text,
)

PAYMENT_METHODS = ("bank", "cash", "petty_cash")


class ExpenseApprovedHandler(EventHandler):
    """
    Accrual on approval.

    Payload: expense_id, expense_number, vendor_name, line_items
    [{description, account_code, amount}], total_vat_amount, total_amount.
    Lines without an account code fall back to the company's debit override,
    then to the default expense account.
    """

    event_type = EventType.EXPENSE_APPROVED

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "expense_id")
        require_text(payload, "expense_number")
        lines = require_items(payload, "line_items", "No line items provided")
        for line in lines:
            require_non_negative(line, "amount", "Invalid line item amount")
        vat = require_non_negative(
            payload, "total_vat_amount", "Invalid VAT amount", optional=True
        )
        total = require_positive(payload, "total_amount", "Invalid total amount")
        self.require_sum(
            total,
            sum_amounts(lines, "amount") + vat,
            "Line items and VAT do not sum to total amount",
        )

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        number = data["expense_number"]
        vendor = text(data, "vendor_name") or "vendor"
        lines: list[JournalLineSpec] = []

        for item in items(data, "line_items"):
            line_amount = amount(item, "amount")
            if line_amount > ZERO:
                lines.append(JournalLineSpec.debit(
                    text(item, "account_code"),
                    line_amount,
                    text(item, "description") or f"Expense - {number}",
                    fallback_role=AccountRole.DEFAULT_EXPENSE,
                ))

        vat = amount(data, "total_vat_amount")
        if vat > ZERO:
            lines.append(JournalLineSpec.debit(
                self.account(AccountRole.VAT_RECEIVABLE), vat, "Input VAT",
            ))

        lines.append(JournalLineSpec.credit(
            self.account(AccountRole.ACCOUNTS_PAYABLE),
            amount(data, "total_amount"),
            f"Payable to {vendor}",
        ))

        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "expense_date"),
            f"Expense Approved - {number} - {vendor}",
            lines,
        )]


def _payment_credit_account(handler: EventHandler, data: Mapping[str, Any]) -> str:
    method = text(data, "payment_method") or "bank"
    if method == "cash":
        return handler.account(AccountRole.CASH_ON_HAND)
    if method == "petty_cash":
        return text(data, "petty_cash_gl_code") or handler.defaults.petty_cash_account_for(
            text(data, "currency")
        )
    return text(data, "bank_account_gl_code") or handler.account(AccountRole.DEFAULT_BANK)


def _check_payment_method(data: Mapping[str, Any], methods: tuple[str, ...], default: str) -> str:
    method = require_one_of(data, "payment_method", methods, default)
    if method == "bank" and text(data, "bank_account_gl_code") is None:
        raise InvalidPayload(
            "Missing bank account GL code for bank payment", "bank_account_gl_code"
        )
    return method


class ExpensePaidHandler(EventHandler):
    """
    Settlement of an approved expense.

    Payload: expense_id, expense_number, vendor_name, payment_amount,
    payment_date, payment_method (bank | cash | petty_cash, default bank),
    bank_account_gl_code, petty_cash_gl_code, currency.
    """

    event_type = EventType.EXPENSE_PAID

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "expense_id")
        require_positive(payload, "payment_amount", "Invalid payment amount")
        _check_payment_method(payload, PAYMENT_METHODS, "bank")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        number = text(data, "expense_number") or data["expense_id"]
        vendor = text(data, "vendor_name") or "vendor"
        paid = amount(data, "payment_amount")
        lines = [
            JournalLineSpec.debit(
                self.account(AccountRole.ACCOUNTS_PAYABLE), paid, f"Clear payable - {number}",
            ),
            JournalLineSpec.credit(
                _payment_credit_account(self, data), paid, f"Payment to {vendor}",
            ),
        ]
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "payment_date"),
            f"Expense Paid - {number} - {vendor}",
            lines,
        )]


class CapexIncurredHandler(EventHandler):
    """
    Capitalized purchase of a fixed asset.

    Payload: expense_id, expense_number, vendor_name, asset_account_code,
    asset_description, subtotal, vat_amount, total_amount, payment_method
    (bank | cash | accounts_payable, default accounts_payable),
    bank_account_gl_code.

    When asset_account_code is absent the asset line is left for the
    company's debit override; there is no global default asset account.
    """

    event_type = EventType.CAPEX_INCURRED

    METHODS = ("bank", "cash", "accounts_payable")

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "expense_id")
        subtotal = require_positive(payload, "subtotal", "Invalid asset amount")
        vat = require_non_negative(payload, "vat_amount", "Invalid VAT amount", optional=True)
        total = require_positive(payload, "total_amount", "Invalid total amount")
        self.require_sum(total, subtotal + vat, "Asset amount and VAT do not sum to total amount")
        _check_payment_method(payload, self.METHODS, "accounts_payable")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        number = text(data, "expense_number") or data["expense_id"]
        asset = text(data, "asset_description") or "Fixed asset"
        lines = [
            JournalLineSpec.debit(
                text(data, "asset_account_code"), amount(data, "subtotal"), asset,
            ),
        ]
        vat = amount(data, "vat_amount")
        if vat > ZERO:
            lines.append(JournalLineSpec.debit(
                self.account(AccountRole.VAT_RECEIVABLE), vat, f"Input VAT - {number}",
            ))

        method = text(data, "payment_method") or "accounts_payable"
        if method == "cash":
            credit_account = self.account(AccountRole.CASH_ON_HAND)
        elif method == "bank":
            credit_account = data["bank_account_gl_code"]
        else:
            credit_account = self.account(AccountRole.ACCOUNTS_PAYABLE)
        lines.append(JournalLineSpec.credit(
            credit_account, amount(data, "total_amount"), f"Capital expenditure - {number}",
        ))

        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "expense_date"),
            f"Capital Expenditure - {number} - {asset}",
            lines,
        )]
