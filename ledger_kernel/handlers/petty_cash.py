"""
Petty cash wallet handlers.

    PETTY_CASH_EXPENSE   Dr expense lines + VAT receivable / Cr petty cash wallet
    PETTY_CASH_TOPUP     Dr petty cash wallet              / Cr bank

A wallet without its own GL code posts to the petty cash account for its
currency (THB 1000, EUR 1001, USD 1002 in the default table).
"""

from __future__ import annotations

from typing import Any, Mapping

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.accounts import AccountRole
from ledger_kernel.domain.dtos import EventRecord, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
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


def _wallet_account(handler: EventHandler, data: Mapping[str, Any]) -> str:
    return text(data, "petty_cash_gl_code") or handler.defaults.petty_cash_account_for(
        text(data, "currency") or handler.defaults.default_currency
    )


class PettyCashExpenseHandler(EventHandler):
    """
    Small expense paid from a wallet.

    Payload: expense_id, expense_number, wallet_name, petty_cash_gl_code,
    currency, expense_date, line_items [{description, account_code,
    amount}], total_vat_amount, total_amount.
    """

    event_type = EventType.PETTY_CASH_EXPENSE

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "expense_id", "Missing expenseId")
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
        number = text(data, "expense_number") or data["expense_id"]
        wallet = text(data, "wallet_name") or "petty cash"
        lines: list[JournalLineSpec] = []

        for item in items(data, "line_items"):
            line_amount = amount(item, "amount")
            if line_amount > ZERO:
                lines.append(JournalLineSpec.debit(
                    text(item, "account_code"),
                    line_amount,
                    text(item, "description") or f"Petty cash expense - {number}",
                    fallback_role=AccountRole.DEFAULT_EXPENSE,
                ))
        vat = amount(data, "total_vat_amount")
        if vat > ZERO:
            lines.append(JournalLineSpec.debit(
                self.account(AccountRole.VAT_RECEIVABLE), vat, "Input VAT",
            ))
        lines.append(JournalLineSpec.credit(
            _wallet_account(self, data),
            amount(data, "total_amount"),
            f"Paid from {wallet}",
        ))

        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "expense_date"),
            f"Petty Cash Expense - {number} - {wallet}",
            lines,
        )]


class PettyCashTopupHandler(EventHandler):
    """
    Bank transfer into a wallet.

    Payload: wallet_name, petty_cash_gl_code, currency, amount,
    bank_account_gl_code, topup_date.
    """

    event_type = EventType.PETTY_CASH_TOPUP

    def check(self, payload: Mapping[str, Any]) -> None:
        require_positive(payload, "amount", "Invalid top-up amount")
        require_text(payload, "bank_account_gl_code", "Missing bank account GL code")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        topped_up = amount(data, "amount")
        wallet = text(data, "wallet_name") or "petty cash"
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "topup_date"),
            f"Petty Cash Top-up - {wallet}",
            [
                JournalLineSpec.debit(_wallet_account(self, data), topped_up, f"Top-up {wallet}"),
                JournalLineSpec.credit(
                    data["bank_account_gl_code"], topped_up, f"Transfer to {wallet}",
                ),
            ],
        )]
