"""
PAYROLL_PAID -- salary run paid from a bank account.

    Dr salary expense per line (gross)
        Cr withholding tax payable
        Cr social security payable
        Cr bank (net pay)
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


class PayrollPaidHandler(EventHandler):
    """
    Payload: payroll_period, payment_date, bank_account_gl_code, lines
    [{description, account_code, gross_amount}], total_gross,
    withholding_tax, social_security, net_pay.

    total_gross must equal the sum of the lines and also
    withholding_tax + social_security + net_pay, and those two sides must
    agree with each other within the tolerance.
    """

    event_type = EventType.PAYROLL_PAID

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "payroll_period", "Missing payroll period")
        require_text(payload, "bank_account_gl_code", "Missing bank account GL code")
        lines = require_items(payload, "lines", "No payroll lines provided")
        for line in lines:
            require_positive(line, "gross_amount", "Invalid gross amount")
        gross = require_positive(payload, "total_gross", "Invalid total gross")
        wht = require_non_negative(
            payload, "withholding_tax", "Invalid withholding tax", optional=True
        )
        ssc = require_non_negative(
            payload, "social_security", "Invalid social security", optional=True
        )
        net = require_positive(payload, "net_pay", "Invalid net pay")
        line_gross = sum_amounts(lines, "gross_amount")
        paid_out = wht + ssc + net
        self.require_sum(gross, line_gross, "Payroll lines do not sum to total gross")
        self.require_sum(gross, paid_out, "Deductions and net pay do not sum to total gross")
        self.require_sum(
            line_gross, paid_out, "Deductions and net pay do not match payroll lines"
        )

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        period = data["payroll_period"]
        lines: list[JournalLineSpec] = [
            JournalLineSpec.debit(
                text(line, "account_code"),
                amount(line, "gross_amount"),
                text(line, "description") or f"Salaries - {period}",
                fallback_role=AccountRole.DEFAULT_EXPENSE,
            )
            for line in items(data, "lines")
        ]
        wht = amount(data, "withholding_tax")
        if wht > ZERO:
            lines.append(JournalLineSpec.credit(
                self.account(AccountRole.WITHHOLDING_TAX_PAYABLE), wht, "Withholding tax",
            ))
        ssc = amount(data, "social_security")
        if ssc > ZERO:
            lines.append(JournalLineSpec.credit(
                self.account(AccountRole.SOCIAL_SECURITY_PAYABLE), ssc, "Social security",
            ))
        lines.append(JournalLineSpec.credit(
            data["bank_account_gl_code"], amount(data, "net_pay"), f"Net pay - {period}",
        ))
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "payment_date"),
            f"Payroll - {period}",
            lines,
        )]
