"""
OPENING_BALANCE -- migrates a company's trial balance at the start of a year.

Each balance row carries either a debit or a credit amount for one account.
The rows must balance on their own; no plug line is added.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping

from ledger_kernel.db.types import ZERO, parse_amount, within_tolerance
from ledger_kernel.domain.dtos import EventRecord, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.handlers.base import (
    EventHandler,
    InvalidPayload,
    amount,
    items,
    require_items,
    text,
)


class OpeningBalanceHandler(EventHandler):
    """
    Payload: fiscal_year, balances [{account_code, account_name,
    debit_amount, credit_amount}].  The entry is dated January 1 of the
    fiscal year.
    """

    event_type = EventType.OPENING_BALANCE

    def check(self, payload: Mapping[str, Any]) -> None:
        year = payload.get("fiscal_year")
        if year in (None, "") or not str(year).strip().isdigit():
            raise InvalidPayload("Missing fiscal year", "fiscal_year")
        balances = require_items(payload, "balances", "No balances provided")

        total_debit = total_credit = ZERO
        for row in balances:
            code = text(row, "account_code")
            if code is None:
                raise InvalidPayload("Missing account code in balance", "balances")
            debit = parse_amount(row.get("debit_amount"))
            credit = parse_amount(row.get("credit_amount"))
            if debit is None and credit is None:
                raise InvalidPayload(f"No amount specified for account {code}", "balances")
            if (debit is not None and debit < ZERO) or (credit is not None and credit < ZERO):
                raise InvalidPayload(f"Negative amount for account {code}", "balances")
            total_debit += debit or ZERO
            total_credit += credit or ZERO

        if not within_tolerance(total_debit, total_credit, self.tolerance):
            raise InvalidPayload(
                f"Opening balances not balanced: Debits={total_debit}, Credits={total_credit}"
            )
        if total_debit <= ZERO:
            raise InvalidPayload("Opening balances total must be positive")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        year = int(str(data["fiscal_year"]).strip())
        lines: list[JournalLineSpec] = []
        for row in items(data, "balances"):
            code = text(row, "account_code")
            label = text(row, "account_name") or code
            debit = amount(row, "debit_amount")
            credit = amount(row, "credit_amount")
            if debit > ZERO:
                lines.append(JournalLineSpec.debit(code, debit, f"Opening balance - {label}"))
            if credit > ZERO:
                lines.append(JournalLineSpec.credit(code, credit, f"Opening balance - {label}"))
        return [self.spec(
            self.single_company(event),
            date(year, 1, 1),
            f"Opening balances - FY {year}",
            lines,
        )]
