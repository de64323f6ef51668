"""
FX_GAIN_LOSS_RECORDED -- period-end revaluation of foreign-currency balances.

Each adjustment carries a signed ``gain_loss``:

    gain (> 0)   Dr revalued account / Cr FX gain
    loss (< 0)   Dr FX loss          / Cr revalued account

Zero adjustments are skipped.  Every adjustment is balanced on its own, so
the entry always balances.
"""

from __future__ import annotations

from typing import Any, Mapping

from ledger_kernel.db.types import ZERO, parse_amount
from ledger_kernel.domain.accounts import AccountRole
from ledger_kernel.domain.dtos import EventRecord, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.handlers.base import (
    EventHandler,
    InvalidPayload,
    amount,
    items,
    require_date,
    require_items,
    require_text,
    text,
)


class FxGainLossRecordedHandler(EventHandler):
    """
    Payload: revaluation_date, currency, adjustments [{account_code,
    gain_loss, document_number, counterparty_name}].
    """

    event_type = EventType.FX_GAIN_LOSS_RECORDED

    def check(self, payload: Mapping[str, Any]) -> None:
        require_date(payload, "revaluation_date", "Missing revaluation date")
        adjustments = require_items(payload, "adjustments", "No FX adjustments provided")
        nonzero = 0
        for adjustment in adjustments:
            require_text(adjustment, "account_code", "Missing account code in FX adjustment")
            value = parse_amount(adjustment.get("gain_loss"))
            if value is None:
                raise InvalidPayload("Invalid FX gain/loss amount", "adjustments")
            if value != ZERO:
                nonzero += 1
        if nonzero == 0:
            raise InvalidPayload("All FX adjustments are zero", "adjustments")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        currency = text(data, "currency") or ""
        lines: list[JournalLineSpec] = []
        for adjustment in items(data, "adjustments"):
            value = amount(adjustment, "gain_loss")
            if value == ZERO:
                continue
            account = adjustment["account_code"]
            document = text(adjustment, "document_number")
            counterparty = text(adjustment, "counterparty_name")
            label = " - ".join(part for part in (document, counterparty) if part) or account
            if value > ZERO:
                lines.append(JournalLineSpec.debit(account, value, f"FX revaluation - {label}"))
                lines.append(JournalLineSpec.credit(
                    self.account(AccountRole.FX_GAIN), value, f"FX gain - {label}",
                ))
            else:
                loss = -value
                lines.append(JournalLineSpec.debit(
                    self.account(AccountRole.FX_LOSS), loss, f"FX loss - {label}",
                ))
                lines.append(JournalLineSpec.credit(account, loss, f"FX revaluation - {label}"))

        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "revaluation_date"),
            f"FX Revaluation {currency}".rstrip(),
            lines,
        )]
