"""
Partner (profit participant) handlers.

    PARTNER_PROFIT_ALLOCATION   Dr retained earnings / Cr partner payables per partner
    PARTNER_PAYMENT             Dr partner payables  / Cr bank
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
    parse_date,
    require_items,
    require_non_negative,
    require_positive,
    require_text,
    sum_amounts,
    text,
)


class PartnerProfitAllocationHandler(EventHandler):
    """
    Distributes a project's profit to its participants.

    Payload: project_id, project_name, allocations [{participant_id,
    participant_name, allocated_amount, ownership_percentage}], total_profit,
    period_from, period_to.  Zero allocations are validated but produce no
    line.
    """

    event_type = EventType.PARTNER_PROFIT_ALLOCATION

    def check(self, payload: Mapping[str, Any]) -> None:
        allocations = require_items(payload, "allocations", "No allocations provided")
        total = require_positive(payload, "total_profit", "Invalid total profit")
        for allocation in allocations:
            require_text(allocation, "participant_id", "Invalid participant in allocation")
            require_non_negative(allocation, "allocated_amount", "Invalid allocated amount")
        self.require_sum(
            total,
            sum_amounts(allocations, "allocated_amount"),
            "Allocations do not sum to total profit",
        )
        if parse_date(payload.get("period_from")) is None or parse_date(
            payload.get("period_to")
        ) is None:
            raise InvalidPayload("Missing period dates", "period_from")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        project = text(data, "project_name") or text(data, "project_id") or "project"
        period = f"{data['period_from']} to {data['period_to']}"
        allocations = [
            a for a in items(data, "allocations") if amount(a, "allocated_amount") > ZERO
        ]
        lines = [
            JournalLineSpec.debit(
                self.account(AccountRole.RETAINED_EARNINGS),
                sum_amounts(allocations, "allocated_amount"),
                f"Profit distribution - {project}",
            ),
        ]
        for allocation in allocations:
            name = text(allocation, "participant_name") or allocation["participant_id"]
            share = text(allocation, "ownership_percentage")
            share_text = f" ({share}%)" if share else ""
            lines.append(JournalLineSpec.credit(
                self.account(AccountRole.PARTNER_PAYABLES),
                amount(allocation, "allocated_amount"),
                f"Profit share - {name}{share_text}",
            ))
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "period_to"),
            f"Profit Allocation - {project} ({period})",
            lines,
        )]


class PartnerPaymentHandler(EventHandler):
    """
    Cash distribution to a participant.

    Payload: participant_id, participant_name, payment_amount, payment_date,
    bank_account_gl_code.
    """

    event_type = EventType.PARTNER_PAYMENT

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "participant_id", "Missing participant ID")
        require_positive(payload, "payment_amount", "Invalid payment amount")
        require_text(payload, "bank_account_gl_code", "Missing bank account GL code")

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        paid = amount(data, "payment_amount")
        name = text(data, "participant_name") or data["participant_id"]
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "payment_date"),
            f"Partner Payment - {name}",
            [
                JournalLineSpec.debit(
                    self.account(AccountRole.PARTNER_PAYABLES), paid, f"Settle payable - {name}",
                ),
                JournalLineSpec.credit(
                    data["bank_account_gl_code"], paid, f"Payment to {name}",
                ),
            ],
        )]
