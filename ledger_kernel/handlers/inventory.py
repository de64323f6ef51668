"""
Inventory handlers.

    INVENTORY_PURCHASE_RECORDED   Dr inventory + VAT receivable / Cr bank, cash or petty cash
    INVENTORY_CONSUMED            Dr expense per consumption    / Cr inventory
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
    require_date,
    require_items,
    require_non_negative,
    require_one_of,
    require_positive,
    require_text,
    sum_amounts,
    text,
)

PURCHASE_PAYMENT_TYPES = ("bank", "cash", "petty_cash")


class InventoryPurchaseRecordedHandler(EventHandler):
    """
    Stock bought for later consumption.

    Payload: purchase_id, purchase_number, purchase_date, vendor_name,
    total_subtotal, total_vat_amount, total_net_payable, payment_type
    (bank | cash | petty_cash), bank_account_gl_code, petty_cash_gl_code,
    petty_cash_wallet_name.
    """

    event_type = EventType.INVENTORY_PURCHASE_RECORDED

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "purchase_id", "Missing purchase ID")
        require_date(payload, "purchase_date", "Missing purchase date")
        net = require_positive(payload, "total_net_payable", "Invalid net payable amount")
        subtotal = require_non_negative(payload, "total_subtotal", "Invalid subtotal amount")
        vat = require_non_negative(
            payload, "total_vat_amount", "Invalid VAT amount", optional=True
        )
        self.require_sum(net, subtotal + vat, "Subtotal and VAT do not sum to net payable")

        payment_type = require_one_of(payload, "payment_type", PURCHASE_PAYMENT_TYPES, "bank")
        if payment_type == "bank" and text(payload, "bank_account_gl_code") is None:
            raise InvalidPayload(
                "Missing bank account GL code for bank payment", "bank_account_gl_code"
            )
        if payment_type == "petty_cash" and text(payload, "petty_cash_gl_code") is None:
            raise InvalidPayload(
                "Missing petty cash GL code for petty cash payment", "petty_cash_gl_code"
            )

    def _credit_account(self, data: Mapping[str, Any]) -> str:
        payment_type = text(data, "payment_type") or "bank"
        if payment_type == "cash":
            return self.account(AccountRole.CASH_ON_HAND)
        if payment_type == "petty_cash":
            return data["petty_cash_gl_code"]
        return data["bank_account_gl_code"]

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        number = text(data, "purchase_number") or data["purchase_id"]
        vendor = text(data, "vendor_name") or "vendor"
        lines: list[JournalLineSpec] = []

        subtotal = amount(data, "total_subtotal")
        if subtotal > ZERO:
            lines.append(JournalLineSpec.debit(
                self.account(AccountRole.INVENTORY), subtotal, f"Inventory purchase - {number}",
            ))
        vat = amount(data, "total_vat_amount")
        if vat > ZERO:
            lines.append(JournalLineSpec.debit(
                self.account(AccountRole.VAT_RECEIVABLE), vat, "Input VAT",
            ))

        wallet = text(data, "petty_cash_wallet_name")
        paid_from = f" from {wallet}" if wallet and data.get("payment_type") == "petty_cash" else ""
        lines.append(JournalLineSpec.credit(
            self._credit_account(data),
            amount(data, "total_net_payable"),
            f"Payment to {vendor}{paid_from}",
        ))

        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "purchase_date"),
            f"Inventory Purchase - {number} - {vendor}",
            lines,
        )]


class InventoryConsumedHandler(EventHandler):
    """
    Stock drawn down into expense accounts.

    Payload: purchase_id, purchase_number, consumed_date, consumptions
    [{description, expense_account_code, amount, project_name}],
    total_amount.
    """

    event_type = EventType.INVENTORY_CONSUMED

    def check(self, payload: Mapping[str, Any]) -> None:
        require_text(payload, "purchase_id", "Missing purchase ID")
        consumptions = require_items(payload, "consumptions", "No consumption items provided")
        for item in consumptions:
            require_text(
                item, "expense_account_code", "Missing expense account code for consumption"
            )
            require_positive(item, "amount", "Invalid consumption amount")
        total = require_positive(payload, "total_amount", "Invalid total amount")
        self.require_sum(
            total,
            sum_amounts(consumptions, "amount"),
            "Consumption items do not sum to total amount",
        )

    def build(self, event: EventRecord) -> list[JournalSpec]:
        data = event.payload
        number = text(data, "purchase_number") or data["purchase_id"]
        consumptions = items(data, "consumptions")
        lines: list[JournalLineSpec] = []
        for item in consumptions:
            description = text(item, "description") or f"Inventory used - {number}"
            project = text(item, "project_name")
            if project:
                description = f"{description} ({project})"
            lines.append(JournalLineSpec.debit(
                item["expense_account_code"], amount(item, "amount"), description,
            ))
        lines.append(JournalLineSpec.credit(
            self.account(AccountRole.INVENTORY),
            sum_amounts(consumptions, "amount"),
            f"Inventory consumed - {number}",
        ))
        return [self.spec(
            self.single_company(event),
            self.entry_date(event, "consumed_date"),
            f"Inventory Consumed - {number}",
            lines,
        )]
