"""
EventType -- the closed set of accounting events the ledger understands.

Responsibility:
    Names every business occurrence that can produce journal entries and
    carries the descriptive metadata shown to operators (label, purpose,
    originating document types, whether two companies are involved).

Architecture position:
    Kernel > Domain.  Pure values, zero I/O.

Invariants enforced:
    - The handler registry has exactly one handler per member; see
      ``handlers.registry.build_default_registry``.
    - Multi-company types always involve exactly two distinct companies.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType


class EventType(str, Enum):
    OPENING_BALANCE = "OPENING_BALANCE"
    RECEIPT_RECEIVED = "RECEIPT_RECEIVED"
    RECEIPT_RECEIVED_INTERCOMPANY = "RECEIPT_RECEIVED_INTERCOMPANY"
    PROJECT_SERVICE_COMPLETED = "PROJECT_SERVICE_COMPLETED"
    EXPENSE_APPROVED = "EXPENSE_APPROVED"
    EXPENSE_PAID = "EXPENSE_PAID"
    EXPENSE_PAID_INTERCOMPANY = "EXPENSE_PAID_INTERCOMPANY"
    CAPEX_INCURRED = "CAPEX_INCURRED"
    MANAGEMENT_FEE_RECOGNIZED = "MANAGEMENT_FEE_RECOGNIZED"
    INTERCOMPANY_SETTLEMENT = "INTERCOMPANY_SETTLEMENT"
    PARTNER_PROFIT_ALLOCATION = "PARTNER_PROFIT_ALLOCATION"
    PARTNER_PAYMENT = "PARTNER_PAYMENT"
    INVENTORY_PURCHASE_RECORDED = "INVENTORY_PURCHASE_RECORDED"
    INVENTORY_CONSUMED = "INVENTORY_CONSUMED"
    PETTY_CASH_EXPENSE = "PETTY_CASH_EXPENSE"
    PETTY_CASH_TOPUP = "PETTY_CASH_TOPUP"
    FX_GAIN_LOSS_RECORDED = "FX_GAIN_LOSS_RECORDED"
    PAYROLL_PAID = "PAYROLL_PAID"

    @classmethod
    def parse(cls, value: str | EventType) -> EventType | None:
        """Return the member for ``value`` or None when it is unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass(frozen=True)
class EventTypeInfo:
    label: str
    description: str
    source_document_types: tuple[str, ...]
    is_multi_company: bool = False


EVENT_TYPE_METADATA: MappingProxyType[EventType, EventTypeInfo] = MappingProxyType({
    EventType.OPENING_BALANCE: EventTypeInfo(
        "Opening Balance", "Initial balances for a new fiscal year", (),
    ),
    EventType.RECEIPT_RECEIVED: EventTypeInfo(
        "Receipt Received", "Cash/bank inflow from customer payment", ("receipt",),
    ),
    EventType.RECEIPT_RECEIVED_INTERCOMPANY: EventTypeInfo(
        "Intercompany Receipt",
        "Customer payment banked by a sister company on behalf of the charter company",
        ("receipt",),
        is_multi_company=True,
    ),
    EventType.PROJECT_SERVICE_COMPLETED: EventTypeInfo(
        "Service Completed",
        "Revenue recognition when service is delivered",
        ("invoice", "project", "revenue_recognition"),
    ),
    EventType.EXPENSE_APPROVED: EventTypeInfo(
        "Expense Approved", "Accrual recognition when expense is approved", ("expense",),
    ),
    EventType.EXPENSE_PAID: EventTypeInfo(
        "Expense Paid", "Cash outflow when expense is paid", ("expense_payment",),
    ),
    EventType.EXPENSE_PAID_INTERCOMPANY: EventTypeInfo(
        "Intercompany Expense Payment",
        "Expense of one company paid from a sister company's bank account",
        ("expense_payment",),
        is_multi_company=True,
    ),
    EventType.CAPEX_INCURRED: EventTypeInfo(
        "Capital Expenditure", "Asset acquisition and capitalization", ("expense",),
    ),
    EventType.MANAGEMENT_FEE_RECOGNIZED: EventTypeInfo(
        "Management Fee",
        "Intercompany management fee recognition",
        ("revenue_recognition",),
        is_multi_company=True,
    ),
    EventType.INTERCOMPANY_SETTLEMENT: EventTypeInfo(
        "Intercompany Settlement",
        "Settlement of intercompany balances",
        (),
        is_multi_company=True,
    ),
    EventType.PARTNER_PROFIT_ALLOCATION: EventTypeInfo(
        "Profit Allocation", "Allocation of profits to partners by ownership percentage", (),
    ),
    EventType.PARTNER_PAYMENT: EventTypeInfo(
        "Partner Payment", "Distribution of allocated profits to partners", (),
    ),
    EventType.INVENTORY_PURCHASE_RECORDED: EventTypeInfo(
        "Inventory Purchase", "Stock bought into inventory", ("inventory_purchase",),
    ),
    EventType.INVENTORY_CONSUMED: EventTypeInfo(
        "Inventory Consumed", "Stock issued from inventory to expense", ("inventory_consumption",),
    ),
    EventType.PETTY_CASH_EXPENSE: EventTypeInfo(
        "Petty Cash Expense", "Expense paid from a petty cash wallet", ("petty_cash_expense",),
    ),
    EventType.PETTY_CASH_TOPUP: EventTypeInfo(
        "Petty Cash Top-up", "Transfer from bank into a petty cash wallet", ("petty_cash_topup",),
    ),
    EventType.FX_GAIN_LOSS_RECORDED: EventTypeInfo(
        "FX Gain/Loss", "Foreign exchange revaluation of open balances", ("fx_revaluation",),
    ),
    EventType.PAYROLL_PAID: EventTypeInfo(
        "Payroll Paid", "Salaries paid net of withholding tax and social security", ("payroll",),
    ),
})


MULTI_COMPANY_EVENT_TYPES: frozenset[EventType] = frozenset(
    event_type
    for event_type, info in EVENT_TYPE_METADATA.items()
    if info.is_multi_company
)
