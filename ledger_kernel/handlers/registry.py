"""
Handler registry.

Maps each EventType to its handler instance.  The pipeline looks handlers up
here; nothing else dispatches on event type.
"""

from ledger_kernel.domain.accounts import AccountDefaults
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.exceptions import UnknownEventTypeError
from ledger_kernel.handlers.base import EventHandler
from ledger_kernel.handlers.expense import (
    CapexIncurredHandler,
    ExpenseApprovedHandler,
    ExpensePaidHandler,
)
from ledger_kernel.handlers.fx import FxGainLossRecordedHandler
from ledger_kernel.handlers.intercompany import (
    ExpensePaidIntercompanyHandler,
    IntercompanySettlementHandler,
    ManagementFeeRecognizedHandler,
    ReceiptReceivedIntercompanyHandler,
)
from ledger_kernel.handlers.inventory import (
    InventoryConsumedHandler,
    InventoryPurchaseRecordedHandler,
)
from ledger_kernel.handlers.opening_balance import OpeningBalanceHandler
from ledger_kernel.handlers.partner import (
    PartnerPaymentHandler,
    PartnerProfitAllocationHandler,
)
from ledger_kernel.handlers.payroll import PayrollPaidHandler
from ledger_kernel.handlers.petty_cash import PettyCashExpenseHandler, PettyCashTopupHandler
from ledger_kernel.handlers.receipt import (
    ProjectServiceCompletedHandler,
    ReceiptReceivedHandler,
)

HANDLER_CLASSES: tuple[type[EventHandler], ...] = (
    OpeningBalanceHandler,
    ReceiptReceivedHandler,
    ReceiptReceivedIntercompanyHandler,
    ProjectServiceCompletedHandler,
    ExpenseApprovedHandler,
    ExpensePaidHandler,
    ExpensePaidIntercompanyHandler,
    CapexIncurredHandler,
    ManagementFeeRecognizedHandler,
    IntercompanySettlementHandler,
    PartnerProfitAllocationHandler,
    PartnerPaymentHandler,
    InventoryPurchaseRecordedHandler,
    InventoryConsumedHandler,
    PettyCashExpenseHandler,
    PettyCashTopupHandler,
    FxGainLossRecordedHandler,
    PayrollPaidHandler,
)


class HandlerRegistry:
    """
    Registry of event handlers keyed by event type.

    One handler per type; registering a second handler for the same type
    replaces the first only when ``replace`` is set.
    """

    def __init__(self):
        self._handlers: dict[EventType, EventHandler] = {}

    def register(self, handler: EventHandler, replace: bool = False) -> None:
        event_type = handler.event_type
        if event_type in self._handlers and not replace:
            existing = self._handlers[event_type]
            raise ValueError(
                f"Handler already registered for {event_type.value}: "
                f"{existing.__class__.__name__}"
            )
        self._handlers[event_type] = handler

    def get(self, event_type: EventType | str) -> EventHandler:
        """Handler for an event type.  Raises UnknownEventTypeError."""
        parsed = EventType.parse(event_type)
        if parsed is None or parsed not in self._handlers:
            raise UnknownEventTypeError(str(event_type))
        return self._handlers[parsed]

    def has(self, event_type: EventType | str) -> bool:
        parsed = EventType.parse(event_type)
        return parsed is not None and parsed in self._handlers

    def missing_event_types(self) -> list[EventType]:
        return [t for t in EventType if t not in self._handlers]

    def __len__(self) -> int:
        return len(self._handlers)


def build_default_registry(defaults: AccountDefaults) -> HandlerRegistry:
    """Registry with a handler for every EventType."""
    registry = HandlerRegistry()
    for handler_cls in HANDLER_CLASSES:
        registry.register(handler_cls(defaults))
    missing = registry.missing_event_types()
    if missing:
        raise RuntimeError(
            f"No handler for event types: {', '.join(t.value for t in missing)}"
        )
    return registry
