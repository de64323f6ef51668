"""Per-event-type journal generators.  Pure; no database access."""

from ledger_kernel.handlers.base import EventHandler, InvalidPayload
from ledger_kernel.handlers.registry import (
    HANDLER_CLASSES,
    HandlerRegistry,
    build_default_registry,
)

__all__ = [
    "EventHandler",
    "InvalidPayload",
    "HANDLER_CLASSES",
    "HandlerRegistry",
    "build_default_registry",
]
