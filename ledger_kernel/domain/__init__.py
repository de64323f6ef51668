"""Pure domain layer: value objects, enums and rules.  Zero I/O."""

from ledger_kernel.domain.accounts import AccountDefaults, AccountRole, AccountType
from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.dtos import (
    EntryStatus,
    EventProcessResult,
    EventRecord,
    EventSetting,
    EventSettingLookup,
    EventStatus,
    JournalLineSpec,
    JournalSpec,
    LineSide,
    PeriodStatus,
    ValidationError,
    ValidationResult,
)
from ledger_kernel.domain.event_types import EVENT_TYPE_METADATA, EventType
from ledger_kernel.domain.recognition import RecognitionStatus, RecognitionTrigger

__all__ = [
    "AccountDefaults",
    "AccountRole",
    "AccountType",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "EntryStatus",
    "EventProcessResult",
    "EventRecord",
    "EventSetting",
    "EventSettingLookup",
    "EventStatus",
    "JournalLineSpec",
    "JournalSpec",
    "LineSide",
    "PeriodStatus",
    "ValidationError",
    "ValidationResult",
    "EVENT_TYPE_METADATA",
    "EventType",
    "RecognitionStatus",
    "RecognitionTrigger",
]
