"""
Domain DTOs -- value objects passed between handlers, the pipeline and services.

Responsibility:
    Immutable data carriers for the event pipeline: the frozen snapshot of an
    accounting event given to handlers, the journal specs handlers return,
    validation results, settings lookups and the pipeline's result object.

Architecture position:
    Kernel > Domain.  Pure values, zero I/O.  MUST NOT import from models/,
    services/ or ledger_config.

Invariants enforced:
    - EventRecord.payload is deep-frozen so handlers cannot mutate it.
    - JournalLineSpec.amount is strictly positive.
    - Expected business failures travel as EventProcessResult, not exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO
from ledger_kernel.domain.accounts import AccountRole
from ledger_kernel.domain.event_types import EventType


def _deep_freeze_dict(d: Mapping[str, Any]) -> MappingProxyType:
    """Nested dicts become MappingProxyType and lists become tuples."""
    return MappingProxyType({k: _deep_freeze_value(v) for k, v in d.items()})


def _deep_freeze_value(v: Any) -> Any:
    if isinstance(v, Mapping):
        return _deep_freeze_dict(v)
    if isinstance(v, (list, tuple)):
        return tuple(_deep_freeze_value(item) for item in v)
    return v


class LineSide(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


class EntryStatus(str, Enum):
    """
    Status of a journal entry.

    Lifecycle: DRAFT -> POSTED.  POSTED entries are immutable.
    """

    DRAFT = "draft"
    POSTED = "posted"


class EventStatus(str, Enum):
    """
    Status of an accounting event.

    Lifecycle:
        PENDING -> PROCESSED | FAILED | CANCELLED
        FAILED -> PENDING (retry) | CANCELLED
        PROCESSED -> CANCELLED
        CANCELLED is terminal.
    """

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
    CANCELLED = "cancelled"


EVENT_STATUS_TRANSITIONS: Mapping[EventStatus, frozenset[EventStatus]] = MappingProxyType({
    EventStatus.PENDING: frozenset(
        {EventStatus.PROCESSED, EventStatus.FAILED, EventStatus.CANCELLED}
    ),
    EventStatus.FAILED: frozenset({EventStatus.PENDING, EventStatus.CANCELLED}),
    EventStatus.PROCESSED: frozenset({EventStatus.CANCELLED}),
    EventStatus.CANCELLED: frozenset(),
})


def is_valid_event_transition(from_status: str, to_status: str) -> bool:
    try:
        return EventStatus(to_status) in EVENT_STATUS_TRANSITIONS[EventStatus(from_status)]
    except ValueError:
        return False


class PeriodStatus(str, Enum):
    """Fiscal period lifecycle: OPEN -> CLOSED -> LOCKED."""

    OPEN = "open"
    CLOSED = "closed"
    LOCKED = "locked"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ValidationError:
    """
    A single validation error.

    Contract:
        Carries a machine-readable code, the human-readable message shown to
        the user verbatim, and an optional payload field path.
    """

    code: str
    message: str
    field: str | None = None
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ValidationResult:
    """
    Result of handler validation.

    Guarantees:
        - errors is always a tuple (never None)
        - bool(result) == result.is_valid
        - ``error`` joins the messages for storage on the event row
    """

    is_valid: bool
    errors: tuple[ValidationError, ...] = field(default_factory=tuple)

    @classmethod
    def success(cls) -> ValidationResult:
        return cls(is_valid=True, errors=())

    @classmethod
    def failure(cls, *errors: ValidationError) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors))

    @classmethod
    def invalid(cls, message: str, field: str | None = None) -> ValidationResult:
        """Shorthand for a single VALIDATION_FAILED error."""
        return cls.failure(ValidationError("VALIDATION_FAILED", message, field))

    @property
    def error(self) -> str | None:
        if self.is_valid:
            return None
        return "; ".join(e.message for e in self.errors)

    def __bool__(self) -> bool:
        return self.is_valid


# ---------------------------------------------------------------------------
# Journal specs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JournalLineSpec:
    """
    One proposed debit or credit.

    Contract:
        ``account_code`` may be None when the line is for a user-entered item
        that carries no GL code.  ``fallback_role`` then names the global
        default used after any company override.
    """

    side: LineSide
    amount: Decimal
    account_code: str | None = None
    description: str = ""
    fallback_role: AccountRole | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise TypeError(f"amount must be Decimal, got {type(self.amount).__name__}")
        if self.amount <= ZERO:
            raise ValueError(f"Line amount must be positive: {self.amount}")

    @classmethod
    def debit(
        cls,
        account_code: str | None,
        amount: Decimal,
        description: str = "",
        fallback_role: AccountRole | None = None,
    ) -> JournalLineSpec:
        return cls(LineSide.DEBIT, amount, account_code, description, fallback_role)

    @classmethod
    def credit(
        cls,
        account_code: str | None,
        amount: Decimal,
        description: str = "",
        fallback_role: AccountRole | None = None,
    ) -> JournalLineSpec:
        return cls(LineSide.CREDIT, amount, account_code, description, fallback_role)

    @property
    def is_debit(self) -> bool:
        return self.side == LineSide.DEBIT

    def with_account(self, account_code: str) -> JournalLineSpec:
        return JournalLineSpec(
            self.side, self.amount, account_code, self.description, self.fallback_role
        )


@dataclass(frozen=True)
class JournalSpec:
    """
    A proposed journal entry for one company.

    Guarantees:
        - lines is a tuple in posting order
        - totals are computed, never stored
    """

    company_id: UUID
    entry_date: date
    description: str
    lines: tuple[JournalLineSpec, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))

    @property
    def total_debit(self) -> Decimal:
        return sum((l.amount for l in self.lines if l.is_debit), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((l.amount for l in self.lines if not l.is_debit), ZERO)

    def is_balanced(self, tolerance: Decimal = BALANCE_TOLERANCE) -> bool:
        return abs(self.total_debit - self.total_credit) <= tolerance

    @property
    def unresolved_lines(self) -> tuple[JournalLineSpec, ...]:
        return tuple(l for l in self.lines if not l.account_code)

    def with_lines(self, lines: tuple[JournalLineSpec, ...]) -> JournalSpec:
        return JournalSpec(self.company_id, self.entry_date, self.description, lines)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventRecord:
    """
    Immutable snapshot of a persisted accounting event.

    Contract:
        This is the only view of an event that handlers see.  The payload is
        the stored JSON form (amounts as strings, dates as ISO strings).
    """

    event_id: UUID
    event_type: EventType
    event_date: date
    affected_companies: tuple[UUID, ...]
    payload: Mapping[str, Any]
    source_document_type: str | None = None
    source_document_id: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.payload, MappingProxyType):
            object.__setattr__(self, "payload", _deep_freeze_dict(self.payload))

    @classmethod
    def from_model(cls, event: Any) -> EventRecord:
        """Snapshot an AccountingEvent row."""
        return cls(
            event_id=event.id,
            event_type=EventType(event.event_type),
            event_date=event.event_date,
            affected_companies=tuple(UUID(str(c)) for c in event.affected_companies),
            payload=event.payload,
            source_document_type=event.source_document_type,
            source_document_id=event.source_document_id,
        )


@dataclass(frozen=True)
class EventProcessResult:
    """
    Outcome of pipeline processing.

    Contract:
        ``success`` is False for every expected business failure
        (validation, configuration, imbalance, closed period); ``error``
        then holds the message to show the user verbatim and
        ``error_code`` its machine-readable code.
    """

    success: bool
    event_id: UUID | None
    journal_entry_ids: tuple[UUID, ...] = ()
    error: str | None = None
    error_code: str | None = None
    skipped_companies: tuple[UUID, ...] = ()
    message: str | None = None

    @classmethod
    def ok(
        cls,
        event_id: UUID,
        journal_entry_ids: tuple[UUID, ...] = (),
        skipped_companies: tuple[UUID, ...] = (),
        message: str | None = None,
    ) -> EventProcessResult:
        return cls(
            success=True,
            event_id=event_id,
            journal_entry_ids=tuple(journal_entry_ids),
            skipped_companies=tuple(skipped_companies),
            message=message,
        )

    @classmethod
    def failed(
        cls,
        event_id: UUID | None,
        error: str,
        error_code: str,
        skipped_companies: tuple[UUID, ...] = (),
    ) -> EventProcessResult:
        return cls(
            success=False,
            event_id=event_id,
            error=error,
            error_code=error_code,
            skipped_companies=tuple(skipped_companies),
        )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EventSetting:
    """Effective settings for one (company, event type)."""

    is_enabled: bool = True
    auto_post: bool = False
    default_debit_account: str | None = None
    default_credit_account: str | None = None

    def override_for(self, side: LineSide) -> str | None:
        if side == LineSide.DEBIT:
            return self.default_debit_account
        return self.default_credit_account


@dataclass(frozen=True)
class EventSettingLookup:
    """
    Result of a settings lookup.

    Contract:
        ``configured`` is False when no row exists, which is distinct from a
        row that exists and disables the event.  ``effective`` always holds
        the values to apply (defaults when not configured).
    """

    company_id: UUID
    event_type: EventType
    configured: bool
    effective: EventSetting

    @classmethod
    def not_configured(cls, company_id: UUID, event_type: EventType) -> EventSettingLookup:
        return cls(company_id, event_type, False, EventSetting())

    @property
    def is_enabled(self) -> bool:
        return self.effective.is_enabled

    @property
    def auto_post(self) -> bool:
        return self.effective.auto_post


# ---------------------------------------------------------------------------
# Year-end close
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PreCloseCheck:
    company_id: UUID
    fiscal_year: int
    all_periods_closed: bool
    open_periods: tuple[str, ...]
    total_debits: Decimal
    total_credits: Decimal
    trial_balance_difference: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class YearEndCloseResult:
    success: bool
    company_id: UUID
    fiscal_year: int
    closing_entry_id: UUID | None = None
    net_income: Decimal = ZERO
    revenue_accounts_closed: int = 0
    expense_accounts_closed: int = 0
    periods_locked: int = 0
    error: str | None = None
    closed_at: datetime | None = None
