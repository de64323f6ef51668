"""
EventHandler -- base class for the per-event-type journal generators.

Responsibility:
    Each accounting event type has exactly one handler.  A handler is a pure
    pair of operations:

        validate(payload)          -> ValidationResult
        generate_journals(event)   -> list[JournalSpec]

    Handlers never touch the store.  Balance enforcement, settings,
    default-account substitution and persistence are centralized in
    EventPipeline.

Architecture position:
    Kernel > Handlers.  May import from domain/ and db/types.py only.

Invariants enforced:
    - Deterministic: the same event always produces the same specs.
    - Validation cross-checks every total that feeds a single balancing
      line against its parts, so a payload that validates always yields
      balanced specs.

Failure modes:
    - validate() never raises for bad input; InvalidPayload raised by the
      helpers below is converted into a VALIDATION_FAILED result.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar
from uuid import UUID

from ledger_kernel.db.types import ZERO, parse_amount, within_tolerance
from ledger_kernel.domain.accounts import AccountDefaults, AccountRole
from ledger_kernel.domain.dtos import (
    EventRecord,
    JournalLineSpec,
    JournalSpec,
    ValidationResult,
)
from ledger_kernel.domain.event_types import EventType


class InvalidPayload(Exception):
    """Raised by payload helpers while validating; never leaves a handler."""

    def __init__(self, message: str, field: str | None = None):
        self.message = message
        self.field = field
        super().__init__(message)


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def text(payload: Mapping[str, Any], key: str) -> str | None:
    """Stripped string value, or None when absent or blank."""
    value = payload.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def require_text(payload: Mapping[str, Any], key: str, message: str | None = None) -> str:
    value = text(payload, key)
    if value is None:
        raise InvalidPayload(message or f"Missing {key}", key)
    return value


def amount(payload: Mapping[str, Any], key: str, default: Decimal = ZERO) -> Decimal:
    """Amount for journal generation (payload already validated)."""
    value = parse_amount(payload.get(key))
    return default if value is None else value


def require_positive(payload: Mapping[str, Any], key: str, message: str) -> Decimal:
    value = parse_amount(payload.get(key))
    if value is None or value <= ZERO:
        raise InvalidPayload(message, key)
    return value


def require_non_negative(
    payload: Mapping[str, Any], key: str, message: str, *, optional: bool = False
) -> Decimal:
    raw = payload.get(key)
    if raw is None and optional:
        return ZERO
    value = parse_amount(raw)
    if value is None or value < ZERO:
        raise InvalidPayload(message, key)
    return value


def require_items(payload: Mapping[str, Any], key: str, message: str) -> list[Mapping[str, Any]]:
    """Non-empty list of mappings."""
    value = payload.get(key)
    if (
        not isinstance(value, Sequence)
        or isinstance(value, (str, bytes))
        or len(value) == 0
    ):
        raise InvalidPayload(message, key)
    if not all(isinstance(item, Mapping) for item in value):
        raise InvalidPayload(message, key)
    return list(value)


def items(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    value = payload.get(key) or ()
    return [item for item in value if isinstance(item, Mapping)]


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def require_date(payload: Mapping[str, Any], key: str, message: str) -> date:
    value = parse_date(payload.get(key))
    if value is None:
        raise InvalidPayload(message, key)
    return value


def require_company(payload: Mapping[str, Any], key: str, message: str) -> UUID:
    value = text(payload, key)
    if value is None:
        raise InvalidPayload(message, key)
    try:
        return UUID(value)
    except ValueError:
        raise InvalidPayload(f"Invalid company id in {key}: {value}", key) from None


def company_id(payload: Mapping[str, Any], key: str) -> UUID:
    """Company UUID from a validated payload."""
    return UUID(str(payload[key]).strip())


def require_distinct(first: UUID, second: UUID, message: str) -> None:
    if first == second:
        raise InvalidPayload(message)


def require_one_of(
    payload: Mapping[str, Any], key: str, allowed: Sequence[str], default: str
) -> str:
    value = text(payload, key) or default
    if value not in allowed:
        raise InvalidPayload(f"Invalid {key}: {value}", key)
    return value


def sum_amounts(rows: Sequence[Mapping[str, Any]], key: str) -> Decimal:
    return sum((amount(row, key) for row in rows), ZERO)


# ---------------------------------------------------------------------------
# Handler base
# ---------------------------------------------------------------------------


class EventHandler(ABC):
    """
    Abstract base for event handlers.

    Contract:
        Subclasses set ``event_type`` and implement ``check`` (raise
        InvalidPayload on the first rule broken) and ``build`` (return
        journal specs for a validated event).

    Guarantees:
        - ``validate`` returns a ValidationResult and never raises for bad
          input.
        - ``generate_journals`` drops empty specs.

    Non-goals:
        - Settings, account substitution and balance checks; those belong to
          the pipeline.
    """

    event_type: ClassVar[EventType]
    multi_company: ClassVar[bool] = False

    def __init__(self, defaults: AccountDefaults):
        self.defaults = defaults
        self.tolerance = defaults.tolerance

    def account(self, role: AccountRole) -> str:
        return self.defaults.account(role)

    def validate(self, payload: Mapping[str, Any]) -> ValidationResult:
        if not isinstance(payload, Mapping):
            return ValidationResult.invalid("Event payload must be an object")
        try:
            self.check(payload)
        except InvalidPayload as exc:
            return ValidationResult.invalid(exc.message, exc.field)
        return ValidationResult.success()

    def generate_journals(self, event: EventRecord) -> list[JournalSpec]:
        return [spec for spec in self.build(event) if spec.lines]

    @abstractmethod
    def check(self, payload: Mapping[str, Any]) -> None:
        """Raise InvalidPayload if the payload breaks a business rule."""

    @abstractmethod
    def build(self, event: EventRecord) -> list[JournalSpec]:
        """Map a validated event onto journal specs."""

    # -- shared building blocks ---------------------------------------------

    def require_sum(self, expected: Decimal, actual: Decimal, message: str) -> None:
        if not within_tolerance(expected, actual, self.tolerance):
            raise InvalidPayload(message)

    @staticmethod
    def entry_date(event: EventRecord, key: str | None = None) -> date:
        """Date from the payload field when present, else the event date."""
        if key:
            value = parse_date(event.payload.get(key))
            if value is not None:
                return value
        return event.event_date

    @staticmethod
    def single_company(event: EventRecord) -> UUID:
        return event.affected_companies[0]

    @staticmethod
    def spec(
        company_id: UUID,
        entry_date: date,
        description: str,
        lines: Sequence[JournalLineSpec],
    ) -> JournalSpec:
        return JournalSpec(company_id, entry_date, description, tuple(lines))
