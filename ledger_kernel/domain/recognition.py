"""
Revenue recognition rules.

Responsibility:
    The date rule that decides whether revenue from a receipt line is
    recognised immediately, deferred until the service window ends, or held
    for review because the window is unknown.  Shared by record creation and
    by ``update_service_dates`` so both apply the same rule.

Architecture position:
    Kernel > Domain.  Pure functions, zero I/O.  "Today" is always passed in.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class RecognitionStatus(str, Enum):
    PENDING = "pending"
    NEEDS_REVIEW = "needs_review"
    RECOGNIZED = "recognized"
    MANUAL_RECOGNIZED = "manual_recognized"

    @property
    def is_terminal(self) -> bool:
        return self in (RecognitionStatus.RECOGNIZED, RecognitionStatus.MANUAL_RECOGNIZED)

    @property
    def is_deferred(self) -> bool:
        return not self.is_terminal


class RecognitionTrigger(str, Enum):
    AUTOMATIC = "automatic"
    MANUAL = "manual"
    IMMEDIATE = "immediate"


@dataclass(frozen=True)
class RecognitionDecision:
    status: RecognitionStatus
    recognition_date: date | None = None
    trigger: RecognitionTrigger | None = None


def classify(charter_date_to: date | None, today: date) -> RecognitionDecision:
    """
    Initial status for a record with the given service end date.

    - end date on or before today: recognized today, automatic
    - end date in the future: pending
    - no end date: needs_review
    """
    if charter_date_to is None:
        return RecognitionDecision(RecognitionStatus.NEEDS_REVIEW)
    if charter_date_to <= today:
        return RecognitionDecision(
            RecognitionStatus.RECOGNIZED, today, RecognitionTrigger.AUTOMATIC
        )
    return RecognitionDecision(RecognitionStatus.PENDING)


def receipt_recognition_status(
    charter_dates_to: list[date | None], today: date
) -> RecognitionStatus:
    """
    Status to stamp on a receipt payload before it is posted.

    Any line still awaiting delivery (or missing dates) defers the whole
    receipt's revenue lines; VAT is never deferred.
    """
    if not charter_dates_to:
        return RecognitionStatus.NEEDS_REVIEW
    statuses = {classify(d, today).status for d in charter_dates_to}
    if RecognitionStatus.NEEDS_REVIEW in statuses:
        return RecognitionStatus.NEEDS_REVIEW
    if RecognitionStatus.PENDING in statuses:
        return RecognitionStatus.PENDING
    return RecognitionStatus.RECOGNIZED


@dataclass(frozen=True)
class DeferredRevenueInput:
    """
    Input for one revenue recognition record.

    ``revenue_account`` defaults to the charter type's revenue account and
    ``deferred_revenue_account`` to the deferred revenue role.
    """

    company_id: UUID
    amount: Decimal
    charter_date_from: date | None = None
    charter_date_to: date | None = None
    charter_type: str | None = None
    project_id: UUID | None = None
    receipt_id: str | None = None
    receipt_line_id: str | None = None
    booking_id: str | None = None
    client_name: str | None = None
    description: str | None = None
    currency: str = "THB"
    revenue_account: str | None = None
    deferred_revenue_account: str | None = None


@dataclass(frozen=True)
class ProjectInfo:
    """What recognition needs to know about a project for management fees."""

    project_id: UUID
    name: str
    company_id: UUID
    management_fee_percentage: Decimal | None = None


@dataclass(frozen=True)
class DeferredRevenueSummary:
    pending_count: int
    pending_amount: Decimal
    needs_review_count: int
    needs_review_amount: Decimal

    @property
    def total_deferred(self) -> Decimal:
        return self.pending_amount + self.needs_review_amount
