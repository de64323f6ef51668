"""
Module: ledger_kernel.models.revenue_recognition
Responsibility: ORM persistence for one revenue-bearing receipt line awaiting
    (or having completed) revenue recognition.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - status is one of pending, needs_review, recognized, manual_recognized.
    - recognition_date and recognition_trigger are set iff the record is
      recognized or manual_recognized.
    - Terminal records never change status (RevenueRecognitionService).

Audit relevance:
    recognition_event_id points at the PROJECT_SERVICE_COMPLETED event that
    moved the amount from deferred revenue to revenue.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.recognition import RecognitionStatus


class RevenueRecognition(TrackedBase):
    """Deferred-revenue tracking row for one receipt line."""

    __tablename__ = "revenue_recognitions"

    __table_args__ = (
        Index("idx_revenue_recognition_status", "status"),
        Index("idx_revenue_recognition_receipt", "receipt_id"),
        Index("idx_revenue_recognition_company", "company_id", "status"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    project_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    receipt_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    receipt_line_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    booking_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Service delivery window
    charter_date_from: Mapped[date | None] = mapped_column(Date, nullable=True)
    charter_date_to: Mapped[date | None] = mapped_column(Date, nullable=True)

    charter_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    client_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=RecognitionStatus.NEEDS_REVIEW.value,
    )

    amount: Mapped[Decimal] = mapped_column(nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="THB")

    deferred_revenue_account: Mapped[str] = mapped_column(String(20), nullable=False)
    revenue_account: Mapped[str] = mapped_column(String(20), nullable=False)

    recognition_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    recognition_trigger: Mapped[str | None] = mapped_column(String(20), nullable=True)
    recognized_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    recognition_event_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<RevenueRecognition {self.id} {self.status} {self.amount}>"

    @property
    def recognition_status(self) -> RecognitionStatus:
        return RecognitionStatus(self.status)
