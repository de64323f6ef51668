"""
Module: ledger_kernel.models.fiscal_period
Responsibility: ORM persistence for monthly fiscal periods per company, which
    control whether a month still accepts postings.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - One period per (company_id, period_code), period_code "YYYY-MM".
    - Status moves OPEN -> CLOSED -> LOCKED only (db/immutability.py).
    - LOCKED periods are immutable.

Failure modes:
    - ClosedPeriodError raised upstream when posting into a closed or locked
      period.
    - ImmutabilityViolationError on modifying a locked period.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Date, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.domain.dtos import PeriodStatus


class FiscalPeriod(TrackedBase):
    """
    One calendar month of one company's books.

    Guarantees:
        - start_date is the first and end_date the last day of the month.
        - closed_at/closed_by_id are set when the period leaves OPEN.
    """

    __tablename__ = "fiscal_periods"

    __table_args__ = (
        UniqueConstraint("company_id", "period_code", name="uq_fiscal_period_company_code"),
        Index("idx_fiscal_period_company_year", "company_id", "fiscal_year"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    fiscal_year: Mapped[int] = mapped_column(Integer, nullable=False)

    period_month: Mapped[int] = mapped_column(Integer, nullable=False)

    # e.g. "2024-03"
    period_code: Mapped[str] = mapped_column(String(7), nullable=False)

    start_date: Mapped[date] = mapped_column(Date, nullable=False)

    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PeriodStatus.OPEN.value,
    )

    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<FiscalPeriod {self.company_id}:{self.period_code} {self.status}>"

    @property
    def is_closed(self) -> bool:
        """Closed or locked."""
        return self.status in (PeriodStatus.CLOSED, PeriodStatus.LOCKED)

    @property
    def is_locked(self) -> bool:
        return self.status == PeriodStatus.LOCKED

    def contains_date(self, check_date: date) -> bool:
        return self.start_date <= check_date <= self.end_date
