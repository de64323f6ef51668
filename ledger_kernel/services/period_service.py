"""
PeriodService -- monthly fiscal periods per company.

Responsibility:
    Creates the twelve monthly periods of a fiscal year, drives the
    OPEN -> CLOSED -> LOCKED lifecycle and tells the pipeline whether an
    entry date falls in a period that still accepts postings.

Architecture position:
    Kernel > Services.  Called by EventPipeline (posting-date check) and
    YearEndCloseService (close and lock the year).

Invariants enforced:
    - One period per (company, YYYY-MM).
    - Status only moves forward; the ORM listener in db/immutability.py
      enforces the same rule at flush.
    - Postings into a CLOSED or LOCKED period are refused.  A month with no
      period row accepts postings.

Failure modes:
    - PeriodNotFoundError, InvalidPeriodTransitionError, ClosedPeriodError.

Audit relevance:
    Close and lock are logged with company, period code and actor.
"""

import calendar
from datetime import date
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.domain.dtos import PeriodStatus
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    InvalidPeriodTransitionError,
    PeriodNotFoundError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")


def period_code(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


class PeriodService(BaseService):
    """
    Contract:
        Lifecycle methods flush within the caller's transaction and return
        the ORM row.

    Non-goals:
        - Reopening periods.  Corrections go into a later open period.
    """

    def __init__(self, session, clock=None):
        super().__init__(session, clock)
        register_immutability_listeners()

    # -- queries --------------------------------------------------------------

    def get_period(self, company_id: UUID, code: str) -> FiscalPeriod | None:
        return self.session.execute(
            select(FiscalPeriod).where(
                FiscalPeriod.company_id == company_id,
                FiscalPeriod.period_code == code,
            )
        ).scalar_one_or_none()

    def get_period_for_date(self, company_id: UUID, on: date) -> FiscalPeriod | None:
        return self.get_period(company_id, period_code(on.year, on.month))

    def get_periods_for_year(self, company_id: UUID, fiscal_year: int) -> list[FiscalPeriod]:
        return list(
            self.session.execute(
                select(FiscalPeriod)
                .where(
                    FiscalPeriod.company_id == company_id,
                    FiscalPeriod.fiscal_year == fiscal_year,
                )
                .order_by(FiscalPeriod.period_month)
            ).scalars()
        )

    def validate_posting_date(self, company_id: UUID, entry_date: date) -> None:
        """Raise ClosedPeriodError if the entry's month is closed or locked."""
        period = self.get_period_for_date(company_id, entry_date)
        if period is not None and period.status != PeriodStatus.OPEN.value:
            logger.warning(
                "posting_into_closed_period",
                extra={
                    "company_id": str(company_id),
                    "period_code": period.period_code,
                    "status": period.status,
                },
            )
            raise ClosedPeriodError(str(company_id), period.period_code, period.status)

    # -- lifecycle ------------------------------------------------------------

    def ensure_fiscal_year(
        self, company_id: UUID, fiscal_year: int, actor_id: UUID | None = None
    ) -> list[FiscalPeriod]:
        """Create any missing monthly periods of the year as OPEN."""
        existing = {p.period_month for p in self.get_periods_for_year(company_id, fiscal_year)}
        actor = actor_id or SYSTEM_ACTOR_ID
        created = 0
        for month in range(1, 13):
            if month in existing:
                continue
            last_day = calendar.monthrange(fiscal_year, month)[1]
            self.session.add(
                FiscalPeriod(
                    company_id=company_id,
                    fiscal_year=fiscal_year,
                    period_month=month,
                    period_code=period_code(fiscal_year, month),
                    start_date=date(fiscal_year, month, 1),
                    end_date=date(fiscal_year, month, last_day),
                    status=PeriodStatus.OPEN.value,
                    created_by_id=actor,
                )
            )
            created += 1
        if created:
            self.session.flush()
            logger.info(
                "fiscal_year_periods_created",
                extra={
                    "company_id": str(company_id),
                    "fiscal_year": fiscal_year,
                    "created_count": created,
                },
            )
        return self.get_periods_for_year(company_id, fiscal_year)

    def _require(self, company_id: UUID, code: str) -> FiscalPeriod:
        period = self.get_period(company_id, code)
        if period is None:
            raise PeriodNotFoundError(str(company_id), code)
        return period

    def close_period(
        self, company_id: UUID, code: str, actor_id: UUID | None = None
    ) -> FiscalPeriod:
        period = self._require(company_id, code)
        if period.status != PeriodStatus.OPEN.value:
            raise InvalidPeriodTransitionError(code, period.status, PeriodStatus.CLOSED.value)
        actor = actor_id or SYSTEM_ACTOR_ID
        period.status = PeriodStatus.CLOSED.value
        period.closed_at = self.clock.now()
        period.closed_by_id = actor
        period.updated_by_id = actor
        self.session.flush()
        logger.info(
            "period_closed",
            extra={"company_id": str(company_id), "period_code": code, "actor_id": str(actor)},
        )
        return period

    def lock_period(
        self, company_id: UUID, code: str, actor_id: UUID | None = None
    ) -> FiscalPeriod:
        period = self._require(company_id, code)
        if period.status != PeriodStatus.CLOSED.value:
            raise InvalidPeriodTransitionError(code, period.status, PeriodStatus.LOCKED.value)
        actor = actor_id or SYSTEM_ACTOR_ID
        period.status = PeriodStatus.LOCKED.value
        period.updated_by_id = actor
        self.session.flush()
        logger.info(
            "period_locked",
            extra={"company_id": str(company_id), "period_code": code, "actor_id": str(actor)},
        )
        return period

    def close_and_lock_year(
        self, company_id: UUID, fiscal_year: int, actor_id: UUID | None = None
    ) -> int:
        """Bring all twelve periods to LOCKED.  Returns how many were locked now."""
        locked = 0
        for period in self.ensure_fiscal_year(company_id, fiscal_year, actor_id):
            if period.status == PeriodStatus.OPEN.value:
                self.close_period(company_id, period.period_code, actor_id)
            if period.status == PeriodStatus.CLOSED.value:
                self.lock_period(company_id, period.period_code, actor_id)
                locked += 1
        return locked
