"""
YearEndCloseService -- closes a company's fiscal year.

Responsibility:
    Computes the year's revenue and expense balances from posted journal
    lines, writes one closing entry that zeroes them into retained
    earnings, and then closes and locks the year's twelve periods.

Architecture position:
    Kernel > Services.  Reads through JournalSelector and
    ChartOfAccountsSelector; writes through JournalWriter and
    PeriodService.  Flush-only: the caller commits.

Invariants enforced:
    - At most one closing entry per (company, fiscal year).
    - The closing entry is balanced and posted directly.
    - Balances under one minor unit are left alone.
    - The closing entry is written before the periods are locked, so it
      lands in an open December.

Failure modes:
    - YearAlreadyClosedError when a closing entry already exists.
    - ClosedPeriodError if December is already closed or locked.
    - A year with nothing to close returns YearEndCloseResult(success=False).

Audit relevance:
    The closing entry references the fiscal year through
    source_document_type="year_end_close" / source_document_id="<year>".
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO, round_money
from ledger_kernel.domain.accounts import AccountDefaults, AccountRole, AccountType
from ledger_kernel.domain.dtos import (
    JournalLineSpec,
    JournalSpec,
    PeriodStatus,
    PreCloseCheck,
    YearEndCloseResult,
)
from ledger_kernel.exceptions import YearAlreadyClosedError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.selectors.chart_of_accounts import ChartOfAccountsSelector
from ledger_kernel.selectors.journal_selector import JournalSelector
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService, period_code

logger = get_logger("services.year_end_close")

YEAR_END_SOURCE_TYPE = "year_end_close"


class YearEndCloseService(BaseService):
    """
    Contract:
        ``execute_year_end_close`` either raises before writing anything or
        returns a result describing what was written.
    """

    def __init__(self, session, defaults: AccountDefaults, clock=None):
        super().__init__(session, clock)
        self.defaults = defaults
        self.journals = JournalSelector(session)
        self.chart = ChartOfAccountsSelector(session)
        self.writer = JournalWriter(session, self.clock, defaults.tolerance)
        self.periods = PeriodService(session, self.clock)

    def run_pre_close_checks(self, company_id: UUID, fiscal_year: int) -> PreCloseCheck:
        """
        Report open periods and the trial balance for the year.

        All twelve months are checked.  A month without a period row still
        accepts postings, so it is reported as open.
        """
        statuses = {
            p.period_code: p.status
            for p in self.periods.get_periods_for_year(company_id, fiscal_year)
        }
        open_periods = tuple(
            code
            for code in (period_code(fiscal_year, month) for month in range(1, 13))
            if statuses.get(code, PeriodStatus.OPEN.value) == PeriodStatus.OPEN.value
        )
        debits, credits = self.journals.totals_for_year(company_id, fiscal_year)
        difference = abs(debits - credits)
        return PreCloseCheck(
            company_id=company_id,
            fiscal_year=fiscal_year,
            all_periods_closed=not open_periods,
            open_periods=open_periods,
            total_debits=debits,
            total_credits=credits,
            trial_balance_difference=difference,
            is_balanced=difference < BALANCE_TOLERANCE,
        )

    def _closing_lines(
        self, company_id: UUID, fiscal_year: int
    ) -> tuple[list[JournalLineSpec], Decimal, int, int]:
        accounts = self.chart.income_statement_accounts()
        totals = self.journals.account_totals_for_year(
            company_id, fiscal_year, exclude_source_document_type=YEAR_END_SOURCE_TYPE
        )

        lines: list[JournalLineSpec] = []
        net_income = ZERO
        revenue_closed = expense_closed = 0
        for code, total in totals.items():
            info = accounts.get(code)
            if info is None:
                continue
            balance = total.net_debit
            if abs(balance) < BALANCE_TOLERANCE:
                continue
            description = f"Close {info.name} for FY{fiscal_year}"
            amount = round_money(abs(balance))
            # Zero the balance with the opposite side, whatever its sign.
            if balance > ZERO:
                lines.append(JournalLineSpec.credit(code, amount, description))
            else:
                lines.append(JournalLineSpec.debit(code, amount, description))
            net_income -= balance
            if info.account_type == AccountType.REVENUE:
                revenue_closed += 1
            else:
                expense_closed += 1
        return lines, round_money(net_income), revenue_closed, expense_closed

    def execute_year_end_close(
        self,
        company_id: UUID,
        fiscal_year: int,
        actor_id: UUID | None = None,
    ) -> YearEndCloseResult:
        existing = self.journals.find_year_end_close(
            company_id, fiscal_year, YEAR_END_SOURCE_TYPE
        )
        if existing is not None:
            raise YearAlreadyClosedError(str(company_id), fiscal_year, str(existing))

        lines, net_income, revenue_closed, expense_closed = self._closing_lines(
            company_id, fiscal_year
        )
        if not lines:
            logger.info(
                "year_end_close_nothing_to_close",
                extra={"company_id": str(company_id), "fiscal_year": fiscal_year},
            )
            return YearEndCloseResult(
                success=False,
                company_id=company_id,
                fiscal_year=fiscal_year,
                error=f"No revenue or expense balances to close for FY{fiscal_year}",
            )

        retained = self.defaults.account(AccountRole.RETAINED_EARNINGS)
        transfer = f"Net income transfer to Retained Earnings for FY{fiscal_year}"
        if net_income > ZERO:
            lines.append(JournalLineSpec.credit(retained, net_income, transfer))
        elif net_income < ZERO:
            lines.append(JournalLineSpec.debit(retained, -net_income, transfer))

        closing_date = date(fiscal_year, 12, 31)
        actor = actor_id or SYSTEM_ACTOR_ID
        self.periods.validate_posting_date(company_id, closing_date)
        entry = self.writer.write(
            JournalSpec(
                company_id=company_id,
                entry_date=closing_date,
                description=f"Year-End Closing Entry for FY{fiscal_year}",
                lines=tuple(lines),
            ),
            auto_post=True,
            source_document_type=YEAR_END_SOURCE_TYPE,
            source_document_id=str(fiscal_year),
            actor_id=actor,
        )
        locked = self.periods.close_and_lock_year(company_id, fiscal_year, actor)

        logger.info(
            "year_end_close_completed",
            extra={
                "company_id": str(company_id),
                "fiscal_year": fiscal_year,
                "entry_id": str(entry.id),
                "reference_number": entry.reference_number,
                "net_income": str(net_income),
                "revenue_accounts_closed": revenue_closed,
                "expense_accounts_closed": expense_closed,
                "periods_locked": locked,
            },
        )
        return YearEndCloseResult(
            success=True,
            company_id=company_id,
            fiscal_year=fiscal_year,
            closing_entry_id=entry.id,
            net_income=net_income,
            revenue_accounts_closed=revenue_closed,
            expense_accounts_closed=expense_closed,
            periods_locked=locked,
            closed_at=self.clock.now(),
        )
