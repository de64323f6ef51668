"""
Module: ledger_kernel.selectors.journal_selector
Responsibility: Read-only access to journal entries, their lines and the
    per-account totals that year-end close works from.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Lines are returned in line_order.

Failure modes:
    - Returns None or empty collections when nothing matches.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.dtos import EntryStatus, LineSide
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class JournalLineDTO:
    account_code: str
    side: LineSide
    amount: Decimal
    description: str
    line_order: int


@dataclass(frozen=True)
class JournalEntryDTO:
    id: UUID
    company_id: UUID
    reference_number: str
    entry_date: date
    description: str
    status: EntryStatus
    total_debit: Decimal
    total_credit: Decimal
    source_event_id: UUID | None
    source_document_type: str | None
    source_document_id: str | None
    lines: tuple[JournalLineDTO, ...]

    @property
    def is_balanced(self) -> bool:
        debits = sum((l.amount for l in self.lines if l.side == LineSide.DEBIT), ZERO)
        credits = sum((l.amount for l in self.lines if l.side == LineSide.CREDIT), ZERO)
        return abs(debits - credits) <= Decimal("0.01")


@dataclass(frozen=True)
class AccountTotals:
    account_code: str
    debits: Decimal
    credits: Decimal

    @property
    def net_debit(self) -> Decimal:
        """debits - credits; negative for a credit balance."""
        return self.debits - self.credits


def _to_dto(entry: JournalEntry) -> JournalEntryDTO:
    return JournalEntryDTO(
        id=entry.id,
        company_id=entry.company_id,
        reference_number=entry.reference_number,
        entry_date=entry.entry_date,
        description=entry.description,
        status=EntryStatus(entry.status),
        total_debit=entry.total_debit,
        total_credit=entry.total_credit,
        source_event_id=entry.source_event_id,
        source_document_type=entry.source_document_type,
        source_document_id=entry.source_document_id,
        lines=tuple(
            JournalLineDTO(
                account_code=line.account_code,
                side=LineSide(line.side),
                amount=line.amount,
                description=line.description,
                line_order=line.line_order,
            )
            for line in sorted(entry.lines, key=lambda l: l.line_order)
        ),
    )


def _year_bounds(fiscal_year: int) -> tuple[date, date]:
    return date(fiscal_year, 1, 1), date(fiscal_year, 12, 31)


class JournalSelector(BaseSelector):
    """
    Guarantees:
        - Year queries cover the calendar year and, unless told otherwise,
          posted entries only.
    """

    def get_entry(self, entry_id: UUID) -> JournalEntryDTO | None:
        entry = self.session.get(JournalEntry, entry_id)
        return _to_dto(entry) if entry is not None else None

    def get_entries(self, entry_ids: list[UUID]) -> list[JournalEntryDTO]:
        if not entry_ids:
            return []
        rows = {
            e.id: e
            for e in self.session.execute(
                select(JournalEntry).where(JournalEntry.id.in_(entry_ids))
            ).scalars()
        }
        return [_to_dto(rows[i]) for i in entry_ids if i in rows]

    def entries_for_event(self, event_id: UUID) -> list[JournalEntryDTO]:
        rows = self.session.execute(
            select(JournalEntry)
            .where(JournalEntry.source_event_id == event_id)
            .order_by(JournalEntry.reference_number)
        ).scalars()
        return [_to_dto(e) for e in rows]

    def entries_for_company(
        self,
        company_id: UUID,
        start: date | None = None,
        end: date | None = None,
        status: EntryStatus | None = None,
    ) -> list[JournalEntryDTO]:
        stmt = select(JournalEntry).where(JournalEntry.company_id == company_id)
        if start is not None:
            stmt = stmt.where(JournalEntry.entry_date >= start)
        if end is not None:
            stmt = stmt.where(JournalEntry.entry_date <= end)
        if status is not None:
            stmt = stmt.where(JournalEntry.status == status.value)
        rows = self.session.execute(
            stmt.order_by(JournalEntry.entry_date, JournalEntry.reference_number)
        ).scalars()
        return [_to_dto(e) for e in rows]

    def count_entries(self, company_id: UUID | None = None) -> int:
        stmt = select(func.count(JournalEntry.id))
        if company_id is not None:
            stmt = stmt.where(JournalEntry.company_id == company_id)
        return self.session.execute(stmt).scalar_one()

    def account_totals_for_year(
        self,
        company_id: UUID,
        fiscal_year: int,
        posted_only: bool = True,
        exclude_source_document_type: str | None = None,
    ) -> dict[str, AccountTotals]:
        """Debit and credit totals per account code for the calendar year."""
        start, end = _year_bounds(fiscal_year)
        stmt = (
            select(JournalLine.account_code, JournalLine.side, JournalLine.amount)
            .join(JournalEntry, JournalLine.journal_entry_id == JournalEntry.id)
            .where(
                JournalEntry.company_id == company_id,
                JournalEntry.entry_date >= start,
                JournalEntry.entry_date <= end,
            )
        )
        if posted_only:
            stmt = stmt.where(JournalEntry.status == EntryStatus.POSTED.value)
        if exclude_source_document_type is not None:
            stmt = stmt.where(
                (JournalEntry.source_document_type.is_(None))
                | (JournalEntry.source_document_type != exclude_source_document_type)
            )

        debits: dict[str, Decimal] = {}
        credits: dict[str, Decimal] = {}
        for code, side, amount in self.session.execute(stmt):
            bucket = debits if side == LineSide.DEBIT.value else credits
            bucket[code] = bucket.get(code, ZERO) + Decimal(str(amount))

        return {
            code: AccountTotals(code, debits.get(code, ZERO), credits.get(code, ZERO))
            for code in sorted(set(debits) | set(credits))
        }

    def totals_for_year(
        self, company_id: UUID, fiscal_year: int
    ) -> tuple[Decimal, Decimal]:
        """(total debits, total credits) of posted entries in the year."""
        totals = self.account_totals_for_year(company_id, fiscal_year)
        return (
            sum((t.debits for t in totals.values()), ZERO),
            sum((t.credits for t in totals.values()), ZERO),
        )

    def find_year_end_close(
        self, company_id: UUID, fiscal_year: int, source_document_type: str
    ) -> UUID | None:
        return self.session.execute(
            select(JournalEntry.id).where(
                JournalEntry.company_id == company_id,
                JournalEntry.source_document_type == source_document_type,
                JournalEntry.source_document_id == str(fiscal_year),
            )
        ).scalars().first()
