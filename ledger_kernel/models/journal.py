"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and their lines, the
    financial record every report is derived from.
Architecture position: Kernel > Models.  May import from db/ and domain/ only.

Invariants enforced:
    - Balance: total_debit equals total_credit within 0.01 (checked by
      JournalWriter before INSERT; stored totals allow read-side checks).
    - Reference numbers are unique per company (JE-YYYY-NNNN).
    - Line amounts are strictly positive (CHECK constraint).
    - Posted entries and their lines are immutable (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate (company_id, reference_number).
    - ImmutabilityViolationError on UPDATE/DELETE of a posted entry or line.

Audit relevance:
    Lines belong exclusively to one entry.  source_event_id and the
    event_journal_entries link tie every entry back to its business event.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.db.types import BALANCE_TOLERANCE, ZERO
from ledger_kernel.domain.dtos import EntryStatus, LineSide


class JournalEntry(TrackedBase):
    """
    A draft or posted double-entry record for exactly one company.

    Contract:
        Created by JournalWriter only.  Draft entries may be posted once;
        posted entries never change.

    Guarantees:
        - lines are loaded eagerly (selectin) in line_order.
        - is_auto_generated is True for every entry produced from an event
          or by year-end close.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("company_id", "reference_number", name="uq_journal_entry_reference"),
        Index("idx_journal_entry_company_date", "company_id", "entry_date"),
        Index("idx_journal_entry_source", "source_document_type", "source_document_id"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    reference_number: Mapped[str] = mapped_column(String(20), nullable=False)

    entry_date: Mapped[date] = mapped_column(Date, nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EntryStatus.DRAFT.value,
    )

    total_debit: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    total_credit: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    is_auto_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    source_document_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_document_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    source_event_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_events.id"),
        nullable=True,
    )

    posted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_order",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.reference_number} status={self.status}>"

    @property
    def is_posted(self) -> bool:
        return self.status == EntryStatus.POSTED

    @property
    def is_balanced(self) -> bool:
        return abs(self.total_debit - self.total_credit) <= BALANCE_TOLERANCE


class JournalLine(Base):
    """
    One posting against one account code.

    Guarantees:
        - amount > 0; the direction lives in ``side``.
        - line_order is the position within the entry, starting at 1.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_journal_line_amount_positive"),
        CheckConstraint("side IN ('debit', 'credit')", name="ck_journal_line_side"),
        Index("idx_journal_line_entry", "journal_entry_id"),
        Index("idx_journal_line_account", "account_code"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_code: Mapped[str] = mapped_column(String(20), nullable=False)

    side: Mapped[str] = mapped_column(String(10), nullable=False)

    amount: Mapped[Decimal] = mapped_column(nullable=False)

    description: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    line_order: Mapped[int] = mapped_column(Integer, nullable=False)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.side} {self.account_code} {self.amount}>"

    @property
    def is_debit(self) -> bool:
        return self.side == LineSide.DEBIT
