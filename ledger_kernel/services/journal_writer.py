"""
JournalWriter -- persists balanced journal specs as journal entries.

Responsibility:
    Turns a resolved, balanced JournalSpec into a JournalEntry with its
    lines and a reference number, as a draft or directly posted.  Also
    performs the single allowed status change, draft -> posted.

Architecture position:
    Kernel > Services.  Called by EventPipeline (inside its savepoint) and
    by YearEndCloseService.

Invariants enforced:
    - Balance: a spec outside the tolerance is refused with
      UnbalancedJournalError before any row is added.
    - Every line has an account code and a positive amount.
    - Reference numbers come from SequenceService, per company and year.
    - Posted entries are immutable (db/immutability.py listeners).

Failure modes:
    - UnbalancedJournalError, AccountResolutionError (unresolved line).
    - JournalEntryNotFoundError / EntryAlreadyPostedError from post_entry.

Audit relevance:
    Each written entry is logged with its reference, company, totals and
    source event.
"""

from uuid import UUID

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.db.immutability import register_immutability_listeners
from ledger_kernel.db.types import BALANCE_TOLERANCE
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import EntryStatus, JournalSpec
from ledger_kernel.exceptions import (
    AccountResolutionError,
    EntryAlreadyPostedError,
    JournalEntryNotFoundError,
    UnbalancedJournalError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.sequence_service import SequenceService

logger = get_logger("services.journal_writer")


class JournalWriter(BaseService):
    """
    Contract:
        ``write`` adds one entry per call and flushes; the caller owns the
        transaction (the pipeline wraps all of an event's writes in one
        savepoint).

    Guarantees:
        - is_auto_generated is True for everything written here.
        - total_debit/total_credit are stored from the spec totals.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        tolerance=BALANCE_TOLERANCE,
    ):
        super().__init__(session, clock)
        self.tolerance = tolerance
        self.sequences = SequenceService(session)
        register_immutability_listeners()

    def write(
        self,
        spec: JournalSpec,
        *,
        auto_post: bool = False,
        source_event_id: UUID | None = None,
        source_document_type: str | None = None,
        source_document_id: str | None = None,
        actor_id: UUID | None = None,
    ) -> JournalEntry:
        if not spec.is_balanced(self.tolerance):
            raise UnbalancedJournalError(
                str(spec.company_id), str(spec.total_debit), str(spec.total_credit)
            )
        if spec.unresolved_lines:
            line = spec.unresolved_lines[0]
            raise AccountResolutionError(
                company_id=str(spec.company_id),
                event_type=source_document_type or "journal",
                side=line.side.value,
                line_description=line.description or None,
            )

        actor = actor_id or SYSTEM_ACTOR_ID
        now = self.clock.now()
        reference = self.sequences.next_reference(spec.company_id, spec.entry_date.year)
        entry = JournalEntry(
            company_id=spec.company_id,
            reference_number=reference,
            entry_date=spec.entry_date,
            description=spec.description[:500],
            status=EntryStatus.POSTED.value if auto_post else EntryStatus.DRAFT.value,
            total_debit=spec.total_debit,
            total_credit=spec.total_credit,
            is_auto_generated=True,
            source_document_type=source_document_type,
            source_document_id=source_document_id,
            source_event_id=source_event_id,
            posted_at=now if auto_post else None,
            created_at=now,
            created_by_id=actor,
        )
        entry.lines = [
            JournalLine(
                account_code=line.account_code,
                side=line.side.value,
                amount=line.amount,
                description=line.description[:500],
                line_order=position,
            )
            for position, line in enumerate(spec.lines, start=1)
        ]
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "journal_entry_written",
            extra={
                "entry_id": str(entry.id),
                "reference_number": reference,
                "company_id": str(spec.company_id),
                "status": entry.status,
                "total_debit": str(spec.total_debit),
                "total_credit": str(spec.total_credit),
                "line_count": len(spec.lines),
                "source_event_id": str(source_event_id) if source_event_id else None,
            },
        )
        return entry

    def get_entry(self, entry_id: UUID) -> JournalEntry:
        entry = self.session.get(JournalEntry, entry_id)
        if entry is None:
            raise JournalEntryNotFoundError(str(entry_id))
        return entry

    def post_entry(self, entry_id: UUID, actor_id: UUID | None = None) -> JournalEntry:
        """Approve a draft entry.  Posting twice raises EntryAlreadyPostedError."""
        entry = self.get_entry(entry_id)
        if entry.is_posted:
            raise EntryAlreadyPostedError(str(entry.id), entry.reference_number)
        now = self.clock.now()
        entry.status = EntryStatus.POSTED.value
        entry.posted_at = now
        entry.updated_at = now
        entry.updated_by_id = actor_id or SYSTEM_ACTOR_ID
        self.session.flush()
        logger.info(
            "journal_entry_posted",
            extra={
                "entry_id": str(entry.id),
                "reference_number": entry.reference_number,
                "company_id": str(entry.company_id),
            },
        )
        return entry
