"""
Module: ledger_kernel.models.event
Responsibility: ORM persistence for accounting events and for the links from
    an event to the journal entries it produced.
Architecture position: Kernel > Models.  May import from db/, domain/,
    utils/ and exceptions.py only.

Invariants enforced:
    - Append-only payload: event_type, event_date, affected_companies,
      payload, payload_hash, the source pointer and the creation audit fields
      are write-once (before_update listener).
    - Only status, error, retry_count and processed_at change, and status
      only along EVENT_STATUS_TRANSITIONS.
    - payload_hash must still match the stored payload at every flush.  A
      Session before_flush listener re-hashes every loaded event, which
      catches in-place mutation of the JSON document.
    - Events are never deleted (before_delete listener).
    - One link row per (event, journal entry).

Failure modes:
    - ImmutabilityViolationError at flush on any of the above.

Audit relevance:
    The event row plus its EventJournalEntry links are the trace from a
    business occurrence to every journal line it caused, and the input to
    cancellation and reversal tooling.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, Session, mapped_column
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.db.base import Base, TrackedBase, UUIDString
from ledger_kernel.domain.dtos import EventStatus, is_valid_event_transition
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.utils.hashing import hash_payload

logger = get_logger("models.event")

# Columns that may change after INSERT.
EVENT_MUTABLE_FIELDS = frozenset({
    "status",
    "error",
    "retry_count",
    "processed_at",
    "updated_at",
    "updated_by_id",
})


class AccountingEvent(TrackedBase):
    """
    Immutable record of something that happened in the business.

    Contract:
        Created once with status=pending.  Afterwards only the lifecycle
        columns move, through EventRepository.

    Guarantees:
        - affected_companies is a non-empty ordered list of company ids
          (stored as strings); order carries meaning for multi-company types.
        - payload is JSON-native (amounts as strings, dates as ISO strings).
        - error is set iff status == failed.
    """

    __tablename__ = "accounting_events"

    __table_args__ = (
        Index("idx_accounting_event_status", "status"),
        Index("idx_accounting_event_type_date", "event_type", "event_date"),
        Index(
            "idx_accounting_event_source",
            "event_type",
            "source_document_type",
            "source_document_id",
        ),
    )

    event_type: Mapped[str] = mapped_column(String(64), nullable=False)

    event_date: Mapped[date] = mapped_column(Date, nullable=False)

    affected_companies: Mapped[list] = mapped_column(JSON, nullable=False)

    payload: Mapped[dict] = mapped_column(JSON, nullable=False)

    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EventStatus.PENDING.value,
    )

    error: Mapped[str | None] = mapped_column(Text, nullable=True)

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Originating business document, e.g. ("expense", "<expense id>")
    source_document_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    source_document_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<AccountingEvent {self.event_type}:{self.id} {self.status}>"

    @property
    def company_ids(self) -> tuple[UUID, ...]:
        return tuple(UUID(str(c)) for c in self.affected_companies)


class EventJournalEntry(Base):
    """Link from an event to one journal entry it produced."""

    __tablename__ = "event_journal_entries"

    __table_args__ = (
        UniqueConstraint("event_id", "journal_entry_id", name="uq_event_journal_entry"),
        Index("idx_event_journal_entry_event", "event_id"),
    )

    event_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_events.id"),
        nullable=False,
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # Order in which the pipeline wrote the entries (affected company order)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<EventJournalEntry {self.event_id} -> {self.journal_entry_id}>"


# =============================================================================
# ORM-level write guard
# =============================================================================


def _violation(target: AccountingEvent, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AccountingEvent",
            "entity_id": str(target.id),
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type="AccountingEvent",
        entity_id=str(target.id),
        reason=reason,
    )


@event.listens_for(AccountingEvent, "before_update")
def guard_event_update(mapper, connection, target):
    """Reject writes outside the event lifecycle columns.

    Preconditions: Called by SQLAlchemy before an UPDATE flush.
    Raises: ImmutabilityViolationError on a write-once column change, an
        illegal status transition, or a payload that no longer matches its
        hash.
    """
    state = inspect(target)
    changed = sorted(
        attr.key
        for attr in state.attrs
        if attr.key not in EVENT_MUTABLE_FIELDS and attr.history.has_changes()
    )
    if changed:
        raise _violation(target, f"Write-once fields modified: {', '.join(changed)}")

    status_hist = get_history(target, "status")
    if status_hist.added and status_hist.deleted:
        from_status = status_hist.deleted[0]
        to_status = status_hist.added[0]
        if from_status != to_status and not is_valid_event_transition(from_status, to_status):
            raise _violation(
                target, f"Illegal status transition {from_status} -> {to_status}"
            )

    if hash_payload(target.payload) != target.payload_hash:
        raise _violation(target, "Payload no longer matches payload_hash")


@event.listens_for(AccountingEvent, "before_delete")
def guard_event_delete(mapper, connection, target):
    """Events are append-only; cancellation is a status change."""
    raise _violation(target, "Accounting events cannot be deleted")


@event.listens_for(Session, "before_flush")
def guard_event_payloads(session, flush_context, instances):
    """Re-hash the payload of every loaded event before each flush.

    A plain JSON column does not notice in-place edits of the document, so
    the row never reaches before_update.  Checking the identity map refuses
    the edit at the first flush after it happens.
    """
    for obj in list(session.identity_map.values()):
        if isinstance(obj, AccountingEvent) and obj.payload_hash is not None:
            if hash_payload(obj.payload) != obj.payload_hash:
                raise _violation(obj, "Payload no longer matches payload_hash")
