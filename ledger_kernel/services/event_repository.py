"""
EventRepository -- the only write path for accounting events.

Responsibility:
    Creates events with a normalized payload and its hash, and moves them
    through their lifecycle.  There is deliberately no general update
    method: after INSERT only status, error, retry_count and processed_at
    change, and only through the transition methods below.

Architecture position:
    Kernel > Services.  Used by EventPipeline.

Invariants enforced:
    - Write-once payload.  The stored payload is the JSON-normalized form
      and payload_hash is computed from it once.  The ORM guard in
      models/event.py re-checks both at every flush.
    - Status moves only along EVENT_STATUS_TRANSITIONS; anything else
      raises InvalidEventTransitionError before touching the row.
    - error is set iff status == failed.

Failure modes:
    - EventNotFoundError for an unknown id.
    - InvalidEventTransitionError for an illegal status change.
    - MissingAffectedCompaniesError / UnknownEventTypeError on create.
"""

from datetime import date
from typing import Any, Sequence
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.domain.dtos import EventStatus, is_valid_event_transition
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.exceptions import (
    EventNotFoundError,
    InvalidEventTransitionError,
    MissingAffectedCompaniesError,
    UnknownEventTypeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.event import AccountingEvent, EventJournalEntry
from ledger_kernel.services.base import BaseService
from ledger_kernel.utils.hashing import hash_payload, normalize_payload

logger = get_logger("services.event_repository")


class EventRepository(BaseService):
    """
    Contract:
        ``create`` inserts a pending event; ``mark_*``/``cancel``/
        ``reset_for_retry`` are the only mutators.

    Guarantees:
        - Flush-only.
        - retry_count increments on every transition into failed.
    """

    def create(
        self,
        event_type: EventType | str,
        event_date: date,
        companies: Sequence[UUID],
        payload: dict[str, Any],
        source_document_type: str | None = None,
        source_document_id: str | None = None,
        actor_id: UUID | None = None,
    ) -> AccountingEvent:
        parsed = EventType.parse(event_type)
        if parsed is None:
            raise UnknownEventTypeError(str(event_type))
        if not companies:
            raise MissingAffectedCompaniesError(parsed.value)

        stored_payload = normalize_payload(dict(payload or {}))
        now = self.clock.now()
        actor = actor_id or SYSTEM_ACTOR_ID
        event = AccountingEvent(
            event_type=parsed.value,
            event_date=event_date,
            affected_companies=[str(c) for c in companies],
            payload=stored_payload,
            payload_hash=hash_payload(stored_payload),
            status=EventStatus.PENDING.value,
            retry_count=0,
            source_document_type=source_document_type,
            source_document_id=source_document_id,
            created_at=now,
            created_by_id=actor,
        )
        self.session.add(event)
        self.session.flush()

        logger.info(
            "event_created",
            extra={
                "event_id": str(event.id),
                "event_type": parsed.value,
                "event_date": event_date.isoformat(),
                "company_count": len(companies),
                "payload_hash": event.payload_hash,
            },
        )
        return event

    def get(self, event_id: UUID) -> AccountingEvent:
        event = self.session.get(AccountingEvent, event_id)
        if event is None:
            raise EventNotFoundError(str(event_id))
        return event

    # -- lifecycle ------------------------------------------------------------

    def _transition(
        self,
        event: AccountingEvent,
        to_status: EventStatus,
        actor_id: UUID | None = None,
    ) -> None:
        from_status = event.status
        if not is_valid_event_transition(from_status, to_status.value):
            raise InvalidEventTransitionError(str(event.id), from_status, to_status.value)
        event.status = to_status.value
        event.updated_at = self.clock.now()
        event.updated_by_id = actor_id or SYSTEM_ACTOR_ID

    def mark_processed(self, event: AccountingEvent, actor_id: UUID | None = None) -> None:
        self._transition(event, EventStatus.PROCESSED, actor_id)
        event.error = None
        event.processed_at = self.clock.now()
        self.session.flush()

    def mark_failed(
        self, event: AccountingEvent, error: str, actor_id: UUID | None = None
    ) -> None:
        self._transition(event, EventStatus.FAILED, actor_id)
        event.error = error
        event.retry_count = (event.retry_count or 0) + 1
        self.session.flush()

    def reset_for_retry(self, event: AccountingEvent, actor_id: UUID | None = None) -> None:
        """failed -> pending.  The error is cleared; retry_count is kept."""
        self._transition(event, EventStatus.PENDING, actor_id)
        event.error = None
        self.session.flush()

    def cancel(self, event: AccountingEvent, actor_id: UUID | None = None) -> None:
        previous = event.status
        self._transition(event, EventStatus.CANCELLED, actor_id)
        event.error = None
        self.session.flush()
        logger.info(
            "event_cancelled",
            extra={"event_id": str(event.id), "previous_status": previous},
        )

    # -- links and lookups ----------------------------------------------------

    def link_journal_entry(
        self,
        event_id: UUID,
        journal_entry_id: UUID,
        company_id: UUID,
        position: int = 0,
    ) -> None:
        self.session.add(
            EventJournalEntry(
                event_id=event_id,
                journal_entry_id=journal_entry_id,
                company_id=company_id,
                position=position,
            )
        )

    def linked_entry_ids(self, event_id: UUID) -> list[UUID]:
        return list(
            self.session.execute(
                select(EventJournalEntry.journal_entry_id)
                .where(EventJournalEntry.event_id == event_id)
                .order_by(EventJournalEntry.position)
            ).scalars()
        )

    def find_by_source(
        self,
        event_type: EventType | str,
        source_document_type: str,
        source_document_id: str,
        include_cancelled: bool = False,
    ) -> list[AccountingEvent]:
        event_type_value = event_type.value if isinstance(event_type, EventType) else event_type
        stmt = select(AccountingEvent).where(
            AccountingEvent.event_type == event_type_value,
            AccountingEvent.source_document_type == source_document_type,
            AccountingEvent.source_document_id == source_document_id,
        )
        if not include_cancelled:
            stmt = stmt.where(AccountingEvent.status != EventStatus.CANCELLED.value)
        return list(self.session.execute(stmt.order_by(AccountingEvent.created_at)).scalars())

    def list_by_status(self, status: EventStatus) -> list[AccountingEvent]:
        return list(
            self.session.execute(
                select(AccountingEvent)
                .where(AccountingEvent.status == status.value)
                .order_by(AccountingEvent.created_at)
            ).scalars()
        )
