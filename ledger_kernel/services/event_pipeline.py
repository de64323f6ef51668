"""
EventPipeline -- turns accounting events into balanced journal entries.

Responsibility:
    Orchestrates one event from persistence to journals:

        persist event (pending)
          -> handler.validate(payload)
          -> settings per affected company (disabled companies are skipped)
          -> handler.generate_journals(event)
          -> default-account substitution (AccountResolver)
          -> balance check per spec, posting-date check
          -> write every entry and link row inside one savepoint
          -> event processed

Architecture position:
    Kernel > Services.  The single entrypoint callers use to record
    business occurrences.  Handlers stay pure; everything with state lives
    here or in the services it composes.

Invariants enforced:
    - All-or-nothing: every spec is resolved and balance-checked in memory
      before the first row is written, and the writes share one savepoint.
      A failure leaves zero journal entries for the event.
    - Expected business failures (validation, configuration, imbalance,
      closed period) are returned as EventProcessResult(success=False) and
      mark the event failed.  They never raise.
    - A company disabled for the event type is skipped and reported in
      ``skipped_companies``; when every company is skipped the event is
      processed with zero entries.

Failure modes:
    - UnknownEventTypeError / MissingAffectedCompaniesError: programming
      errors, raised before anything is stored.
    - SQLAlchemyError: store faults roll back the savepoint and propagate.
    - InvalidEventTransitionError from retry/cancel on the wrong status.

Audit relevance:
    Every step logs a structured record bound to the event id through
    LogContext: event_created, event_validation_failed, company_skipped,
    journal_spec_unbalanced, journal_entry_written, event_processed,
    event_failed.
"""

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.domain.accounts import AccountDefaults
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    EventProcessResult,
    EventRecord,
    EventSettingLookup,
    EventStatus,
    JournalSpec,
)
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.exceptions import (
    ClosedPeriodError,
    CompanyNotAffectedError,
    ConfigurationError,
    InvalidEventTransitionError,
    MissingAffectedCompaniesError,
    UnbalancedJournalError,
)
from ledger_kernel.handlers.base import EventHandler
from ledger_kernel.handlers.registry import HandlerRegistry
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.models.event import AccountingEvent
from ledger_kernel.services.account_resolver import AccountResolver
from ledger_kernel.services.event_repository import EventRepository
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.settings_service import SettingsService

logger = get_logger("services.event_pipeline")

VALIDATION_FAILED = "VALIDATION_FAILED"
NO_JOURNALS = "NO_JOURNALS"
HANDLER_ERROR = "HANDLER_ERROR"
EVENT_CANCELLED = "EVENT_CANCELLED"
EVENT_FAILED = "EVENT_FAILED"


class EventPipeline:
    """
    Contract:
        ``create_and_process`` persists and processes one event in the
        caller's transaction and returns an EventProcessResult.  The caller
        commits (``session_scope()``); the pipeline only flushes.

    Guarantees:
        - The handler registry is read-only; one pipeline may serve many
          calls on the same session.
        - journal_entry_ids follow the order of the handler's specs.

    Non-goals:
        - Reversal entries on cancel.  ``cancel_event`` returns the linked
          entry ids for that tooling.
        - Automatic retries.
    """

    def __init__(
        self,
        session: Session,
        registry: HandlerRegistry,
        defaults: AccountDefaults,
        clock: Clock | None = None,
        enforce_periods: bool = True,
    ):
        self.session = session
        self.registry = registry
        self.defaults = defaults
        self.clock = clock or SystemClock()
        self.tolerance = defaults.tolerance
        self.enforce_periods = enforce_periods
        self.events = EventRepository(session, self.clock)
        self.settings = SettingsService(session, self.clock)
        self.periods = PeriodService(session, self.clock)
        self.writer = JournalWriter(session, self.clock, tolerance=self.tolerance)
        self.resolver = AccountResolver(defaults)

    # =========================================================================
    # Public API
    # =========================================================================

    def create_and_process(
        self,
        event_type: EventType | str,
        event_date: date,
        companies: Sequence[UUID],
        payload: dict[str, Any],
        source_document_type: str | None = None,
        source_document_id: str | None = None,
        actor_id: UUID | None = None,
    ) -> EventProcessResult:
        handler = self.registry.get(event_type)
        if not companies:
            raise MissingAffectedCompaniesError(handler.event_type.value)

        with LogContext.bind(correlation_id=uuid4(), actor_id=actor_id):
            event = self.events.create(
                handler.event_type,
                event_date,
                list(companies),
                payload,
                source_document_type=source_document_type,
                source_document_id=source_document_id,
                actor_id=actor_id,
            )
            with LogContext.bind(event_id=event.id):
                return self._run(event, handler, actor_id)

    def process_event(self, event_id: UUID, actor_id: UUID | None = None) -> EventProcessResult:
        """Process an existing event.  Only pending events do any work."""
        event = self.events.get(event_id)
        with LogContext.bind(event_id=event.id, actor_id=actor_id):
            if event.status == EventStatus.PROCESSED.value:
                return EventProcessResult.ok(
                    event.id,
                    tuple(self.events.linked_entry_ids(event.id)),
                    message="Event already processed",
                )
            if event.status == EventStatus.CANCELLED.value:
                return EventProcessResult.failed(
                    event.id, "Event has been cancelled", EVENT_CANCELLED
                )
            if event.status == EventStatus.FAILED.value:
                return EventProcessResult.failed(
                    event.id, event.error or "Event has failed", EVENT_FAILED
                )
            return self._run(event, self.registry.get(event.event_type), actor_id)

    def retry_event(self, event_id: UUID, actor_id: UUID | None = None) -> EventProcessResult:
        """failed -> pending, then process again."""
        event = self.events.get(event_id)
        if event.status != EventStatus.FAILED.value:
            raise InvalidEventTransitionError(
                str(event.id), event.status, EventStatus.PENDING.value
            )
        self.events.reset_for_retry(event, actor_id)
        logger.info(
            "event_retry",
            extra={"event_id": str(event.id), "retry_count": event.retry_count},
        )
        return self.process_event(event.id, actor_id)

    def cancel_event(self, event_id: UUID, actor_id: UUID | None = None) -> list[UUID]:
        """
        Cancel an event and return the ids of the entries it produced.

        The entries themselves are left in place; reversing them is a
        separate posting.
        """
        event = self.events.get(event_id)
        self.events.cancel(event, actor_id)
        return self.events.linked_entry_ids(event.id)

    def check_duplicate_event(
        self,
        event_type: EventType | str,
        source_document_type: str,
        source_document_id: str,
    ) -> bool:
        """True if a non-cancelled event exists for the source document."""
        return bool(
            self.events.find_by_source(event_type, source_document_type, source_document_id)
        )

    def get_event_journal_entries(self, event_id: UUID) -> list[UUID]:
        return self.events.linked_entry_ids(event_id)

    # =========================================================================
    # Processing
    # =========================================================================

    def _run(
        self,
        event: AccountingEvent,
        handler: EventHandler,
        actor_id: UUID | None,
    ) -> EventProcessResult:
        record = EventRecord.from_model(event)

        try:
            validation = handler.validate(record.payload)
        except SQLAlchemyError:
            raise
        except Exception as exc:
            return self._handler_crashed(event, exc, actor_id)
        if not validation:
            logger.info(
                "event_validation_failed",
                extra={
                    "event_id": str(event.id),
                    "event_type": record.event_type.value,
                    "error": validation.error,
                },
            )
            return self._fail(event, validation.error, VALIDATION_FAILED, actor_id)

        lookups, skipped = self._company_settings(record)
        if not lookups:
            self.events.mark_processed(event, actor_id)
            logger.info(
                "event_processed",
                extra={
                    "event_id": str(event.id),
                    "event_type": record.event_type.value,
                    "journal_entry_count": 0,
                    "skipped_companies": [str(c) for c in skipped],
                },
            )
            return EventProcessResult.ok(
                event.id,
                skipped_companies=tuple(skipped),
                message=(
                    "Event processed but journals skipped for disabled companies: "
                    + ", ".join(str(c) for c in skipped)
                ),
            )

        try:
            staged = self._stage(record, handler, lookups)
        except UnbalancedJournalError as exc:
            logger.error(
                "journal_spec_unbalanced",
                extra={
                    "event_id": str(event.id),
                    "event_type": record.event_type.value,
                    "company_id": exc.company_id,
                    "total_debit": exc.debits,
                    "total_credit": exc.credits,
                },
            )
            return self._fail(event, str(exc), exc.code, actor_id, skipped)
        except (ConfigurationError, ClosedPeriodError) as exc:
            return self._fail(event, str(exc), exc.code, actor_id, skipped)
        except SQLAlchemyError:
            raise
        except Exception as exc:
            return self._handler_crashed(event, exc, actor_id, skipped)

        if not staged:
            return self._fail(event, "No journal entries generated", NO_JOURNALS, actor_id, skipped)

        entry_ids = self._persist(event, record, staged, actor_id)
        self.events.mark_processed(event, actor_id)
        logger.info(
            "event_processed",
            extra={
                "event_id": str(event.id),
                "event_type": record.event_type.value,
                "journal_entry_count": len(entry_ids),
                "skipped_companies": [str(c) for c in skipped],
            },
        )
        return EventProcessResult.ok(event.id, tuple(entry_ids), tuple(skipped))

    def _company_settings(
        self, record: EventRecord
    ) -> tuple[dict[UUID, EventSettingLookup], list[UUID]]:
        """Enabled companies with their settings, and the skipped ones, in list order."""
        enabled: dict[UUID, EventSettingLookup] = {}
        skipped: list[UUID] = []
        for company_id in record.affected_companies:
            if company_id in enabled or company_id in skipped:
                continue
            lookup = self.settings.get_setting(company_id, record.event_type)
            if lookup.is_enabled:
                enabled[company_id] = lookup
            else:
                skipped.append(company_id)
                logger.info(
                    "company_skipped",
                    extra={
                        "event_id": str(record.event_id),
                        "company_id": str(company_id),
                        "event_type": record.event_type.value,
                    },
                )
        return enabled, skipped

    def _stage(
        self,
        record: EventRecord,
        handler: EventHandler,
        lookups: dict[UUID, EventSettingLookup],
    ) -> list[tuple[JournalSpec, EventSettingLookup]]:
        """Resolve and check every spec in memory.  Nothing is written here."""
        affected = set(record.affected_companies)
        staged: list[tuple[JournalSpec, EventSettingLookup]] = []
        for spec in handler.generate_journals(record):
            if spec.company_id not in affected:
                raise CompanyNotAffectedError(str(spec.company_id), record.event_type.value)
            lookup = lookups.get(spec.company_id)
            if lookup is None:
                continue
            resolved = self.resolver.resolve(spec, lookup.effective, record.event_type)
            if not resolved.is_balanced(self.tolerance):
                raise UnbalancedJournalError(
                    str(resolved.company_id),
                    str(resolved.total_debit),
                    str(resolved.total_credit),
                )
            if self.enforce_periods:
                self.periods.validate_posting_date(resolved.company_id, resolved.entry_date)
            staged.append((resolved, lookup))
        return staged

    def _persist(
        self,
        event: AccountingEvent,
        record: EventRecord,
        staged: list[tuple[JournalSpec, EventSettingLookup]],
        actor_id: UUID | None,
    ) -> list[UUID]:
        entry_ids: list[UUID] = []
        try:
            with self.session.begin_nested():
                for position, (spec, lookup) in enumerate(staged):
                    with LogContext.bind(company_id=spec.company_id):
                        entry = self.writer.write(
                            spec,
                            auto_post=lookup.auto_post,
                            source_event_id=event.id,
                            source_document_type=record.source_document_type,
                            source_document_id=record.source_document_id,
                            actor_id=actor_id,
                        )
                    self.events.link_journal_entry(event.id, entry.id, spec.company_id, position)
                    entry_ids.append(entry.id)
                self.session.flush()
        except SQLAlchemyError:
            logger.error(
                "journal_write_failed",
                extra={"event_id": str(event.id)},
                exc_info=True,
            )
            raise
        return entry_ids

    # =========================================================================
    # Failure paths
    # =========================================================================

    def _fail(
        self,
        event: AccountingEvent,
        error: str,
        error_code: str,
        actor_id: UUID | None,
        skipped: Sequence[UUID] = (),
    ) -> EventProcessResult:
        self.events.mark_failed(event, error, actor_id)
        logger.warning(
            "event_failed",
            extra={
                "event_id": str(event.id),
                "event_type": event.event_type,
                "error_code": error_code,
                "error": error,
                "retry_count": event.retry_count,
            },
        )
        return EventProcessResult.failed(event.id, error, error_code, tuple(skipped))

    def _handler_crashed(
        self,
        event: AccountingEvent,
        exc: Exception,
        actor_id: UUID | None,
        skipped: Sequence[UUID] = (),
    ) -> EventProcessResult:
        logger.error(
            "event_handler_error",
            extra={"event_id": str(event.id), "event_type": event.event_type},
            exc_info=True,
        )
        return self._fail(
            event,
            f"Unexpected error while generating journals: {exc}",
            HANDLER_ERROR,
            actor_id,
            skipped,
        )
