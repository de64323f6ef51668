"""
RevenueRecognitionService -- deferred revenue until the service is delivered.

Responsibility:
    Owns the recognition record of every revenue line and its state machine:

        create              end date <= today -> recognized (today, automatic)
                            end date > today  -> pending
                            no end date       -> needs_review
        update dates        needs_review | pending -> same rule as create
        automatic sweep     pending with end date <= today -> recognized
                            (recognition date = end date)
        manual              pending | needs_review -> recognized, or
                            manual_recognized when triggered "immediate"
        recognized, manual_recognized: terminal

    When a record that was carried in deferred revenue becomes recognized
    and a pipeline is wired, a PROJECT_SERVICE_COMPLETED event moves the
    amount to revenue.  When a project lookup is wired and the project owes
    a management fee to a different company, a MANAGEMENT_FEE_RECOGNIZED
    event follows.

Architecture position:
    Kernel > Services.  Uses EventPipeline for every journal it causes;
    never writes journal entries itself.

Invariants enforced:
    - Terminal records never change (RecognitionFinalizedError).
    - The sweep only touches pending rows, so running it twice recognizes
      nothing the second time.

Failure modes:
    - RevenueRecognitionNotFoundError, RecognitionFinalizedError,
      InvalidServiceDatesError.
    - A failed journal event does not undo the recognition; the event stays
      failed (with its id on the record) and can be retried.

Audit relevance:
    recognized_by_id, recognition_trigger and recognition_event_id record
    who recognized what, how, and which journal event carried it.
"""

from collections.abc import Callable, Mapping, Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.db.types import ZERO, parse_amount, round_money
from ledger_kernel.domain.accounts import AccountDefaults, AccountRole
from ledger_kernel.domain.clock import Clock
from ledger_kernel.domain.dtos import EventProcessResult
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.domain.recognition import (
    DeferredRevenueInput,
    DeferredRevenueSummary,
    ProjectInfo,
    RecognitionStatus,
    RecognitionTrigger,
    classify,
    receipt_recognition_status,
)
from ledger_kernel.exceptions import (
    ConfigurationError,
    InvalidServiceDatesError,
    RecognitionFinalizedError,
    RevenueRecognitionNotFoundError,
)
from ledger_kernel.handlers.base import parse_date, text
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.revenue_recognition import RevenueRecognition
from ledger_kernel.services.base import BaseService

logger = get_logger("services.revenue_recognition")

SOURCE_DOCUMENT_TYPE = "revenue_recognition"

ProjectLookup = Callable[[UUID], ProjectInfo | None]


class RevenueRecognitionService(BaseService):
    """
    Contract:
        Every mutator flushes and returns the affected record(s).  "Today"
        comes from the injected Clock.

    Non-goals:
        - Partial recognition of a record over time.
    """

    def __init__(
        self,
        session,
        defaults: AccountDefaults,
        clock: Clock | None = None,
        pipeline=None,
        project_lookup: ProjectLookup | None = None,
        management_company_id: UUID | None = None,
    ):
        super().__init__(session, clock)
        self.defaults = defaults
        self.pipeline = pipeline
        self.project_lookup = project_lookup
        self.management_company_id = management_company_id

    # =========================================================================
    # Creation
    # =========================================================================

    def _new_record(self, data: DeferredRevenueInput, actor_id: UUID | None) -> RevenueRecognition:
        amount = parse_amount(data.amount)
        if amount is None or amount <= ZERO:
            raise ValueError(f"Recognition amount must be positive: {data.amount}")
        if (
            data.charter_date_from is not None
            and data.charter_date_to is not None
            and data.charter_date_to < data.charter_date_from
        ):
            raise InvalidServiceDatesError(
                str(data.charter_date_from), str(data.charter_date_to)
            )
        return RevenueRecognition(
            company_id=data.company_id,
            project_id=data.project_id,
            receipt_id=data.receipt_id,
            receipt_line_id=data.receipt_line_id,
            booking_id=data.booking_id,
            charter_date_from=data.charter_date_from,
            charter_date_to=data.charter_date_to,
            charter_type=data.charter_type,
            client_name=data.client_name,
            description=data.description,
            amount=amount,
            currency=data.currency,
            deferred_revenue_account=(
                data.deferred_revenue_account
                or self.defaults.account(AccountRole.DEFERRED_REVENUE)
            ),
            revenue_account=(
                data.revenue_account or self.defaults.revenue_account_for(data.charter_type)
            ),
            created_by_id=actor_id or SYSTEM_ACTOR_ID,
        )

    def create_deferred_record(
        self, data: DeferredRevenueInput, actor_id: UUID | None = None
    ) -> RevenueRecognition:
        """Create a record with its initial status from the service end date."""
        record = self._new_record(data, actor_id)
        decision = classify(data.charter_date_to, self.clock.today())
        record.status = decision.status.value
        record.recognition_date = decision.recognition_date
        if decision.trigger is not None:
            record.recognition_trigger = decision.trigger.value
            record.recognized_by_id = actor_id or SYSTEM_ACTOR_ID
        self.session.add(record)
        self.session.flush()
        logger.info(
            "revenue_recognition_created",
            extra={
                "recognition_id": str(record.id),
                "company_id": str(record.company_id),
                "status": record.status,
                "amount": str(record.amount),
                "charter_date_to": data.charter_date_to,
            },
        )
        return record

    def record_receipt(
        self,
        company_id: UUID,
        receipt_date: date,
        payload: Mapping[str, Any],
        actor_id: UUID | None = None,
    ) -> tuple[EventProcessResult, list[RevenueRecognition]]:
        """
        Post a customer receipt and create one record per revenue line.

        The receipt's recognition status is derived from the lines' service
        end dates and stamped into the payload before posting, so the
        receipt handler credits deferred revenue while any line is still
        awaiting delivery.  Records are created only when the event
        succeeds.
        """
        if self.pipeline is None:
            raise ConfigurationError("record_receipt requires an event pipeline")

        today = self.clock.today()
        lines = [item for item in payload.get("line_items") or () if isinstance(item, Mapping)]
        status = receipt_recognition_status(
            [parse_date(item.get("charter_date_to")) for item in lines], today
        )
        stamped = dict(payload)
        stamped["recognition_status"] = status.value

        result = self.pipeline.create_and_process(
            EventType.RECEIPT_RECEIVED,
            receipt_date,
            [company_id],
            stamped,
            source_document_type="receipt",
            source_document_id=text(payload, "receipt_id"),
            actor_id=actor_id,
        )
        if not result.success:
            return result, []

        records: list[RevenueRecognition] = []
        for position, item in enumerate(lines, start=1):
            amount = parse_amount(item.get("amount"))
            if amount is None or amount <= ZERO:
                continue
            data = DeferredRevenueInput(
                company_id=company_id,
                amount=amount,
                charter_date_from=parse_date(item.get("charter_date_from")),
                charter_date_to=parse_date(item.get("charter_date_to")),
                charter_type=text(item, "charter_type") or text(payload, "charter_type"),
                project_id=_as_uuid(item.get("project_id") or payload.get("project_id")),
                receipt_id=text(payload, "receipt_id"),
                receipt_line_id=text(item, "line_id") or str(position),
                booking_id=text(item, "booking_id"),
                client_name=text(payload, "client_name"),
                description=text(item, "description"),
                currency=text(payload, "currency") or self.defaults.default_currency,
                revenue_account=text(item, "account_code"),
            )
            if status.is_deferred:
                records.append(self._create_deferred_line(data, actor_id))
            else:
                records.append(self.create_deferred_record(data, actor_id))
        return result, records

    def _create_deferred_line(
        self, data: DeferredRevenueInput, actor_id: UUID | None
    ) -> RevenueRecognition:
        """A line of a receipt that was credited to deferred revenue."""
        record = self._new_record(data, actor_id)
        decision = classify(data.charter_date_to, self.clock.today())
        record.status = (
            RecognitionStatus.NEEDS_REVIEW.value
            if decision.status == RecognitionStatus.NEEDS_REVIEW
            else RecognitionStatus.PENDING.value
        )
        self.session.add(record)
        self.session.flush()
        logger.info(
            "revenue_recognition_created",
            extra={
                "recognition_id": str(record.id),
                "company_id": str(record.company_id),
                "status": record.status,
                "amount": str(record.amount),
                "charter_date_to": data.charter_date_to,
            },
        )
        if decision.status == RecognitionStatus.RECOGNIZED:
            # Already delivered, but its revenue sits in deferred revenue
            # with the rest of the receipt.
            self._recognize(
                record,
                RecognitionStatus.RECOGNIZED,
                decision.recognition_date,
                RecognitionTrigger.AUTOMATIC,
                actor_id,
            )
        return record

    # =========================================================================
    # Transitions
    # =========================================================================

    def _get(self, record_id: UUID) -> RevenueRecognition:
        record = self.session.get(RevenueRecognition, record_id)
        if record is None:
            raise RevenueRecognitionNotFoundError(str(record_id))
        return record

    def _require_open(self, record: RevenueRecognition) -> None:
        if record.recognition_status.is_terminal:
            raise RecognitionFinalizedError(str(record.id), record.status)

    def run_automatic_sweep(self, actor_id: UUID | None = None) -> list[RevenueRecognition]:
        """Recognize every pending record whose service has ended."""
        today = self.clock.today()
        due = list(
            self.session.execute(
                select(RevenueRecognition)
                .where(
                    RevenueRecognition.status == RecognitionStatus.PENDING.value,
                    RevenueRecognition.charter_date_to.is_not(None),
                    RevenueRecognition.charter_date_to <= today,
                )
                .order_by(RevenueRecognition.charter_date_to, RevenueRecognition.id)
            ).scalars()
        )
        for record in due:
            self._recognize(
                record,
                RecognitionStatus.RECOGNIZED,
                record.charter_date_to,
                RecognitionTrigger.AUTOMATIC,
                actor_id,
            )
        logger.info(
            "revenue_recognition_sweep_completed",
            extra={"recognized": len(due), "as_of": today},
        )
        return due

    def recognize_manually(
        self,
        record_id: UUID,
        trigger: RecognitionTrigger | str = RecognitionTrigger.MANUAL,
        recognition_date: date | None = None,
        actor_id: UUID | None = None,
    ) -> RevenueRecognition:
        """
        Recognize ahead of (or without) the date rule.

        trigger "immediate" marks the record manual_recognized; any other
        trigger marks it recognized.  The date defaults to today.
        """
        record = self._get(record_id)
        self._require_open(record)
        trigger = RecognitionTrigger(trigger)
        status = (
            RecognitionStatus.MANUAL_RECOGNIZED
            if trigger == RecognitionTrigger.IMMEDIATE
            else RecognitionStatus.RECOGNIZED
        )
        self._recognize(
            record, status, recognition_date or self.clock.today(), trigger, actor_id
        )
        return record

    def update_service_dates(
        self,
        record_id: UUID,
        date_from: date | None,
        date_to: date | None,
        actor_id: UUID | None = None,
    ) -> RevenueRecognition:
        """Set the service window and re-apply the creation rule."""
        record = self._get(record_id)
        self._require_open(record)
        if date_from is not None and date_to is not None and date_to < date_from:
            raise InvalidServiceDatesError(str(date_from), str(date_to))

        record.charter_date_from = date_from
        record.charter_date_to = date_to
        record.updated_by_id = actor_id or SYSTEM_ACTOR_ID

        decision = classify(date_to, self.clock.today())
        if decision.status == RecognitionStatus.RECOGNIZED:
            self._recognize(
                record,
                RecognitionStatus.RECOGNIZED,
                decision.recognition_date,
                RecognitionTrigger.AUTOMATIC,
                actor_id,
            )
        else:
            record.status = decision.status.value
            self.session.flush()
        logger.info(
            "revenue_service_dates_updated",
            extra={
                "recognition_id": str(record.id),
                "charter_date_from": date_from,
                "charter_date_to": date_to,
                "status": record.status,
            },
        )
        return record

    def _recognize(
        self,
        record: RevenueRecognition,
        status: RecognitionStatus,
        recognition_date: date,
        trigger: RecognitionTrigger,
        actor_id: UUID | None,
    ) -> None:
        actor = actor_id or SYSTEM_ACTOR_ID
        record.status = status.value
        record.recognition_date = recognition_date
        record.recognition_trigger = trigger.value
        record.recognized_by_id = actor
        record.updated_by_id = actor
        self.session.flush()

        if self.pipeline is not None:
            result = self._emit_service_completed(record, actor_id)
            record.recognition_event_id = result.event_id
            self.session.flush()
            self._emit_management_fee(record, actor_id)

        logger.info(
            "revenue_recognized",
            extra={
                "recognition_id": str(record.id),
                "company_id": str(record.company_id),
                "status": record.status,
                "trigger": trigger.value,
                "recognition_date": recognition_date,
                "amount": str(record.amount),
            },
        )

    def _emit_service_completed(
        self, record: RevenueRecognition, actor_id: UUID | None
    ) -> EventProcessResult:
        payload = {
            "recognition_id": str(record.id),
            "receipt_id": record.receipt_id,
            "amount": str(record.amount),
            "description": record.description or record.client_name or "Service completed",
            "client_name": record.client_name,
            "charter_type": record.charter_type,
            "deferred_revenue_account": record.deferred_revenue_account,
            "revenue_account": record.revenue_account,
            "recognition_date": record.recognition_date,
        }
        result = self.pipeline.create_and_process(
            EventType.PROJECT_SERVICE_COMPLETED,
            record.recognition_date,
            [record.company_id],
            payload,
            source_document_type=SOURCE_DOCUMENT_TYPE,
            source_document_id=str(record.id),
            actor_id=actor_id,
        )
        if not result.success:
            logger.warning(
                "revenue_recognition_journal_failed",
                extra={
                    "recognition_id": str(record.id),
                    "event_id": str(result.event_id),
                    "error": result.error,
                },
            )
        return result

    def _emit_management_fee(
        self, record: RevenueRecognition, actor_id: UUID | None
    ) -> EventProcessResult | None:
        if (
            self.project_lookup is None
            or self.management_company_id is None
            or record.project_id is None
        ):
            return None
        project = self.project_lookup(record.project_id)
        if project is None or not project.management_fee_percentage:
            return None
        if project.company_id == self.management_company_id:
            return None

        percentage = Decimal(str(project.management_fee_percentage))
        fee = round_money(record.amount * percentage / Decimal("100"))
        if fee <= ZERO:
            return None

        period_from = record.charter_date_from or record.recognition_date
        period_to = record.charter_date_to or record.recognition_date
        return self.pipeline.create_and_process(
            EventType.MANAGEMENT_FEE_RECOGNIZED,
            record.recognition_date,
            [project.company_id, self.management_company_id],
            {
                "project_company_id": str(project.company_id),
                "management_company_id": str(self.management_company_id),
                "project_id": str(project.project_id),
                "project_name": project.name,
                "fee_amount": str(fee),
                "fee_percentage": str(percentage),
                "gross_income": str(record.amount),
                "period_from": period_from,
                "period_to": period_to,
            },
            source_document_type=SOURCE_DOCUMENT_TYPE,
            source_document_id=str(record.id),
            actor_id=actor_id,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def _by_status(
        self, status: RecognitionStatus, company_id: UUID | None
    ) -> list[RevenueRecognition]:
        stmt = select(RevenueRecognition).where(RevenueRecognition.status == status.value)
        if company_id is not None:
            stmt = stmt.where(RevenueRecognition.company_id == company_id)
        return list(
            self.session.execute(
                stmt.order_by(RevenueRecognition.charter_date_to, RevenueRecognition.id)
            ).scalars()
        )

    def get(self, record_id: UUID) -> RevenueRecognition:
        return self._get(record_id)

    def get_pending(self, company_id: UUID | None = None) -> list[RevenueRecognition]:
        return self._by_status(RecognitionStatus.PENDING, company_id)

    def get_needs_review(self, company_id: UUID | None = None) -> list[RevenueRecognition]:
        return self._by_status(RecognitionStatus.NEEDS_REVIEW, company_id)

    def get_by_receipt(self, receipt_id: str) -> list[RevenueRecognition]:
        return list(
            self.session.execute(
                select(RevenueRecognition)
                .where(RevenueRecognition.receipt_id == receipt_id)
                .order_by(RevenueRecognition.receipt_line_id)
            ).scalars()
        )

    def has_unrecognized_revenue(self, receipt_id: str) -> bool:
        return any(
            record.recognition_status.is_deferred for record in self.get_by_receipt(receipt_id)
        )

    def get_deferred_revenue_summary(
        self, company_id: UUID | None = None
    ) -> DeferredRevenueSummary:
        pending = self.get_pending(company_id)
        review = self.get_needs_review(company_id)
        return DeferredRevenueSummary(
            pending_count=len(pending),
            pending_amount=_total(pending),
            needs_review_count=len(review),
            needs_review_amount=_total(review),
        )


def _total(records: Sequence[RevenueRecognition]) -> Decimal:
    return sum((Decimal(str(r.amount)) for r in records), ZERO)


def _as_uuid(value: Any) -> UUID | None:
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
