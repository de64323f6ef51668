"""
SettingsService -- per-company, per-event-type journal settings.

Responsibility:
    Reads and maintains the sparse settings overlay: whether an event type
    produces journals for a company, whether those journals are posted
    immediately, and which accounts fill lines the handler left without a
    code.

Architecture position:
    Kernel > Services.  Read by EventPipeline and AccountResolver; written
    by admin tooling.

Invariants enforced:
    - A missing row is reported as "not configured", never materialized.
      Its effective values are enabled, not auto-posted, no overrides.
    - At most one row per (company_id, event_type) (unique constraint);
      upserts update the existing row in place.

Failure modes:
    - UnknownEventTypeError for an event type outside the closed set.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select

from ledger_kernel.db.base import SYSTEM_ACTOR_ID
from ledger_kernel.domain.dtos import EventSetting, EventSettingLookup
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.exceptions import UnknownEventTypeError
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.settings import JournalEventSetting
from ledger_kernel.services.base import BaseService

logger = get_logger("services.settings")

_UNSET = object()


def _event_type(value: EventType | str) -> EventType:
    parsed = EventType.parse(value)
    if parsed is None:
        raise UnknownEventTypeError(str(value))
    return parsed


def _to_setting(row: JournalEventSetting) -> EventSetting:
    return EventSetting(
        is_enabled=row.is_enabled,
        auto_post=row.auto_post,
        default_debit_account=row.default_debit_account,
        default_credit_account=row.default_credit_account,
    )


class SettingsService(BaseService):
    """
    Contract:
        ``get_setting`` never raises for a missing row; it returns an
        EventSettingLookup whose ``configured`` flag tells the two cases
        apart.

    Non-goals:
        - Validating override account codes against the chart; an unknown
          code surfaces when a journal is written with it.
    """

    def _row(self, company_id: UUID, event_type: EventType) -> JournalEventSetting | None:
        return self.session.execute(
            select(JournalEventSetting).where(
                JournalEventSetting.company_id == company_id,
                JournalEventSetting.event_type == event_type.value,
            )
        ).scalar_one_or_none()

    def get_setting(self, company_id: UUID, event_type: EventType | str) -> EventSettingLookup:
        parsed = _event_type(event_type)
        row = self._row(company_id, parsed)
        if row is None:
            return EventSettingLookup.not_configured(company_id, parsed)
        return EventSettingLookup(company_id, parsed, True, _to_setting(row))

    def is_event_enabled(self, company_id: UUID, event_type: EventType | str) -> bool:
        return self.get_setting(company_id, event_type).is_enabled

    def should_auto_post(self, company_id: UUID, event_type: EventType | str) -> bool:
        return self.get_setting(company_id, event_type).auto_post

    def get_default_accounts(
        self, company_id: UUID, event_type: EventType | str
    ) -> tuple[str | None, str | None]:
        """(default_debit_account, default_credit_account) overrides."""
        effective = self.get_setting(company_id, event_type).effective
        return effective.default_debit_account, effective.default_credit_account

    def list_for_company(self, company_id: UUID) -> list[EventSettingLookup]:
        rows = self.session.execute(
            select(JournalEventSetting)
            .where(JournalEventSetting.company_id == company_id)
            .order_by(JournalEventSetting.event_type)
        ).scalars()
        return [
            EventSettingLookup(company_id, EventType(row.event_type), True, _to_setting(row))
            for row in rows
        ]

    def upsert_setting(
        self,
        company_id: UUID,
        event_type: EventType | str,
        *,
        is_enabled: Any = _UNSET,
        auto_post: Any = _UNSET,
        default_debit_account: Any = _UNSET,
        default_credit_account: Any = _UNSET,
        actor_id: UUID | None = None,
    ) -> EventSettingLookup:
        """
        Create or update the row.  Arguments left out keep their current
        value (or the default for a new row); pass None to clear an override.
        """
        parsed = _event_type(event_type)
        actor = actor_id or SYSTEM_ACTOR_ID
        row = self._row(company_id, parsed)
        created = row is None
        if row is None:
            row = JournalEventSetting(
                company_id=company_id,
                event_type=parsed.value,
                is_enabled=True,
                auto_post=False,
                created_by_id=actor,
            )
            self.session.add(row)
        else:
            row.updated_by_id = actor

        if is_enabled is not _UNSET:
            row.is_enabled = bool(is_enabled)
        if auto_post is not _UNSET:
            row.auto_post = bool(auto_post)
        if default_debit_account is not _UNSET:
            row.default_debit_account = default_debit_account or None
        if default_credit_account is not _UNSET:
            row.default_credit_account = default_credit_account or None
        self.session.flush()

        logger.info(
            "event_setting_saved",
            extra={
                "company_id": str(company_id),
                "event_type": parsed.value,
                "is_new": created,
                "is_enabled": row.is_enabled,
                "auto_post": row.auto_post,
            },
        )
        return EventSettingLookup(company_id, parsed, True, _to_setting(row))

    def bulk_upsert(
        self,
        company_id: UUID,
        settings: Mapping[EventType | str, Mapping[str, Any]] | Iterable[Mapping[str, Any]],
        actor_id: UUID | None = None,
    ) -> list[EventSettingLookup]:
        """
        Upsert many settings for one company.

        Accepts either a mapping of event type to field values or an iterable
        of dicts that each carry an ``event_type`` key.
        """
        if isinstance(settings, Mapping):
            items = [(event_type, dict(values)) for event_type, values in settings.items()]
        else:
            items = []
            for values in settings:
                values = dict(values)
                items.append((values.pop("event_type"), values))

        return [
            self.upsert_setting(company_id, event_type, actor_id=actor_id, **values)
            for event_type, values in items
        ]

    def delete_setting(self, company_id: UUID, event_type: EventType | str) -> bool:
        """Remove the row, restoring "not configured".  True if one existed."""
        parsed = _event_type(event_type)
        result = self.session.execute(
            delete(JournalEventSetting).where(
                JournalEventSetting.company_id == company_id,
                JournalEventSetting.event_type == parsed.value,
            )
        )
        self.session.flush()
        return result.rowcount > 0

    def delete_by_event_type(self, event_type: EventType | str) -> int:
        """Remove the rows for an event type across every company."""
        parsed = _event_type(event_type)
        result = self.session.execute(
            delete(JournalEventSetting).where(JournalEventSetting.event_type == parsed.value)
        )
        self.session.flush()
        return result.rowcount
