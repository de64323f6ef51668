"""
Module: ledger_kernel.models.settings
Responsibility: ORM persistence for per-company, per-event-type journal
    settings (enablement, auto-post and default account overrides).
Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - At most one row per (company_id, event_type).
    - Absence of a row is meaningful: enabled, not auto-posted, no overrides.
      SettingsService reports it as "not configured" rather than inventing
      a row.
"""

from uuid import UUID

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class JournalEventSetting(TrackedBase):
    """Sparse settings overlay for one company and event type."""

    __tablename__ = "journal_event_settings"

    __table_args__ = (
        UniqueConstraint("company_id", "event_type", name="uq_journal_event_setting"),
    )

    company_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    event_type: Mapped[str] = mapped_column(String(64), nullable=False)

    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    auto_post: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Used for lines whose handler left the account code unset
    default_debit_account: Mapped[str | None] = mapped_column(String(20), nullable=True)
    default_credit_account: Mapped[str | None] = mapped_column(String(20), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<JournalEventSetting {self.company_id}:{self.event_type} "
            f"enabled={self.is_enabled} auto_post={self.auto_post}>"
        )
