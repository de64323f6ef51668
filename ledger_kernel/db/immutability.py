"""
ORM-level immutability enforcement for the ledger's finalized records.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity          | When immutable                  | Rule
----------------|---------------------------------|---------------------------------
JournalEntry    | After status = posted           | no field changes, no delete
JournalLine     | When the parent entry is posted | no field changes, no delete
FiscalPeriod    | Always for status               | open -> closed -> locked only
                | After status = locked           | no field changes
                | After status leaves open        | no delete

AccountingEvent carries its own guard in models/event.py because it is
append-only from the moment it is inserted, not from a later status.

===============================================================================
HOW IT WORKS
===============================================================================

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

updated_at/updated_by_id are audit metadata and may always change.  A posted
entry is detected through attribute history: the DRAFT -> POSTED flush is the
posting itself and is allowed; any flush where the *old* status is posted is
blocked.

register_immutability_listeners() is idempotent and is called by the services
that write these tables.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from ledger_kernel.domain.dtos import EntryStatus, PeriodStatus
from ledger_kernel.exceptions import ImmutabilityViolationError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})

_PERIOD_TRANSITIONS = {
    PeriodStatus.OPEN.value: {PeriodStatus.CLOSED.value},
    PeriodStatus.CLOSED.value: {PeriodStatus.LOCKED.value},
    PeriodStatus.LOCKED.value: set(),
}


def _blocked(entity_type: str, entity_id, reason: str) -> ImmutabilityViolationError:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "reason": reason,
        },
    )
    return ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(entity_id),
        reason=reason,
    )


def _changed_fields(target) -> list[str]:
    return sorted(
        attr.key
        for attr in inspect(target).attrs
        if attr.key not in _AUDIT_FIELDS
        and attr.key != "lines"
        and attr.history.has_changes()
    )


def _previous_status(target) -> str:
    """Status as stored before this flush."""
    hist = get_history(target, "status")
    if hist.deleted:
        return str(hist.deleted[0])
    return str(target.status)


# =============================================================================
# JournalEntry / JournalLine
# =============================================================================


def _check_journal_entry_immutability(mapper, connection, target):
    """Block any change to an entry that was already posted."""
    if _previous_status(target) != EntryStatus.POSTED.value:
        return
    changed = _changed_fields(target)
    if changed:
        raise _blocked(
            "JournalEntry",
            target.id,
            f"Posted entry {target.reference_number} cannot be modified "
            f"(fields: {', '.join(changed)})",
        )


def _check_journal_entry_delete(mapper, connection, target):
    if _previous_status(target) == EntryStatus.POSTED.value:
        raise _blocked(
            "JournalEntry",
            target.id,
            f"Posted entry {target.reference_number} cannot be deleted",
        )


def _parent_is_posted(target) -> bool:
    entry = target.entry
    if entry is None:
        return False
    return _previous_status(entry) == EntryStatus.POSTED.value


def _check_journal_line_immutability(mapper, connection, target):
    if _parent_is_posted(target) and _changed_fields(target):
        raise _blocked(
            "JournalLine",
            target.id,
            "Lines of a posted entry cannot be modified",
        )


def _check_journal_line_delete(mapper, connection, target):
    if _parent_is_posted(target):
        raise _blocked(
            "JournalLine",
            target.id,
            "Lines of a posted entry cannot be deleted",
        )


# =============================================================================
# FiscalPeriod
# =============================================================================


def _check_fiscal_period_immutability(mapper, connection, target):
    """Enforce open -> closed -> locked and freeze locked periods."""
    hist = get_history(target, "status")
    if hist.deleted and hist.added:
        old, new = str(hist.deleted[0]), str(hist.added[0])
        if old != new and new not in _PERIOD_TRANSITIONS.get(old, set()):
            raise _blocked(
                "FiscalPeriod",
                target.id,
                f"Period {target.period_code} cannot move from {old} to {new}",
            )
        return

    if target.status == PeriodStatus.LOCKED.value and _changed_fields(target):
        raise _blocked(
            "FiscalPeriod",
            target.id,
            f"Locked period {target.period_code} cannot be modified",
        )


def _check_fiscal_period_delete(mapper, connection, target):
    if _previous_status(target) != PeriodStatus.OPEN.value:
        raise _blocked(
            "FiscalPeriod",
            target.id,
            f"Period {target.period_code} is {target.status} and cannot be deleted",
        )


# =============================================================================
# Registration
# =============================================================================


def _listeners():
    from ledger_kernel.models.fiscal_period import FiscalPeriod
    from ledger_kernel.models.journal import JournalEntry, JournalLine

    return (
        (JournalEntry, "before_update", _check_journal_entry_immutability),
        (JournalEntry, "before_delete", _check_journal_entry_delete),
        (JournalLine, "before_update", _check_journal_line_immutability),
        (JournalLine, "before_delete", _check_journal_line_delete),
        (FiscalPeriod, "before_update", _check_fiscal_period_immutability),
        (FiscalPeriod, "before_delete", _check_fiscal_period_delete),
    )


def register_immutability_listeners() -> None:
    """Register every listener once.  Safe to call repeatedly."""
    for target, name, fn in _listeners():
        if not event.contains(target, name, fn):
            event.listen(target, name, fn)
