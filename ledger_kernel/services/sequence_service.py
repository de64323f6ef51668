"""
SequenceService -- monotonic counters behind journal reference numbers.

Responsibility:
    Hands out strictly increasing integers per named sequence from a locked
    counter row, and formats them as ``JE-YYYY-NNNN`` references scoped to a
    company and calendar year.

Architecture position:
    Kernel > Services.  Called by JournalWriter.

Invariants enforced:
    - The locked counter row is the only source of the next value; the
      max-plus-one query pattern is never used.
    - The increment is part of the caller's transaction, so a rolled-back
      posting returns its number.

Failure modes:
    - IntegrityError when two sessions create the same counter at once.
      Handled with a savepoint and a locked re-read.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.sequence import SequenceCounter

logger = get_logger("services.sequence")

REFERENCE_PREFIX = "JE"


def journal_sequence_name(company_id, year: int) -> str:
    return f"journal_entry:{company_id}:{year}"


def format_reference(year: int, value: int) -> str:
    """JE-2024-0001.  Widens past four digits rather than wrapping."""
    return f"{REFERENCE_PREFIX}-{year}-{value:04d}"


class SequenceService:
    """
    Contract:
        ``next_value(name)`` returns an integer > 0 strictly greater than any
        value previously returned for ``name`` in committed transactions.

    Non-goals:
        - Does not commit.
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        counter = self._locked_counter(sequence_name)

        if counter is None:
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        return self._session.execute(
            select(SequenceCounter.current_value).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()

    def next_reference(self, company_id, year: int) -> str:
        """Next journal reference for a company and year."""
        value = self.next_value(journal_sequence_name(company_id, year))
        return format_reference(year, value)
