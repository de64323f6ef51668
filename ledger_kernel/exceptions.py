"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger must be able to tell an unresolvable account apart from
an unbalanced handler or a closed period without parsing message strings.
Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

The event pipeline converts the expected business failures below into an
``EventProcessResult`` with ``success=False`` and the exception's code; only
store faults and programming-contract violations propagate to the caller.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerKernelError (base)
    |
    +-- EventError
    |   +-- EventNotFoundError
    |   +-- UnknownEventTypeError
    |   +-- MissingAffectedCompaniesError
    |   +-- InvalidEventTransitionError
    |
    +-- PostingError
    |   +-- UnbalancedJournalError
    |   +-- JournalEntryNotFoundError
    |   +-- EntryAlreadyPostedError
    |
    +-- ConfigurationError
    |   +-- AccountResolutionError
    |   +-- CompanyNotAffectedError
    |   +-- InvalidConfigurationError
    |
    +-- PeriodError
    |   +-- ClosedPeriodError
    |   +-- PeriodNotFoundError
    |   +-- InvalidPeriodTransitionError
    |   +-- YearAlreadyClosedError
    |
    +-- RecognitionError
    |   +-- RevenueRecognitionNotFoundError
    |   +-- RecognitionFinalizedError
    |   +-- InvalidServiceDatesError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | Pipeline behaviour
----------------|-----------------------------|-----------------------------------
Validation      | VALIDATION_FAILED           | event failed, result returned
----------------|-----------------------------|-----------------------------------
Event           | EVENT_NOT_FOUND             | raised
                | UNKNOWN_EVENT_TYPE          | raised (precondition)
                | MISSING_AFFECTED_COMPANIES  | raised (precondition)
                | INVALID_EVENT_TRANSITION    | raised by the repository
----------------|-----------------------------|-----------------------------------
Posting         | IMBALANCE                   | event failed, whole event aborted
                | JOURNAL_ENTRY_NOT_FOUND     | raised
                | ENTRY_ALREADY_POSTED        | raised
----------------|-----------------------------|-----------------------------------
Configuration   | CONFIGURATION_ERROR         | event failed, result returned
                | COMPANY_NOT_AFFECTED        | event failed, result returned
                | INVALID_CONFIGURATION       | raised by the config loader
----------------|-----------------------------|-----------------------------------
Period          | PERIOD_CLOSED               | event failed, result returned
                | PERIOD_NOT_FOUND            | raised
                | INVALID_PERIOD_TRANSITION   | raised
                | YEAR_ALREADY_CLOSED         | raised
----------------|-----------------------------|-----------------------------------
Recognition     | RECOGNITION_NOT_FOUND       | raised
                | RECOGNITION_FINALIZED       | raised
                | INVALID_SERVICE_DATES       | raised
----------------|-----------------------------|-----------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | raised at flush

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Codes are class attributes, so ``ClosedPeriodError.code`` is usable
   without an instance (result objects carry the code of the failure).

2. ``AccountResolutionError`` and ``CompanyNotAffectedError`` share the
   CONFIGURATION_ERROR category: both mean the event could not be mapped onto
   the books with the current settings, and both are fixed by correcting
   configuration and retrying the event.

3. ``ImmutabilityViolationError`` is a contract violation. It surfaces in
   tests or misuse only and is never converted into a result object.
"""


class LedgerKernelError(Exception):
    """
    Base exception for all ledger kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_KERNEL_ERROR"


# Event-related exceptions


class EventError(LedgerKernelError):
    """Base exception for event-related errors."""

    code: str = "EVENT_ERROR"


class EventNotFoundError(EventError):
    """Event with given ID was not found."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event not found: {event_id}")


class UnknownEventTypeError(EventError):
    """No handler is registered for the event type."""

    code: str = "UNKNOWN_EVENT_TYPE"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Unknown event type: {event_type}")


class MissingAffectedCompaniesError(EventError):
    """An event was submitted without any affected company."""

    code: str = "MISSING_AFFECTED_COMPANIES"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(
            f"Event {event_type} requires at least one affected company"
        )


class InvalidEventTransitionError(EventError):
    """Requested status change is not in the event lifecycle."""

    code: str = "INVALID_EVENT_TRANSITION"

    def __init__(self, event_id: str, from_status: str, to_status: str):
        self.event_id = event_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Event {event_id} cannot move from {from_status} to {to_status}"
        )


# Posting-related exceptions


class PostingError(LedgerKernelError):
    """Base exception for posting-related errors."""

    code: str = "POSTING_ERROR"


class UnbalancedJournalError(PostingError):
    """
    A generated journal does not balance.

    This indicates a handler defect, not bad input: handler validation is
    expected to reject payloads whose parts do not add up.
    """

    code: str = "IMBALANCE"

    def __init__(self, company_id: str, debits: str, credits: str):
        self.company_id = company_id
        self.debits = debits
        self.credits = credits
        super().__init__(
            f"Unbalanced journal for company {company_id}: "
            f"Debit={debits}, Credit={credits}"
        )


class JournalEntryNotFoundError(PostingError):
    """Journal entry with given ID was not found."""

    code: str = "JOURNAL_ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class EntryAlreadyPostedError(PostingError):
    """Only draft entries can be posted."""

    code: str = "ENTRY_ALREADY_POSTED"

    def __init__(self, entry_id: str, reference_number: str):
        self.entry_id = entry_id
        self.reference_number = reference_number
        super().__init__(
            f"Journal entry {reference_number} ({entry_id}) is already posted"
        )


# Configuration-related exceptions


class ConfigurationError(LedgerKernelError):
    """Base exception for settings and account-mapping errors."""

    code: str = "CONFIGURATION_ERROR"


class AccountResolutionError(ConfigurationError):
    """A journal line has no account code after default substitution."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(
        self,
        company_id: str,
        event_type: str,
        side: str,
        line_description: str | None = None,
    ):
        self.company_id = company_id
        self.event_type = event_type
        self.side = side
        self.line_description = line_description
        detail = f" ({line_description})" if line_description else ""
        super().__init__(
            f"No account configured for {side} line{detail} "
            f"of {event_type} in company {company_id}"
        )


class CompanyNotAffectedError(ConfigurationError):
    """A handler produced a journal for a company the event does not list."""

    code: str = "COMPANY_NOT_AFFECTED"

    def __init__(self, company_id: str, event_type: str):
        self.company_id = company_id
        self.event_type = event_type
        super().__init__(
            f"{event_type} generated a journal for company {company_id}, "
            f"which is not an affected company of the event"
        )


class InvalidConfigurationError(ConfigurationError):
    """Ledger configuration file is missing required data."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid ledger configuration {source}: {reason}")


# Period-related exceptions


class PeriodError(LedgerKernelError):
    """Base exception for fiscal period errors."""

    code: str = "PERIOD_ERROR"


class ClosedPeriodError(PeriodError):
    """Attempted to post into a closed or locked fiscal period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, company_id: str, period_code: str, status: str):
        self.company_id = company_id
        self.period_code = period_code
        self.status = status
        super().__init__(
            f"Fiscal period {period_code} is {status} for company {company_id}"
        )


class PeriodNotFoundError(PeriodError):
    """No fiscal period exists for the company and month."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, company_id: str, period_code: str):
        self.company_id = company_id
        self.period_code = period_code
        super().__init__(
            f"Fiscal period {period_code} not found for company {company_id}"
        )


class InvalidPeriodTransitionError(PeriodError):
    """Period status may only move open -> closed -> locked."""

    code: str = "INVALID_PERIOD_TRANSITION"

    def __init__(self, period_code: str, from_status: str, to_status: str):
        self.period_code = period_code
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Fiscal period {period_code} cannot move from {from_status} "
            f"to {to_status}"
        )


class YearAlreadyClosedError(PeriodError):
    """A closing entry already exists for the company and fiscal year."""

    code: str = "YEAR_ALREADY_CLOSED"

    def __init__(self, company_id: str, fiscal_year: int, entry_id: str):
        self.company_id = company_id
        self.fiscal_year = fiscal_year
        self.entry_id = entry_id
        super().__init__(
            f"Fiscal year {fiscal_year} already closed for company "
            f"{company_id} by entry {entry_id}"
        )


# Revenue recognition exceptions


class RecognitionError(LedgerKernelError):
    """Base exception for revenue recognition errors."""

    code: str = "RECOGNITION_ERROR"


class RevenueRecognitionNotFoundError(RecognitionError):
    """Revenue recognition record with given ID was not found."""

    code: str = "RECOGNITION_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Revenue recognition record not found: {record_id}")


class RecognitionFinalizedError(RecognitionError):
    """Recognized and manually recognized records are terminal."""

    code: str = "RECOGNITION_FINALIZED"

    def __init__(self, record_id: str, status: str):
        self.record_id = record_id
        self.status = status
        super().__init__(
            f"Revenue recognition record {record_id} is already {status}"
        )


class InvalidServiceDatesError(RecognitionError):
    """Service window end precedes its start."""

    code: str = "INVALID_SERVICE_DATES"

    def __init__(self, date_from: str, date_to: str):
        self.date_from = date_from
        self.date_to = date_to
        super().__init__(
            f"Service end date {date_to} is before start date {date_from}"
        )


# Immutability exceptions


class ImmutabilityError(LedgerKernelError):
    """Base exception for immutability errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Accounting events are write-once apart from their status fields; posted
    journal entries, their lines and locked fiscal periods are frozen.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
