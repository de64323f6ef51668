"""ORM models.  Importing this package registers every table on Base.metadata."""

from ledger_kernel.models.account import ChartAccount
from ledger_kernel.models.event import AccountingEvent, EventJournalEntry
from ledger_kernel.models.fiscal_period import FiscalPeriod
from ledger_kernel.models.journal import JournalEntry, JournalLine
from ledger_kernel.models.revenue_recognition import RevenueRecognition
from ledger_kernel.models.sequence import SequenceCounter
from ledger_kernel.models.settings import JournalEventSetting

__all__ = [
    "AccountingEvent",
    "ChartAccount",
    "EventJournalEntry",
    "FiscalPeriod",
    "JournalEntry",
    "JournalEventSetting",
    "JournalLine",
    "RevenueRecognition",
    "SequenceCounter",
]
