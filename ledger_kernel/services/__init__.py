"""
Stateful services.  Every service flushes into the caller's session and
never commits; transaction boundaries belong to ``session_scope()``.
"""

from ledger_kernel.services.account_resolver import AccountResolver
from ledger_kernel.services.chart_of_accounts import seed_chart_of_accounts
from ledger_kernel.services.event_pipeline import EventPipeline
from ledger_kernel.services.event_repository import EventRepository
from ledger_kernel.services.journal_writer import JournalWriter
from ledger_kernel.services.period_service import PeriodService
from ledger_kernel.services.revenue_recognition_service import RevenueRecognitionService
from ledger_kernel.services.sequence_service import SequenceService
from ledger_kernel.services.settings_service import SettingsService
from ledger_kernel.services.year_end_close import YearEndCloseService

__all__ = [
    "AccountResolver",
    "EventPipeline",
    "EventRepository",
    "JournalWriter",
    "PeriodService",
    "RevenueRecognitionService",
    "SequenceService",
    "SettingsService",
    "YearEndCloseService",
    "seed_chart_of_accounts",
]
