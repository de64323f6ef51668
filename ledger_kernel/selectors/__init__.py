"""Read-only query layer."""

from ledger_kernel.selectors.chart_of_accounts import ChartAccountInfo, ChartOfAccountsSelector
from ledger_kernel.selectors.journal_selector import (
    AccountTotals,
    JournalEntryDTO,
    JournalLineDTO,
    JournalSelector,
)

__all__ = [
    "AccountTotals",
    "ChartAccountInfo",
    "ChartOfAccountsSelector",
    "JournalEntryDTO",
    "JournalLineDTO",
    "JournalSelector",
]
