"""Kernel services: period lifecycle, journal entry posting, chart of accounts."""

from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_entry_service import JournalEntryService
from ledger_kernel.services.period_service import PeriodService

__all__ = [
    "AccountService",
    "JournalEntryService",
    "PeriodService",
]
