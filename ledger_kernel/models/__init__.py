"""ORM models for the ledger store."""

from ledger_kernel.models.account import Account, AccountType, NormalBalance
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from ledger_kernel.models.partner import Partner

__all__ = [
    "Account",
    "AccountType",
    "AccountingPeriod",
    "JournalEntry",
    "JournalEntryLine",
    "JournalEntryStatus",
    "NormalBalance",
    "Partner",
]
