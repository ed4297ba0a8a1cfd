"""
Ledger Services.

Outer boundary over the ledger kernel.  ``LedgerActions`` owns the
transaction, converts typed kernel exceptions and datastore errors into
``ActionResult`` values, and notifies the cache invalidator.
"""

from ledger_services.invalidation import (
    ACCOUNT_PATHS,
    ACCOUNTING_PERIOD_PATHS,
    JOURNAL_ENTRY_PATHS,
    CacheInvalidator,
    NullInvalidator,
)
from ledger_services.ledger_actions import LedgerActions

__all__ = [
    "LedgerActions",
    "CacheInvalidator",
    "NullInvalidator",
    "JOURNAL_ENTRY_PATHS",
    "ACCOUNTING_PERIOD_PATHS",
    "ACCOUNT_PATHS",
]
