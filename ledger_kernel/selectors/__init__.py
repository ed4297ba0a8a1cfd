"""Read-only ledger queries."""

from ledger_kernel.selectors.ledger_selector import (
    AccountTotals,
    LedgerLineRow,
    LedgerSelector,
)

__all__ = [
    "AccountTotals",
    "LedgerLineRow",
    "LedgerSelector",
]
