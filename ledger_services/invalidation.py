"""
Cache invalidation port.

After a committed mutation ``LedgerActions`` tells the presentation layer
which paths are stale.  The notification is fire-and-forget: a failing
invalidator is logged and never changes the operation's result.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

JOURNAL_ENTRY_PATHS: tuple[str, ...] = (
    "/dashboard/journal-entries",
    "/api/v1/journal-entries",
)

ACCOUNTING_PERIOD_PATHS: tuple[str, ...] = (
    "/dashboard/settings/accounting-periods",
    "/api/v1/accounting-periods",
)

ACCOUNT_PATHS: tuple[str, ...] = (
    "/dashboard/accounts",
    "/api/v1/accounts",
)


@runtime_checkable
class CacheInvalidator(Protocol):
    """Receives the paths made stale by a committed mutation."""

    def invalidate(self, paths: tuple[str, ...]) -> None: ...


class NullInvalidator:
    """Default invalidator for callers without a presentation cache."""

    def invalidate(self, paths: tuple[str, ...]) -> None:
        return None
