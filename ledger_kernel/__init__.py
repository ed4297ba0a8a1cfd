"""
ledger_kernel -- double-entry bookkeeping core.

Accounts, accounting periods, journal entries and their lines, plus the
services that enforce balance, period boundaries and referential integrity
when those records change.  Statement generation lives in
``ledger_modules.reporting``; the result-returning public surface lives in
``ledger_services``.
"""

__version__ = "0.1.0"
