"""
Ledger Modules.

Read-side modules layered over the ledger kernel.

Modules:
- Reporting: balance sheet, income statement, trial balance, general
  ledger, cash flow statement
"""
