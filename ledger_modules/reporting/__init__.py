"""
Financial Reporting Module (``ledger_modules.reporting``).

Responsibility
--------------
Read-only module that generates financial statements from approved
journal entries: balance sheet, income statement, trial balance, general
ledger and cash flow statement.

Architecture position
---------------------
**Modules layer** -- pure functions in ``statements.py`` do the
classification and arithmetic; ``ReportingService`` loads data through
``LedgerSelector`` and hands it to them.

Invariants enforced
-------------------
* No journal entries are created by this module (read-only guarantee).
* Statements derive entirely from journal lines (no stored balances).
"""

from ledger_modules.reporting.config import AccountClassification, ReportingConfig
from ledger_modules.reporting.models import (
    AssetSection,
    BalanceSheetReport,
    CashFlowActivity,
    CashFlowItem,
    CashFlowSection,
    CashFlowStatementReport,
    EquitySection,
    ExpenseSection,
    ExtraordinarySection,
    GeneralLedgerAccount,
    GeneralLedgerEntry,
    GeneralLedgerReport,
    IncomeStatementReport,
    LiabilitySection,
    NonOperatingSection,
    ReportMetadata,
    ReportType,
    RevenueSection,
    StatementItem,
    TrialBalanceItem,
    TrialBalanceReport,
    TrialBalanceTotals,
)
from ledger_modules.reporting.service import ReportingService
from ledger_modules.reporting.statements import render_to_dict

__all__ = [
    # Service
    "ReportingService",
    "render_to_dict",
    # Config
    "AccountClassification",
    "ReportingConfig",
    # Models
    "ReportType",
    "ReportMetadata",
    "StatementItem",
    "AssetSection",
    "LiabilitySection",
    "EquitySection",
    "BalanceSheetReport",
    "RevenueSection",
    "ExpenseSection",
    "NonOperatingSection",
    "ExtraordinarySection",
    "IncomeStatementReport",
    "TrialBalanceItem",
    "TrialBalanceTotals",
    "TrialBalanceReport",
    "GeneralLedgerEntry",
    "GeneralLedgerAccount",
    "GeneralLedgerReport",
    "CashFlowActivity",
    "CashFlowItem",
    "CashFlowSection",
    "CashFlowStatementReport",
]
