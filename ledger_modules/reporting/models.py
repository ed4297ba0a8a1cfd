"""
Financial Reporting Domain Models (``ledger_modules.reporting.models``).

Responsibility
--------------
Frozen dataclass value objects representing the statement outputs:
balance sheet, income statement, trial balance, general ledger and cash
flow statement.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Built by
``statements.py`` and returned by ``ReportingService``.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Amounts are signed natural balances: positive on the account's normal
  side, negative for contra balances.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from ledger_kernel.db.types import BALANCE_TOLERANCE


# =========================================================================
# Enums
# =========================================================================


class ReportType(str, Enum):
    """Types of financial reports."""

    BALANCE_SHEET = "balance_sheet"
    INCOME_STATEMENT = "income_statement"
    TRIAL_BALANCE = "trial_balance"
    GENERAL_LEDGER = "general_ledger"
    CASH_FLOW = "cash_flow"


class CashFlowActivity(str, Enum):
    """Cash flow statement sections."""

    OPERATING = "operating"
    INVESTING = "investing"
    FINANCING = "financing"


# =========================================================================
# Report Metadata (common to all reports)
# =========================================================================


@dataclass(frozen=True)
class ReportMetadata:
    """Metadata attached to every financial report."""

    report_type: ReportType
    organization_id: UUID
    entity_name: str
    currency: str
    as_of_date: date
    generated_at: str  # ISO format timestamp from injected clock
    period_start: date | None = None
    period_end: date | None = None
    accounting_period_id: UUID | None = None


@dataclass(frozen=True)
class StatementItem:
    """One account line on the balance sheet or income statement."""

    category: str
    sub_category: str | None
    account_code: str
    account_name: str
    amount: Decimal


# =========================================================================
# Balance Sheet
# =========================================================================


@dataclass(frozen=True)
class AssetSection:
    current: tuple[StatementItem, ...]
    fixed: tuple[StatementItem, ...]
    deferred: tuple[StatementItem, ...]
    other: tuple[StatementItem, ...]
    total_assets: Decimal


@dataclass(frozen=True)
class LiabilitySection:
    current: tuple[StatementItem, ...]
    fixed: tuple[StatementItem, ...]
    other: tuple[StatementItem, ...]
    total_liabilities: Decimal


@dataclass(frozen=True)
class EquitySection:
    capital: tuple[StatementItem, ...]
    retained_earnings: tuple[StatementItem, ...]
    other: tuple[StatementItem, ...]
    current_period_income: Decimal
    total_equity: Decimal


@dataclass(frozen=True)
class BalanceSheetReport:
    """Balance sheet as of ``metadata.as_of_date``."""

    metadata: ReportMetadata
    assets: AssetSection
    liabilities: LiabilitySection
    equity: EquitySection
    total_liabilities_and_equity: Decimal

    @property
    def is_balanced(self) -> bool:
        """Assets = Liabilities + Equity (within tolerance)."""
        return (
            abs(self.assets.total_assets - self.total_liabilities_and_equity)
            <= BALANCE_TOLERANCE
        )


# =========================================================================
# Income Statement
# =========================================================================


@dataclass(frozen=True)
class RevenueSection:
    sales_revenue: tuple[StatementItem, ...]
    other_revenue: tuple[StatementItem, ...]
    total_revenue: Decimal


@dataclass(frozen=True)
class ExpenseSection:
    cost_of_sales: tuple[StatementItem, ...]
    selling_expenses: tuple[StatementItem, ...]
    administrative_expenses: tuple[StatementItem, ...]
    other_expenses: tuple[StatementItem, ...]
    total_expenses: Decimal


@dataclass(frozen=True)
class NonOperatingSection:
    income: tuple[StatementItem, ...]
    expenses: tuple[StatementItem, ...]
    net_non_operating: Decimal


@dataclass(frozen=True)
class ExtraordinarySection:
    gains: tuple[StatementItem, ...]
    losses: tuple[StatementItem, ...]
    net_extraordinary: Decimal


@dataclass(frozen=True)
class IncomeStatementReport:
    """
    Multi-step income statement.

    operating_income = total_revenue - total_expenses
    ordinary_income = operating_income + net_non_operating
    income_before_tax = ordinary_income + net_extraordinary
    net_income = income_before_tax - tax_expense
    """

    metadata: ReportMetadata
    revenue: RevenueSection
    expenses: ExpenseSection
    operating_income: Decimal
    non_operating: NonOperatingSection
    ordinary_income: Decimal
    extraordinary: ExtraordinarySection
    income_before_tax: Decimal
    tax_expense: Decimal
    net_income: Decimal


# =========================================================================
# Trial Balance
# =========================================================================


@dataclass(frozen=True)
class TrialBalanceItem:
    """A single account row in the trial balance."""

    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    category: str
    beginning_debit: Decimal
    beginning_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    ending_debit: Decimal
    ending_credit: Decimal


@dataclass(frozen=True)
class TrialBalanceTotals:
    beginning_debit: Decimal
    beginning_credit: Decimal
    period_debit: Decimal
    period_credit: Decimal
    ending_debit: Decimal
    ending_credit: Decimal


@dataclass(frozen=True)
class TrialBalanceReport:
    """Complete trial balance report."""

    metadata: ReportMetadata
    items: tuple[TrialBalanceItem, ...]
    totals: TrialBalanceTotals

    @property
    def is_balanced(self) -> bool:
        """Ending debit column equals ending credit column."""
        return self.totals.ending_debit == self.totals.ending_credit


# =========================================================================
# General Ledger
# =========================================================================


@dataclass(frozen=True)
class GeneralLedgerEntry:
    """One posted line replayed against its account's running balance."""

    entry_id: UUID
    entry_date: date
    entry_number: str
    description: str
    debit_amount: Decimal
    credit_amount: Decimal
    balance: Decimal


@dataclass(frozen=True)
class GeneralLedgerAccount:
    account_id: UUID
    account_code: str
    account_name: str
    account_type: str
    opening_balance: Decimal
    entries: tuple[GeneralLedgerEntry, ...]
    closing_balance: Decimal
    total_debits: Decimal
    total_credits: Decimal


@dataclass(frozen=True)
class GeneralLedgerReport:
    metadata: ReportMetadata
    accounts: tuple[GeneralLedgerAccount, ...]


# =========================================================================
# Cash Flow Statement
# =========================================================================


@dataclass(frozen=True)
class CashFlowItem:
    """Net cash movement of one journal entry."""

    category: str  # name of the offsetting account
    description: str
    amount: Decimal  # positive = inflow
    entry_number: str
    entry_date: date


@dataclass(frozen=True)
class CashFlowSection:
    activity: CashFlowActivity
    items: tuple[CashFlowItem, ...]
    net: Decimal


@dataclass(frozen=True)
class CashFlowStatementReport:
    """
    Cash flow statement.

    ending_cash = beginning_cash + net_change
    """

    metadata: ReportMetadata
    operating: CashFlowSection
    investing: CashFlowSection
    financing: CashFlowSection
    beginning_cash: Decimal
    net_change: Decimal
    ending_cash: Decimal
