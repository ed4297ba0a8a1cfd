"""
Pure financial statement transformation functions.

These functions turn account metadata and aggregated ledger totals into
structured financial statements. ZERO I/O. ZERO side effects.

All monetary values are Decimal. All inputs/outputs are frozen dataclasses.

- No database access
- No clock access
- Deterministic: same inputs always produce same outputs
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from ledger_kernel.db.types import ZERO
from ledger_kernel.domain.results import to_primitive
from ledger_kernel.models.account import AccountType, NormalBalance
from ledger_kernel.selectors.ledger_selector import AccountTotals, LedgerLineRow
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
    RevenueSection,
    StatementItem,
    TrialBalanceItem,
    TrialBalanceReport,
    TrialBalanceTotals,
)

# =========================================================================
# Bridge type: account metadata for pure functions
# =========================================================================


@dataclasses.dataclass(frozen=True)
class AccountInfo:
    """
    Snapshot of account metadata needed for classification.

    This is the bridge between the ORM layer (Account model) and the pure
    transformation functions. The service converts Account objects to
    AccountInfo before calling any function here.
    """

    account_id: UUID
    code: str
    name: str
    account_type: AccountType
    category: str
    sub_category: str | None = None

    @property
    def normal_balance(self) -> NormalBalance:
        return self.account_type.normal_balance


# =========================================================================
# Helpers
# =========================================================================


def compute_natural_balance(
    debit_total: Decimal,
    credit_total: Decimal,
    normal_balance: NormalBalance,
) -> Decimal:
    """
    Compute balance adjusted for normal balance side.

    DEBIT-normal (ASSET, EXPENSE): balance = debit_total - credit_total
    CREDIT-normal (LIABILITY, EQUITY, REVENUE): balance = credit_total - debit_total

    Result is positive when account has its expected normal direction.
    """
    if normal_balance == NormalBalance.DEBIT:
        return debit_total - credit_total
    return credit_total - debit_total


def _by_code(accounts: dict[UUID, AccountInfo]) -> list[AccountInfo]:
    return sorted(accounts.values(), key=lambda a: a.code)


def _natural(acct: AccountInfo, totals: dict[UUID, AccountTotals]) -> Decimal:
    row = totals.get(acct.account_id)
    if row is None:
        return ZERO
    return compute_natural_balance(row.debit_total, row.credit_total, acct.normal_balance)


def _item(acct: AccountInfo, amount: Decimal) -> StatementItem:
    return StatementItem(
        category=acct.category,
        sub_category=acct.sub_category,
        account_code=acct.code,
        account_name=acct.name,
        amount=amount,
    )


def _total(items: Iterable[StatementItem]) -> Decimal:
    return sum((i.amount for i in items), ZERO)


# =========================================================================
# 1. BALANCE SHEET
# =========================================================================


def build_balance_sheet(
    metadata: ReportMetadata,
    accounts: dict[UUID, AccountInfo],
    totals: dict[UUID, AccountTotals],
    config: ReportingConfig,
) -> BalanceSheetReport:
    """
    Build a balance sheet from cumulative totals up to the as-of date.

    Asset, liability and equity accounts are bucketed by category.  An
    account whose category matches no section is listed under ``other`` so
    that section totals always cover every account of the type.  Revenue
    and expense accounts are folded into equity as current period income.
    """
    rules = config.classification
    sections: dict[str, list[StatementItem]] = defaultdict(list)
    totals_by_type: dict[AccountType, Decimal] = defaultdict(lambda: ZERO)
    current_income = ZERO

    for acct in _by_code(accounts):
        amount = _natural(acct, totals)

        if acct.account_type == AccountType.REVENUE:
            current_income += amount
            continue
        if acct.account_type == AccountType.EXPENSE:
            current_income -= amount
            continue

        totals_by_type[acct.account_type] += amount
        if amount == ZERO and not config.include_zero_balances:
            continue
        sections[_balance_sheet_section(acct, rules)].append(_item(acct, amount))

    total_assets = totals_by_type[AccountType.ASSET]
    total_liabilities = totals_by_type[AccountType.LIABILITY]
    total_equity = totals_by_type[AccountType.EQUITY] + current_income

    return BalanceSheetReport(
        metadata=metadata,
        assets=AssetSection(
            current=tuple(sections["asset.current"]),
            fixed=tuple(sections["asset.fixed"]),
            deferred=tuple(sections["asset.deferred"]),
            other=tuple(sections["asset.other"]),
            total_assets=total_assets,
        ),
        liabilities=LiabilitySection(
            current=tuple(sections["liability.current"]),
            fixed=tuple(sections["liability.fixed"]),
            other=tuple(sections["liability.other"]),
            total_liabilities=total_liabilities,
        ),
        equity=EquitySection(
            capital=tuple(sections["equity.capital"]),
            retained_earnings=tuple(sections["equity.retained_earnings"]),
            other=tuple(sections["equity.other"]),
            current_period_income=current_income,
            total_equity=total_equity,
        ),
        total_liabilities_and_equity=total_liabilities + total_equity,
    )


def _balance_sheet_section(acct: AccountInfo, rules: AccountClassification) -> str:
    category = acct.category
    if acct.account_type == AccountType.ASSET:
        if rules.matches(category, rules.current_asset_categories):
            return "asset.current"
        if rules.matches(category, rules.fixed_asset_categories):
            return "asset.fixed"
        if rules.matches(category, rules.deferred_asset_categories):
            return "asset.deferred"
        return "asset.other"
    if acct.account_type == AccountType.LIABILITY:
        if rules.matches(category, rules.current_liability_categories):
            return "liability.current"
        if rules.matches(category, rules.fixed_liability_categories):
            return "liability.fixed"
        return "liability.other"
    if rules.matches(category, rules.capital_categories):
        return "equity.capital"
    if rules.matches(category, rules.retained_earnings_categories):
        return "equity.retained_earnings"
    return "equity.other"


# =========================================================================
# 2. INCOME STATEMENT
# =========================================================================


def build_income_statement(
    metadata: ReportMetadata,
    accounts: dict[UUID, AccountInfo],
    totals: dict[UUID, AccountTotals],
    config: ReportingConfig,
) -> IncomeStatementReport:
    """
    Build a multi-step income statement from totals over the period.

    Non-operating and extraordinary accounts are reported only in their
    own sections, never in operating revenue or expenses.  Tax expense is
    the sum of the tax categories.
    """
    rules = config.classification
    sections: dict[str, list[StatementItem]] = defaultdict(list)
    tax_expense = ZERO

    for acct in _by_code(accounts):
        if acct.account_type not in (AccountType.REVENUE, AccountType.EXPENSE):
            continue
        amount = _natural(acct, totals)
        if amount == ZERO and not config.include_zero_balances:
            continue

        section = _income_statement_section(acct, rules)
        if section == "tax":
            tax_expense += amount
            continue
        sections[section].append(_item(acct, amount))

    revenue = RevenueSection(
        sales_revenue=tuple(sections["sales_revenue"]),
        other_revenue=tuple(sections["other_revenue"]),
        total_revenue=_total(sections["sales_revenue"]) + _total(sections["other_revenue"]),
    )
    operating_expense_keys = (
        "cost_of_sales",
        "selling_expenses",
        "administrative_expenses",
        "other_expenses",
    )
    expenses = ExpenseSection(
        cost_of_sales=tuple(sections["cost_of_sales"]),
        selling_expenses=tuple(sections["selling_expenses"]),
        administrative_expenses=tuple(sections["administrative_expenses"]),
        other_expenses=tuple(sections["other_expenses"]),
        total_expenses=sum((_total(sections[k]) for k in operating_expense_keys), ZERO),
    )
    non_operating = NonOperatingSection(
        income=tuple(sections["non_operating_income"]),
        expenses=tuple(sections["non_operating_expenses"]),
        net_non_operating=(
            _total(sections["non_operating_income"])
            - _total(sections["non_operating_expenses"])
        ),
    )
    extraordinary = ExtraordinarySection(
        gains=tuple(sections["extraordinary_gains"]),
        losses=tuple(sections["extraordinary_losses"]),
        net_extraordinary=(
            _total(sections["extraordinary_gains"])
            - _total(sections["extraordinary_losses"])
        ),
    )

    operating_income = revenue.total_revenue - expenses.total_expenses
    ordinary_income = operating_income + non_operating.net_non_operating
    income_before_tax = ordinary_income + extraordinary.net_extraordinary

    return IncomeStatementReport(
        metadata=metadata,
        revenue=revenue,
        expenses=expenses,
        operating_income=operating_income,
        non_operating=non_operating,
        ordinary_income=ordinary_income,
        extraordinary=extraordinary,
        income_before_tax=income_before_tax,
        tax_expense=tax_expense,
        net_income=income_before_tax - tax_expense,
    )


def _income_statement_section(acct: AccountInfo, rules: AccountClassification) -> str:
    category = acct.category
    if acct.account_type == AccountType.REVENUE:
        if rules.matches(category, rules.sales_revenue_categories):
            return "sales_revenue"
        if rules.matches(category, rules.non_operating_income_categories):
            return "non_operating_income"
        if rules.matches(category, rules.extraordinary_gain_categories):
            return "extraordinary_gains"
        return "other_revenue"
    if rules.matches(category, rules.cost_of_sales_categories):
        return "cost_of_sales"
    if rules.matches(category, rules.selling_expense_categories):
        return "selling_expenses"
    if rules.matches(category, rules.administrative_expense_categories):
        return "administrative_expenses"
    if rules.matches(category, rules.non_operating_expense_categories):
        return "non_operating_expenses"
    if rules.matches(category, rules.extraordinary_loss_categories):
        return "extraordinary_losses"
    if rules.matches(category, rules.tax_expense_categories):
        return "tax"
    return "other_expenses"


# =========================================================================
# 3. TRIAL BALANCE
# =========================================================================


def build_trial_balance(
    metadata: ReportMetadata,
    accounts: dict[UUID, AccountInfo],
    beginning: dict[UUID, AccountTotals],
    period: dict[UUID, AccountTotals],
) -> TrialBalanceReport:
    """
    Build a gross-column trial balance.

    ending = beginning + period, column by column.  Accounts whose ending
    debit and ending credit are both zero are omitted.  In a ledger of
    balanced entries the ending debit and credit totals are equal.
    """
    items: list[TrialBalanceItem] = []
    for acct in _by_code(accounts):
        begin = beginning.get(acct.account_id)
        within = period.get(acct.account_id)
        beginning_debit = begin.debit_total if begin else ZERO
        beginning_credit = begin.credit_total if begin else ZERO
        period_debit = within.debit_total if within else ZERO
        period_credit = within.credit_total if within else ZERO
        ending_debit = beginning_debit + period_debit
        ending_credit = beginning_credit + period_credit

        if ending_debit == ZERO and ending_credit == ZERO:
            continue

        items.append(
            TrialBalanceItem(
                account_id=acct.account_id,
                account_code=acct.code,
                account_name=acct.name,
                account_type=acct.account_type.value,
                category=acct.category,
                beginning_debit=beginning_debit,
                beginning_credit=beginning_credit,
                period_debit=period_debit,
                period_credit=period_credit,
                ending_debit=ending_debit,
                ending_credit=ending_credit,
            )
        )

    def column(name: str) -> Decimal:
        return sum((getattr(i, name) for i in items), ZERO)

    totals = TrialBalanceTotals(
        beginning_debit=column("beginning_debit"),
        beginning_credit=column("beginning_credit"),
        period_debit=column("period_debit"),
        period_credit=column("period_credit"),
        ending_debit=column("ending_debit"),
        ending_credit=column("ending_credit"),
    )
    return TrialBalanceReport(metadata=metadata, items=tuple(items), totals=totals)


# =========================================================================
# 4. GENERAL LEDGER
# =========================================================================


def build_general_ledger(
    metadata: ReportMetadata,
    accounts: dict[UUID, AccountInfo],
    opening: dict[UUID, AccountTotals],
    lines: list[LedgerLineRow],
) -> GeneralLedgerReport:
    """
    Replay in-range lines per account against a running balance.

    ``lines`` must already be in posting order (entry_date, entry_number,
    line_number).  Balances are signed natural balances.  Accounts with
    neither an opening balance nor activity are omitted.
    """
    lines_by_account: dict[UUID, list[LedgerLineRow]] = defaultdict(list)
    for line in lines:
        lines_by_account[line.account_id].append(line)

    ledger_accounts: list[GeneralLedgerAccount] = []
    for acct in _by_code(accounts):
        opening_balance = _natural(acct, opening)
        account_lines = lines_by_account.get(acct.account_id, [])
        if not account_lines and opening_balance == ZERO:
            continue

        running = opening_balance
        total_debits = ZERO
        total_credits = ZERO
        entries: list[GeneralLedgerEntry] = []
        for line in account_lines:
            running += compute_natural_balance(line.debit, line.credit, acct.normal_balance)
            total_debits += line.debit
            total_credits += line.credit
            entries.append(
                GeneralLedgerEntry(
                    entry_id=line.entry_id,
                    entry_date=line.entry_date,
                    entry_number=line.entry_number,
                    description=line.line_description or line.entry_description,
                    debit_amount=line.debit,
                    credit_amount=line.credit,
                    balance=running,
                )
            )

        ledger_accounts.append(
            GeneralLedgerAccount(
                account_id=acct.account_id,
                account_code=acct.code,
                account_name=acct.name,
                account_type=acct.account_type.value,
                opening_balance=opening_balance,
                entries=tuple(entries),
                closing_balance=running,
                total_debits=total_debits,
                total_credits=total_credits,
            )
        )

    return GeneralLedgerReport(metadata=metadata, accounts=tuple(ledger_accounts))


# =========================================================================
# 5. CASH FLOW STATEMENT
# =========================================================================


def cash_account_ids(
    accounts: dict[UUID, AccountInfo],
    config: ReportingConfig,
) -> set[UUID]:
    """Accounts whose sub_category marks them as cash or cash equivalents."""
    rules = config.classification
    return {
        acct.account_id
        for acct in accounts.values()
        if rules.matches(acct.sub_category, rules.cash_sub_categories)
    }


def build_cash_flow_statement(
    metadata: ReportMetadata,
    accounts: dict[UUID, AccountInfo],
    beginning: dict[UUID, AccountTotals],
    lines: list[LedgerLineRow],
    config: ReportingConfig,
) -> CashFlowStatementReport:
    """
    Attribute each entry's net cash movement to an activity.

    For every entry touching a cash account, the cash-side lines are netted
    (debit increases cash).  The first non-cash line by line number decides
    the activity through its account category.  Entries with no net cash
    movement are skipped.  Items keep posting order.
    """
    rules = config.classification
    cash_ids = cash_account_ids(accounts, config)

    beginning_cash = sum(
        (row.balance for account_id, row in beginning.items() if account_id in cash_ids),
        ZERO,
    )

    entries: dict[UUID, list[LedgerLineRow]] = defaultdict(list)
    for line in lines:
        entries[line.entry_id].append(line)

    items: dict[CashFlowActivity, list[CashFlowItem]] = {a: [] for a in CashFlowActivity}
    for entry_lines in entries.values():
        cash_lines = [ln for ln in entry_lines if ln.account_id in cash_ids]
        if not cash_lines:
            continue
        change = sum((ln.debit - ln.credit for ln in cash_lines), ZERO)
        if change == ZERO:
            continue

        offsets = sorted(
            (ln for ln in entry_lines if ln.account_id not in cash_ids),
            key=lambda ln: ln.line_number,
        )
        if not offsets or offsets[0].account_id not in accounts:
            continue
        offset = accounts[offsets[0].account_id]

        if rules.matches(offset.category, rules.investing_categories):
            activity = CashFlowActivity.INVESTING
        elif rules.matches(offset.category, rules.financing_categories):
            activity = CashFlowActivity.FINANCING
        else:
            activity = CashFlowActivity.OPERATING

        first = entry_lines[0]
        items[activity].append(
            CashFlowItem(
                category=offset.name,
                description=first.entry_description,
                amount=change,
                entry_number=first.entry_number,
                entry_date=first.entry_date,
            )
        )

    sections = {
        activity: CashFlowSection(
            activity=activity,
            items=tuple(activity_items),
            net=sum((i.amount for i in activity_items), ZERO),
        )
        for activity, activity_items in items.items()
    }
    net_change = sum((s.net for s in sections.values()), ZERO)

    return CashFlowStatementReport(
        metadata=metadata,
        operating=sections[CashFlowActivity.OPERATING],
        investing=sections[CashFlowActivity.INVESTING],
        financing=sections[CashFlowActivity.FINANCING],
        beginning_cash=beginning_cash,
        net_change=net_change,
        ending_cash=beginning_cash + net_change,
    )


# =========================================================================
# 6. RENDERER (dict/JSON output)
# =========================================================================


def render_to_dict(obj: object) -> Any:
    """
    Convert any report dataclass to a plain dict for JSON serialization.

    Decimal -> str (preserving precision), UUID -> str, date -> ISO string,
    Enum -> value, nested dataclasses -> dicts, tuples -> lists.
    """
    return to_primitive(obj)
