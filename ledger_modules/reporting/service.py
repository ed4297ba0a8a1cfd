"""
Reporting Module Service (``ledger_modules.reporting.service``).

Responsibility
--------------
Orchestrates statement generation -- balance sheet, income statement,
trial balance, general ledger and cash flow statement -- by bridging the
``LedgerSelector`` aggregations to the pure transformation functions in
``statements.py``.  This is a **read-only** service.

Architecture position
---------------------
**Modules layer** -- ``ReportingService`` is the sole public entry point for
statement generation.  Constructor: ``session`` + ``clock`` + ``config``.

Invariants enforced
-------------------
* Read-only -- no mutations, no flush, no commit.
* Only APPROVED entries are aggregated.
* All monetary amounts use ``Decimal`` -- NEVER ``float``.

Failure modes
-------------
* No identity -> ``UnauthorizedError``.
* Unparsable date -> ``InvalidDateFormatError``; start after end ->
  ``InvalidDateRangeError``.
* Unknown account filter -> ``AccountNotFoundError``.
* Selector query failure -> exception propagates.
"""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from ledger_kernel.domain.authorization import authenticated
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.identity import Identity
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidDateFormatError,
    InvalidDateRangeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.selectors.ledger_selector import LedgerSelector
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowStatementReport,
    GeneralLedgerReport,
    IncomeStatementReport,
    ReportMetadata,
    ReportType,
    TrialBalanceReport,
)
from ledger_modules.reporting.statements import (
    AccountInfo,
    build_balance_sheet,
    build_cash_flow_statement,
    build_general_ledger,
    build_income_statement,
    build_trial_balance,
    cash_account_ids,
)

logger = get_logger("modules.reporting.service")

DateInput = date | str


def parse_report_date(value: DateInput | None) -> date:
    """
    Accept a ``date`` or an ISO ``YYYY-MM-DD`` string.

    Raises:
        InvalidDateFormatError: On None, datetimes, or unparsable strings.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    # Python 3.11 also accepts basic "YYYYMMDD"; only the extended form is allowed
    if not isinstance(value, str) or len(value.strip()) != 10:
        raise InvalidDateFormatError(value)
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise InvalidDateFormatError(value) from None


def parse_report_range(start: DateInput | None, end: DateInput | None) -> tuple[date, date]:
    start_date = parse_report_date(start)
    end_date = parse_report_date(end)
    if start_date > end_date:
        raise InvalidDateRangeError(start_date, end_date)
    return start_date, end_date


class ReportingService:
    """
    Financial statement generation service.

    Contract
    --------
    * Every public method takes the caller's identity first and returns a
      typed report DTO.  Every role may read reports.
    * Reports are scoped to the identity's organization.
    * All methods are read-only.

    Guarantees
    ----------
    * Report generation delegates to pure functions in ``statements.py``;
      no financial logic lives in this class.
    * Clock is injectable for deterministic ``generated_at`` stamps.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._config = config or ReportingConfig.with_defaults()
        self._ledger = LedgerSelector(session)

        logger.debug(
            "reporting_service_initialized",
            extra={
                "entity_name": self._config.entity_name,
                "currency": self._config.currency,
            },
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _load_accounts(
        self,
        organization_id: UUID,
        account_id: UUID | None = None,
    ) -> dict[UUID, AccountInfo]:
        """
        Load the organization's accounts as AccountInfo bridge objects.

        Inactive accounts are included: they may still carry balances.
        """
        stmt = select(Account).where(Account.organization_id == organization_id)
        if account_id is not None:
            stmt = stmt.where(Account.id == account_id)

        accounts: dict[UUID, AccountInfo] = {}
        for acct in self._session.execute(stmt).scalars():
            accounts[acct.id] = AccountInfo(
                account_id=acct.id,
                code=acct.code,
                name=acct.name,
                account_type=AccountType(acct.account_type),
                category=acct.category,
                sub_category=acct.sub_category,
            )

        if account_id is not None and not accounts:
            raise AccountNotFoundError(account_id)

        logger.debug(
            "accounts_loaded_for_reporting",
            extra={"account_count": len(accounts)},
        )
        return accounts

    def _build_metadata(
        self,
        report_type: ReportType,
        organization_id: UUID,
        as_of_date: date,
        period_start: date | None = None,
        period_end: date | None = None,
        period_id: UUID | None = None,
    ) -> ReportMetadata:
        """Build report metadata with injected clock timestamp."""
        return ReportMetadata(
            report_type=report_type,
            organization_id=organization_id,
            entity_name=self._config.entity_name,
            currency=self._config.currency,
            as_of_date=as_of_date,
            generated_at=self._clock.now().isoformat(),
            period_start=period_start,
            period_end=period_end,
            accounting_period_id=period_id,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def get_balance_sheet(
        self,
        identity: Identity | None,
        as_of: DateInput,
        period_id: UUID | None = None,
    ) -> BalanceSheetReport:
        """
        Generate a balance sheet from all approved lines dated on or before
        ``as_of``.

        Returns:
            BalanceSheetReport; ``is_balanced`` holds for a ledger of
            balanced entries.
        """
        identity = authenticated(identity)
        as_of_date = parse_report_date(as_of)
        org = identity.organization_id

        accounts = self._load_accounts(org)
        totals = self._ledger.account_totals(org, end=as_of_date, period_id=period_id)
        metadata = self._build_metadata(
            ReportType.BALANCE_SHEET, org, as_of_date, period_id=period_id,
        )
        report = build_balance_sheet(metadata, accounts, totals, self._config)

        logger.info(
            "balance_sheet_generated",
            extra={
                "as_of_date": as_of_date.isoformat(),
                "total_assets": str(report.assets.total_assets),
                "total_l_and_e": str(report.total_liabilities_and_equity),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def get_income_statement(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        period_id: UUID | None = None,
    ) -> IncomeStatementReport:
        """Generate a multi-step income statement for ``[start, end]``."""
        identity = authenticated(identity)
        start_date, end_date = parse_report_range(start, end)
        org = identity.organization_id

        accounts = self._load_accounts(org)
        totals = self._ledger.account_totals(
            org, start=start_date, end=end_date, period_id=period_id,
        )
        metadata = self._build_metadata(
            ReportType.INCOME_STATEMENT, org, end_date,
            period_start=start_date, period_end=end_date, period_id=period_id,
        )
        report = build_income_statement(metadata, accounts, totals, self._config)

        logger.info(
            "income_statement_generated",
            extra={
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
                "net_income": str(report.net_income),
            },
        )
        return report

    def get_trial_balance(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        period_id: UUID | None = None,
    ) -> TrialBalanceReport:
        """
        Generate a trial balance with beginning, period and ending columns.

        Beginning columns cover approved lines strictly before ``start``.
        """
        identity = authenticated(identity)
        start_date, end_date = parse_report_range(start, end)
        org = identity.organization_id

        accounts = self._load_accounts(org)
        beginning = self._ledger.account_totals(org, before=start_date, period_id=period_id)
        period = self._ledger.account_totals(
            org, start=start_date, end=end_date, period_id=period_id,
        )
        metadata = self._build_metadata(
            ReportType.TRIAL_BALANCE, org, end_date,
            period_start=start_date, period_end=end_date, period_id=period_id,
        )
        report = build_trial_balance(metadata, accounts, beginning, period)

        logger.info(
            "trial_balance_generated",
            extra={
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
                "line_count": len(report.items),
                "is_balanced": report.is_balanced,
            },
        )
        return report

    def get_general_ledger(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        account_id: UUID | None = None,
        period_id: UUID | None = None,
    ) -> GeneralLedgerReport:
        """
        Generate the general ledger for ``[start, end]``.

        Args:
            account_id: Restrict the report to one account.
            period_id: Restrict to entries booked against one period.
        """
        identity = authenticated(identity)
        start_date, end_date = parse_report_range(start, end)
        org = identity.organization_id

        accounts = self._load_accounts(org, account_id)
        account_ids = list(accounts) if account_id is not None else None
        opening = self._ledger.account_totals(
            org, before=start_date, period_id=period_id, account_ids=account_ids,
        )
        lines = self._ledger.ledger_lines(
            org, start_date, end_date, period_id=period_id, account_ids=account_ids,
        )
        metadata = self._build_metadata(
            ReportType.GENERAL_LEDGER, org, end_date,
            period_start=start_date, period_end=end_date, period_id=period_id,
        )
        report = build_general_ledger(metadata, accounts, opening, lines)

        logger.info(
            "general_ledger_generated",
            extra={
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
                "account_count": len(report.accounts),
                "line_count": len(lines),
            },
        )
        return report

    def get_cash_flow_statement(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        period_id: UUID | None = None,
    ) -> CashFlowStatementReport:
        """Generate the cash flow statement for ``[start, end]``."""
        identity = authenticated(identity)
        start_date, end_date = parse_report_range(start, end)
        org = identity.organization_id

        accounts = self._load_accounts(org)
        cash_ids = cash_account_ids(accounts, self._config)
        beginning = self._ledger.account_totals(
            org, before=start_date, period_id=period_id, account_ids=cash_ids,
        )
        lines = self._ledger.ledger_lines(org, start_date, end_date, period_id=period_id)
        metadata = self._build_metadata(
            ReportType.CASH_FLOW, org, end_date,
            period_start=start_date, period_end=end_date, period_id=period_id,
        )
        report = build_cash_flow_statement(
            metadata, accounts, beginning, lines, self._config,
        )

        logger.info(
            "cash_flow_statement_generated",
            extra={
                "period_start": start_date.isoformat(),
                "period_end": end_date.isoformat(),
                "cash_account_count": len(cash_ids),
                "net_change": str(report.net_change),
            },
        )
        return report
