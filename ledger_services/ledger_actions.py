"""
LedgerActions -- the public boundary of the ledger.

Responsibility:
    Exposes every journal, period, chart-of-accounts and report operation
    as a method returning ``ActionResult``.  Owns the transaction: commit on
    success, rollback on failure.  Converts typed kernel exceptions and
    datastore errors into the stable error codes, and notifies the cache
    invalidator after a committed mutation.

Architecture position:
    Services layer -- imperative shell over ``ledger_kernel.services`` and
    ``ledger_modules.reporting``.  Nothing below this layer commits.

Error translation:
    - ``LedgerError`` -> its own code, message and details.
    - ``IntegrityError`` -> ALREADY_EXISTS (unique), CONSTRAINT_VIOLATION
      (foreign key), INTERNAL_ERROR otherwise.
    - Any other exception -> INTERNAL_ERROR with a generic message.  The
      traceback goes to the log, never into the result.

Audit relevance:
    Every invocation is logged with correlation_id, actor_id,
    organization_id, action and duration_ms.
"""

from __future__ import annotations

import time
from datetime import date
from typing import Any, Callable, Sequence, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountDetails,
    AccountInput,
    AccountPatch,
    AccountingPeriodInfo,
    JournalEntryInfo,
    JournalEntryInput,
    JournalEntryPatch,
    JournalLineInput,
    Page,
    PeriodInput,
    PeriodPatch,
)
from ledger_kernel.domain.identity import Identity
from ledger_kernel.domain.results import ActionResult, ErrorCode
from ledger_kernel.exceptions import LedgerError
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_entry_service import JournalEntryService
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import (
    BalanceSheetReport,
    CashFlowStatementReport,
    GeneralLedgerReport,
    IncomeStatementReport,
    TrialBalanceReport,
)
from ledger_modules.reporting.service import DateInput, ReportingService
from ledger_services.invalidation import (
    ACCOUNT_PATHS,
    ACCOUNTING_PERIOD_PATHS,
    JOURNAL_ENTRY_PATHS,
    CacheInvalidator,
    NullInvalidator,
)

logger = get_logger("services.ledger_actions")

T = TypeVar("T")

INTERNAL_ERROR_MESSAGE = "システムエラーが発生しました。"
DUPLICATE_MESSAGE = "このデータは既に存在します。"
REFERENCE_MESSAGE = "関連するデータが存在しないため、操作を実行できません。"

# PostgreSQL SQLSTATE codes
_PG_UNIQUE_VIOLATION = "23505"
_PG_FOREIGN_KEY_VIOLATION = "23503"


def translate_integrity_error(exc: IntegrityError) -> tuple[ErrorCode, str]:
    """Map a datastore constraint failure onto the result error codes."""
    orig = exc.orig
    pgcode = getattr(orig, "pgcode", None)
    text = str(orig).upper()
    if pgcode == _PG_UNIQUE_VIOLATION or "UNIQUE" in text:
        return ErrorCode.ALREADY_EXISTS, DUPLICATE_MESSAGE
    if pgcode == _PG_FOREIGN_KEY_VIOLATION or "FOREIGN KEY" in text:
        return ErrorCode.CONSTRAINT_VIOLATION, REFERENCE_MESSAGE
    return ErrorCode.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE


class LedgerActions:
    """
    Result-returning facade over the ledger kernel.

    Contract:
        Every public method takes the caller's identity first and returns
        ``ActionResult``.  No exception escapes.

    Guarantees:
        - With ``auto_commit=True`` (the default) a successful mutation is
          committed before the result is returned, and any failure rolls
          the session back.
        - The invalidator is called only after a commit.

    Non-goals:
        - Does NOT validate anything itself; the kernel services do.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        config: ReportingConfig | None = None,
        invalidator: CacheInvalidator | None = None,
        auto_commit: bool = True,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._auto_commit = auto_commit
        self._invalidator = invalidator or NullInvalidator()

        self._periods = PeriodService(session, self._clock)
        self._entries = JournalEntryService(session, self._clock, self._periods)
        self._accounts = AccountService(session)
        self._reports = ReportingService(session, self._clock, config)

    # =========================================================================
    # Journal entries
    # =========================================================================

    def create_journal_entry(
        self,
        identity: Identity | None,
        entry: JournalEntryInput,
        lines: Sequence[JournalLineInput],
    ) -> ActionResult[JournalEntryInfo]:
        return self._mutate(
            "journal_entry.create", identity, JOURNAL_ENTRY_PATHS,
            lambda: self._entries.create_entry(identity, entry, lines),
        )

    def update_journal_entry(
        self,
        identity: Identity | None,
        entry_id: UUID,
        patch: JournalEntryPatch,
        lines: Sequence[JournalLineInput] | None = None,
    ) -> ActionResult[JournalEntryInfo]:
        return self._mutate(
            "journal_entry.update", identity, JOURNAL_ENTRY_PATHS,
            lambda: self._entries.update_entry(identity, entry_id, patch, lines),
            entry_id=entry_id,
        )

    def approve_journal_entry(
        self, identity: Identity | None, entry_id: UUID
    ) -> ActionResult[JournalEntryInfo]:
        return self._mutate(
            "journal_entry.approve", identity, JOURNAL_ENTRY_PATHS,
            lambda: self._entries.approve_entry(identity, entry_id),
            entry_id=entry_id,
        )

    def delete_journal_entry(
        self, identity: Identity | None, entry_id: UUID
    ) -> ActionResult[UUID]:
        return self._mutate(
            "journal_entry.delete", identity, JOURNAL_ENTRY_PATHS,
            lambda: self._entries.delete_entry(identity, entry_id),
            entry_id=entry_id,
        )

    def get_journal_entry(
        self, identity: Identity | None, entry_id: UUID
    ) -> ActionResult[JournalEntryInfo]:
        return self._read(
            "journal_entry.get", identity,
            lambda: self._entries.get_entry(identity, entry_id),
        )

    def list_journal_entries(
        self,
        identity: Identity | None,
        period_id: UUID | None = None,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
    ) -> ActionResult[Page[JournalEntryInfo]]:
        return self._read(
            "journal_entry.list", identity,
            lambda: self._entries.list_entries(
                identity,
                period_id=period_id,
                status=status,
                start_date=start_date,
                end_date=end_date,
                page=page,
            ),
        )

    # =========================================================================
    # Accounting periods
    # =========================================================================

    def create_accounting_period(
        self, identity: Identity | None, data: PeriodInput
    ) -> ActionResult[AccountingPeriodInfo]:
        return self._mutate(
            "accounting_period.create", identity, ACCOUNTING_PERIOD_PATHS,
            lambda: self._periods.create_period(identity, data),
        )

    def update_accounting_period(
        self, identity: Identity | None, period_id: UUID, patch: PeriodPatch
    ) -> ActionResult[AccountingPeriodInfo]:
        return self._mutate(
            "accounting_period.update", identity, ACCOUNTING_PERIOD_PATHS,
            lambda: self._periods.update_period(identity, period_id, patch),
            period_id=period_id,
        )

    def close_accounting_period(
        self, identity: Identity | None, period_id: UUID
    ) -> ActionResult[AccountingPeriodInfo]:
        return self._mutate(
            "accounting_period.close", identity, ACCOUNTING_PERIOD_PATHS,
            lambda: self._periods.close_period(identity, period_id),
            period_id=period_id,
        )

    def reopen_accounting_period(
        self, identity: Identity | None, period_id: UUID
    ) -> ActionResult[AccountingPeriodInfo]:
        return self._mutate(
            "accounting_period.reopen", identity, ACCOUNTING_PERIOD_PATHS,
            lambda: self._periods.reopen_period(identity, period_id),
            period_id=period_id,
        )

    def activate_accounting_period(
        self, identity: Identity | None, period_id: UUID
    ) -> ActionResult[AccountingPeriodInfo]:
        return self._mutate(
            "accounting_period.activate", identity, ACCOUNTING_PERIOD_PATHS,
            lambda: self._periods.activate_period(identity, period_id),
            period_id=period_id,
        )

    def delete_accounting_period(
        self, identity: Identity | None, period_id: UUID
    ) -> ActionResult[UUID]:
        return self._mutate(
            "accounting_period.delete", identity, ACCOUNTING_PERIOD_PATHS,
            lambda: self._periods.delete_period(identity, period_id),
            period_id=period_id,
        )

    def get_accounting_period(
        self, identity: Identity | None, period_id: UUID
    ) -> ActionResult[AccountingPeriodInfo]:
        return self._read(
            "accounting_period.get", identity,
            lambda: self._periods.get_period(identity, period_id),
        )

    def list_accounting_periods(
        self, identity: Identity | None, page: int = 1
    ) -> ActionResult[Page[AccountingPeriodInfo]]:
        return self._read(
            "accounting_period.list", identity,
            lambda: self._periods.list_periods(identity, page=page),
        )

    def get_active_period(
        self, identity: Identity | None
    ) -> ActionResult[AccountingPeriodInfo | None]:
        return self._read(
            "accounting_period.active", identity,
            lambda: self._periods.get_active_period(identity),
        )

    # =========================================================================
    # Chart of accounts
    # =========================================================================

    def create_account(
        self, identity: Identity | None, data: AccountInput
    ) -> ActionResult[AccountDetails]:
        return self._mutate(
            "account.create", identity, ACCOUNT_PATHS,
            lambda: self._accounts.create_account(identity, data),
        )

    def update_account(
        self, identity: Identity | None, account_id: UUID, patch: AccountPatch
    ) -> ActionResult[AccountDetails]:
        return self._mutate(
            "account.update", identity, ACCOUNT_PATHS,
            lambda: self._accounts.update_account(identity, account_id, patch),
        )

    def delete_account(
        self, identity: Identity | None, account_id: UUID
    ) -> ActionResult[UUID]:
        return self._mutate(
            "account.delete", identity, ACCOUNT_PATHS,
            lambda: self._accounts.delete_account(identity, account_id),
        )

    def get_account(
        self, identity: Identity | None, account_id: UUID
    ) -> ActionResult[AccountDetails]:
        return self._read(
            "account.get", identity,
            lambda: self._accounts.get_account(identity, account_id),
        )

    def list_accounts(
        self, identity: Identity | None, include_inactive: bool = False
    ) -> ActionResult[tuple[AccountDetails, ...]]:
        return self._read(
            "account.list", identity,
            lambda: self._accounts.list_accounts(identity, include_inactive),
        )

    # =========================================================================
    # Reports
    # =========================================================================

    def get_balance_sheet(
        self,
        identity: Identity | None,
        as_of: DateInput,
        period_id: UUID | None = None,
    ) -> ActionResult[BalanceSheetReport]:
        return self._read(
            "report.balance_sheet", identity,
            lambda: self._reports.get_balance_sheet(identity, as_of, period_id),
        )

    def get_income_statement(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        period_id: UUID | None = None,
    ) -> ActionResult[IncomeStatementReport]:
        return self._read(
            "report.income_statement", identity,
            lambda: self._reports.get_income_statement(identity, start, end, period_id),
        )

    def get_trial_balance(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        period_id: UUID | None = None,
    ) -> ActionResult[TrialBalanceReport]:
        return self._read(
            "report.trial_balance", identity,
            lambda: self._reports.get_trial_balance(identity, start, end, period_id),
        )

    def get_general_ledger(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        account_id: UUID | None = None,
        period_id: UUID | None = None,
    ) -> ActionResult[GeneralLedgerReport]:
        return self._read(
            "report.general_ledger", identity,
            lambda: self._reports.get_general_ledger(
                identity, start, end, account_id, period_id,
            ),
        )

    def get_cash_flow_statement(
        self,
        identity: Identity | None,
        start: DateInput,
        end: DateInput,
        period_id: UUID | None = None,
    ) -> ActionResult[CashFlowStatementReport]:
        return self._read(
            "report.cash_flow", identity,
            lambda: self._reports.get_cash_flow_statement(identity, start, end, period_id),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _mutate(
        self,
        action: str,
        identity: Identity | None,
        stale_paths: tuple[str, ...],
        operation: Callable[[], T],
        **context: Any,
    ) -> ActionResult[T]:
        return self._run(action, identity, operation, stale_paths, **context)

    def _read(
        self,
        action: str,
        identity: Identity | None,
        operation: Callable[[], T],
    ) -> ActionResult[T]:
        return self._run(action, identity, operation, None)

    def _run(
        self,
        action: str,
        identity: Identity | None,
        operation: Callable[[], T],
        stale_paths: tuple[str, ...] | None,
        **context: Any,
    ) -> ActionResult[T]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=str(identity.user_id) if identity else None,
            organization_id=str(identity.organization_id) if identity else None,
            action=action,
            **{k: str(v) for k, v in context.items() if v is not None},
        ):
            logger.info("ledger_action_started")
            t0 = time.monotonic()

            try:
                data = operation()
                committed = False
                if stale_paths is not None and self._auto_commit:
                    self._session.commit()
                    committed = True
            except LedgerError as exc:
                self._rollback()
                logger.warning(
                    "ledger_action_rejected",
                    extra={
                        "error_code": exc.code,
                        "error_type": type(exc).__name__,
                        "duration_ms": self._elapsed(t0),
                    },
                )
                return ActionResult.fail(exc.code, exc.message, exc.details)
            except IntegrityError as exc:
                self._rollback()
                code, message = translate_integrity_error(exc)
                logger.warning(
                    "ledger_action_rejected",
                    extra={
                        "error_code": code.value,
                        "error_type": type(exc).__name__,
                        "duration_ms": self._elapsed(t0),
                    },
                    exc_info=code == ErrorCode.INTERNAL_ERROR,
                )
                return ActionResult.fail(code, message)
            except Exception:
                self._rollback()
                logger.error(
                    "ledger_action_failed",
                    extra={"duration_ms": self._elapsed(t0)},
                    exc_info=True,
                )
                return ActionResult.fail(ErrorCode.INTERNAL_ERROR, INTERNAL_ERROR_MESSAGE)

            if committed:
                self._notify(stale_paths)

            logger.info(
                "ledger_action_completed",
                extra={"duration_ms": self._elapsed(t0), "committed": committed},
            )
            return ActionResult.ok(data)

    def _rollback(self) -> None:
        if self._auto_commit:
            self._session.rollback()

    def _notify(self, paths: tuple[str, ...]) -> None:
        try:
            self._invalidator.invalidate(paths)
        except Exception:
            logger.warning(
                "cache_invalidation_failed",
                extra={"paths": list(paths)},
                exc_info=True,
            )
            return
        logger.debug("cache_invalidated", extra={"paths": list(paths)})

    @staticmethod
    def _elapsed(t0: float) -> float:
        return round((time.monotonic() - t0) * 1000, 2)
