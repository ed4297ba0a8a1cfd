"""
Module: ledger_kernel.selectors.ledger_selector
Responsibility: Aggregations over APPROVED journal entry lines -- the only
    input the report builders read.
Architecture position: Kernel > Selectors.  Consumed by
    ``ledger_modules.reporting.service.ReportingService``.

Invariants enforced:
    - Only lines of entries with status APPROVED are visible.  Draft,
      pending and cancelled entries contribute nothing.
    - Every query is scoped to one organization.
    - No stored balances: every total is summed from lines at query time.
    - Totals are exact Decimal sums of stored amounts, never float.

Failure modes:
    - SQLAlchemyError propagates to the caller.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from ledger_kernel.selectors.base import BaseSelector


@dataclass
class AccountTotals:
    """Gross debit and credit totals for one account over a window."""

    account_id: UUID
    debit_total: Decimal
    credit_total: Decimal

    @property
    def balance(self) -> Decimal:
        """Net balance (debits - credits)."""
        return self.debit_total - self.credit_total


@dataclass
class LedgerLineRow:
    """One approved line joined with its entry header."""

    entry_id: UUID
    entry_number: str
    entry_date: date
    entry_description: str
    line_number: int
    line_description: str | None
    account_id: UUID
    debit: Decimal
    credit: Decimal


class LedgerSelector(BaseSelector[JournalEntryLine]):
    """
    Selector for ledger aggregations.

    Date windows are inclusive on both ends.  ``before`` is exclusive and
    is used for opening balances.  ``period_id`` restricts the window to
    entries booked against one accounting period.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _approved(self, organization_id: UUID, period_id: UUID | None):
        conditions = [
            JournalEntry.organization_id == organization_id,
            JournalEntry.status == JournalEntryStatus.APPROVED.value,
        ]
        if period_id is not None:
            conditions.append(JournalEntry.accounting_period_id == period_id)
        return conditions

    @staticmethod
    def _window(
        start: date | None,
        end: date | None,
        before: date | None,
    ) -> list:
        conditions = []
        if start is not None:
            conditions.append(JournalEntry.entry_date >= start)
        if end is not None:
            conditions.append(JournalEntry.entry_date <= end)
        if before is not None:
            conditions.append(JournalEntry.entry_date < before)
        return conditions

    def account_totals(
        self,
        organization_id: UUID,
        start: date | None = None,
        end: date | None = None,
        before: date | None = None,
        period_id: UUID | None = None,
        account_ids: Iterable[UUID] | None = None,
    ) -> dict[UUID, AccountTotals]:
        """
        Sum approved debits and credits per account.

        Accounts without any matching line are absent from the result.

        Args:
            organization_id: Tenant scope.
            start: Inclusive lower bound on entry_date.
            end: Inclusive upper bound on entry_date.
            before: Exclusive upper bound on entry_date.
            period_id: Optional accounting period filter.
            account_ids: Optional account filter.

        Returns:
            Mapping of account id to AccountTotals.
        """
        debit_sum = func.coalesce(
            func.sum(JournalEntryLine.debit_amount), ZERO
        ).label("debit_total")
        credit_sum = func.coalesce(
            func.sum(JournalEntryLine.credit_amount), ZERO
        ).label("credit_total")

        query = (
            select(JournalEntryLine.account_id, debit_sum, credit_sum)
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(*self._approved(organization_id, period_id))
            .where(*self._window(start, end, before))
            .group_by(JournalEntryLine.account_id)
        )
        if account_ids is not None:
            query = query.where(JournalEntryLine.account_id.in_(list(account_ids)))

        return {
            row.account_id: AccountTotals(
                account_id=row.account_id,
                debit_total=Decimal(row.debit_total or ZERO),
                credit_total=Decimal(row.credit_total or ZERO),
            )
            for row in self.session.execute(query).all()
        }

    def ledger_lines(
        self,
        organization_id: UUID,
        start: date,
        end: date,
        period_id: UUID | None = None,
        account_ids: Iterable[UUID] | None = None,
    ) -> list[LedgerLineRow]:
        """
        Approved lines in ``[start, end]`` in posting order.

        Ordered by entry_date, entry_number, then line_number so that
        running balances replay deterministically.
        """
        query = (
            select(
                JournalEntry.id.label("entry_id"),
                JournalEntry.entry_number,
                JournalEntry.entry_date,
                JournalEntry.description.label("entry_description"),
                JournalEntryLine.line_number,
                JournalEntryLine.description.label("line_description"),
                JournalEntryLine.account_id,
                JournalEntryLine.debit_amount,
                JournalEntryLine.credit_amount,
            )
            .join(JournalEntry, JournalEntryLine.journal_entry_id == JournalEntry.id)
            .where(*self._approved(organization_id, period_id))
            .where(*self._window(start, end, None))
            .order_by(
                JournalEntry.entry_date,
                JournalEntry.entry_number,
                JournalEntryLine.line_number,
            )
        )
        if account_ids is not None:
            query = query.where(JournalEntryLine.account_id.in_(list(account_ids)))

        return [
            LedgerLineRow(
                entry_id=row.entry_id,
                entry_number=row.entry_number,
                entry_date=row.entry_date,
                entry_description=row.entry_description,
                line_number=row.line_number,
                line_description=row.line_description,
                account_id=row.account_id,
                debit=row.debit_amount or ZERO,
                credit=row.credit_amount or ZERO,
            )
            for row in self.session.execute(query).all()
        ]
