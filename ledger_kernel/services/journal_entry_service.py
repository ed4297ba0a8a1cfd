"""
JournalEntryService -- the journal entry posting engine.

Responsibility:
    Validates and persists journal entries and their lines: role, required
    fields, line shape, debit/credit balance, target period, referenced
    accounts and partners.  Also approves entries, replaces line sets and
    deletes unapproved entries.

Architecture position:
    Kernel > Services -- imperative shell.
    Depends on PeriodService to decide whether a date is writable.
    Called by ``ledger_services.LedgerActions``.

Invariants enforced:
    - |sum(debit) - sum(credit)| <= BALANCE_TOLERANCE for every written
      line set.
    - Every line carries exactly one positive amount; at most MAX_LINES
      lines per entry.
    - entry_date lies inside an open period of the organization.
    - Every referenced account and partner exists in the organization.
    - APPROVED entries are never updated or deleted.
    - Lines are deleted before their entry.

Failure modes:
    - InsufficientPermissionsError: role denied.
    - MissingFieldsError, EmptyEntryError, TooManyLinesError,
      InvalidLineAmountError, UnbalancedEntryError, UnknownPeriodError,
      EntryDateOutOfRangeError, UnknownAccountsError,
      UnknownPartnersError: VALIDATION_ERROR family.
    - ClosedPeriodError, ApprovedEntryImmutableError,
      EntryAlreadyApprovedError: INVALID_OPERATION family.
    - DuplicateEntryNumberError: ALREADY_EXISTS.
    - JournalEntryNotFoundError: NOT_FOUND.
    - SQLAlchemyError from line insertion, after the compensating delete.

Audit relevance:
    Entry create/update/approve/delete are logged with entry_id,
    entry_number and totals.  A failed compensating delete is logged as
    ``journal_entry_orphaned`` for offline reconciliation.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ledger_kernel.db.types import ZERO, is_balanced, to_money
from ledger_kernel.domain.authorization import authenticated, require
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    JournalEntryInfo,
    JournalEntryInput,
    JournalEntryPatch,
    JournalLineInput,
    Page,
)
from ledger_kernel.domain.identity import Identity
from ledger_kernel.exceptions import (
    ApprovedEntryImmutableError,
    DuplicateEntryNumberError,
    EmptyEntryError,
    EntryAlreadyApprovedError,
    InvalidLineAmountError,
    InvalidOperationError,
    JournalEntryNotFoundError,
    LedgerValidationError,
    MissingFieldsError,
    TooManyLinesError,
    UnbalancedEntryError,
    UnknownAccountsError,
    UnknownPartnersError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account
from ledger_kernel.models.journal import (
    JournalEntry,
    JournalEntryLine,
    JournalEntryStatus,
)
from ledger_kernel.models.partner import Partner
from ledger_kernel.services.base import BaseService
from ledger_kernel.services.period_service import PeriodService

logger = get_logger("services.journal_entry")

MAX_LINES = 100
ENTRY_PAGE_SIZE = 20

# Statuses a caller may set directly; approval has its own operation.
_CREATE_STATUSES = frozenset(
    {JournalEntryStatus.DRAFT.value, JournalEntryStatus.PENDING.value}
)
_PATCH_STATUSES = _CREATE_STATUSES | {JournalEntryStatus.CANCELLED.value}


@dataclass(frozen=True)
class PreparedLine:
    """A validated line with Decimal amounts and a resolved line number."""

    line_number: int
    account_id: UUID
    debit_amount: Decimal | None
    credit_amount: Decimal | None
    partner_id: UUID | None
    description: str | None
    tags: dict[str, Any] | None


def prepare_lines(lines: Sequence[JournalLineInput]) -> list[PreparedLine]:
    """
    Check line shape and coerce amounts.

    line_number defaults to the 1-based position in ``lines``.

    Raises:
        EmptyEntryError: No lines.
        TooManyLinesError: More than MAX_LINES lines.
        InvalidLineAmountError: A line lacks an account, has a negative or
            non-numeric amount, or does not have exactly one positive side.
    """
    if not lines:
        raise EmptyEntryError()
    if len(lines) > MAX_LINES:
        raise TooManyLinesError(len(lines), MAX_LINES)

    prepared: list[PreparedLine] = []
    for index, line in enumerate(lines):
        line_number = line.line_number or index + 1
        try:
            debit = to_money(line.debit_amount)
            credit = to_money(line.credit_amount)
        except ValueError:
            raise InvalidLineAmountError(line_number) from None

        if line.account_id is None or debit < ZERO or credit < ZERO:
            raise InvalidLineAmountError(line_number)
        if (debit > ZERO) == (credit > ZERO):
            raise InvalidLineAmountError(line_number)

        prepared.append(
            PreparedLine(
                line_number=line_number,
                account_id=line.account_id,
                debit_amount=debit if debit > ZERO else None,
                credit_amount=credit if credit > ZERO else None,
                partner_id=line.partner_id,
                description=line.description,
                tags=line.tags,
            )
        )
    return prepared


def check_balance(lines: Sequence[PreparedLine]) -> tuple[Decimal, Decimal]:
    """
    Return (debit_total, credit_total) of a balanced line set.

    Raises:
        UnbalancedEntryError: Totals differ by more than BALANCE_TOLERANCE.
    """
    debit_total = sum((ln.debit_amount or ZERO for ln in lines), ZERO)
    credit_total = sum((ln.credit_amount or ZERO for ln in lines), ZERO)
    if not is_balanced(debit_total, credit_total):
        raise UnbalancedEntryError(debit_total, credit_total)
    return debit_total, credit_total


class JournalEntryService(BaseService[JournalEntry]):
    """
    Posting engine for journal entries.

    Contract:
        Public methods take the caller's ``Identity``, validate in a fixed
        order (each check short-circuits), flush within the caller's
        transaction and return frozen ``JournalEntryInfo`` DTOs.

    Guarantees:
        - Entry and lines are written in one transaction.  Line insertion
          runs in a SAVEPOINT; if it fails, the just-inserted entry is
          deleted before the error propagates.
        - A line set is replaced wholesale, never patched.

    Non-goals:
        - Does NOT commit.
        - Does NOT number entries; entry_number comes from the caller.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        period_service: PeriodService | None = None,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._periods = period_service or PeriodService(session, self._clock)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_entry(
        self,
        identity: Identity | None,
        entry: JournalEntryInput,
        lines: Sequence[JournalLineInput],
    ) -> JournalEntryInfo:
        """
        Validate and insert an entry with its lines.

        Check order: role, required fields, line presence and shape,
        balance, period (exists, open, contains date), accounts, partners,
        entry number uniqueness.

        Returns:
            The created entry; status defaults to draft.
        """
        identity = require(identity, "journal_entry.create")

        missing = [
            name
            for name in ("entry_number", "entry_date", "description")
            if getattr(entry, name) in (None, "")
        ]
        if missing:
            raise MissingFieldsError(missing)

        prepared = prepare_lines(lines)
        debit_total, credit_total = check_balance(prepared)

        status = entry.status or JournalEntryStatus.DRAFT.value
        if status not in _CREATE_STATUSES:
            raise LedgerValidationError("指定されたステータスは使用できません。", field="status")

        self._periods.require_writable_period(
            identity.organization_id, entry.accounting_period_id, entry.entry_date
        )
        self._check_references(identity.organization_id, prepared)
        self._check_entry_number(identity.organization_id, entry.entry_number)

        row = JournalEntry(
            organization_id=identity.organization_id,
            accounting_period_id=entry.accounting_period_id,
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            description=entry.description,
            status=status,
            created_by_id=identity.user_id,
        )
        self.session.add(row)
        self.session.flush()

        try:
            self._insert_lines(identity, row, prepared)
        except SQLAlchemyError:
            self._discard_entry(row)
            raise

        logger.info(
            "journal_entry_created",
            extra={
                "entry_id": str(row.id),
                "entry_number": row.entry_number,
                "line_count": len(prepared),
                "total_debit": str(debit_total),
                "total_credit": str(credit_total),
            },
        )
        return JournalEntryInfo.from_model(row)

    def update_entry(
        self,
        identity: Identity | None,
        entry_id: UUID,
        patch: JournalEntryPatch,
        lines: Sequence[JournalLineInput] | None = None,
    ) -> JournalEntryInfo:
        """
        Patch an unapproved entry and optionally replace its lines.

        When ``lines`` is None the existing lines are kept and returned.
        The (possibly new) date must still fall in an open period.

        Raises:
            ApprovedEntryImmutableError: Entry is approved.
        """
        identity = require(identity, "journal_entry.update")
        row = self._get_entry_for_update(identity.organization_id, entry_id)

        if row.is_approved:
            raise ApprovedEntryImmutableError(row.id, "update")

        prepared: list[PreparedLine] | None = None
        if lines is not None:
            prepared = prepare_lines(lines)
            check_balance(prepared)

        if patch.status is not None and patch.status not in _PATCH_STATUSES:
            raise LedgerValidationError("指定されたステータスは使用できません。", field="status")
        if patch.description is not None and not patch.description.strip():
            raise MissingFieldsError(["description"])

        period_id = patch.accounting_period_id or row.accounting_period_id
        entry_date = patch.entry_date or row.entry_date
        self._periods.require_writable_period(
            identity.organization_id, period_id, entry_date
        )

        if prepared is not None:
            self._check_references(identity.organization_id, prepared)
        if patch.entry_number is not None and patch.entry_number != row.entry_number:
            self._check_entry_number(identity.organization_id, patch.entry_number)
            row.entry_number = patch.entry_number

        row.accounting_period_id = period_id
        row.entry_date = entry_date
        if patch.description is not None:
            row.description = patch.description
        if patch.status is not None:
            row.status = patch.status
        row.updated_by_id = identity.user_id

        if prepared is not None:
            self._delete_lines(row.id)
            self._insert_lines(identity, row, prepared)
        else:
            self.session.flush()

        logger.info(
            "journal_entry_updated",
            extra={
                "entry_id": str(row.id),
                "entry_number": row.entry_number,
                "lines_replaced": prepared is not None,
            },
        )
        return JournalEntryInfo.from_model(row)

    def approve_entry(
        self, identity: Identity | None, entry_id: UUID
    ) -> JournalEntryInfo:
        """
        Approve an entry, making it immutable and visible to reports.

        Raises:
            EntryAlreadyApprovedError: Already approved.
            InvalidOperationError: Entry was cancelled.
            ClosedPeriodError: Its period is closed.
        """
        identity = require(identity, "journal_entry.approve")
        row = self._get_entry_for_update(identity.organization_id, entry_id)

        if row.is_approved:
            raise EntryAlreadyApprovedError(row.id)
        if row.status == JournalEntryStatus.CANCELLED.value:
            raise InvalidOperationError("取消済みの仕訳は承認できません。")

        self._periods.require_writable_period(
            identity.organization_id, row.accounting_period_id, row.entry_date
        )
        if not row.lines:
            raise EmptyEntryError()
        if not is_balanced(row.total_debits, row.total_credits):
            raise UnbalancedEntryError(row.total_debits, row.total_credits)

        row.status = JournalEntryStatus.APPROVED.value
        row.approved_by_id = identity.user_id
        row.approved_at = self._clock.now()
        row.updated_by_id = identity.user_id
        self.session.flush()

        logger.info(
            "journal_entry_approved",
            extra={"entry_id": str(row.id), "entry_number": row.entry_number},
        )
        return JournalEntryInfo.from_model(row)

    def delete_entry(self, identity: Identity | None, entry_id: UUID) -> UUID:
        """
        Delete an unapproved entry: lines first, then the entry.

        Raises:
            InsufficientPermissionsError: Caller is not an administrator.
            ApprovedEntryImmutableError: Entry is approved.
        """
        identity = require(identity, "journal_entry.delete")
        row = self._get_entry_for_update(identity.organization_id, entry_id)

        if row.is_approved:
            raise ApprovedEntryImmutableError(row.id, "delete")

        entry_number = row.entry_number
        self._delete_lines(row.id)
        self.session.delete(row)
        self.session.flush()

        logger.info(
            "journal_entry_deleted",
            extra={"entry_id": str(entry_id), "entry_number": entry_number},
        )
        return entry_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_entry(self, identity: Identity | None, entry_id: UUID) -> JournalEntryInfo:
        identity = authenticated(identity)
        row = self.session.execute(
            select(JournalEntry).where(
                JournalEntry.organization_id == identity.organization_id,
                JournalEntry.id == entry_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise JournalEntryNotFoundError(entry_id)
        return JournalEntryInfo.from_model(row)

    def list_entries(
        self,
        identity: Identity | None,
        period_id: UUID | None = None,
        status: str | None = None,
        start_date: date | None = None,
        end_date: date | None = None,
        page: int = 1,
        page_size: int = ENTRY_PAGE_SIZE,
    ) -> Page[JournalEntryInfo]:
        """Entries of the organization, newest first, with optional filters."""
        identity = authenticated(identity)
        page = max(page, 1)

        conditions = [JournalEntry.organization_id == identity.organization_id]
        if period_id is not None:
            conditions.append(JournalEntry.accounting_period_id == period_id)
        if status is not None:
            conditions.append(JournalEntry.status == status)
        if start_date is not None:
            conditions.append(JournalEntry.entry_date >= start_date)
        if end_date is not None:
            conditions.append(JournalEntry.entry_date <= end_date)

        total = self.session.execute(
            select(func.count(JournalEntry.id)).where(*conditions)
        ).scalar_one()
        rows = self.session.execute(
            select(JournalEntry)
            .where(*conditions)
            .order_by(JournalEntry.entry_date.desc(), JournalEntry.entry_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return Page(
            items=tuple(JournalEntryInfo.from_model(r) for r in rows),
            total=total,
            page=page,
            page_size=page_size,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_references(
        self, organization_id: UUID, lines: Sequence[PreparedLine]
    ) -> None:
        account_ids = {ln.account_id for ln in lines}
        found = set(
            self.session.execute(
                select(Account.id).where(
                    Account.organization_id == organization_id,
                    Account.id.in_(account_ids),
                )
            ).scalars()
        )
        if found != account_ids:
            raise UnknownAccountsError(sorted(account_ids - found, key=str))

        partner_ids = {ln.partner_id for ln in lines if ln.partner_id is not None}
        if not partner_ids:
            return
        found = set(
            self.session.execute(
                select(Partner.id).where(
                    Partner.organization_id == organization_id,
                    Partner.id.in_(partner_ids),
                )
            ).scalars()
        )
        if found != partner_ids:
            raise UnknownPartnersError(sorted(partner_ids - found, key=str))

    def _check_entry_number(self, organization_id: UUID, entry_number: str) -> None:
        taken = self.session.execute(
            select(JournalEntry.id).where(
                JournalEntry.organization_id == organization_id,
                JournalEntry.entry_number == entry_number,
            )
        ).first()
        if taken is not None:
            raise DuplicateEntryNumberError(entry_number)

    def _insert_lines(
        self,
        identity: Identity,
        row: JournalEntry,
        lines: Sequence[PreparedLine],
    ) -> None:
        with self.session.begin_nested():
            self.session.add_all(
                JournalEntryLine(
                    organization_id=identity.organization_id,
                    journal_entry_id=row.id,
                    account_id=ln.account_id,
                    partner_id=ln.partner_id,
                    line_number=ln.line_number,
                    debit_amount=ln.debit_amount,
                    credit_amount=ln.credit_amount,
                    description=ln.description,
                    tags=ln.tags,
                    created_by_id=identity.user_id,
                )
                for ln in lines
            )
            self.session.flush()
        self.session.expire(row, ["lines"])

    def _delete_lines(self, entry_id: UUID) -> None:
        self.session.execute(
            delete(JournalEntryLine).where(JournalEntryLine.journal_entry_id == entry_id)
        )

    def _discard_entry(self, row: JournalEntry) -> None:
        """Compensating delete for an entry whose lines failed to insert."""
        entry_id = row.id
        try:
            self.session.delete(row)
            self.session.flush()
        except SQLAlchemyError:
            logger.error(
                "journal_entry_orphaned",
                extra={"entry_id": str(entry_id), "entry_number": row.entry_number},
                exc_info=True,
            )
            return
        logger.warning(
            "journal_entry_compensated",
            extra={"entry_id": str(entry_id)},
        )

    def _get_entry_for_update(
        self, organization_id: UUID, entry_id: UUID
    ) -> JournalEntry:
        row = self.session.execute(
            select(JournalEntry)
            .where(
                JournalEntry.organization_id == organization_id,
                JournalEntry.id == entry_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise JournalEntryNotFoundError(entry_id)
        return row
