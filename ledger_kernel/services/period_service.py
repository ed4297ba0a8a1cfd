"""
PeriodService -- accounting period lifecycle and entry-date gating.

Responsibility:
    Manages the OPEN <-> CLOSED lifecycle of accounting periods and answers
    the posting engine's question "may an entry be written on this date in
    this period?".

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JournalEntryService before every entry write, and by
    ``ledger_services.LedgerActions`` for the period operations themselves.

Invariants enforced:
    - start_date < end_date; span at most two calendar years.
    - Periods of one organization never overlap (inclusive bounds).
    - A period closes only when none of its entries is draft or pending.
    - The organization's last open period cannot be deleted.
    - A period holding any journal entry cannot be deleted.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ForbiddenError / InsufficientPermissionsError: role denied.
    - MissingFieldsError, InvalidDateRangeError, PeriodSpanTooLongError,
      PeriodOverlapError, ClosedPeriodUpdateError,
      EntriesOutsidePeriodError, PeriodHasEntriesError,
      LastOpenPeriodError: VALIDATION_ERROR family.
    - PeriodAlreadyClosedError, PeriodAlreadyOpenError,
      UnapprovedEntriesError: INVALID_OPERATION family.
    - AccountingPeriodNotFoundError: period absent from the organization.

Audit relevance:
    Create, update, close, reopen and delete are logged with period_id,
    name and actor.  Closing freezes every statement covering the period.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ledger_kernel.domain.authorization import authenticated, require
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.dtos import (
    AccountingPeriodInfo,
    Page,
    PeriodInput,
    PeriodPatch,
)
from ledger_kernel.domain.identity import Identity
from ledger_kernel.exceptions import (
    AccountingPeriodNotFoundError,
    ClosedPeriodError,
    ClosedPeriodUpdateError,
    EntriesOutsidePeriodError,
    EntryDateOutOfRangeError,
    InvalidDateRangeError,
    LastOpenPeriodError,
    LedgerValidationError,
    MissingFieldsError,
    PeriodAlreadyClosedError,
    PeriodAlreadyOpenError,
    PeriodHasEntriesError,
    PeriodOverlapError,
    PeriodSpanTooLongError,
    UnapprovedEntriesError,
    UnknownPeriodError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.models.journal import UNAPPROVED_STATUSES, JournalEntry
from ledger_kernel.services.base import BaseService

logger = get_logger("services.period")

PERIOD_PAGE_SIZE = 20
MAX_SPAN_YEARS = 2
WARN_SPAN_YEARS = 1
NAME_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 500
FORBIDDEN_TEXT_CHARS = frozenset("<>'\";&")


def add_years(start: date, years: int) -> date:
    """Same calendar day ``years`` later; Feb 29 falls back to Feb 28."""
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def _check_text(value: str, field: str, label: str, max_length: int) -> None:
    if len(value) > max_length:
        raise LedgerValidationError(
            f"{label}は{max_length}文字以内で入力してください。", field=field
        )
    if FORBIDDEN_TEXT_CHARS.intersection(value):
        raise LedgerValidationError(
            f"{label}に使用できない文字が含まれています。", field=field
        )


class PeriodService(BaseService[AccountingPeriod]):
    """
    Service for the accounting period lifecycle.

    Contract:
        Every public method takes the caller's ``Identity``, scopes all
        queries to ``identity.organization_id`` and returns frozen
        ``AccountingPeriodInfo`` DTOs.  Violations raise typed exceptions.

    Guarantees:
        - Close is a conditional UPDATE guarded by ``is_closed = false``,
          so two concurrent closers cannot both succeed.
        - Mutations lock the period row (``SELECT ... FOR UPDATE``) before
          checking its state.

    Non-goals:
        - Does NOT commit.
        - Does NOT create closing or carry-forward entries.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def create_period(
        self, identity: Identity | None, data: PeriodInput
    ) -> AccountingPeriodInfo:
        """
        Create a new, open accounting period.

        Raises:
            ForbiddenError: Caller is a viewer.
            MissingFieldsError: name, start_date or end_date absent.
            InvalidDateRangeError: start_date is not before end_date.
            PeriodSpanTooLongError: Range longer than two years.
            PeriodOverlapError: Range intersects an existing period.
        """
        identity = require(identity, "period.create")

        missing = [
            name
            for name in ("name", "start_date", "end_date")
            if getattr(data, name) in (None, "")
        ]
        if missing:
            raise MissingFieldsError(missing)

        name = data.name.strip()
        if not name:
            raise MissingFieldsError(["name"])
        _check_text(name, "name", "会計期間の名称", NAME_MAX_LENGTH)
        if data.description is not None:
            _check_text(data.description, "description", "説明", DESCRIPTION_MAX_LENGTH)

        self._validate_range(name, data.start_date, data.end_date)
        self._validate_no_overlap(
            identity.organization_id, name, data.start_date, data.end_date
        )

        period = AccountingPeriod(
            organization_id=identity.organization_id,
            name=name,
            description=data.description,
            start_date=data.start_date,
            end_date=data.end_date,
            is_closed=False,
            created_by_id=identity.user_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "period_id": str(period.id),
                "period_name": name,
                "start_date": str(data.start_date),
                "end_date": str(data.end_date),
            },
        )
        return AccountingPeriodInfo.from_model(period)

    def update_period(
        self, identity: Identity | None, period_id: UUID, patch: PeriodPatch
    ) -> AccountingPeriodInfo:
        """
        Patch name, description or bounds of an OPEN period.

        A closed period rejects every patch, including ``is_closed=False``;
        reopening goes through ``reopen_period``/``activate_period``.

        Raises:
            ClosedPeriodUpdateError: Period is closed.
            PeriodOverlapError: New bounds intersect another period.
            EntriesOutsidePeriodError: Existing entries fall outside the
                new bounds.
        """
        identity = require(identity, "period.update")
        period = self._get_period_for_update(identity.organization_id, period_id)

        if period.is_closed:
            raise ClosedPeriodUpdateError(period.id)

        if patch.is_closed is not None and patch.is_closed != period.is_closed:
            raise LedgerValidationError(
                "会計期間の締め処理は専用の操作で行ってください。", field="is_closed"
            )

        if patch.name is not None:
            name = patch.name.strip()
            if not name:
                raise MissingFieldsError(["name"])
            _check_text(name, "name", "会計期間の名称", NAME_MAX_LENGTH)
            period.name = name
        if patch.description is not None:
            _check_text(patch.description, "description", "説明", DESCRIPTION_MAX_LENGTH)
            period.description = patch.description

        if patch.changes_dates:
            new_start = patch.start_date or period.start_date
            new_end = patch.end_date or period.end_date
            self._validate_range(period.name, new_start, new_end)
            self._validate_no_overlap(
                identity.organization_id,
                period.name,
                new_start,
                new_end,
                exclude_id=period.id,
            )

            outside = self.session.execute(
                select(func.count(JournalEntry.id)).where(
                    JournalEntry.organization_id == identity.organization_id,
                    JournalEntry.accounting_period_id == period.id,
                    (JournalEntry.entry_date < new_start)
                    | (JournalEntry.entry_date > new_end),
                )
            ).scalar_one()
            if outside:
                raise EntriesOutsidePeriodError(period.id, outside)

            period.start_date = new_start
            period.end_date = new_end

        period.updated_by_id = identity.user_id
        self.session.flush()

        logger.info(
            "period_updated",
            extra={
                "period_id": str(period.id),
                "period_name": period.name,
                "start_date": str(period.start_date),
                "end_date": str(period.end_date),
            },
        )
        return AccountingPeriodInfo.from_model(period)

    def close_period(
        self, identity: Identity | None, period_id: UUID
    ) -> AccountingPeriodInfo:
        """
        Close an open period.

        Postconditions:
            - ``is_closed`` is true; ``closed_at`` comes from the injected
              clock and ``closed_by_id`` is the caller.
            - Entries can no longer be created, updated or approved in it.

        Raises:
            PeriodAlreadyClosedError: Already closed, or a concurrent close
                won the conditional update.
            UnapprovedEntriesError: Draft or pending entries remain.
        """
        identity = require(identity, "period.close")
        period = self._get_period_for_update(identity.organization_id, period_id)

        if period.is_closed:
            raise PeriodAlreadyClosedError(period.id)

        unapproved = self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.organization_id == identity.organization_id,
                JournalEntry.accounting_period_id == period.id,
                JournalEntry.status.in_(UNAPPROVED_STATUSES),
            )
        ).scalar_one()
        if unapproved:
            logger.warning(
                "period_close_blocked",
                extra={"period_id": str(period.id), "unapproved_count": unapproved},
            )
            raise UnapprovedEntriesError(period.id, unapproved)

        result = self.session.execute(
            update(AccountingPeriod)
            .where(
                AccountingPeriod.id == period.id,
                AccountingPeriod.is_closed.is_(False),
            )
            .values(
                is_closed=True,
                closed_at=self._clock.now(),
                closed_by_id=identity.user_id,
                updated_by_id=identity.user_id,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "concurrent_period_close_conflict",
                extra={"period_id": str(period.id)},
            )
            raise PeriodAlreadyClosedError(period.id)

        self.session.refresh(period)

        logger.info(
            "period_closed",
            extra={"period_id": str(period.id), "period_name": period.name},
        )
        return AccountingPeriodInfo.from_model(period)

    def reopen_period(
        self, identity: Identity | None, period_id: UUID
    ) -> AccountingPeriodInfo:
        """
        Reopen a closed period (administrators only).

        Raises:
            InsufficientPermissionsError: Caller is not an administrator.
            PeriodAlreadyOpenError: Period is not closed.
        """
        identity = require(identity, "period.reopen")
        period = self._get_period_for_update(identity.organization_id, period_id)

        if period.is_open:
            raise PeriodAlreadyOpenError(period.id)

        return self._reopen(identity, period)

    def activate_period(
        self, identity: Identity | None, period_id: UUID
    ) -> AccountingPeriodInfo:
        """
        Make a period open, idempotently.

        An already-open period is returned unchanged.  Opening a closed
        period is a reopen and therefore needs an administrator.
        """
        identity = require(identity, "period.activate")
        period = self._get_period_for_update(identity.organization_id, period_id)

        if period.is_open:
            return AccountingPeriodInfo.from_model(period)

        require(identity, "period.reopen")
        return self._reopen(identity, period)

    def delete_period(self, identity: Identity | None, period_id: UUID) -> UUID:
        """
        Delete a period that holds no journal entries.

        Raises:
            InsufficientPermissionsError: Caller is not an administrator.
            PeriodHasEntriesError: Any entry, in any status, references it.
            LastOpenPeriodError: It is the organization's only open period.
        """
        identity = require(identity, "period.delete")
        period = self._get_period_for_update(identity.organization_id, period_id)

        entry_count = self.session.execute(
            select(func.count(JournalEntry.id)).where(
                JournalEntry.accounting_period_id == period.id,
            )
        ).scalar_one()
        if entry_count:
            raise PeriodHasEntriesError(period.id, entry_count)

        if period.is_open:
            other_open = self.session.execute(
                select(func.count(AccountingPeriod.id)).where(
                    AccountingPeriod.organization_id == identity.organization_id,
                    AccountingPeriod.is_closed.is_(False),
                    AccountingPeriod.id != period.id,
                )
            ).scalar_one()
            if not other_open:
                raise LastOpenPeriodError(period.id)

        deleted_id = period.id
        self.session.delete(period)
        self.session.flush()

        logger.info(
            "period_deleted",
            extra={"period_id": str(deleted_id), "period_name": period.name},
        )
        return deleted_id

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_period(
        self, identity: Identity | None, period_id: UUID
    ) -> AccountingPeriodInfo:
        identity = authenticated(identity)
        period = self._get_period(identity.organization_id, period_id)
        if period is None:
            raise AccountingPeriodNotFoundError(period_id)
        return AccountingPeriodInfo.from_model(period)

    def list_periods(
        self,
        identity: Identity | None,
        page: int = 1,
        page_size: int = PERIOD_PAGE_SIZE,
    ) -> Page[AccountingPeriodInfo]:
        """Periods of the organization, newest start_date first."""
        identity = authenticated(identity)
        page = max(page, 1)

        total = self.session.execute(
            select(func.count(AccountingPeriod.id)).where(
                AccountingPeriod.organization_id == identity.organization_id
            )
        ).scalar_one()

        rows = self.session.execute(
            select(AccountingPeriod)
            .where(AccountingPeriod.organization_id == identity.organization_id)
            .order_by(AccountingPeriod.start_date.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).scalars().all()

        return Page(
            items=tuple(AccountingPeriodInfo.from_model(p) for p in rows),
            total=total,
            page=page,
            page_size=page_size,
        )

    def get_active_period(
        self, identity: Identity | None
    ) -> AccountingPeriodInfo | None:
        """The open period containing today's date, if any."""
        identity = authenticated(identity)
        today = self._clock.today()
        period = self.session.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.organization_id == identity.organization_id,
                AccountingPeriod.is_closed.is_(False),
                AccountingPeriod.start_date <= today,
                AccountingPeriod.end_date >= today,
            )
        ).scalar_one_or_none()
        return AccountingPeriodInfo.from_model(period) if period else None

    # ------------------------------------------------------------------
    # Entry-date gating (used by JournalEntryService)
    # ------------------------------------------------------------------

    def require_writable_period(
        self,
        organization_id: UUID,
        period_id: UUID | None,
        entry_date: date,
    ) -> AccountingPeriod:
        """
        Return the period an entry dated ``entry_date`` may be written to.

        Raises:
            UnknownPeriodError: Period absent from the organization.
            ClosedPeriodError: Period is closed.
            EntryDateOutOfRangeError: Date outside the period's bounds.
        """
        period = (
            self._get_period(organization_id, period_id)
            if period_id is not None
            else None
        )
        if period is None:
            raise UnknownPeriodError(period_id)

        if period.is_closed:
            logger.warning(
                "closed_period_write_rejected",
                extra={"period_id": str(period.id), "entry_date": str(entry_date)},
            )
            raise ClosedPeriodError(period.id, period.name)

        if not period.contains_date(entry_date):
            raise EntryDateOutOfRangeError(
                entry_date, period.start_date, period.end_date
            )
        return period

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _reopen(
        self, identity: Identity, period: AccountingPeriod
    ) -> AccountingPeriodInfo:
        period.reopen()
        period.updated_by_id = identity.user_id
        self.session.flush()

        logger.info(
            "period_reopened",
            extra={"period_id": str(period.id), "period_name": period.name},
        )
        return AccountingPeriodInfo.from_model(period)

    def _validate_range(self, name: str, start_date: date, end_date: date) -> None:
        if start_date >= end_date:
            raise InvalidDateRangeError(start_date, end_date)

        if end_date > add_years(start_date, MAX_SPAN_YEARS):
            raise PeriodSpanTooLongError(
                start_date, end_date, (add_years(start_date, MAX_SPAN_YEARS) - start_date).days
            )

        if end_date > add_years(start_date, WARN_SPAN_YEARS):
            logger.warning(
                "period_span_exceeds_one_year",
                extra={
                    "period_name": name,
                    "start_date": str(start_date),
                    "end_date": str(end_date),
                },
            )

    def _validate_no_overlap(
        self,
        organization_id: UUID,
        name: str,
        start_date: date,
        end_date: date,
        exclude_id: UUID | None = None,
    ) -> None:
        """
        Two ranges overlap if start1 <= end2 AND start2 <= end1.

        Raises:
            PeriodOverlapError: If any period of the organization overlaps.
        """
        stmt = select(AccountingPeriod).where(
            AccountingPeriod.organization_id == organization_id,
            AccountingPeriod.start_date <= end_date,
            AccountingPeriod.end_date >= start_date,
        )
        if exclude_id is not None:
            stmt = stmt.where(AccountingPeriod.id != exclude_id)

        overlapping = self.session.execute(
            stmt.order_by(AccountingPeriod.start_date).limit(1)
        ).scalar_one_or_none()

        if overlapping is not None:
            raise PeriodOverlapError(
                name=name,
                existing_name=overlapping.name,
                overlap_start=max(start_date, overlapping.start_date),
                overlap_end=min(end_date, overlapping.end_date),
                on_update=exclude_id is not None,
            )

    def _get_period(
        self, organization_id: UUID, period_id: UUID
    ) -> AccountingPeriod | None:
        return self.session.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.organization_id == organization_id,
                AccountingPeriod.id == period_id,
            )
        ).scalar_one_or_none()

    def _get_period_for_update(
        self, organization_id: UUID, period_id: UUID
    ) -> AccountingPeriod:
        """Period row with a lock for the check-then-act sequence that follows."""
        period = self.session.execute(
            select(AccountingPeriod)
            .where(
                AccountingPeriod.organization_id == organization_id,
                AccountingPeriod.id == period_id,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if period is None:
            raise AccountingPeriodNotFoundError(period_id)
        return period
