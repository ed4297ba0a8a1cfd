"""
Accounting period lifecycle tests.

Covers creation rules (range, span, overlap, text checks), patching,
close/reopen/activate transitions, deletion guards and entry-date gating.
"""

from datetime import date, datetime, timezone

import pytest

from ledger_kernel.domain.dtos import PeriodInput, PeriodPatch
from ledger_kernel.exceptions import (
    AccountingPeriodNotFoundError,
    ClosedPeriodError,
    ClosedPeriodUpdateError,
    EntriesOutsidePeriodError,
    EntryDateOutOfRangeError,
    ForbiddenError,
    InsufficientPermissionsError,
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
    UnauthorizedError,
    UnknownPeriodError,
)
from ledger_kernel.services.period_service import add_years


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TestAddYears:
    """Calendar-year arithmetic used for the span limits."""

    def test_plain_date(self):
        assert add_years(date(2024, 4, 1), 1) == date(2025, 4, 1)

    def test_leap_day_falls_back_to_feb_28(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)


class TestCreatePeriod:
    """Creation validation."""

    def test_creates_open_period(self, period_service, accountant):
        info = period_service.create_period(
            accountant,
            PeriodInput(name="2024年度", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
        )

        assert info.is_closed is False
        assert info.closed_at is None
        assert info.organization_id == accountant.organization_id
        assert info.name == "2024年度"

    def test_name_is_trimmed(self, period_service, accountant):
        info = period_service.create_period(
            accountant,
            PeriodInput(name="  第1期  ", start_date=date(2024, 1, 1), end_date=date(2024, 6, 30)),
        )
        assert info.name == "第1期"

    def test_viewer_is_forbidden(self, period_service, viewer):
        with pytest.raises(ForbiddenError):
            period_service.create_period(
                viewer,
                PeriodInput(name="x", start_date=date(2024, 1, 1), end_date=date(2024, 2, 1)),
            )

    def test_missing_identity_is_unauthorized(self, period_service):
        with pytest.raises(UnauthorizedError):
            period_service.create_period(
                None,
                PeriodInput(name="x", start_date=date(2024, 1, 1), end_date=date(2024, 2, 1)),
            )

    def test_missing_fields_are_listed(self, period_service, accountant):
        with pytest.raises(MissingFieldsError) as exc_info:
            period_service.create_period(
                accountant, PeriodInput(name="", start_date=None, end_date=date(2024, 2, 1))
            )
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_start_must_precede_end(self, period_service, accountant):
        with pytest.raises(InvalidDateRangeError):
            period_service.create_period(
                accountant,
                PeriodInput(name="x", start_date=date(2024, 3, 1), end_date=date(2024, 3, 1)),
            )

    def test_span_over_two_years_is_rejected(self, period_service, accountant):
        with pytest.raises(PeriodSpanTooLongError):
            period_service.create_period(
                accountant,
                PeriodInput(name="x", start_date=date(2024, 1, 1), end_date=date(2026, 1, 2)),
            )

    def test_span_over_one_year_warns(self, period_service, accountant, captured_logs):
        period_service.create_period(
            accountant,
            PeriodInput(name="長期", start_date=date(2024, 1, 1), end_date=date(2025, 6, 30)),
        )
        messages = [r["message"] for r in captured_logs()]
        assert "period_span_exceeds_one_year" in messages

    def test_overlap_is_rejected(self, period_service, accountant, fy2024):
        with pytest.raises(PeriodOverlapError) as exc_info:
            period_service.create_period(
                accountant,
                PeriodInput(name="重複", start_date=date(2024, 12, 1), end_date=date(2025, 11, 30)),
            )
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_touching_end_date_overlaps(self, period_service, accountant, fy2024):
        with pytest.raises(PeriodOverlapError):
            period_service.create_period(
                accountant,
                PeriodInput(name="隣接", start_date=date(2024, 12, 31), end_date=date(2025, 12, 30)),
            )

    def test_other_organization_periods_do_not_overlap(self, period_service, outsider, fy2024):
        info = period_service.create_period(
            outsider,
            PeriodInput(name="2024年度", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
        )
        assert info.organization_id == outsider.organization_id

    @pytest.mark.parametrize("name", ["<script>", "a'b", 'a"b', "a;b", "a&b"])
    def test_forbidden_characters_in_name(self, period_service, accountant, name):
        with pytest.raises(LedgerValidationError):
            period_service.create_period(
                accountant,
                PeriodInput(name=name, start_date=date(2024, 1, 1), end_date=date(2024, 2, 1)),
            )

    def test_name_length_limit(self, period_service, accountant):
        with pytest.raises(LedgerValidationError):
            period_service.create_period(
                accountant,
                PeriodInput(name="期" * 101, start_date=date(2024, 1, 1), end_date=date(2024, 2, 1)),
            )

    def test_description_length_limit(self, period_service, accountant):
        with pytest.raises(LedgerValidationError):
            period_service.create_period(
                accountant,
                PeriodInput(
                    name="x",
                    start_date=date(2024, 1, 1),
                    end_date=date(2024, 2, 1),
                    description="説" * 501,
                ),
            )


class TestUpdatePeriod:
    """Patching an open period."""

    def test_rename(self, period_service, accountant, fy2024):
        info = period_service.update_period(accountant, fy2024.id, PeriodPatch(name="FY2024"))
        assert info.name == "FY2024"
        assert info.start_date == date(2024, 1, 1)

    def test_closed_period_rejects_every_patch(self, period_service, accountant, make_period):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        with pytest.raises(ClosedPeriodUpdateError) as exc_info:
            period_service.update_period(accountant, closed.id, PeriodPatch(is_closed=False))
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_cannot_close_through_patch(self, period_service, accountant, fy2024):
        with pytest.raises(LedgerValidationError):
            period_service.update_period(accountant, fy2024.id, PeriodPatch(is_closed=True))

    def test_new_bounds_must_not_overlap(self, period_service, accountant, fy2024, make_period):
        make_period("2025年度", date(2025, 1, 1), date(2025, 12, 31))
        with pytest.raises(PeriodOverlapError):
            period_service.update_period(
                accountant, fy2024.id, PeriodPatch(end_date=date(2025, 3, 31))
            )

    def test_new_bounds_may_not_strand_entries(self, period_service, accountant, fy2024, post_entry):
        post_entry(date(2024, 11, 15), "売上", ("cash", 1000, None), ("sales", None, 1000))
        with pytest.raises(EntriesOutsidePeriodError):
            period_service.update_period(
                accountant, fy2024.id, PeriodPatch(end_date=date(2024, 10, 31))
            )

    def test_shrinking_around_entries_is_allowed(self, period_service, accountant, fy2024, post_entry):
        post_entry(date(2024, 3, 15), "売上", ("cash", 1000, None), ("sales", None, 1000))
        info = period_service.update_period(
            accountant, fy2024.id, PeriodPatch(end_date=date(2024, 6, 30))
        )
        assert info.end_date == date(2024, 6, 30)

    def test_unknown_period(self, period_service, accountant, outsider, fy2024):
        with pytest.raises(AccountingPeriodNotFoundError):
            period_service.update_period(outsider, fy2024.id, PeriodPatch(name="x"))


class TestClosePeriod:
    """The OPEN -> CLOSED transition."""

    def test_close_stamps_clock_and_actor(
        self, period_service, accountant, fy2024, deterministic_clock
    ):
        info = period_service.close_period(accountant, fy2024.id)

        assert info.is_closed is True
        assert info.closed_by_id == accountant.user_id
        assert _as_utc(info.closed_at) == deterministic_clock.now()

    def test_close_twice_is_invalid(self, period_service, accountant, fy2024):
        period_service.close_period(accountant, fy2024.id)
        with pytest.raises(PeriodAlreadyClosedError) as exc_info:
            period_service.close_period(accountant, fy2024.id)
        assert exc_info.value.code == "INVALID_OPERATION"

    def test_unapproved_entries_block_close(
        self, period_service, accountant, fy2024, post_entry, captured_logs
    ):
        post_entry(date(2024, 5, 1), "下書き", ("cash", 500, None), ("sales", None, 500), approve=False)

        with pytest.raises(UnapprovedEntriesError) as exc_info:
            period_service.close_period(accountant, fy2024.id)

        assert exc_info.value.code == "INVALID_OPERATION"
        assert "period_close_blocked" in [r["message"] for r in captured_logs()]

    def test_viewer_cannot_close(self, period_service, viewer, fy2024):
        with pytest.raises(ForbiddenError):
            period_service.close_period(viewer, fy2024.id)


class TestReopenAndActivate:
    """CLOSED -> OPEN transitions."""

    def test_admin_reopens(self, period_service, admin, make_period):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        info = period_service.reopen_period(admin, closed.id)

        assert info.is_closed is False
        assert info.closed_at is None
        assert info.closed_by_id is None

    def test_accountant_cannot_reopen(self, period_service, accountant, make_period):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        with pytest.raises(InsufficientPermissionsError) as exc_info:
            period_service.reopen_period(accountant, closed.id)
        assert exc_info.value.code == "INSUFFICIENT_PERMISSIONS"

    def test_reopen_open_period_is_invalid(self, period_service, admin, fy2024):
        with pytest.raises(PeriodAlreadyOpenError):
            period_service.reopen_period(admin, fy2024.id)

    def test_activate_open_period_is_noop(self, period_service, accountant, fy2024):
        info = period_service.activate_period(accountant, fy2024.id)
        assert info.is_closed is False
        assert info.id == fy2024.id

    def test_accountant_cannot_activate_closed(self, period_service, accountant, make_period):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        with pytest.raises(InsufficientPermissionsError):
            period_service.activate_period(accountant, closed.id)

    def test_admin_activates_closed(self, period_service, admin, make_period):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        assert period_service.activate_period(admin, closed.id).is_closed is False


class TestDeletePeriod:
    """Deletion guards."""

    def test_admin_deletes_empty_period(self, period_service, admin, fy2024, make_period):
        spare = make_period("2025年度", date(2025, 1, 1), date(2025, 12, 31))
        assert period_service.delete_period(admin, spare.id) == spare.id
        with pytest.raises(AccountingPeriodNotFoundError):
            period_service.get_period(admin, spare.id)

    def test_accountant_cannot_delete(self, period_service, accountant, fy2024):
        with pytest.raises(InsufficientPermissionsError):
            period_service.delete_period(accountant, fy2024.id)

    def test_period_with_entries_is_kept(self, period_service, admin, fy2024, make_period, post_entry):
        make_period("2025年度", date(2025, 1, 1), date(2025, 12, 31))
        post_entry(date(2024, 5, 1), "下書き", ("cash", 500, None), ("sales", None, 500), approve=False)
        with pytest.raises(PeriodHasEntriesError):
            period_service.delete_period(admin, fy2024.id)

    def test_last_open_period_is_kept(self, period_service, admin, fy2024):
        with pytest.raises(LastOpenPeriodError):
            period_service.delete_period(admin, fy2024.id)

    def test_closed_period_can_be_deleted_without_other_open(
        self, period_service, admin, make_period
    ):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        assert period_service.delete_period(admin, closed.id) == closed.id


class TestQueries:
    """Lookup, listing and the active period."""

    def test_get_is_organization_scoped(self, period_service, outsider, fy2024):
        with pytest.raises(AccountingPeriodNotFoundError):
            period_service.get_period(outsider, fy2024.id)

    def test_list_newest_first(self, period_service, viewer, fy2024, make_period):
        make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        make_period("2025年度", date(2025, 1, 1), date(2025, 12, 31))

        page = period_service.list_periods(viewer)

        assert page.total == 3
        assert [p.name for p in page.items] == ["2025年度", "2024年度", "2023年度"]

    def test_active_period_contains_today(
        self, period_service, viewer, fy2024, deterministic_clock
    ):
        # default clock: 2024-06-30
        assert period_service.get_active_period(viewer).id == fy2024.id

        deterministic_clock.set_time(datetime(2026, 1, 1, tzinfo=timezone.utc))
        assert period_service.get_active_period(viewer) is None


class TestRequireWritablePeriod:
    """Entry-date gating."""

    def test_unknown_period(self, period_service, admin, fy2024, outsider):
        with pytest.raises(UnknownPeriodError):
            period_service.require_writable_period(
                outsider.organization_id, fy2024.id, date(2024, 1, 1)
            )

    def test_closed_period(self, period_service, admin, make_period, captured_logs):
        closed = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)
        with pytest.raises(ClosedPeriodError) as exc_info:
            period_service.require_writable_period(
                admin.organization_id, closed.id, date(2023, 6, 1)
            )
        assert exc_info.value.code == "INVALID_OPERATION"
        assert "closed_period_write_rejected" in [r["message"] for r in captured_logs()]

    @pytest.mark.parametrize("entry_date", [date(2023, 12, 31), date(2025, 1, 1)])
    def test_date_outside_bounds(self, period_service, admin, fy2024, entry_date):
        with pytest.raises(EntryDateOutOfRangeError):
            period_service.require_writable_period(admin.organization_id, fy2024.id, entry_date)

    @pytest.mark.parametrize("entry_date", [date(2024, 1, 1), date(2024, 12, 31)])
    def test_bounds_are_inclusive(self, period_service, admin, fy2024, entry_date):
        period = period_service.require_writable_period(
            admin.organization_id, fy2024.id, entry_date
        )
        assert period.id == fy2024.id
