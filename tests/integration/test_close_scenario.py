"""
End-to-end period close through LedgerActions.

Create a fiscal year, post a draft sale, try to close while the draft is
pending, approve, close, then try to post into the closed year.  Every step
goes through the result-returning facade, as a presentation layer would.
"""

from datetime import date
from decimal import Decimal

from ledger_kernel.domain.dtos import JournalEntryInput, PeriodInput, PeriodPatch
from ledger_kernel.domain.results import ErrorCode


class TestPeriodCloseScenario:

    def test_close_lifecycle(self, actions, accountant, viewer, accounts, make_lines, invalidator):
        period = actions.create_accounting_period(
            accountant,
            PeriodInput(name="2024年度", start_date=date(2024, 1, 1), end_date=date(2024, 12, 31)),
        )
        assert period.success
        period_id = period.data.id

        created = actions.create_journal_entry(
            accountant,
            JournalEntryInput(
                entry_number="JE-0001",
                entry_date=date(2024, 6, 15),
                description="現金売上",
                accounting_period_id=period_id,
            ),
            make_lines(("cash", 100000, None), ("sales", None, 100000)),
        )
        assert created.success
        assert created.data.status == "draft"

        blocked = actions.close_accounting_period(accountant, period_id)
        assert blocked.error_code == ErrorCode.INVALID_OPERATION
        assert "未承認の仕訳" in blocked.error.message
        assert blocked.error.details == {"unapproved_count": 1}

        approved = actions.approve_journal_entry(accountant, created.data.id)
        assert approved.data.status == "approved"

        closed = actions.close_accounting_period(accountant, period_id)
        assert closed.success
        assert closed.data.is_closed is True

        late = actions.create_journal_entry(
            accountant,
            JournalEntryInput(
                entry_number="JE-0002",
                entry_date=date(2024, 7, 1),
                description="締め後の売上",
                accounting_period_id=period_id,
            ),
            make_lines(("cash", 5000, None), ("sales", None, 5000)),
        )
        assert late.error_code == ErrorCode.INVALID_OPERATION

        # the closed year still reports
        balance_sheet = actions.get_balance_sheet(viewer, "2024-12-31")
        assert balance_sheet.data.assets.total_assets == Decimal("100000")
        assert balance_sheet.data.is_balanced

        # period create, entry create, entry approve, period close
        assert len(invalidator.calls) == 4

    def test_closed_period_rejects_updates(self, actions, accountant, make_period):
        period = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)

        result = actions.update_accounting_period(
            accountant, period.id, PeriodPatch(description="修正")
        )

        assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_reopen_restores_posting(self, actions, admin, accountant, accounts, make_period, make_lines):
        period = make_period("2023年度", date(2023, 1, 1), date(2023, 12, 31), is_closed=True)

        reopened = actions.reopen_accounting_period(admin, period.id)
        assert reopened.success
        assert reopened.data.is_closed is False

        created = actions.create_journal_entry(
            accountant,
            JournalEntryInput(
                entry_number="JE-0100",
                entry_date=date(2023, 12, 31),
                description="決算整理",
                accounting_period_id=period.id,
            ),
            make_lines(("salaries", 1000, None), ("cash", None, 1000)),
        )
        assert created.success


class TestDeletionGuards:

    def test_sole_open_period(self, actions, admin, fy2024):
        result = actions.delete_accounting_period(admin, fy2024.id)
        assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_period_with_entries(self, actions, admin, make_period, post_entry, fy2024):
        make_period("2025年度", date(2025, 1, 1), date(2025, 12, 31))
        post_entry(date(2024, 3, 1), "売上", ("cash", 100, None), ("sales", None, 100), approve=False)

        result = actions.delete_accounting_period(admin, fy2024.id)
        assert result.error_code == ErrorCode.VALIDATION_ERROR

    def test_approved_entry(self, actions, admin, post_entry):
        entry = post_entry(date(2024, 3, 1), "売上", ("cash", 100, None), ("sales", None, 100))
        result = actions.delete_journal_entry(admin, entry.id)
        assert result.error_code == ErrorCode.INVALID_OPERATION

    def test_draft_entry(self, actions, admin, post_entry):
        entry = post_entry(
            date(2024, 3, 1), "売上", ("cash", 100, None), ("sales", None, 100), approve=False
        )
        result = actions.delete_journal_entry(admin, entry.id)
        assert result.success
        assert result.data == entry.id


class TestBalanceRule:

    def test_unbalanced_entry_details(self, actions, accountant, fy2024, make_lines):
        result = actions.create_journal_entry(
            accountant,
            JournalEntryInput(
                entry_number="JE-0001",
                entry_date=date(2024, 6, 15),
                description="不一致",
                accounting_period_id=fy2024.id,
            ),
            make_lines(("cash", 150000, None), ("sales", None, 100000)),
        )

        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert result.error.details == {
            "debit": Decimal("150000"),
            "credit": Decimal("100000"),
            "difference": Decimal("50000"),
        }

    def test_overlapping_period(self, actions, accountant, make_period):
        make_period("下期", date(2024, 3, 1), date(2024, 9, 30))
        result = actions.create_accounting_period(
            accountant,
            PeriodInput(name="上期", start_date=date(2024, 1, 1), end_date=date(2024, 6, 30)),
        )
        assert result.error_code == ErrorCode.VALIDATION_ERROR
