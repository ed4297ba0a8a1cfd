"""
ReportingService integration tests.

Posts a small first-half-2024 ledger through JournalEntryService and checks
every statement against hand-computed figures.

    JE-0001 01-05  普通預金 1,000,000 / 資本金   1,000,000
    JE-0002 02-10  現金       300,000 / 売上高     300,000
    JE-0003 03-15  備品       200,000 / 普通預金   200,000
    JE-0004 04-20  普通預金   500,000 / 長期借入金 500,000
    JE-0005 05-25  給料手当   120,000 / 普通預金   120,000
    JE-0006 06-10  普通預金     1,000 / 受取利息     1,000
    JE-0007 06-20  現金         9,999 / 売上高       9,999   (draft)
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.exceptions import (
    AccountNotFoundError,
    InvalidDateFormatError,
    InvalidDateRangeError,
    UnauthorizedError,
)
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.models import ReportType
from ledger_modules.reporting.service import (
    ReportingService,
    parse_report_date,
    parse_report_range,
)


@pytest.fixture
def ledger(post_entry, accounts):
    post_entry(date(2024, 1, 5), "資本金払込", ("bank", 1000000, None), ("capital", None, 1000000))
    post_entry(date(2024, 2, 10), "現金売上", ("cash", 300000, None), ("sales", None, 300000))
    post_entry(date(2024, 3, 15), "備品購入", ("equipment", 200000, None), ("bank", None, 200000))
    post_entry(date(2024, 4, 20), "銀行借入", ("bank", 500000, None), ("loan", None, 500000))
    post_entry(date(2024, 5, 25), "5月分給与", ("salaries", 120000, None), ("bank", None, 120000))
    post_entry(date(2024, 6, 10), "預金利息", ("bank", 1000, None), ("interest_income", None, 1000))
    post_entry(
        date(2024, 6, 20), "未承認売上", ("cash", 9999, None), ("sales", None, 9999), approve=False
    )
    return accounts


def _amounts(items):
    return {i.account_name: i.amount for i in items}


class TestDateParsing:
    """Report date inputs."""

    def test_date_passes_through(self):
        assert parse_report_date(date(2024, 6, 30)) == date(2024, 6, 30)

    def test_iso_string(self):
        assert parse_report_date("2024-06-30") == date(2024, 6, 30)

    @pytest.mark.parametrize(
        "value",
        [
            None,
            "",
            "2024-6-30",
            "20240630",
            "2024/06/30",
            "2024-02-30",
            "yesterday",
            datetime(2024, 6, 30, tzinfo=timezone.utc),
        ],
    )
    def test_rejected_inputs(self, value):
        with pytest.raises(InvalidDateFormatError) as exc_info:
            parse_report_date(value)
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_range_order(self):
        with pytest.raises(InvalidDateRangeError):
            parse_report_range("2024-07-01", "2024-06-30")

    def test_single_day_range(self):
        assert parse_report_range("2024-06-30", "2024-06-30") == (
            date(2024, 6, 30),
            date(2024, 6, 30),
        )


class TestBalanceSheet:

    def test_half_year(self, reporting_service, viewer, ledger):
        report = reporting_service.get_balance_sheet(viewer, "2024-06-30")

        assert _amounts(report.assets.current) == {
            "現金": Decimal("300000"),
            "普通預金": Decimal("1181000"),
        }
        assert _amounts(report.assets.fixed) == {"備品": Decimal("200000")}
        assert _amounts(report.liabilities.other) == {"長期借入金": Decimal("500000")}
        assert report.equity.current_period_income == Decimal("181000")
        assert report.assets.total_assets == Decimal("1681000")
        assert report.total_liabilities_and_equity == Decimal("1681000")
        assert report.is_balanced

    def test_as_of_is_inclusive(self, reporting_service, viewer, ledger):
        report = reporting_service.get_balance_sheet(viewer, date(2024, 3, 15))
        assert _amounts(report.assets.fixed) == {"備品": Decimal("200000")}
        assert report.assets.total_assets == Decimal("1300000")

    def test_metadata(self, reporting_service, viewer, ledger, deterministic_clock):
        report = reporting_service.get_balance_sheet(viewer, "2024-06-30")

        assert report.metadata.report_type == ReportType.BALANCE_SHEET
        assert report.metadata.entity_name == "テスト株式会社"
        assert report.metadata.currency == "JPY"
        assert report.metadata.as_of_date == date(2024, 6, 30)
        assert report.metadata.generated_at == deterministic_clock.now().isoformat()
        assert report.metadata.organization_id == viewer.organization_id

    def test_currency_label_from_config(self, session, deterministic_clock, viewer, ledger):
        service = ReportingService(
            session, deterministic_clock, ReportingConfig(entity_name="テスト株式会社", currency="USD")
        )
        report = service.get_balance_sheet(viewer, "2024-06-30")

        assert report.metadata.currency == "USD"
        # labels only, amounts unchanged
        assert report.assets.total_assets == Decimal("1681000")

    def test_construction_logs_at_debug(self, session, deterministic_clock, captured_logs):
        ReportingService(session, deterministic_clock, ReportingConfig())

        records = [r for r in captured_logs() if r["message"] == "reporting_service_initialized"]
        assert [r["level"] for r in records] == ["DEBUG"]
        assert records[0]["currency"] == "JPY"

    def test_other_organization_sees_nothing(self, reporting_service, outsider, ledger):
        report = reporting_service.get_balance_sheet(outsider, "2024-06-30")
        assert report.assets.total_assets == Decimal("0")
        assert report.is_balanced

    def test_inactive_accounts_still_reported(
        self, reporting_service, session, viewer, ledger
    ):
        ledger["equipment"].is_active = False
        session.commit()

        report = reporting_service.get_balance_sheet(viewer, "2024-06-30")
        assert "備品" in _amounts(report.assets.fixed)

    def test_requires_identity(self, reporting_service, ledger):
        with pytest.raises(UnauthorizedError):
            reporting_service.get_balance_sheet(None, "2024-06-30")


class TestIncomeStatement:

    def test_half_year(self, reporting_service, viewer, ledger):
        report = reporting_service.get_income_statement(viewer, "2024-01-01", "2024-06-30")

        assert _amounts(report.revenue.sales_revenue) == {"売上高": Decimal("300000")}
        assert _amounts(report.expenses.administrative_expenses) == {"給料手当": Decimal("120000")}
        assert _amounts(report.non_operating.income) == {"受取利息": Decimal("1000")}
        assert report.operating_income == Decimal("180000")
        assert report.ordinary_income == Decimal("181000")
        assert report.net_income == Decimal("181000")
        assert report.metadata.period_start == date(2024, 1, 1)
        assert report.metadata.period_end == date(2024, 6, 30)

    def test_second_quarter_only(self, reporting_service, viewer, ledger):
        report = reporting_service.get_income_statement(viewer, "2024-04-01", "2024-06-30")

        assert report.revenue.total_revenue == Decimal("0")
        assert report.net_income == Decimal("-119000")

    def test_bad_range(self, reporting_service, viewer, ledger):
        with pytest.raises(InvalidDateRangeError):
            reporting_service.get_income_statement(viewer, "2024-06-30", "2024-01-01")


class TestTrialBalance:

    def test_second_quarter_columns(self, reporting_service, viewer, ledger):
        report = reporting_service.get_trial_balance(viewer, "2024-04-01", "2024-06-30")

        bank = next(i for i in report.items if i.account_name == "普通預金")
        assert bank.beginning_debit == Decimal("1000000")
        assert bank.beginning_credit == Decimal("200000")
        assert bank.period_debit == Decimal("501000")
        assert bank.period_credit == Decimal("120000")
        assert bank.ending_debit == Decimal("1501000")
        assert bank.ending_credit == Decimal("320000")

        assert report.totals.ending_debit == report.totals.ending_credit == Decimal("2121000")
        assert report.is_balanced

    def test_draft_entries_excluded(self, reporting_service, viewer, ledger):
        report = reporting_service.get_trial_balance(viewer, "2024-01-01", "2024-12-31")
        cash = next(i for i in report.items if i.account_name == "現金")
        assert cash.ending_debit == Decimal("300000")


class TestGeneralLedger:

    def test_single_account(self, reporting_service, viewer, ledger):
        report = reporting_service.get_general_ledger(
            viewer, "2024-04-01", "2024-06-30", account_id=ledger["bank"].id
        )

        assert len(report.accounts) == 1
        bank = report.accounts[0]
        assert bank.opening_balance == Decimal("800000")
        assert [e.entry_number for e in bank.entries] == ["JE-0004", "JE-0005", "JE-0006"]
        assert [e.balance for e in bank.entries] == [
            Decimal("1300000"),
            Decimal("1180000"),
            Decimal("1181000"),
        ]
        assert bank.entries[1].description == "5月分給与"
        assert bank.closing_balance == Decimal("1181000")

    def test_all_accounts(self, reporting_service, viewer, ledger):
        report = reporting_service.get_general_ledger(viewer, "2024-01-01", "2024-01-31")
        assert [a.account_name for a in report.accounts] == ["普通預金", "資本金"]

    def test_unknown_account(self, reporting_service, viewer, ledger):
        with pytest.raises(AccountNotFoundError) as exc_info:
            reporting_service.get_general_ledger(
                viewer, "2024-01-01", "2024-06-30", account_id=uuid4()
            )
        assert exc_info.value.code == "NOT_FOUND"

    def test_other_organization_account(self, reporting_service, outsider, ledger):
        with pytest.raises(AccountNotFoundError):
            reporting_service.get_general_ledger(
                outsider, "2024-01-01", "2024-06-30", account_id=ledger["bank"].id
            )


class TestCashFlowStatement:

    def test_half_year(self, reporting_service, viewer, ledger):
        report = reporting_service.get_cash_flow_statement(viewer, "2024-01-01", "2024-06-30")

        assert report.beginning_cash == Decimal("0")
        assert report.operating.net == Decimal("181000")
        assert report.investing.net == Decimal("-200000")
        assert report.financing.net == Decimal("1500000")
        assert [i.category for i in report.financing.items] == ["資本金", "長期借入金"]
        assert report.net_change == Decimal("1481000")
        assert report.ending_cash == Decimal("1481000")

    def test_second_quarter(self, reporting_service, viewer, ledger):
        report = reporting_service.get_cash_flow_statement(viewer, "2024-04-01", "2024-06-30")

        assert report.beginning_cash == Decimal("1100000")
        assert report.net_change == Decimal("381000")
        assert report.ending_cash == Decimal("1481000")


class TestPeriodFilter:
    """Restricting aggregation to entries booked against one period."""

    def test_other_period_excluded(self, reporting_service, viewer, ledger, make_period, post_entry, fy2024):
        fy2025 = make_period("2025年度", date(2025, 1, 1), date(2025, 12, 31))
        post_entry(
            date(2025, 1, 10), "2025年売上", ("cash", 50000, None), ("sales", None, 50000),
            period=fy2025,
        )

        everything = reporting_service.get_balance_sheet(viewer, "2025-12-31")
        only_2024 = reporting_service.get_balance_sheet(viewer, "2025-12-31", period_id=fy2024.id)

        assert everything.assets.total_assets == Decimal("1731000")
        assert only_2024.assets.total_assets == Decimal("1681000")
        assert only_2024.metadata.accounting_period_id == fy2024.id


class TestSubCentAmounts:
    """Amounts below one cent are aggregated exactly, not rounded per account."""

    @pytest.fixture
    def split_sale(self, post_entry):
        return post_entry(
            date(2024, 3, 1),
            "端数売上",
            ("cash", "0.005", None),
            ("receivable", "0.005", None),
            ("sales", None, "0.010"),
        )

    def test_trial_balance_columns_agree(self, reporting_service, viewer, split_sale):
        report = reporting_service.get_trial_balance(viewer, "2024-01-01", "2024-12-31")

        assert report.totals.ending_debit == Decimal("0.01")
        assert report.totals.ending_credit == Decimal("0.01")
        assert report.is_balanced

    def test_balance_sheet_balances(self, reporting_service, viewer, split_sale):
        report = reporting_service.get_balance_sheet(viewer, "2024-12-31")

        assert _amounts(report.assets.current) == {
            "現金": Decimal("0.005"),
            "売掛金": Decimal("0.005"),
        }
        assert report.assets.total_assets == Decimal("0.01")
        assert report.total_liabilities_and_equity == Decimal("0.01")

    def test_general_ledger_opening_is_exact(self, reporting_service, viewer, accounts, split_sale):
        report = reporting_service.get_general_ledger(
            viewer, "2024-06-01", "2024-12-31", account_id=accounts["cash"].id
        )

        assert report.accounts[0].opening_balance == Decimal("0.005")
        assert report.accounts[0].closing_balance == Decimal("0.005")
