"""
Pytest fixtures for the ledger core test suite.

Provides:
- A fresh database per test (in-memory SQLite unless LEDGER_DATABASE_URL
  points at PostgreSQL)
- Identities for each role, a seeded chart of accounts and an open
  fiscal-year period
- Helpers to post and approve journal entries
- Structured log capture
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from ledger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_database_url,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.dtos import JournalEntryInput, JournalLineInput
from ledger_kernel.domain.identity import Identity, Role
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.accounting_period import AccountingPeriod
from ledger_kernel.models.partner import Partner
from ledger_kernel.services.account_service import AccountService
from ledger_kernel.services.journal_entry_service import JournalEntryService
from ledger_kernel.services.period_service import PeriodService
from ledger_modules.reporting.config import ReportingConfig
from ledger_modules.reporting.service import ReportingService
from ledger_services.ledger_actions import LedgerActions


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging once per test session."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Ensure LogContext is clean for every test."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture structured log records emitted under the ledger_kernel logger.

    Returns a callable that parses the captured JSON lines into dicts.
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    logger = logging.getLogger("ledger_kernel")
    logger.addHandler(handler)

    def records() -> list[dict]:
        return [
            json.loads(line)
            for line in stream.getvalue().splitlines()
            if line.strip()
        ]

    yield records
    logger.removeHandler(handler)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    """A fresh schema for every test."""
    engine = init_engine_from_url(get_database_url())
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    session = get_session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock()


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture
def org_id() -> UUID:
    return uuid4()


@pytest.fixture
def admin(org_id) -> Identity:
    return Identity(user_id=uuid4(), organization_id=org_id, role=Role.ADMIN)


@pytest.fixture
def accountant(org_id) -> Identity:
    return Identity(user_id=uuid4(), organization_id=org_id, role=Role.ACCOUNTANT)


@pytest.fixture
def viewer(org_id) -> Identity:
    return Identity(user_id=uuid4(), organization_id=org_id, role=Role.VIEWER)


@pytest.fixture
def outsider() -> Identity:
    """Administrator of a different organization."""
    return Identity(user_id=uuid4(), organization_id=uuid4(), role=Role.ADMIN)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------

# key -> (code, name, type, category, sub_category)
CHART_OF_ACCOUNTS: dict[str, tuple[str, str, AccountType, str, str | None]] = {
    "cash": ("1110", "現金", AccountType.ASSET, "流動資産", "現金"),
    "bank": ("1120", "普通預金", AccountType.ASSET, "流動資産", "預金"),
    "receivable": ("1130", "売掛金", AccountType.ASSET, "流動資産", "売上債権"),
    "equipment": ("1510", "備品", AccountType.ASSET, "固定資産", "有形固定資産"),
    "payable": ("2110", "買掛金", AccountType.LIABILITY, "流動負債", "仕入債務"),
    "loan": ("2510", "長期借入金", AccountType.LIABILITY, "借入金", None),
    "capital": ("3110", "資本金", AccountType.EQUITY, "資本金", None),
    "retained": ("3310", "繰越利益剰余金", AccountType.EQUITY, "利益剰余金", None),
    "sales": ("4110", "売上高", AccountType.REVENUE, "売上高", None),
    "interest_income": ("4510", "受取利息", AccountType.REVENUE, "営業外収益", None),
    "purchases": ("5110", "仕入高", AccountType.EXPENSE, "売上原価", None),
    "advertising": ("5210", "広告宣伝費", AccountType.EXPENSE, "販売費", None),
    "salaries": ("5220", "給料手当", AccountType.EXPENSE, "一般管理費", None),
    "interest_expense": ("5610", "支払利息", AccountType.EXPENSE, "営業外費用", None),
    "income_tax": ("5910", "法人税等", AccountType.EXPENSE, "法人税等", None),
}


@pytest.fixture
def accounts(session, admin) -> dict[str, Account]:
    """The seeded chart of accounts, keyed by a short name."""
    rows: dict[str, Account] = {}
    for key, (code, name, account_type, category, sub_category) in CHART_OF_ACCOUNTS.items():
        rows[key] = Account(
            organization_id=admin.organization_id,
            code=code,
            name=name,
            account_type=account_type.value,
            category=category,
            sub_category=sub_category,
            created_by_id=admin.user_id,
        )
    session.add_all(rows.values())
    session.commit()
    return rows


@pytest.fixture
def partner(session, admin) -> Partner:
    row = Partner(
        organization_id=admin.organization_id,
        code="C001",
        name="株式会社テスト商事",
        created_by_id=admin.user_id,
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def make_period(session, admin):
    """Insert a period row directly, bypassing PeriodService checks."""

    def _make(
        name: str,
        start_date: date,
        end_date: date,
        is_closed: bool = False,
        identity: Identity | None = None,
    ) -> AccountingPeriod:
        identity = identity or admin
        period = AccountingPeriod(
            organization_id=identity.organization_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            is_closed=is_closed,
            created_by_id=identity.user_id,
        )
        session.add(period)
        session.commit()
        return period

    return _make


@pytest.fixture
def fy2024(make_period) -> AccountingPeriod:
    """Open fiscal year 2024."""
    return make_period("2024年度", date(2024, 1, 1), date(2024, 12, 31))


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def period_service(session, deterministic_clock) -> PeriodService:
    return PeriodService(session, deterministic_clock)


@pytest.fixture
def journal_service(session, deterministic_clock, period_service) -> JournalEntryService:
    return JournalEntryService(session, deterministic_clock, period_service)


@pytest.fixture
def account_service(session) -> AccountService:
    return AccountService(session)


@pytest.fixture
def reporting_config() -> ReportingConfig:
    return ReportingConfig(entity_name="テスト株式会社")


@pytest.fixture
def reporting_service(session, deterministic_clock, reporting_config) -> ReportingService:
    return ReportingService(session, deterministic_clock, reporting_config)


class RecordingInvalidator:
    """Collects the path batches passed to ``invalidate``."""

    def __init__(self):
        self.calls: list[tuple[str, ...]] = []

    def invalidate(self, paths: tuple[str, ...]) -> None:
        self.calls.append(paths)


@pytest.fixture
def invalidator() -> RecordingInvalidator:
    return RecordingInvalidator()


@pytest.fixture
def actions(session, deterministic_clock, reporting_config, invalidator) -> LedgerActions:
    return LedgerActions(
        session,
        clock=deterministic_clock,
        config=reporting_config,
        invalidator=invalidator,
    )


# ---------------------------------------------------------------------------
# Posting helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def make_lines(accounts):
    """Build line inputs from ``(account_key, debit, credit)`` legs."""

    def _lines(*legs) -> list[JournalLineInput]:
        return [
            JournalLineInput(
                account_id=accounts[key].id,
                debit_amount=Decimal(str(debit)) if debit is not None else None,
                credit_amount=Decimal(str(credit)) if credit is not None else None,
            )
            for key, debit, credit in legs
        ]

    return _lines


@pytest.fixture
def post_entry(session, journal_service, accountant, make_lines, fy2024):
    """
    Create (and by default approve) an entry in fy2024.

    Usage::

        post_entry(date(2024, 1, 5), "売上", ("cash", 1000, None), ("sales", None, 1000))
    """
    counter = {"n": 0}

    def _post(
        entry_date: date,
        description: str,
        *legs,
        approve: bool = True,
        period: AccountingPeriod | None = None,
        entry_number: str | None = None,
    ):
        counter["n"] += 1
        entry = journal_service.create_entry(
            accountant,
            JournalEntryInput(
                entry_number=entry_number or f"JE-{counter['n']:04d}",
                entry_date=entry_date,
                description=description,
                accounting_period_id=(period or fy2024).id,
            ),
            make_lines(*legs),
        )
        if approve:
            entry = journal_service.approve_entry(accountant, entry.id)
        session.commit()
        return entry

    return _post
