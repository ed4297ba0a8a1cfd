"""
DTOs -- immutable inputs to and outputs from the ledger services.

Inputs:
    ``JournalEntryInput`` / ``JournalLineInput`` / ``JournalEntryPatch``,
    ``PeriodInput`` / ``PeriodPatch``, ``AccountInput`` / ``AccountPatch``.
    Required fields are typed optional so that "missing" can be reported as
    a validation error instead of a TypeError.  In patches, None means
    "leave unchanged".

Outputs:
    ``AccountingPeriodInfo``, ``JournalEntryInfo`` (with ``JournalLineInfo``),
    ``AccountDetails`` and ``Page``.  Services return these, never ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Generic, TypeVar
from uuid import UUID

if TYPE_CHECKING:
    from ledger_kernel.models.account import Account
    from ledger_kernel.models.accounting_period import AccountingPeriod
    from ledger_kernel.models.journal import JournalEntry, JournalEntryLine

T = TypeVar("T")


# =========================================================================
# Inputs
# =========================================================================


@dataclass(frozen=True)
class JournalLineInput:
    account_id: UUID | None
    debit_amount: Decimal | None = None
    credit_amount: Decimal | None = None
    partner_id: UUID | None = None
    description: str | None = None
    line_number: int | None = None
    tags: dict[str, Any] | None = None


@dataclass(frozen=True)
class JournalEntryInput:
    entry_number: str | None
    entry_date: date | None
    description: str | None
    accounting_period_id: UUID | None
    status: str | None = None


@dataclass(frozen=True)
class JournalEntryPatch:
    entry_number: str | None = None
    entry_date: date | None = None
    description: str | None = None
    accounting_period_id: UUID | None = None
    status: str | None = None


@dataclass(frozen=True)
class PeriodInput:
    name: str | None
    start_date: date | None
    end_date: date | None
    description: str | None = None


@dataclass(frozen=True)
class PeriodPatch:
    name: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    description: str | None = None
    # Only ever rejected on a closed period; reopening has its own path
    is_closed: bool | None = None

    @property
    def changes_dates(self) -> bool:
        return self.start_date is not None or self.end_date is not None


@dataclass(frozen=True)
class AccountInput:
    code: str | None
    name: str | None
    account_type: str | None
    category: str | None
    sub_category: str | None = None
    parent_id: UUID | None = None
    description: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class AccountPatch:
    code: str | None = None
    name: str | None = None
    category: str | None = None
    sub_category: str | None = None
    parent_id: UUID | None = None
    description: str | None = None
    is_active: bool | None = None


# =========================================================================
# Outputs
# =========================================================================


@dataclass(frozen=True)
class AccountingPeriodInfo:
    id: UUID
    organization_id: UUID
    name: str
    description: str | None
    start_date: date
    end_date: date
    is_closed: bool
    closed_at: datetime | None
    closed_by_id: UUID | None

    @classmethod
    def from_model(cls, period: AccountingPeriod) -> AccountingPeriodInfo:
        return cls(
            id=period.id,
            organization_id=period.organization_id,
            name=period.name,
            description=period.description,
            start_date=period.start_date,
            end_date=period.end_date,
            is_closed=period.is_closed,
            closed_at=period.closed_at,
            closed_by_id=period.closed_by_id,
        )


@dataclass(frozen=True)
class JournalLineInfo:
    id: UUID
    line_number: int
    account_id: UUID
    partner_id: UUID | None
    debit_amount: Decimal | None
    credit_amount: Decimal | None
    description: str | None
    tags: dict[str, Any] | None

    @classmethod
    def from_model(cls, line: JournalEntryLine) -> JournalLineInfo:
        return cls(
            id=line.id,
            line_number=line.line_number,
            account_id=line.account_id,
            partner_id=line.partner_id,
            debit_amount=line.debit_amount,
            credit_amount=line.credit_amount,
            description=line.description,
            tags=line.tags,
        )


@dataclass(frozen=True)
class JournalEntryInfo:
    id: UUID
    organization_id: UUID
    accounting_period_id: UUID
    entry_number: str
    entry_date: date
    description: str
    status: str
    created_by_id: UUID
    approved_by_id: UUID | None
    approved_at: datetime | None
    lines: tuple[JournalLineInfo, ...]

    @classmethod
    def from_model(cls, entry: JournalEntry) -> JournalEntryInfo:
        return cls(
            id=entry.id,
            organization_id=entry.organization_id,
            accounting_period_id=entry.accounting_period_id,
            entry_number=entry.entry_number,
            entry_date=entry.entry_date,
            description=entry.description,
            status=str(getattr(entry.status, "value", entry.status)),
            created_by_id=entry.created_by_id,
            approved_by_id=entry.approved_by_id,
            approved_at=entry.approved_at,
            lines=tuple(
                JournalLineInfo.from_model(line)
                for line in sorted(entry.lines, key=lambda ln: ln.line_number)
            ),
        )

    @property
    def total_debit(self) -> Decimal:
        return sum((ln.debit_amount or Decimal("0") for ln in self.lines), Decimal("0"))

    @property
    def total_credit(self) -> Decimal:
        return sum((ln.credit_amount or Decimal("0") for ln in self.lines), Decimal("0"))


@dataclass(frozen=True)
class AccountDetails:
    id: UUID
    organization_id: UUID
    code: str
    name: str
    account_type: str
    normal_balance: str
    category: str
    sub_category: str | None
    parent_id: UUID | None
    description: str | None
    is_active: bool

    @classmethod
    def from_model(cls, account: Account) -> AccountDetails:
        return cls(
            id=account.id,
            organization_id=account.organization_id,
            code=account.code,
            name=account.name,
            account_type=str(getattr(account.account_type, "value", account.account_type)),
            normal_balance=account.normal_balance.value,
            category=account.category,
            sub_category=account.sub_category,
            parent_id=account.parent_id,
            description=account.description,
            is_active=account.is_active,
        )


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a listing plus the total row count."""

    items: tuple[T, ...]
    total: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size
