"""
Module: ledger_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal entry line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique per organization (uq_account_org_code).
    - The normal balance side is derived from account_type and never stored.

Failure modes:
    - IntegrityError on duplicate (organization_id, code).
    - IntegrityError on delete while referenced by lines or child accounts.
"""

from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"

    @property
    def normal_balance(self) -> "NormalBalance":
        if self in (AccountType.ASSET, AccountType.EXPENSE):
            return NormalBalance.DEBIT
        return NormalBalance.CREDIT


class NormalBalance(str, Enum):
    """Side on which an account's balance increases."""

    DEBIT = "debit"
    CREDIT = "credit"


class Account(TrackedBase):
    """
    Chart of accounts node.

    ``category`` and ``sub_category`` are free-form labels used only to
    bucket balances into statement sections.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_account_org_code"),
        Index("idx_account_type", "organization_id", "account_type"),
    )

    # Human-facing account code, e.g. "1110"
    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    account_type: Mapped[AccountType] = mapped_column(
        String(20),
        nullable=False,
    )

    # Statement bucketing labels, e.g. "流動資産" / "現金"
    category: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    sub_category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def normal_balance(self) -> NormalBalance:
        return AccountType(self.account_type).normal_balance

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == NormalBalance.DEBIT
