"""
Module: ledger_kernel.models.journal
Responsibility: ORM persistence for journal entries and their lines -- the
    facts every statement is aggregated from.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - entry_number is unique per organization (uq_entry_org_number).
    - Each line references its entry, an account and optionally a partner
      through foreign keys.
    - Balance, line count and one-sided amounts are checked by
      JournalEntryService before anything is written.

Failure modes:
    - IntegrityError on duplicate entry number or dangling references.

Audit relevance:
    Only APPROVED entries reach the financial statements.  Approved entries
    are immutable and cannot be deleted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ledger_kernel.db.base import TrackedBase, UUIDString
from ledger_kernel.db.types import ZERO


class JournalEntryStatus(str, Enum):
    """Lifecycle status of a journal entry.

    DRAFT and PENDING are mutable and block the period close.  APPROVED is
    terminal and immutable.  CANCELLED is final but excluded from reports.
    """

    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    CANCELLED = "cancelled"


UNAPPROVED_STATUSES = (JournalEntryStatus.DRAFT.value, JournalEntryStatus.PENDING.value)


class JournalEntry(TrackedBase):
    """One atomic financial transaction."""

    __tablename__ = "journal_entries"

    __table_args__ = (
        UniqueConstraint("organization_id", "entry_number", name="uq_entry_org_number"),
        Index("idx_entry_period_status", "accounting_period_id", "status"),
        Index("idx_entry_date", "organization_id", "entry_date"),
    )

    accounting_period_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounting_periods.id"),
        nullable=False,
    )

    # Human-facing number, e.g. "JE-2024-0001"
    entry_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    entry_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )

    status: Mapped[JournalEntryStatus] = mapped_column(
        String(20),
        default=JournalEntryStatus.DRAFT.value,
        nullable=False,
    )

    approved_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    approved_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    # Lines are written and deleted explicitly by JournalEntryService
    lines: Mapped[list["JournalEntryLine"]] = relationship(
        viewonly=True,
        order_by="JournalEntryLine.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number}: {self.status}>"

    @property
    def is_approved(self) -> bool:
        return self.status == JournalEntryStatus.APPROVED.value

    @property
    def total_debits(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)


class JournalEntryLine(TrackedBase):
    """One debit or credit leg of a journal entry."""

    __tablename__ = "journal_entry_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id", "line_number"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    partner_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("partners.id"),
        nullable=True,
    )

    line_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Exactly one of the two amounts is positive
    debit_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    credit_amount: Mapped[Decimal | None] = mapped_column(
        Numeric(38, 9),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Free-form project / tag metadata
    tags: Mapped[dict | None] = mapped_column(
        JSON,
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<JournalEntryLine #{self.line_number} "
            f"Dr {self.debit} / Cr {self.credit}>"
        )

    @property
    def debit(self) -> Decimal:
        return self.debit_amount or ZERO

    @property
    def credit(self) -> Decimal:
        return self.credit_amount or ZERO
