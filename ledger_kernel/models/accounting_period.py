"""
Module: ledger_kernel.models.accounting_period
Responsibility: ORM persistence for accounting periods -- the date ranges
    that decide which entry dates are writable.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - start_date < end_date (ck_period_date_order).
    - Periods of one organization never overlap (checked by PeriodService).
    - closed_at / closed_by_id are set only while is_closed is true.

Audit relevance:
    Closing a period freezes the statements that cover it.
"""

from datetime import date, datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase, UUIDString


class AccountingPeriod(TrackedBase):
    """
    Accounting period (OPEN <-> CLOSED).

    Non-goals:
        - Overlap and "last open period" rules live in PeriodService; the
          model only guards the date order.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_period_date_order"),
        Index("idx_period_dates", "organization_id", "start_date", "end_date"),
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True,
    )

    # Inclusive bounds
    start_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    end_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
    )

    is_closed: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    closed_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )

    def __repr__(self) -> str:
        state = "closed" if self.is_closed else "open"
        return f"<AccountingPeriod {self.name}: {self.start_date}..{self.end_date} {state}>"

    @property
    def is_open(self) -> bool:
        return not self.is_closed

    def contains_date(self, check_date: date) -> bool:
        """Check if a date falls within this period (bounds inclusive)."""
        return self.start_date <= check_date <= self.end_date

    def reopen(self) -> None:
        """Clear the closed state and its stamps."""
        self.is_closed = False
        self.closed_at = None
        self.closed_by_id = None
