"""
Module: ledger_kernel.models.partner
Responsibility: Business partners (customers, suppliers) that journal lines
    may optionally reference.  Partner maintenance itself happens outside the
    ledger core; the posting engine only checks existence.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ledger_kernel.db.base import TrackedBase


class Partner(TrackedBase):
    __tablename__ = "partners"

    __table_args__ = (
        UniqueConstraint("organization_id", "code", name="uq_partner_org_code"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Partner {self.code}: {self.name}>"
