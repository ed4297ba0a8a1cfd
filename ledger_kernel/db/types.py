"""
Module: ledger_kernel.db.types
Responsibility: Money helpers shared by services and report models.

Invariants enforced:
    - No floats.  Amounts are Decimal with Numeric(38, 9) storage.
    - BALANCE_TOLERANCE is the single definition of "balanced".
"""

from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")

# Debits and credits of one entry may differ by at most this much.
BALANCE_TOLERANCE = Decimal("0.01")


def to_money(value: Any) -> Decimal:
    """
    Coerce an amount to Decimal.

    None becomes zero.  Floats are converted through ``str`` so that 0.1
    stays 0.1 rather than its binary expansion.

    Raises:
        ValueError: If the value is not numeric.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        value = str(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Not a monetary amount: {value!r}")
    return amount


def is_balanced(debit_total: Decimal, credit_total: Decimal) -> bool:
    """True when the two totals agree within BALANCE_TOLERANCE."""
    return abs(debit_total - credit_total) <= BALANCE_TOLERANCE
