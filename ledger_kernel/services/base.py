"""
Base class for kernel services.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from ledger_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.  ``ledger_services.LedgerActions`` (or
          any other caller) owns the transaction boundary.

    Non-goals:
        - Does NOT translate exceptions into result objects.
    """

    def __init__(self, session: Session):
        self.session = session
