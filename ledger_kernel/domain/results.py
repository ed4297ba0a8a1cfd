"""
Discriminated result contract returned by every public ledger operation.

Either ``{success: True, data}`` or
``{success: False, error: {code, message, details?}}``.  No internal
exception type crosses this boundary; presentation layers branch on
``error.code`` and display ``error.message``.
"""

from dataclasses import dataclass, fields, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Generic, TypeVar
from uuid import UUID

T = TypeVar("T")


class ErrorCode(str, Enum):
    """Stable, machine-readable error codes."""

    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INVALID_OPERATION = "INVALID_OPERATION"
    INSUFFICIENT_PERMISSIONS = "INSUFFICIENT_PERMISSIONS"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ActionError:
    code: ErrorCode
    message: str
    details: dict[str, Any] | None = None


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """
    Outcome of one ledger operation.

    Guarantees:
        - ``success`` is True iff ``error`` is None.
    """

    success: bool
    data: T | None = None
    error: ActionError | None = None

    @classmethod
    def ok(cls, data: T) -> "ActionResult[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(
        cls,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> "ActionResult[T]":
        return cls(
            success=False,
            error=ActionError(code=ErrorCode(code), message=message, details=details),
        )

    @property
    def error_code(self) -> ErrorCode | None:
        return self.error.code if self.error else None

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe rendering of the result."""
        if self.success:
            return {"success": True, "data": to_primitive(self.data)}
        error: dict[str, Any] = {
            "code": self.error.code.value,
            "message": self.error.message,
        }
        if self.error.details is not None:
            error["details"] = to_primitive(self.error.details)
        return {"success": False, "error": error}


def to_primitive(obj: Any) -> Any:
    """
    Recursively convert DTOs and reports to JSON-serializable primitives.

    Decimal -> str, UUID -> str, date/datetime -> ISO string,
    Enum -> value, dataclass -> dict, tuple -> list.
    """
    if obj is None:
        return None
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: to_primitive(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {str(k): to_primitive(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_primitive(item) for item in obj]
    return obj
