"""
Typed exception hierarchy for the ledger kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Services raise; only the outer boundary (``ledger_services.LedgerActions``)
turns exceptions into result objects.  Every class therefore carries:

  1. A ``code`` class attribute -- one of the nine stable, machine-readable
     codes that presentation layers branch on.
  2. A localized, human-readable message (``str(exc)`` / ``exc.message``).
  3. Structured attributes, plus an optional ``details`` dict that is safe
     to hand to a client (e.g. the debit/credit totals of an unbalanced
     entry).

Example:
    try:
        service.create_entry(identity, entry, lines)
    except UnbalancedEntryError as e:
        show(e.message, debit=e.debit, credit=e.credit)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (INTERNAL_ERROR)
    |
    +-- AuthorizationError
    |   +-- UnauthorizedError                (UNAUTHORIZED)
    |   +-- ForbiddenError                   (FORBIDDEN)
    |   +-- InsufficientPermissionsError     (INSUFFICIENT_PERMISSIONS)
    |
    +-- LedgerValidationError                (VALIDATION_ERROR)
    |   +-- MissingFieldsError
    |   +-- EmptyEntryError
    |   +-- TooManyLinesError
    |   +-- InvalidLineAmountError
    |   +-- UnbalancedEntryError
    |   +-- UnknownPeriodError
    |   +-- EntryDateOutOfRangeError
    |   +-- UnknownAccountsError
    |   +-- UnknownPartnersError
    |   +-- UnknownParentAccountError
    |   +-- SelfParentAccountError
    |   +-- InvalidDateRangeError
    |   +-- InvalidDateFormatError
    |   +-- PeriodOverlapError
    |   +-- PeriodSpanTooLongError
    |   +-- ClosedPeriodUpdateError
    |   +-- EntriesOutsidePeriodError
    |   +-- PeriodHasEntriesError
    |   +-- LastOpenPeriodError
    |
    +-- InvalidOperationError                (INVALID_OPERATION)
    |   +-- ClosedPeriodError
    |   +-- PeriodAlreadyClosedError
    |   +-- PeriodAlreadyOpenError
    |   +-- UnapprovedEntriesError
    |   +-- ApprovedEntryImmutableError
    |   +-- EntryAlreadyApprovedError
    |
    +-- NotFoundError                        (NOT_FOUND)
    |   +-- JournalEntryNotFoundError
    |   +-- AccountingPeriodNotFoundError
    |   +-- AccountNotFoundError
    |
    +-- AlreadyExistsError                   (ALREADY_EXISTS)
    |   +-- DuplicateAccountCodeError
    |   +-- DuplicateEntryNumberError
    |
    +-- ConstraintViolationError             (CONSTRAINT_VIOLATION)
        +-- AccountReferencedError

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Several classes share one code.  The code is the client contract; the
   class is the in-process contract (tests and services catch by type).

2. ``details`` holds only values a client may see.  Internal context stays
   in plain attributes and reaches the logs through StructuredFormatter.
"""

from datetime import date
from decimal import Decimal
from typing import Any


class LedgerError(Exception):
    """
    Base exception for all ledger kernel errors.

    Every subclass must define a ``code`` class attribute.
    """

    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


# Authorization


class AuthorizationError(LedgerError):
    """Base exception for identity and role failures."""

    code: str = "FORBIDDEN"


class UnauthorizedError(AuthorizationError):
    """No caller identity was supplied."""

    code: str = "UNAUTHORIZED"

    def __init__(self) -> None:
        super().__init__("認証が必要です。")


class ForbiddenError(AuthorizationError):
    """Caller's role may not perform the action."""

    code: str = "FORBIDDEN"

    def __init__(self, action: str, role: str):
        self.action = action
        self.role = role
        super().__init__("この操作を行う権限がありません。")


class InsufficientPermissionsError(AuthorizationError):
    """Caller's role may not perform the action (operation-specific message)."""

    code: str = "INSUFFICIENT_PERMISSIONS"

    def __init__(self, action: str, role: str, message: str):
        self.action = action
        self.role = role
        super().__init__(message)


# Validation


class LedgerValidationError(LedgerError):
    """Malformed or semantically invalid input."""

    code: str = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.field = field
        super().__init__(message, details)


class MissingFieldsError(LedgerValidationError):
    """One or more required fields are absent or blank."""

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(
            "必須項目が入力されていません。",
            details={name: "必須項目です。" for name in fields},
        )


class EmptyEntryError(LedgerValidationError):
    """Journal entry has no detail lines."""

    def __init__(self) -> None:
        super().__init__("仕訳明細が入力されていません。", field="lines")


class TooManyLinesError(LedgerValidationError):
    """Journal entry exceeds the maximum line count."""

    def __init__(self, count: int, maximum: int):
        self.count = count
        self.maximum = maximum
        super().__init__(
            f"仕訳明細は{maximum}行以内で入力してください。",
            field="lines",
            details={"count": count, "maximum": maximum},
        )


class InvalidLineAmountError(LedgerValidationError):
    """A line must carry exactly one positive side."""

    def __init__(self, line_number: int):
        self.line_number = line_number
        super().__init__(
            f"{line_number}行目: 借方金額または貸方金額のいずれか一方のみを入力してください。",
            field="lines",
            details={"line_number": line_number},
        )


class UnbalancedEntryError(LedgerValidationError):
    """Journal entry debits do not equal credits."""

    def __init__(self, debit: Decimal, credit: Decimal):
        self.debit = debit
        self.credit = credit
        self.difference = debit - credit
        super().__init__(
            "貸借が一致しません。",
            details={
                "debit": debit,
                "credit": credit,
                "difference": self.difference,
            },
        )


class UnknownPeriodError(LedgerValidationError):
    """Referenced accounting period does not exist in the organization."""

    def __init__(self, period_id: Any):
        self.period_id = period_id
        super().__init__(
            "指定された会計期間が存在しません。", field="accounting_period_id"
        )


class EntryDateOutOfRangeError(LedgerValidationError):
    """Entry date falls outside the period's bounds."""

    def __init__(self, entry_date: date, period_start: date, period_end: date):
        self.entry_date = entry_date
        self.period_start = period_start
        self.period_end = period_end
        super().__init__(
            "仕訳日付が会計期間の範囲外です。",
            field="entry_date",
            details={
                "entry_date": entry_date.isoformat(),
                "period_start": period_start.isoformat(),
                "period_end": period_end.isoformat(),
            },
        )


class UnknownAccountsError(LedgerValidationError):
    """Lines reference accounts missing from the organization."""

    def __init__(self, account_ids: list[Any]):
        self.account_ids = account_ids
        super().__init__(
            "指定された勘定科目が存在しません。",
            field="lines",
            details={"account_ids": [str(a) for a in account_ids]},
        )


class UnknownPartnersError(LedgerValidationError):
    """Lines reference partners missing from the organization."""

    def __init__(self, partner_ids: list[Any]):
        self.partner_ids = partner_ids
        super().__init__(
            "指定された取引先が存在しません。",
            field="lines",
            details={"partner_ids": [str(p) for p in partner_ids]},
        )


class UnknownParentAccountError(LedgerValidationError):
    """Parent account does not exist in the organization."""

    def __init__(self, parent_id: Any):
        self.parent_id = parent_id
        super().__init__("指定された親勘定科目が存在しません。", field="parent_id")


class SelfParentAccountError(LedgerValidationError):
    """An account cannot be its own parent."""

    def __init__(self, account_id: Any):
        self.account_id = account_id
        super().__init__(
            "親勘定科目に自身を指定することはできません。", field="parent_id"
        )


class InvalidDateRangeError(LedgerValidationError):
    """Start date is not before the end date."""

    def __init__(self, start_date: date, end_date: date):
        self.start_date = start_date
        self.end_date = end_date
        super().__init__(
            "開始日は終了日より前である必要があります。", field="start_date"
        )


class InvalidDateFormatError(LedgerValidationError):
    """A report date could not be parsed."""

    def __init__(self, value: Any):
        self.value = value
        super().__init__("有効な日付範囲を指定してください（YYYY-MM-DD形式）")


class PeriodOverlapError(LedgerValidationError):
    """Period date range intersects another period of the organization."""

    def __init__(
        self,
        name: str,
        existing_name: str,
        overlap_start: date,
        overlap_end: date,
        on_update: bool = False,
    ):
        self.name = name
        self.existing_name = existing_name
        self.overlap_start = overlap_start
        self.overlap_end = overlap_end
        if on_update:
            message = "指定された期間は他の会計期間と重複しています。"
        else:
            message = "指定された期間は既存の会計期間と重複しています。"
        super().__init__(
            message,
            field="start_date",
            details={
                "existing_period": existing_name,
                "overlap_start": overlap_start.isoformat(),
                "overlap_end": overlap_end.isoformat(),
            },
        )


class PeriodSpanTooLongError(LedgerValidationError):
    """Period spans more than the hard maximum."""

    def __init__(self, start_date: date, end_date: date, max_days: int):
        self.start_date = start_date
        self.end_date = end_date
        self.max_days = max_days
        super().__init__("会計期間は最大2年までです。", field="end_date")


class ClosedPeriodUpdateError(LedgerValidationError):
    """Generic field patches are rejected on a closed period."""

    def __init__(self, period_id: Any):
        self.period_id = period_id
        super().__init__("閉じられた会計期間は更新できません。")


class EntriesOutsidePeriodError(LedgerValidationError):
    """New period bounds would orphan existing journal entries."""

    def __init__(self, period_id: Any, entry_count: int):
        self.period_id = period_id
        self.entry_count = entry_count
        super().__init__(
            "変更後の期間外となる仕訳が存在するため、期間を変更できません。",
            details={"entry_count": entry_count},
        )


class PeriodHasEntriesError(LedgerValidationError):
    """Period still holds journal entries."""

    def __init__(self, period_id: Any, entry_count: int):
        self.period_id = period_id
        self.entry_count = entry_count
        super().__init__(
            "この会計期間には仕訳が存在するため削除できません。",
            details={"entry_count": entry_count},
        )


class LastOpenPeriodError(LedgerValidationError):
    """Deleting the period would leave the organization without an open one."""

    def __init__(self, period_id: Any):
        self.period_id = period_id
        super().__init__("最後のアクティブな会計期間は削除できません。")


# State conflicts


class InvalidOperationError(LedgerError):
    """Action not permitted in the entity's current state."""

    code: str = "INVALID_OPERATION"


class ClosedPeriodError(InvalidOperationError):
    """Attempted to write an entry into a closed period."""

    def __init__(self, period_id: Any, period_name: str):
        self.period_id = period_id
        self.period_name = period_name
        super().__init__("この会計期間は既に締められています。")


class PeriodAlreadyClosedError(InvalidOperationError):

    def __init__(self, period_id: Any):
        self.period_id = period_id
        super().__init__("この会計期間は既に閉じられています。")


class PeriodAlreadyOpenError(InvalidOperationError):

    def __init__(self, period_id: Any):
        self.period_id = period_id
        super().__init__("この会計期間は既に開いています。")


class UnapprovedEntriesError(InvalidOperationError):
    """Draft or pending entries block the period close."""

    def __init__(self, period_id: Any, entry_count: int):
        self.period_id = period_id
        self.entry_count = entry_count
        super().__init__(
            "未承認の仕訳が存在するため、会計期間を閉じることができません。",
            details={"unapproved_count": entry_count},
        )


class ApprovedEntryImmutableError(InvalidOperationError):
    """Approved entries can be neither updated nor deleted."""

    _MESSAGES = {
        "update": "承認済みの仕訳は更新できません。",
        "delete": "承認済みの仕訳は削除できません。",
    }

    def __init__(self, entry_id: Any, operation: str):
        self.entry_id = entry_id
        self.operation = operation
        super().__init__(self._MESSAGES[operation])


class EntryAlreadyApprovedError(InvalidOperationError):

    def __init__(self, entry_id: Any):
        self.entry_id = entry_id
        super().__init__("この仕訳は既に承認されています。")


# Referential


class NotFoundError(LedgerError):
    """Target entity does not exist in the organization."""

    code: str = "NOT_FOUND"
    resource: str = "データ"

    def __init__(self, identifier: Any):
        self.identifier = identifier
        super().__init__(f"{self.resource}が見つかりません。")


class JournalEntryNotFoundError(NotFoundError):
    resource = "仕訳"


class AccountingPeriodNotFoundError(NotFoundError):
    resource = "会計期間"


class AccountNotFoundError(NotFoundError):
    resource = "勘定科目"


class AlreadyExistsError(LedgerError):
    """Unique key already taken."""

    code: str = "ALREADY_EXISTS"


class DuplicateAccountCodeError(AlreadyExistsError):

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"勘定科目コード「{account_code}」は既に使用されています。")


class DuplicateEntryNumberError(AlreadyExistsError):

    def __init__(self, entry_number: str):
        self.entry_number = entry_number
        super().__init__(f"仕訳番号「{entry_number}」は既に使用されています。")


class ConstraintViolationError(LedgerError):
    """Entity is still referenced by dependents."""

    code: str = "CONSTRAINT_VIOLATION"


class AccountReferencedError(ConstraintViolationError):
    """Account is used by journal lines or has child accounts."""

    _MESSAGES = {
        "lines": "この勘定科目は仕訳で使用されているため削除できません。",
        "children": "この勘定科目には子勘定科目が存在するため削除できません。",
    }

    def __init__(self, account_id: Any, referenced_by: str):
        self.account_id = account_id
        self.referenced_by = referenced_by
        super().__init__(self._MESSAGES[referenced_by])
