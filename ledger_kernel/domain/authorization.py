"""
Role policy for every mutating ledger action.

Responsibility:
    Maps an action name to the roles allowed to perform it and raises the
    typed authorization error when the caller's role is not among them.

Invariants:
    - ``viewer`` is denied every write.
    - Only ``admin`` may delete, or reopen a closed period.
    - Reads are not listed here; every role may read.
"""

from dataclasses import dataclass

from ledger_kernel.domain.identity import Identity, Role
from ledger_kernel.exceptions import (
    ForbiddenError,
    InsufficientPermissionsError,
    UnauthorizedError,
)

_WRITERS = frozenset({Role.ACCOUNTANT, Role.ADMIN})
_ADMINS = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class ActionRule:
    """Allowed roles plus how a denial is reported."""

    allowed: frozenset[Role]
    # None -> FORBIDDEN with the generic message
    denial_message: str | None = None


ACTION_RULES: dict[str, ActionRule] = {
    # Journal entries
    "journal_entry.create": ActionRule(_WRITERS, "閲覧者は仕訳を作成できません。"),
    "journal_entry.update": ActionRule(_WRITERS, "閲覧者は仕訳を更新できません。"),
    "journal_entry.approve": ActionRule(_WRITERS, "閲覧者は仕訳を承認できません。"),
    "journal_entry.delete": ActionRule(_ADMINS, "管理者のみが仕訳を削除できます。"),
    # Accounting periods
    "period.create": ActionRule(_WRITERS),
    "period.update": ActionRule(_WRITERS),
    "period.close": ActionRule(_WRITERS),
    "period.activate": ActionRule(_WRITERS),
    "period.reopen": ActionRule(
        _ADMINS, "会計期間を再度開くには管理者権限が必要です。"
    ),
    "period.delete": ActionRule(
        _ADMINS, "会計期間を削除するには管理者権限が必要です。"
    ),
    # Chart of accounts
    "account.create": ActionRule(_ADMINS, "管理者のみが勘定科目を作成できます。"),
    "account.update": ActionRule(_WRITERS, "閲覧者は勘定科目を更新できません。"),
    "account.delete": ActionRule(_ADMINS, "管理者のみが勘定科目を削除できます。"),
}


def require(identity: Identity | None, action: str) -> Identity:
    """
    Return ``identity`` if it may perform ``action``.

    Raises:
        UnauthorizedError: No identity supplied.
        InsufficientPermissionsError: Role denied, rule has a specific message.
        ForbiddenError: Role denied, generic message.
        KeyError: ``action`` is not a registered action.
    """
    if identity is None:
        raise UnauthorizedError()
    rule = ACTION_RULES[action]
    if identity.role in rule.allowed:
        return identity
    if rule.denial_message is not None:
        raise InsufficientPermissionsError(action, identity.role.value, rule.denial_message)
    raise ForbiddenError(action, identity.role.value)


def authenticated(identity: Identity | None) -> Identity:
    """Return ``identity`` or raise UnauthorizedError. Used by read paths."""
    if identity is None:
        raise UnauthorizedError()
    return identity
