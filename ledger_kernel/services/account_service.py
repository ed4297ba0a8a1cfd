"""
AccountService -- chart of accounts maintenance.

Responsibility:
    Creates, updates, deletes and lists accounts.  Guards the structural
    rules the posting engine and the report builders rely on: unique codes,
    a valid account type, an existing parent, and no deletion while the
    account is referenced.

Architecture position:
    Kernel > Services -- imperative shell.  Called by
    ``ledger_services.LedgerActions``.

Invariants enforced:
    - code is unique within the organization.
    - account_type is one of the five AccountType values; the normal
      balance side follows from it and is never stored.
    - An account is never its own parent.
    - Deletion is refused while journal lines or child accounts reference it.

Failure modes:
    - InsufficientPermissionsError: role denied.
    - MissingFieldsError / LedgerValidationError: bad input.
    - DuplicateAccountCodeError: ALREADY_EXISTS.
    - UnknownParentAccountError / SelfParentAccountError: bad parent.
    - AccountReferencedError: CONSTRAINT_VIOLATION.
    - AccountNotFoundError: NOT_FOUND.
"""

from uuid import UUID

from sqlalchemy import select

from ledger_kernel.domain.authorization import authenticated, require
from ledger_kernel.domain.dtos import AccountDetails, AccountInput, AccountPatch
from ledger_kernel.domain.identity import Identity
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    AccountReferencedError,
    DuplicateAccountCodeError,
    LedgerValidationError,
    MissingFieldsError,
    SelfParentAccountError,
    UnknownParentAccountError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import Account, AccountType
from ledger_kernel.models.journal import JournalEntryLine
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")


class AccountService(BaseService[Account]):
    """Chart of accounts maintenance.  Flush-only."""

    def create_account(
        self, identity: Identity | None, data: AccountInput
    ) -> AccountDetails:
        identity = require(identity, "account.create")

        missing = [
            name
            for name in ("code", "name", "account_type", "category")
            if not (getattr(data, name) or "").strip()
        ]
        if missing:
            raise MissingFieldsError(missing)

        account_type = self._parse_type(data.account_type)
        self._check_code_free(identity.organization_id, data.code)
        if data.parent_id is not None:
            self._require_account(identity.organization_id, data.parent_id, parent=True)

        account = Account(
            organization_id=identity.organization_id,
            code=data.code.strip(),
            name=data.name.strip(),
            account_type=account_type.value,
            category=data.category.strip(),
            sub_category=data.sub_category,
            parent_id=data.parent_id,
            description=data.description,
            is_active=data.is_active,
            created_by_id=identity.user_id,
        )
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_code": account.code,
                "account_type": account.account_type,
            },
        )
        return AccountDetails.from_model(account)

    def update_account(
        self, identity: Identity | None, account_id: UUID, patch: AccountPatch
    ) -> AccountDetails:
        identity = require(identity, "account.update")
        account = self._require_account(identity.organization_id, account_id)

        if patch.parent_id is not None:
            if patch.parent_id == account.id:
                raise SelfParentAccountError(account.id)
            self._require_account(identity.organization_id, patch.parent_id, parent=True)
            account.parent_id = patch.parent_id

        if patch.code is not None and patch.code.strip() != account.code:
            if not patch.code.strip():
                raise MissingFieldsError(["code"])
            self._check_code_free(identity.organization_id, patch.code)
            account.code = patch.code.strip()

        for field in ("name", "category"):
            value = getattr(patch, field)
            if value is None:
                continue
            if not value.strip():
                raise MissingFieldsError([field])
            setattr(account, field, value.strip())

        if patch.sub_category is not None:
            account.sub_category = patch.sub_category
        if patch.description is not None:
            account.description = patch.description
        if patch.is_active is not None:
            account.is_active = patch.is_active

        account.updated_by_id = identity.user_id
        self.session.flush()

        logger.info(
            "account_updated",
            extra={"account_id": str(account.id), "account_code": account.code},
        )
        return AccountDetails.from_model(account)

    def delete_account(self, identity: Identity | None, account_id: UUID) -> UUID:
        identity = require(identity, "account.delete")
        account = self._require_account(identity.organization_id, account_id)

        used = self.session.execute(
            select(JournalEntryLine.id)
            .where(JournalEntryLine.account_id == account.id)
            .limit(1)
        ).first()
        if used is not None:
            raise AccountReferencedError(account.id, "lines")

        child = self.session.execute(
            select(Account.id).where(Account.parent_id == account.id).limit(1)
        ).first()
        if child is not None:
            raise AccountReferencedError(account.id, "children")

        code = account.code
        self.session.delete(account)
        self.session.flush()

        logger.info(
            "account_deleted",
            extra={"account_id": str(account_id), "account_code": code},
        )
        return account_id

    def get_account(self, identity: Identity | None, account_id: UUID) -> AccountDetails:
        identity = authenticated(identity)
        return AccountDetails.from_model(
            self._require_account(identity.organization_id, account_id)
        )

    def list_accounts(
        self, identity: Identity | None, include_inactive: bool = False
    ) -> tuple[AccountDetails, ...]:
        """Accounts ordered by code."""
        identity = authenticated(identity)
        stmt = select(Account).where(Account.organization_id == identity.organization_id)
        if not include_inactive:
            stmt = stmt.where(Account.is_active.is_(True))
        rows = self.session.execute(stmt.order_by(Account.code)).scalars().all()
        return tuple(AccountDetails.from_model(a) for a in rows)

    # ------------------------------------------------------------------

    @staticmethod
    def _parse_type(value: str) -> AccountType:
        try:
            return AccountType(value.strip().lower())
        except ValueError:
            raise LedgerValidationError(
                "勘定科目の種類が正しくありません。", field="account_type"
            ) from None

    def _check_code_free(self, organization_id: UUID, code: str) -> None:
        code = code.strip()
        taken = self.session.execute(
            select(Account.id).where(
                Account.organization_id == organization_id,
                Account.code == code,
            )
        ).first()
        if taken is not None:
            raise DuplicateAccountCodeError(code)

    def _require_account(
        self, organization_id: UUID, account_id: UUID, parent: bool = False
    ) -> Account:
        account = self.session.execute(
            select(Account).where(
                Account.organization_id == organization_id,
                Account.id == account_id,
            )
        ).scalar_one_or_none()
        if account is None:
            if parent:
                raise UnknownParentAccountError(account_id)
            raise AccountNotFoundError(account_id)
        return account
