"""
Caller identity as supplied by the identity provider.

The ledger core never resolves who the caller is; it receives an
``Identity`` with every operation and trusts the role it names.
"""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class Role(str, Enum):
    """Organization role, ordered from least to most privileged."""

    VIEWER = "viewer"
    ACCOUNTANT = "accountant"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    """Who is calling, on behalf of which organization, with which role."""

    user_id: UUID
    organization_id: UUID
    role: Role

    def __post_init__(self) -> None:
        # Accept plain strings from upstream collaborators
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
