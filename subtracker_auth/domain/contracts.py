"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from contextlib import AbstractContextManager
from dataclasses import dataclass, field
from typing import Protocol

from .account import Account


@dataclass(slots=True)
class SignUpInput:
    """Validated inputs required to register an account."""

    email: str
    password: str = field(repr=False)
    name: str | None = None


@dataclass(slots=True)
class SignInInput:
    """Credentials presented at sign-in."""

    email: str
    password: str = field(repr=False)


@dataclass(slots=True)
class AccountDraft:
    """Account fields handed to the store on insert; ids and timestamps are store-assigned."""

    email: str
    password_hash: str = field(repr=False)
    name: str | None = None


class TransactionScope(Protocol):
    """Handle for one unit of work against an account store."""

    def expired(self) -> bool: ...


class AccountStore(Protocol):
    """Persistence boundary consumed by :class:`~subtracker_auth.domain.service.AccountService`."""

    def transaction(
        self, timeout_seconds: float
    ) -> AbstractContextManager[TransactionScope]: ...

    def find_by_email(
        self, email: str, tx: TransactionScope | None = None
    ) -> Account | None: ...

    def insert(self, draft: AccountDraft, tx: TransactionScope | None = None) -> Account: ...
