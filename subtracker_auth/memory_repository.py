"""In-memory account store with transaction semantics matching the Postgres store."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Iterator

from .domain.account import Account
from .domain.contracts import AccountDraft
from .domain.errors import DuplicateKey, TransactionTimeout

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MemoryTransaction:
    """Pending inserts staged by one transaction scope."""

    deadline: float
    pending: dict[str, Account] = field(default_factory=dict)

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline


class InMemoryAccountRepository:
    """Thread-safe account store for local development and tests.

    An insert inside a transaction reserves its email immediately, the same
    way a unique index holds a pending key, so a concurrent transaction
    inserting the same email fails with :class:`DuplicateKey`. Readers only
    see committed accounts plus their own staged inserts.
    """

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._reserved: dict[str, MemoryTransaction] = {}
        self._lock = Lock()

    @contextmanager
    def transaction(self, timeout_seconds: float) -> Iterator[MemoryTransaction]:
        """Open a transaction that commits on clean exit and aborts otherwise."""
        scope = MemoryTransaction(deadline=time.monotonic() + timeout_seconds)
        try:
            yield scope
        except BaseException:
            self._abort(scope)
            raise
        if scope.expired():
            self._abort(scope)
            raise TransactionTimeout()
        self._commit(scope)

    def find_by_email(self, email: str, tx: MemoryTransaction | None = None) -> Account | None:
        with self._lock:
            if tx is not None and email in tx.pending:
                return tx.pending[email]
            return self._accounts.get(email)

    def insert(self, draft: AccountDraft, tx: MemoryTransaction | None = None) -> Account:
        now = datetime.now(timezone.utc)
        account = Account(
            account_id=str(uuid.uuid4()),
            email=draft.email,
            password_hash=draft.password_hash,
            created_at=now,
            updated_at=now,
            name=draft.name,
        )
        with self._lock:
            if draft.email in self._accounts or draft.email in self._reserved:
                raise DuplicateKey(draft.email)
            if tx is None:
                self._accounts[draft.email] = account
            else:
                self._reserved[draft.email] = tx
                tx.pending[draft.email] = account
        return account

    def count(self) -> int:
        """Return the number of committed accounts."""
        with self._lock:
            return len(self._accounts)

    def _commit(self, scope: MemoryTransaction) -> None:
        with self._lock:
            for email, account in scope.pending.items():
                self._accounts[email] = account
                self._reserved.pop(email, None)
            scope.pending.clear()

    def _abort(self, scope: MemoryTransaction) -> None:
        with self._lock:
            for email in scope.pending:
                if self._reserved.get(email) is scope:
                    del self._reserved[email]
            if scope.pending:
                logger.debug("discarded %d staged account(s)", len(scope.pending))
            scope.pending.clear()
