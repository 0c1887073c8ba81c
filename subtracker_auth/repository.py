"""Database repository for subscription-tracker accounts."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterator

import psycopg
from psycopg import errors as pg_errors
from psycopg.rows import tuple_row
from psycopg_pool import ConnectionPool, PoolTimeout

from .domain.account import Account
from .domain.contracts import AccountDraft
from .domain.errors import DuplicateKey, StoreUnavailable, TransactionTimeout

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS accounts (
        account_id TEXT PRIMARY KEY,
        name TEXT,
        email TEXT NOT NULL,
        password_hash TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS accounts_email_key ON accounts (email)",
)

_ACCOUNT_COLUMNS = "account_id, email, password_hash, created_at, updated_at, name"


@dataclass(slots=True)
class PostgresTransaction:
    """Transaction scope bound to one pooled connection and a deadline."""

    connection: psycopg.Connection
    deadline: float

    def expired(self) -> bool:
        return time.monotonic() >= self.deadline


class AccountRepository:
    """Postgres-backed account persistence with transaction scopes."""

    def __init__(self, pool: ConnectionPool, *, acquire_timeout: float = 5.0) -> None:
        """Store the connection pool used for all database interactions."""
        self._pool = pool
        self._acquire_timeout = acquire_timeout

    def ensure_schema(self) -> None:
        """Create the accounts table and its unique email index if missing."""
        with self._connection() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            conn.commit()

    @contextmanager
    def transaction(self, timeout_seconds: float) -> Iterator[PostgresTransaction]:
        """Open a transaction that commits on clean exit and rolls back otherwise.

        The borrowed connection goes back to the pool on every exit path.
        Statements inside the scope are cancelled server-side once the
        timeout elapses, and a commit attempted past the deadline is turned
        into a rollback plus :class:`TransactionTimeout`.
        """
        with self._connection() as conn:
            scope = PostgresTransaction(conn, time.monotonic() + timeout_seconds)
            try:
                with self._translate_errors():
                    conn.execute(
                        "SELECT set_config('statement_timeout', %s, true)",
                        (str(max(1, int(timeout_seconds * 1000))),),
                    )
                yield scope
            except BaseException:
                self._rollback(conn)
                raise
            if scope.expired():
                self._rollback(conn)
                raise TransactionTimeout()
            with self._translate_errors():
                conn.commit()

    def find_by_email(
        self, email: str, tx: PostgresTransaction | None = None
    ) -> Account | None:
        """Fetch the account registered under a normalised email or return ``None``."""
        query = f"SELECT {_ACCOUNT_COLUMNS} FROM accounts WHERE email = %s"
        if tx is not None:
            row = self._fetch_one(tx.connection, query, (email,))
        else:
            with self._connection() as conn:
                row = self._fetch_one(conn, query, (email,))
        if not row:
            return None
        return self._map_record(row)

    def insert(self, draft: AccountDraft, tx: PostgresTransaction | None = None) -> Account:
        """Persist a new account, assigning its id and timestamps.

        Raises
        ------
        DuplicateKey
            When the unique email index already holds ``draft.email``.
        """
        account_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        query = f"""
            INSERT INTO accounts (account_id, name, email, password_hash, created_at, updated_at)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {_ACCOUNT_COLUMNS}
        """
        params = (account_id, draft.name, draft.email, draft.password_hash, now, now)
        try:
            if tx is not None:
                row = self._fetch_one(tx.connection, query, params)
            else:
                with self._connection() as conn:
                    row = self._fetch_one(conn, query, params)
                    conn.commit()
        except pg_errors.UniqueViolation as exc:
            raise DuplicateKey(draft.email) from exc
        return self._map_record(row)

    @contextmanager
    def _connection(self) -> Iterator[psycopg.Connection]:
        try:
            with self._pool.connection(timeout=self._acquire_timeout) as conn:
                yield conn
        except PoolTimeout as exc:
            logger.error("no database connection available within %.1fs", self._acquire_timeout)
            raise StoreUnavailable() from exc

    def _fetch_one(self, conn: psycopg.Connection, query: str, params: tuple) -> tuple | None:
        with self._translate_errors():
            with conn.cursor(row_factory=tuple_row) as cur:
                cur.execute(query, params)
                return cur.fetchone()

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except pg_errors.QueryCanceled as exc:
            raise TransactionTimeout() from exc
        except psycopg.OperationalError as exc:
            logger.error("account store operation failed: %s", exc)
            raise StoreUnavailable() from exc

    def _rollback(self, conn: psycopg.Connection) -> None:
        try:
            conn.rollback()
        except psycopg.Error as exc:
            # the pool discards broken connections on return
            logger.warning("rollback failed, connection will be discarded: %s", exc)

    def _map_record(self, row: tuple) -> Account:
        """Convert a raw database tuple into the domain ``Account`` dataclass."""
        return Account(
            account_id=row[0],
            email=row[1],
            password_hash=row[2],
            created_at=row[3],
            updated_at=row[4],
            name=row[5],
        )
