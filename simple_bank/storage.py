"""
Ledger Store Module

Provides the abstract ledger store interface and implementations for
in-memory (testing), SQLite (persistence) and PostgreSQL (production).
All operations are single-row or single-statement; callers compose them
into an atomic unit with ``store.atomic()``.

Balance updates are atomic increments that take the account's row lock and
hold it until the enclosing unit commits or rolls back.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any, Iterator, Union
from datetime import datetime, timezone
from pathlib import Path
from contextlib import contextmanager, closing
import sqlite3
import threading
import time

from .accounts import Account, Entry, Transfer
from .context import TransferContext
from .errors import (
    BankError, NotFoundError, InternalError, InvalidRequestError,
    TransactionConflictError
)
from .logging_config import get_logger


SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id {pk},
        owner TEXT NOT NULL,
        balance BIGINT NOT NULL,
        currency TEXT NOT NULL,
        created_at {ts} NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS entries (
        id {pk},
        account_id BIGINT NOT NULL REFERENCES accounts(id),
        amount BIGINT NOT NULL,
        created_at {ts} NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transfers (
        id {pk},
        from_account_id BIGINT NOT NULL REFERENCES accounts(id),
        to_account_id BIGINT NOT NULL REFERENCES accounts(id),
        amount BIGINT NOT NULL CHECK (amount > 0),
        created_at {ts} NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_accounts_owner ON accounts(owner)",
    "CREATE INDEX IF NOT EXISTS idx_entries_account_id ON entries(account_id)",
    "CREATE INDEX IF NOT EXISTS idx_transfers_from ON transfers(from_account_id)",
    "CREATE INDEX IF NOT EXISTS idx_transfers_to ON transfers(to_account_id)",
    "CREATE INDEX IF NOT EXISTS idx_transfers_pair ON transfers(from_account_id, to_account_id)",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_page(limit: int, offset: int) -> None:
    if limit < 1:
        raise InvalidRequestError("limit must be at least 1")
    if offset < 0:
        raise InvalidRequestError("offset cannot be negative")


LOCK_POLL_SECONDS = 0.05


def _wait_for_lock(row_lock: threading.Lock, timeout: float,
                   context: Optional[TransferContext] = None) -> bool:
    """
    Acquire a row lock within timeout seconds. The wait is sliced so a
    cancelled or expired context raises TransferCancelledError promptly.
    """
    deadline = time.monotonic() + timeout
    while True:
        if context is not None:
            context.check()
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        if row_lock.acquire(timeout=min(remaining, LOCK_POLL_SECONDS)):
            return True


def _as_datetime(value: Union[str, datetime]) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _account_from_row(row) -> Account:
    return Account(
        id=row['id'],
        created_at=_as_datetime(row['created_at']),
        owner=row['owner'],
        balance=row['balance'],
        currency=row['currency']
    )


def _entry_from_row(row) -> Entry:
    return Entry(
        id=row['id'],
        created_at=_as_datetime(row['created_at']),
        account_id=row['account_id'],
        amount=row['amount']
    )


def _transfer_from_row(row) -> Transfer:
    return Transfer(
        id=row['id'],
        created_at=_as_datetime(row['created_at']),
        from_account_id=row['from_account_id'],
        to_account_id=row['to_account_id'],
        amount=row['amount']
    )


class LedgerOperations(ABC):
    """Single-statement ledger operations"""

    @abstractmethod
    def create_account(self, owner: str, balance: int, currency: str) -> Account:
        """Insert a new account"""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Account:
        """Load an account; raises NotFoundError if missing"""
        pass

    @abstractmethod
    def add_account_balance(self, account_id: int, delta: int) -> Account:
        """Atomically add delta to the balance and return the updated account"""
        pass

    @abstractmethod
    def create_entry(self, account_id: int, amount: int) -> Entry:
        """Append a ledger entry"""
        pass

    @abstractmethod
    def get_entry(self, entry_id: int) -> Entry:
        """Load an entry; raises NotFoundError if missing"""
        pass

    @abstractmethod
    def list_entries(self, account_id: int, limit: int = 50, offset: int = 0) -> List[Entry]:
        """Entries of one account ordered by ID"""
        pass

    @abstractmethod
    def create_transfer(self, from_account_id: int, to_account_id: int, amount: int) -> Transfer:
        """Insert a transfer record"""
        pass

    @abstractmethod
    def get_transfer(self, transfer_id: int) -> Transfer:
        """Load a transfer; raises NotFoundError if missing"""
        pass

    @abstractmethod
    def list_transfers(
        self,
        from_account_id: Optional[int] = None,
        to_account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Transfer]:
        """
        Transfers ordered by ID. With both filters given a transfer matches
        when either side matches; with one filter only that side is checked.
        """
        pass


class LedgerStore(LedgerOperations):
    """
    Abstract ledger store. Operations called directly on the store run in
    their own unit and commit immediately.
    """

    @abstractmethod
    def atomic(self, readonly: bool = False, context: Optional[TransferContext] = None):
        """
        Context manager yielding LedgerOperations bound to one atomic unit.
        Commits on clean exit, rolls back on any exception.

        Lock waits inside the unit end early with TransferCancelledError
        when the context is cancelled or its deadline passes.
        """
        pass

    def close(self) -> None:
        """Close storage connections (default no-op)"""
        pass

    def create_account(self, owner: str, balance: int, currency: str) -> Account:
        with self.atomic() as unit:
            return unit.create_account(owner, balance, currency)

    def get_account(self, account_id: int) -> Account:
        with self.atomic(readonly=True) as unit:
            return unit.get_account(account_id)

    def add_account_balance(self, account_id: int, delta: int) -> Account:
        with self.atomic() as unit:
            return unit.add_account_balance(account_id, delta)

    def create_entry(self, account_id: int, amount: int) -> Entry:
        with self.atomic() as unit:
            return unit.create_entry(account_id, amount)

    def get_entry(self, entry_id: int) -> Entry:
        with self.atomic(readonly=True) as unit:
            return unit.get_entry(entry_id)

    def list_entries(self, account_id: int, limit: int = 50, offset: int = 0) -> List[Entry]:
        with self.atomic(readonly=True) as unit:
            return unit.list_entries(account_id, limit, offset)

    def create_transfer(self, from_account_id: int, to_account_id: int, amount: int) -> Transfer:
        with self.atomic() as unit:
            return unit.create_transfer(from_account_id, to_account_id, amount)

    def get_transfer(self, transfer_id: int) -> Transfer:
        with self.atomic(readonly=True) as unit:
            return unit.get_transfer(transfer_id)

    def list_transfers(
        self,
        from_account_id: Optional[int] = None,
        to_account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Transfer]:
        with self.atomic(readonly=True) as unit:
            return unit.list_transfers(from_account_id, to_account_id, limit, offset)


# ---------------------------------------------------------------------------
# In-memory backend
# ---------------------------------------------------------------------------

class _InMemoryUnit(LedgerOperations):
    """
    One atomic unit over an InMemoryLedgerStore. Writes are staged locally and
    published on commit; balance updates hold a per-account lock until then.
    """

    def __init__(self, store: 'InMemoryLedgerStore', context: Optional[TransferContext] = None):
        self._store = store
        self._context = context
        self._held_locks: Dict[int, threading.Lock] = {}
        self._balances: Dict[int, int] = {}
        self._accounts: Dict[int, Account] = {}
        self._entries: Dict[int, Entry] = {}
        self._transfers: Dict[int, Transfer] = {}

    def _require_account(self, account_id: int) -> None:
        if account_id in self._accounts:
            return
        with self._store._lock:
            if account_id not in self._store._accounts:
                raise InternalError(
                    f"foreign key violation: account {account_id} does not exist"
                )

    def create_account(self, owner: str, balance: int, currency: str) -> Account:
        account = Account(
            id=self._store._next_id("accounts"),
            created_at=_utcnow(),
            owner=owner,
            balance=balance,
            currency=currency
        )
        self._accounts[account.id] = account
        return account

    def get_account(self, account_id: int) -> Account:
        account = self._accounts.get(account_id)
        if account is None:
            with self._store._lock:
                account = self._store._accounts.get(account_id)
        if account is None:
            raise NotFoundError(f"account {account_id} not found")
        if account_id in self._balances:
            account = Account(
                id=account.id, created_at=account.created_at, owner=account.owner,
                balance=self._balances[account_id], currency=account.currency
            )
        return account

    def add_account_balance(self, account_id: int, delta: int) -> Account:
        account = self.get_account(account_id)
        if account_id not in self._held_locks and account_id not in self._accounts:
            row_lock = self._store._row_lock(account_id)
            if not _wait_for_lock(row_lock, self._store.lock_timeout, self._context):
                raise TransactionConflictError(
                    f"lock wait timeout on account {account_id}"
                )
            self._held_locks[account_id] = row_lock
            # Re-read under the row lock so the increment applies to the latest commit
            account = self.get_account(account_id)
        self._balances[account_id] = account.balance + delta
        return self.get_account(account_id)

    def create_entry(self, account_id: int, amount: int) -> Entry:
        self._require_account(account_id)
        entry = Entry(
            id=self._store._next_id("entries"),
            created_at=_utcnow(),
            account_id=account_id,
            amount=amount
        )
        self._entries[entry.id] = entry
        return entry

    def get_entry(self, entry_id: int) -> Entry:
        entry = self._entries.get(entry_id)
        if entry is None:
            with self._store._lock:
                entry = self._store._entries.get(entry_id)
        if entry is None:
            raise NotFoundError(f"entry {entry_id} not found")
        return entry

    def list_entries(self, account_id: int, limit: int = 50, offset: int = 0) -> List[Entry]:
        _check_page(limit, offset)
        with self._store._lock:
            rows = dict(self._store._entries)
        rows.update(self._entries)
        matches = [e for _, e in sorted(rows.items()) if e.account_id == account_id]
        return matches[offset:offset + limit]

    def create_transfer(self, from_account_id: int, to_account_id: int, amount: int) -> Transfer:
        if amount <= 0:
            raise InternalError("check constraint violation: transfer amount must be positive")
        self._require_account(from_account_id)
        self._require_account(to_account_id)
        transfer = Transfer(
            id=self._store._next_id("transfers"),
            created_at=_utcnow(),
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            amount=amount
        )
        self._transfers[transfer.id] = transfer
        return transfer

    def get_transfer(self, transfer_id: int) -> Transfer:
        transfer = self._transfers.get(transfer_id)
        if transfer is None:
            with self._store._lock:
                transfer = self._store._transfers.get(transfer_id)
        if transfer is None:
            raise NotFoundError(f"transfer {transfer_id} not found")
        return transfer

    def list_transfers(
        self,
        from_account_id: Optional[int] = None,
        to_account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Transfer]:
        _check_page(limit, offset)
        with self._store._lock:
            rows = dict(self._store._transfers)
        rows.update(self._transfers)

        def matches(t: Transfer) -> bool:
            if from_account_id is not None and to_account_id is not None:
                return t.from_account_id == from_account_id or t.to_account_id == to_account_id
            if from_account_id is not None:
                return t.from_account_id == from_account_id
            if to_account_id is not None:
                return t.to_account_id == to_account_id
            return True

        return [t for _, t in sorted(rows.items()) if matches(t)][offset:offset + limit]

    def commit(self) -> None:
        with self._store._lock:
            self._store._accounts.update(self._accounts)
            self._store._entries.update(self._entries)
            self._store._transfers.update(self._transfers)
            for account_id, balance in self._balances.items():
                account = self._store._accounts[account_id]
                self._store._accounts[account_id] = Account(
                    id=account.id, created_at=account.created_at, owner=account.owner,
                    balance=balance, currency=account.currency
                )
        self._release()

    def rollback(self) -> None:
        self._release()

    def _release(self) -> None:
        for row_lock in self._held_locks.values():
            row_lock.release()
        self._held_locks.clear()
        self._balances.clear()
        self._accounts.clear()
        self._entries.clear()
        self._transfers.clear()


class InMemoryLedgerStore(LedgerStore):
    """In-memory ledger store for testing, with per-account row locks"""

    def __init__(self, lock_timeout: float = 5.0):
        self.lock_timeout = lock_timeout
        self._lock = threading.RLock()
        self._accounts: Dict[int, Account] = {}
        self._entries: Dict[int, Entry] = {}
        self._transfers: Dict[int, Transfer] = {}
        self._row_locks: Dict[int, threading.Lock] = {}
        self._sequences: Dict[str, int] = {"accounts": 0, "entries": 0, "transfers": 0}

    def _next_id(self, table: str) -> int:
        # Like a database sequence: IDs consumed by rolled-back units are not reused
        with self._lock:
            self._sequences[table] += 1
            return self._sequences[table]

    def _row_lock(self, account_id: int) -> threading.Lock:
        with self._lock:
            if account_id not in self._row_locks:
                self._row_locks[account_id] = threading.Lock()
            return self._row_locks[account_id]

    @contextmanager
    def atomic(self, readonly: bool = False,
               context: Optional[TransferContext] = None) -> Iterator[LedgerOperations]:
        unit = _InMemoryUnit(self, context)
        try:
            yield unit
        except BaseException:
            unit.rollback()
            raise
        unit.commit()


# ---------------------------------------------------------------------------
# SQL backends
# ---------------------------------------------------------------------------

class _SQLUnit(LedgerOperations):
    """One atomic unit over an open DB-API connection"""

    placeholder = "?"

    def __init__(self, connection):
        self._connection = connection

    def _sql(self, statement: str) -> str:
        return statement.replace("?", self.placeholder)

    def _fetchone(self, statement: str, params: tuple):
        cursor = self._connection.cursor()
        try:
            cursor.execute(self._sql(statement), params)
            return cursor.fetchone()
        finally:
            cursor.close()

    def _fetchall(self, statement: str, params: tuple) -> List[Any]:
        cursor = self._connection.cursor()
        try:
            cursor.execute(self._sql(statement), params)
            return cursor.fetchall()
        finally:
            cursor.close()

    def _execute(self, statement: str, params: tuple) -> int:
        cursor = self._connection.cursor()
        try:
            cursor.execute(self._sql(statement), params)
            return cursor.rowcount
        finally:
            cursor.close()

    @abstractmethod
    def _insert(self, statement: str, params: tuple) -> int:
        """Run an INSERT and return the new row ID"""
        pass

    def create_account(self, owner: str, balance: int, currency: str) -> Account:
        now = _utcnow()
        account_id = self._insert(
            "INSERT INTO accounts (owner, balance, currency, created_at) VALUES (?, ?, ?, ?)",
            (owner, balance, currency, self._timestamp(now))
        )
        return Account(id=account_id, created_at=now, owner=owner, balance=balance, currency=currency)

    def get_account(self, account_id: int) -> Account:
        row = self._fetchone(
            "SELECT id, owner, balance, currency, created_at FROM accounts WHERE id = ?",
            (account_id,)
        )
        if row is None:
            raise NotFoundError(f"account {account_id} not found")
        return _account_from_row(row)

    def add_account_balance(self, account_id: int, delta: int) -> Account:
        # The UPDATE takes the row lock; it is held until the unit ends
        updated = self._execute(
            "UPDATE accounts SET balance = balance + ? WHERE id = ?",
            (delta, account_id)
        )
        if updated == 0:
            raise NotFoundError(f"account {account_id} not found")
        return self.get_account(account_id)

    def create_entry(self, account_id: int, amount: int) -> Entry:
        now = _utcnow()
        entry_id = self._insert(
            "INSERT INTO entries (account_id, amount, created_at) VALUES (?, ?, ?)",
            (account_id, amount, self._timestamp(now))
        )
        return Entry(id=entry_id, created_at=now, account_id=account_id, amount=amount)

    def get_entry(self, entry_id: int) -> Entry:
        row = self._fetchone(
            "SELECT id, account_id, amount, created_at FROM entries WHERE id = ?",
            (entry_id,)
        )
        if row is None:
            raise NotFoundError(f"entry {entry_id} not found")
        return _entry_from_row(row)

    def list_entries(self, account_id: int, limit: int = 50, offset: int = 0) -> List[Entry]:
        _check_page(limit, offset)
        rows = self._fetchall(
            "SELECT id, account_id, amount, created_at FROM entries "
            "WHERE account_id = ? ORDER BY id LIMIT ? OFFSET ?",
            (account_id, limit, offset)
        )
        return [_entry_from_row(row) for row in rows]

    def create_transfer(self, from_account_id: int, to_account_id: int, amount: int) -> Transfer:
        now = _utcnow()
        transfer_id = self._insert(
            "INSERT INTO transfers (from_account_id, to_account_id, amount, created_at) "
            "VALUES (?, ?, ?, ?)",
            (from_account_id, to_account_id, amount, self._timestamp(now))
        )
        return Transfer(
            id=transfer_id, created_at=now, from_account_id=from_account_id,
            to_account_id=to_account_id, amount=amount
        )

    def get_transfer(self, transfer_id: int) -> Transfer:
        row = self._fetchone(
            "SELECT id, from_account_id, to_account_id, amount, created_at "
            "FROM transfers WHERE id = ?",
            (transfer_id,)
        )
        if row is None:
            raise NotFoundError(f"transfer {transfer_id} not found")
        return _transfer_from_row(row)

    def list_transfers(
        self,
        from_account_id: Optional[int] = None,
        to_account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0
    ) -> List[Transfer]:
        _check_page(limit, offset)
        conditions = []
        params: List[Any] = []
        if from_account_id is not None:
            conditions.append("from_account_id = ?")
            params.append(from_account_id)
        if to_account_id is not None:
            conditions.append("to_account_id = ?")
            params.append(to_account_id)

        where_clause = f"WHERE {' OR '.join(conditions)} " if conditions else ""
        rows = self._fetchall(
            "SELECT id, from_account_id, to_account_id, amount, created_at FROM transfers "
            f"{where_clause}ORDER BY id LIMIT ? OFFSET ?",
            tuple(params) + (limit, offset)
        )
        return [_transfer_from_row(row) for row in rows]

    def _timestamp(self, value: datetime) -> Any:
        return value


class _SQLiteUnit(_SQLUnit):
    placeholder = "?"

    def _insert(self, statement: str, params: tuple) -> int:
        cursor = self._connection.execute(statement, params)
        try:
            return cursor.lastrowid
        finally:
            cursor.close()

    def _timestamp(self, value: datetime) -> str:
        return value.isoformat()


class SQLiteLedgerStore(LedgerStore):
    """
    SQLite ledger store for persistence.

    Each unit runs on its own connection. Write units start with
    BEGIN IMMEDIATE, so SQLite serializes writers; a writer that cannot get
    the lock within lock_timeout fails with TransactionConflictError.
    """

    def __init__(self, db_path: Union[str, Path], lock_timeout: float = 5.0):
        self.db_path = str(db_path)
        if self.db_path == ":memory:":
            raise ValueError("SQLiteLedgerStore needs a file path; use InMemoryLedgerStore for memory")
        self.lock_timeout = lock_timeout
        self.logger = get_logger("simple_bank.storage")
        self.ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        # isolation_level=None: transactions are controlled explicitly with BEGIN
        connection = sqlite3.connect(
            self.db_path, timeout=self.lock_timeout,
            isolation_level=None, check_same_thread=False
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist"""
        with closing(self._connect()) as connection:
            connection.execute("PRAGMA journal_mode = WAL")
            connection.execute("PRAGMA synchronous = NORMAL")
            for statement in SCHEMA_STATEMENTS:
                connection.execute(statement.format(
                    pk="INTEGER PRIMARY KEY AUTOINCREMENT", ts="TEXT"
                ))

    def _begin_write(self, connection: sqlite3.Connection,
                     context: Optional[TransferContext]) -> None:
        """
        Take the database write lock. Waits in short busy-timeout slices so a
        cancelled or expired context is noticed while another writer holds it.
        """
        deadline = time.monotonic() + self.lock_timeout
        connection.execute(f"PRAGMA busy_timeout = {int(LOCK_POLL_SECONDS * 1000)}")
        while True:
            if context is not None:
                context.check()
            try:
                connection.execute("BEGIN IMMEDIATE")
                break
            except sqlite3.OperationalError as e:
                if not self._is_busy(e) or time.monotonic() >= deadline:
                    raise
        connection.execute(f"PRAGMA busy_timeout = {int(self.lock_timeout * 1000)}")

    @contextmanager
    def atomic(self, readonly: bool = False,
               context: Optional[TransferContext] = None) -> Iterator[LedgerOperations]:
        try:
            connection = self._connect()
        except sqlite3.Error as e:
            raise InternalError(f"cannot connect to {self.db_path}: {e}", cause=e) from e

        try:
            try:
                if readonly:
                    connection.execute("BEGIN")
                else:
                    self._begin_write(connection, context)
                yield _SQLiteUnit(connection)
            except BaseException:
                if connection.in_transaction:
                    connection.execute("ROLLBACK")
                raise
            connection.execute("COMMIT")
        except sqlite3.Error as e:
            raise self._translate_error(e) from e
        finally:
            connection.close()

    @staticmethod
    def _is_busy(error: sqlite3.Error) -> bool:
        message = str(error).lower()
        return isinstance(error, sqlite3.OperationalError) and ("locked" in message or "busy" in message)

    @classmethod
    def _translate_error(cls, error: sqlite3.Error) -> BankError:
        if cls._is_busy(error):
            return TransactionConflictError(f"database busy: {error}")
        return InternalError(f"sqlite error: {error}", cause=error)


class _PostgreSQLUnit(_SQLUnit):
    placeholder = "%s"

    def _insert(self, statement: str, params: tuple) -> int:
        row = self._fetchone(statement + " RETURNING id", params)
        return row['id']


class PostgreSQLLedgerStore(LedgerStore):
    """
    PostgreSQL ledger store with ACID transaction support.

    Units run at READ COMMITTED; balance increments take row locks through
    UPDATE and hold them until commit. lock_timeout bounds the wait and is
    capped at the time the unit's context has left before its deadline.
    """

    CONFLICT_SQLSTATES = {
        "40001",  # serialization_failure
        "40P01",  # deadlock_detected
        "55P03",  # lock_not_available
    }

    def __init__(self, connection_string: str, lock_timeout: float = 5.0,
                 min_connections: int = 1, max_connections: int = 20):
        try:
            import psycopg2
            import psycopg2.extras
            import psycopg2.pool
            self.psycopg2 = psycopg2
            self.extras = psycopg2.extras
        except ImportError:
            raise ImportError("psycopg2 is required for PostgreSQL storage. Install with: pip install psycopg2-binary")

        self.connection_string = connection_string
        self.lock_timeout = lock_timeout
        self.logger = get_logger("simple_bank.storage")
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            min_connections, max_connections, connection_string,
            cursor_factory=self.extras.RealDictCursor
        )
        self.ensure_schema()

    def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist"""
        with self.atomic() as unit:
            for statement in SCHEMA_STATEMENTS:
                unit._execute(statement.format(pk="BIGSERIAL PRIMARY KEY", ts="TIMESTAMPTZ"), ())

    def _lock_timeout_ms(self, context: Optional[TransferContext]) -> int:
        timeout = self.lock_timeout
        if context is not None:
            context.check()
            if context.remaining is not None:
                timeout = min(timeout, context.remaining)
        # lock_timeout = 0 disables the limit in PostgreSQL
        return max(1, int(timeout * 1000))

    @contextmanager
    def atomic(self, readonly: bool = False,
               context: Optional[TransferContext] = None) -> Iterator[LedgerOperations]:
        lock_timeout_ms = self._lock_timeout_ms(context)
        try:
            connection = self._pool.getconn()
        except self.psycopg2.Error as e:
            raise InternalError(f"cannot get database connection: {e}", cause=e) from e

        try:
            connection.autocommit = False
            unit = _PostgreSQLUnit(connection)
            try:
                if readonly:
                    unit._execute("SET TRANSACTION READ ONLY", ())
                unit._execute(
                    "SET LOCAL lock_timeout = %s", (f"{lock_timeout_ms}ms",)
                )
                yield unit
            except BaseException:
                connection.rollback()
                raise
            connection.commit()
        except self.psycopg2.Error as e:
            if not connection.closed:
                connection.rollback()
            raise self._translate_error(e) from e
        finally:
            self._pool.putconn(connection)

    def _translate_error(self, error: Exception) -> BankError:
        if getattr(error, "pgcode", None) in self.CONFLICT_SQLSTATES:
            return TransactionConflictError(f"transaction conflict: {error}")
        return InternalError(f"postgresql error: {error}", cause=error)

    def close(self) -> None:
        """Close all pooled connections"""
        self._pool.closeall()


def create_store(config) -> LedgerStore:
    """
    Select a ledger store backend from config.database_url

    Supported URLs: memory://, sqlite:///path/to.db, postgresql://...
    """
    url = config.database_url
    if url.startswith("memory://"):
        return InMemoryLedgerStore(lock_timeout=config.lock_timeout_seconds)
    if url.startswith("sqlite:///"):
        return SQLiteLedgerStore(url[len("sqlite:///"):], lock_timeout=config.lock_timeout_seconds)
    if url.startswith(("postgresql://", "postgres://")):
        return PostgreSQLLedgerStore(url, lock_timeout=config.lock_timeout_seconds)
    raise ValueError(f"Unsupported database_url: {url}")
