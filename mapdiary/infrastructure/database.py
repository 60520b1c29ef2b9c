"""SQLite connection handling for the document store

All users' maps, nodes, edges and reports live in one SQLite file
(mapdiary/data/mapdiary.db unless MAPDIARY_DB_PATH is set). Only
mapdiary.store.documents issues SQL; everything else goes through it.

Provides:
- A pool of WAL-mode connections, overflowing into a bounded number of
  short-lived connections when every pooled one is checked out
- ``db_transaction()``: one write transaction per document batch, taken with
  BEGIN IMMEDIATE so read-modify-write batches see a stable row
- ``retry_on_db_lock``: tenacity retry for "database is locked" errors
"""

from __future__ import annotations

import atexit
import os
import sqlite3
from collections.abc import Callable, Generator
from contextlib import contextmanager
from functools import lru_cache
from pathlib import Path
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, TypeVar

from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from mapdiary.config import (
    DB_CONNECT_TIMEOUT,
    DB_POOL_SIZE,
    DB_POOL_TIMEOUT,
    DB_RETRY_BASE_DELAY,
    DB_RETRY_JITTER,
    DB_RETRY_MAX,
    DB_RETRY_MAX_DELAY,
    DB_TEMP_CONN_MAX,
)
from mapdiary.observability.logging import get_logger
from mapdiary.observability.telemetry import counter, log_event

F = TypeVar("F", bound=Callable[..., Any])

DB_PATH = Path(__file__).parent.parent / "data" / "mapdiary.db"

logger = get_logger(__name__)


def is_lock_error(exc: BaseException) -> bool:
    """True for SQLITE_BUSY style failures that are worth retrying."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


def _log_lock_retry(state: RetryCallState) -> None:
    counter("database.lock_retry")
    logger.warning(
        "Database locked (attempt %d), retrying in %.2fs: %s",
        state.attempt_number,
        state.next_action.sleep if state.next_action else 0.0,
        state.outcome.exception() if state.outcome else None,
    )


def retry_on_db_lock(
    max_retries: int = DB_RETRY_MAX,
    base_delay: float = DB_RETRY_BASE_DELAY,
    max_delay: float = DB_RETRY_MAX_DELAY,
) -> Callable[[F], F]:
    """
    Retry a database operation while SQLite reports the file as locked.

    Backoff doubles from ``base_delay`` up to ``max_delay`` plus a little
    jitter. Other OperationalErrors, and the last lock error once retries
    run out, propagate unchanged.

    Usage:
        @retry_on_db_lock()
        def write_batch(ops):
            with db_transaction() as conn:
                ...
    """
    return retry(
        retry=retry_if_exception(is_lock_error),
        stop=stop_after_attempt(max_retries + 1),
        wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay)
        + wait_random(0, base_delay * DB_RETRY_JITTER),
        before_sleep=_log_lock_retry,
        reraise=True,
    )


def _connect(db_path: Path) -> sqlite3.Connection:
    """
    Open a connection in WAL mode with sqlite3.Row rows.

    Raises:
        RuntimeError: If the integrity quick check fails
    """
    conn = sqlite3.connect(str(db_path), timeout=DB_CONNECT_TIMEOUT, check_same_thread=False)
    try:
        status = conn.execute("PRAGMA quick_check(1)").fetchone()[0]
    except sqlite3.DatabaseError as e:
        status = str(e)
    if status != "ok":
        conn.close()
        counter("database.corruption_detected")
        logger.critical("Database integrity check failed for %s: %s", db_path, status)
        raise RuntimeError(f"Database corruption detected: {status}")

    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.row_factory = sqlite3.Row
    return conn


class ConnectionPool:
    """
    Fixed-size pool of connections to one database file.

    When the pool is empty for longer than DB_POOL_TIMEOUT an overflow
    connection is opened, up to ``overflow_max`` at a time; overflow
    connections are closed on release instead of being pooled.
    """

    def __init__(
        self,
        db_path: Path,
        pool_size: int = DB_POOL_SIZE,
        overflow_max: int = DB_TEMP_CONN_MAX,
    ):
        self.db_path = db_path
        self.pool_size = pool_size
        self.overflow_max = overflow_max
        self.closed = False
        self._idle: Queue[sqlite3.Connection] = Queue(maxsize=pool_size)
        self._overflow: set[int] = set()
        self._lock = Lock()

        for _ in range(pool_size):
            self._idle.put(_connect(db_path))
        atexit.register(self.close_all)

    @property
    def available(self) -> int:
        return self._idle.qsize()

    @property
    def overflow(self) -> int:
        return len(self._overflow)

    def acquire(self) -> sqlite3.Connection:
        """
        Raises:
            RuntimeError: If the pool is closed or the overflow limit is reached
        """
        if self.closed:
            raise RuntimeError("Connection pool has been closed")
        try:
            return self._idle.get(timeout=DB_POOL_TIMEOUT)
        except Empty:
            pass

        with self._lock:
            if len(self._overflow) >= self.overflow_max:
                logger.critical(
                    "Overflow connection limit reached (%d, pool_size=%d)",
                    self.overflow_max,
                    self.pool_size,
                )
                raise RuntimeError(
                    f"Database connection pool exhausted (pool_size={self.pool_size}, "
                    f"overflow_max={self.overflow_max})"
                )
            conn = _connect(self.db_path)
            self._overflow.add(id(conn))
            in_overflow = len(self._overflow)

        log_event("database.pool_exhausted", pool_size=self.pool_size, overflow=in_overflow)
        return conn

    def release(self, conn: sqlite3.Connection) -> None:
        with self._lock:
            is_overflow = id(conn) in self._overflow
            self._overflow.discard(id(conn))

        if self.closed or is_overflow:
            conn.close()
            return
        try:
            self._idle.put_nowait(conn)
        except Full:
            conn.close()

    def close_all(self) -> None:
        self.closed = True
        while True:
            try:
                self._idle.get_nowait().close()
            except Empty:
                break


def get_db_path() -> Path:
    """MAPDIARY_DB_PATH if set, else the bundled data directory."""
    if env_path := os.getenv("MAPDIARY_DB_PATH"):
        return Path(env_path)
    return DB_PATH


@lru_cache(maxsize=1)
def get_pool() -> ConnectionPool:
    return ConnectionPool(get_db_path())


def reset_pool() -> None:
    """
    Close and forget the global pool.

    Needed whenever MAPDIARY_DB_PATH changes at runtime (tests point every
    case at its own temporary database).
    """
    if get_pool.cache_info().currsize:
        get_pool().close_all()
    get_pool.cache_clear()


@contextmanager
def get_db_connection() -> Generator[sqlite3.Connection, None, None]:
    """
    Borrow a pooled connection for reads.

    Raises:
        FileNotFoundError: If the database file doesn't exist yet
    """
    db_path = get_db_path()
    if not db_path.exists():
        raise FileNotFoundError(f"Database not found: {db_path}. Call init_database() first.")

    pool = get_pool()
    conn = pool.acquire()
    try:
        yield conn
    finally:
        pool.release(conn)


@contextmanager
def db_transaction() -> Generator[sqlite3.Connection, None, None]:
    """
    One write transaction: commits when the block finishes, rolls back if it raises.
    """
    with get_db_connection() as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.rollback()
            raise
        conn.commit()


def get_pool_stats() -> dict[str, Any]:
    """Pool usage for the /health/db endpoint."""
    pool = get_pool()
    in_use = pool.pool_size - pool.available
    usage_percent = (in_use / pool.pool_size) * 100 if pool.pool_size > 0 else 0

    return {
        "pool_size": pool.pool_size,
        "available": pool.available,
        "in_use": in_use,
        "overflow": pool.overflow,
        "usage_percent": round(usage_percent, 1),
        "closed": pool.closed,
    }


def init_database() -> None:
    """Create the schema at the configured path (idempotent)."""
    from mapdiary.infrastructure.database_schema import init_database as _init_database

    _init_database(get_db_path())
