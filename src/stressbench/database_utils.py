"""
Database gateway backed by apsw (SQLite).

A Session owns a small pool of I/O threads, each holding its own
apsw.Connection to the keyspace file, so a worker can keep several
statements in flight at once.
"""

import apsw
import logging
import os
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import psutil

from .config_loader import ConfigurationError

DEFAULT_BUSY_TIMEOUT_MS = 30_000
MAX_IO_THREADS = 64


class OperationExecutionError(Exception):
    """A single dispatched statement failed."""

    def __init__(self, message: str, statement: "BoundStatement" = None):
        super().__init__(message)
        self.statement = statement


@dataclass(frozen=True)
class BoundStatement:
    query: str
    params: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class PreparedStatement:
    query: str

    def bind(self, *values) -> BoundStatement:
        return BoundStatement(self.query, tuple(values))


def safe_connect_database_with_retry(db_filename: str, max_retries: int = 5, retry_delay: float = 1.0,
                                     busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> apsw.Connection:
    """
    Connect to the database, retrying while the file is locked.
    """
    for attempt in range(max_retries):
        try:
            conn = apsw.Connection(db_filename)
            conn.setbusytimeout(busy_timeout_ms)
            conn.execute("PRAGMA journal_mode = WAL").fetchall()
            return conn
        except apsw.BusyError:
            if attempt < max_retries - 1:
                time.sleep(retry_delay)
            else:
                raise
    raise RuntimeError(f"Unable to connect to database {db_filename} after {max_retries} attempts.")


def _auxiliary_files(db_filename) -> List[Path]:
    db_path = Path(db_filename)
    return [
        db_path.with_suffix(db_path.suffix + '-wal'),
        db_path.with_suffix(db_path.suffix + '-shm'),
        db_path.with_suffix(db_path.suffix + '-journal'),
    ]


def find_processes_holding(db_filename) -> List[int]:
    """Return the pids of other processes that have the database or its side files open."""
    current_pid = os.getpid()
    targets = {str(Path(db_filename).resolve())} | {str(p.resolve()) for p in _auxiliary_files(db_filename)}
    holders = []
    for proc in psutil.process_iter(['pid', 'open_files']):
        try:
            if proc.info['pid'] == current_pid:
                continue
            for file_info in proc.info['open_files'] or []:
                if file_info.path in targets:
                    holders.append(proc.info['pid'])
                    break
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return holders


def drop_keyspace(db_filename, logger: Optional[logging.Logger] = None):
    """Delete the keyspace file and its auxiliary files."""
    logger = logger or logging.getLogger("DatabaseUtils")
    holders = find_processes_holding(db_filename)
    if holders:
        raise ConfigurationError(f"Cannot drop {db_filename}: held open by process(es) {holders}")

    for path in [Path(db_filename)] + _auxiliary_files(db_filename):
        if path.exists():
            path.unlink()
            logger.info(f"Removed {path}")


class Session:
    """
    Session over one keyspace file.

    execute() runs synchronously on the caller's own connection (used for DDL);
    execute_async() hands the statement to the I/O pool and returns a Future.
    """

    def __init__(self, db_path: str, io_threads: int = 8, name: str = "session",
                 busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS):
        self.db_path = db_path
        self.name = name
        self.busy_timeout_ms = busy_timeout_ms
        self.logger = logging.getLogger(f"Session.{name}")
        self._local = threading.local()
        self._connections: List[apsw.Connection] = []
        self._connections_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max(1, min(io_threads, MAX_IO_THREADS)),
                                            thread_name_prefix=f"{name}-io")
        self._closed = False

    def _connection(self) -> apsw.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = safe_connect_database_with_retry(self.db_path, busy_timeout_ms=self.busy_timeout_ms)
            self._local.conn = conn
            with self._connections_lock:
                self._connections.append(conn)
        return conn

    def prepare(self, query: str) -> PreparedStatement:
        self.logger.debug(f"Preparing: {query}")
        return PreparedStatement(query)

    def _run(self, statement: Union[BoundStatement, str]) -> List[tuple]:
        if isinstance(statement, str):
            statement = BoundStatement(statement)
        try:
            cursor = self._connection().execute(statement.query, statement.params)
            return cursor.fetchall()
        except apsw.Error as e:
            raise OperationExecutionError(f"{type(e).__name__}: {e}", statement) from e

    def execute(self, statement: Union[BoundStatement, str]) -> List[tuple]:
        return self._run(statement)

    def execute_async(self, statement: BoundStatement) -> Future:
        if self._closed:
            raise OperationExecutionError(f"Session {self.name} is shut down", statement)
        return self._executor.submit(self._run, statement)

    def shutdown(self):
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=True)
        with self._connections_lock:
            for conn in self._connections:
                try:
                    conn.close()
                except apsw.Error as e:
                    self.logger.error(f"Error closing database connection: {e}")
            self._connections.clear()
        self.logger.debug("Session closed.")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
