"""Blocking-work execution and SQLite engine setup.

Staging files are plain SQLite databases accessed through SQLAlchemy's sync
engine. All SQLite work runs on a bounded worker pool so the event loop never
blocks on disk I/O.

Usage:
    from csvstage.core.connections import WorkerPool, create_staging_engine

    pool = WorkerPool(max_workers=4)
    rows = await pool.run(read_page, path, "valid_data", 1, 20)
    pool.shutdown()
"""

from __future__ import annotations

import asyncio
import functools
import threading
from collections.abc import Callable, Generator
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlalchemy import Connection, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool

from csvstage.core.errors import StagingIOError
from csvstage.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class WorkerPool:
    """Bounded thread pool for blocking staging calls.

    The executor is created lazily and can be shut down and restarted
    (the API lifespan does both).
    """

    max_workers: int = 4
    thread_name_prefix: str = "csvstage-staging"
    _executor: ThreadPoolExecutor | None = field(default=None, init=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.max_workers,
                    thread_name_prefix=self.thread_name_prefix,
                )
            return self._executor

    async def run[R](self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """Run ``fn(*args, **kwargs)`` on the pool and await its result."""
        loop = asyncio.get_running_loop()
        call = functools.partial(fn, *args, **kwargs)
        return await loop.run_in_executor(self._get_executor(), call)

    def shutdown(self) -> None:
        """Wait for running work and release the threads."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)


def create_staging_engine(path: Path, sqlite_timeout: float = 30.0) -> Engine:
    """Create a sync engine for one staging file.

    NullPool closes the underlying DBAPI connection as soon as the SQLAlchemy
    connection is returned, so the file can be removed right after use.
    The driver's own transaction handling is disabled and SQLAlchemy emits
    BEGIN itself, which makes DDL part of the surrounding transaction.
    """
    engine = create_engine(
        f"sqlite:///{path}",
        poolclass=NullPool,
        connect_args={"check_same_thread": False, "timeout": sqlite_timeout},
    )

    @event.listens_for(engine, "connect")
    def configure_sqlite(dbapi_conn: Any, connection_record: Any) -> None:
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute(f"PRAGMA busy_timeout={int(sqlite_timeout * 1000)}")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN")

    return engine


@contextmanager
def staging_connection(
    path: Path, sqlite_timeout: float = 30.0, *, write: bool = False
) -> Generator[Connection]:
    """Open one connection to a staging file for the duration of a call.

    With ``write=True`` the block runs inside a transaction that commits on
    success and rolls back on any exception.

    Raises:
        StagingIOError: If the file cannot be opened
    """
    engine = create_staging_engine(path, sqlite_timeout)
    try:
        try:
            conn = engine.connect()
        except OperationalError as e:
            raise StagingIOError(f"Cannot open staging store {path}: {e}") from e
        with conn:
            if write:
                with conn.begin():
                    yield conn
            else:
                yield conn
    finally:
        engine.dispose()
