"""Database engine and transaction scope configuration."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import URL, Engine, create_engine, event
from sqlalchemy.engine import Connection
from sqlalchemy.orm import DeclarativeBase, Session
from sqlalchemy.pool import NullPool

from deadrop.core.settings import Settings

BEGIN_STATEMENT_KEY = "deadrop_begin"
BEGIN_DEFERRED = "BEGIN"
BEGIN_IMMEDIATE = "BEGIN IMMEDIATE"


class Base(DeclarativeBase):
    """Declarative base shared by all ORM models."""


# Ensure model modules are imported so that metadata is populated for migrations.
import deadrop.models  # noqa: E402,F401


def create_store_engine(path: Path, settings: Settings) -> Engine:
    """Create an engine for the SQLite file at ``path``.

    Every new DBAPI connection gets a busy timeout, WAL journaling and full
    fsync on commit. Transactions are opened by the ``begin`` listener so the
    caller can choose between a deferred and an immediate (write-locked) start.
    """
    engine = create_engine(
        URL.create("sqlite", database=str(path)),
        poolclass=NullPool,
        echo=settings.sql_debug,
    )
    busy_timeout_ms = int(settings.busy_timeout_ms)

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection: Any, connection_record: Any) -> None:
        # Disable the driver's implicit BEGIN; see _begin below.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            cursor.execute(f"PRAGMA busy_timeout = {busy_timeout_ms}")
            cursor.execute("PRAGMA journal_mode = WAL")
            cursor.execute("PRAGMA synchronous = FULL")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(connection: Connection) -> None:
        connection.exec_driver_sql(connection.info.pop(BEGIN_STATEMENT_KEY, BEGIN_DEFERRED))

    return engine


@contextmanager
def begin_connection(engine: Engine, *, immediate: bool = False) -> Iterator[Connection]:
    """Yield a connection inside one transaction, committed on clean exit."""
    with engine.connect() as connection:
        connection.info[BEGIN_STATEMENT_KEY] = BEGIN_IMMEDIATE if immediate else BEGIN_DEFERRED
        with connection.begin():
            yield connection


@contextmanager
def transaction_scope(engine: Engine, *, immediate: bool = False) -> Iterator[Session]:
    """Yield a session that owns exactly one transaction.

    The transaction commits when the block exits normally and rolls back on
    any exception; the connection is released on both paths. ``immediate``
    takes SQLite's write lock when the transaction begins instead of at the
    first write, which serializes read-modify-write sequences across processes.
    """
    with engine.connect() as connection:
        connection.info[BEGIN_STATEMENT_KEY] = BEGIN_IMMEDIATE if immediate else BEGIN_DEFERRED
        with Session(bind=connection, expire_on_commit=False) as session, session.begin():
            yield session
