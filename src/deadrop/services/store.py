"""Durable message store shared by agents.

This module provides the MessageStore class that owns the on-disk message
table and the three operations agents use to talk to each other:

- ``deposit``: append a message to a recipient's inbox
- ``drain_unread``: fetch every unread message for an agent and mark it read
- ``list_inbox``: read an inbox without touching read state

Each operation runs in its own transaction against a single SQLite file that
many short-lived processes open at once. Lock contention is expected and is
retried with a bounded exponential backoff; anything else propagates to the
caller as one of the exceptions defined here.
"""

from __future__ import annotations

import logging
import os
import sqlite3
import time
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError

from deadrop.core.settings import Settings, get_settings
from deadrop.db.migrate import current_revision, run_upgrade_head
from deadrop.db.session import create_store_engine, transaction_scope
from deadrop.db.time import utcnow
from deadrop.models import Message
from deadrop.schemas.message import MessageCreate, MessageRecord, agent_name_adapter

# Configure logger for this module
logger = logging.getLogger(__name__)

T = TypeVar("T")

BUSY_MARKERS = (
    "database is locked",
    "database table is locked",
    "database schema is locked",
    "database is busy",
)
CORRUPTION_MARKERS = (
    "file is not a database",
    "file is encrypted or is not a database",
    "database disk image is malformed",
    "malformed database schema",
)


class DeadropError(RuntimeError):
    """Base exception raised for message store failures."""


class InvalidInput(DeadropError, ValueError):
    """Raised when a required field is missing or empty.

    Always raised before the store file is touched, and never retried.
    """


class StoreUnavailable(DeadropError):
    """Raised when the store file cannot be opened, read or written.

    Covers missing or unwritable directories, permission problems, a full
    disk and lock contention that outlasted the retry budget.
    """


class StoreBusy(StoreUnavailable):
    """Raised when another process kept the store locked past the retry budget."""


class Corrupted(DeadropError):
    """Raised when the store file fails an integrity check.

    Never repaired automatically; an operator decides whether to rebuild the
    file or investigate it.
    """


def _error_detail(exc: BaseException) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc)


def classify_error(exc: BaseException) -> DeadropError:
    """Map a driver error onto the store's exception taxonomy.

    Args:
        exc: A SQLAlchemy ``DBAPIError`` or raw ``sqlite3.Error``.

    Returns:
        ``StoreBusy`` for lock contention, ``Corrupted`` for structural
        damage, ``StoreUnavailable`` for everything else.
    """
    detail = _error_detail(exc)
    lowered = detail.lower()
    if any(marker in lowered for marker in BUSY_MARKERS):
        return StoreBusy(detail)
    if any(marker in lowered for marker in CORRUPTION_MARKERS):
        return Corrupted(detail)
    return StoreUnavailable(detail)


def _describe_validation(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error["loc"])
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return "; ".join(parts)


class MessageStore:
    """Agent inboxes persisted in one SQLite file.

    The store is bound to an explicit path so that every caller, including
    tests, works against its own file. Opening the store creates the parent
    directory and brings the schema up to date.

    Example:
        with MessageStore(tmp_path / "deadrop.sqlite") as store:
            message_id = store.deposit("larry", "cody", "done", subject="Update")
            unread = store.drain_unread("cody")
    """

    def __init__(self, path: str | os.PathLike[str], settings: Settings | None = None) -> None:
        """Open (and if needed create) the store at ``path``.

        Args:
            path: Location of the SQLite file.
            settings: Lock and retry tuning; defaults to the process settings.

        Raises:
            StoreUnavailable: The directory or file cannot be created or opened.
            Corrupted: The file exists but is not a readable database.
        """
        self.path = Path(path).expanduser()
        self.settings = settings or get_settings()

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreUnavailable(f"cannot create directory {self.path.parent}: {exc}") from exc

        self._engine = create_store_engine(self.path, self.settings)
        try:
            self._with_retry("bootstrap", self._bootstrap)
        except BaseException:
            self._engine.dispose()
            raise
        logger.debug("Opened message store at %s", self.path)

    def __repr__(self) -> str:
        return f"MessageStore({str(self.path)!r})"

    def __enter__(self) -> MessageStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Release the engine and any pooled connections."""
        self._engine.dispose()

    @property
    def schema_revision(self) -> str | None:
        """Return the migration revision recorded in the store file."""
        return self._with_retry("schema_revision", lambda: current_revision(self._engine))

    def deposit(
        self,
        from_agent: str,
        to_agent: str,
        body: str,
        subject: str | None = None,
    ) -> int:
        """Append a message to ``to_agent``'s inbox and return its id.

        The row is committed before this returns. ``created_at`` never moves
        backwards: if the clock is behind the newest stored message, that
        message's timestamp is reused.

        Raises:
            InvalidInput: A sender, recipient or body is missing or empty.
            StoreUnavailable: The row could not be written.
            Corrupted: The store file is damaged.
        """
        try:
            draft = MessageCreate(
                from_agent=from_agent,
                to_agent=to_agent,
                subject=subject,
                body=body,
            )
        except ValidationError as exc:
            raise InvalidInput(_describe_validation(exc)) from exc

        def work() -> int:
            with transaction_scope(self._engine, immediate=True) as session:
                created_at = utcnow()
                # created_at never decreases in id order, so the newest row holds the maximum.
                latest = session.scalar(
                    select(Message.created_at).order_by(Message.id.desc()).limit(1)
                )
                if latest is not None and latest > created_at:
                    created_at = latest

                message = Message(
                    from_agent=draft.from_agent,
                    to_agent=draft.to_agent,
                    subject=draft.subject,
                    body=draft.body,
                    created_at=created_at,
                )
                session.add(message)
                session.flush()
                return message.id

        message_id = self._with_retry("deposit", work)
        logger.debug("Deposited message %d from %s to %s", message_id, draft.from_agent, draft.to_agent)
        return message_id

    def drain_unread(self, agent: str) -> list[MessageRecord]:
        """Return every unread message for ``agent`` and mark them read.

        Selection and marking happen in one write-locked transaction, so two
        concurrent drains for the same agent never return the same message.
        Messages come back oldest first with ``read_at`` populated.

        Raises:
            InvalidInput: ``agent`` is missing or empty.
            StoreUnavailable: The store could not be read or written.
            Corrupted: The store file is damaged.
        """
        agent = self._validate_agent(agent)

        def work() -> list[MessageRecord]:
            with transaction_scope(self._engine, immediate=True) as session:
                messages = list(
                    session.scalars(
                        select(Message)
                        .where(Message.to_agent == agent, Message.read_at.is_(None))
                        .order_by(Message.created_at.asc(), Message.id.asc())
                    )
                )
                if not messages:
                    return []

                read_at = max(utcnow(), messages[-1].created_at)
                for message in messages:
                    message.read_at = read_at
                session.flush()
                return [MessageRecord.model_validate(message) for message in messages]

        drained = self._with_retry("drain_unread", work)
        logger.debug(
            "Drained %d message(s) for %s: %s",
            len(drained),
            agent,
            [record.id for record in drained],
        )
        return drained

    def list_inbox(self, agent: str, unread_only: bool = False) -> list[MessageRecord]:
        """Return ``agent``'s messages newest first without changing them.

        Args:
            agent: Inbox to read.
            unread_only: Restrict the result to messages not yet drained.

        Raises:
            InvalidInput: ``agent`` is missing or empty.
            StoreUnavailable: The store could not be read.
            Corrupted: The store file is damaged.
        """
        agent = self._validate_agent(agent)

        stmt = select(Message).where(Message.to_agent == agent)
        if unread_only:
            stmt = stmt.where(Message.read_at.is_(None))
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc())

        def work() -> list[MessageRecord]:
            with transaction_scope(self._engine) as session:
                return [MessageRecord.model_validate(message) for message in session.scalars(stmt)]

        records = self._with_retry("list_inbox", work)
        logger.debug("Listed %d message(s) for %s (unread_only=%s)", len(records), agent, unread_only)
        return records

    def verify_integrity(self) -> None:
        """Run SQLite's structural check over the store file.

        Raises:
            Corrupted: The check reported problems; the file is left untouched.
            StoreUnavailable: The file could not be read.
        """

        def work() -> list[str]:
            with self._engine.connect() as connection:
                return [str(row[0]) for row in connection.exec_driver_sql("PRAGMA quick_check")]

        problems = self._with_retry("verify_integrity", work)
        if problems != ["ok"]:
            logger.error("Integrity check failed for %s: %s", self.path, problems)
            raise Corrupted("integrity check failed: " + "; ".join(problems))

    def _bootstrap(self) -> None:
        try:
            run_upgrade_head(self._engine)
        except DBAPIError as exc:
            if "already exists" not in _error_detail(exc).lower():
                raise
            # Another process created the schema between our check and write.
            logger.info("Schema for %s created concurrently; re-checking", self.path)
            run_upgrade_head(self._engine)

    @staticmethod
    def _validate_agent(agent: object) -> str:
        try:
            return agent_name_adapter.validate_python(agent)
        except ValidationError as exc:
            raise InvalidInput(f"agent: {_describe_validation(exc)}") from exc

    def _with_retry(self, operation: str, work: Callable[[], T]) -> T:
        attempts = self.settings.retry_attempts
        for attempt in range(attempts):
            try:
                return work()
            except (DBAPIError, sqlite3.Error) as exc:
                error = classify_error(exc)
                if isinstance(error, StoreBusy) and attempt + 1 < attempts:
                    delay = self.settings.backoff_delay(attempt)
                    logger.warning(
                        "%s on %s: store busy (attempt %d/%d), retrying in %.2fs",
                        operation,
                        self.path,
                        attempt + 1,
                        attempts,
                        delay,
                    )
                    time.sleep(delay)
                    continue

                if isinstance(error, StoreBusy):
                    logger.error("%s on %s: store still busy after %d attempts", operation, self.path, attempts)
                    error = StoreBusy(f"store busy after {attempts} attempts: {error}")
                elif isinstance(error, Corrupted):
                    logger.error("%s on %s: store is corrupted: %s", operation, self.path, error)
                raise error from exc

        raise RuntimeError(f"{operation} retry loop exited unexpectedly")
