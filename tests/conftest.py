# tests/conftest.py
from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from deadrop.core.settings import Settings, get_settings
from deadrop.services.store import MessageStore


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Keep tests away from the user's real store and cached settings."""
    monkeypatch.setenv("DEADROP_DB", str(tmp_path / "env-default" / "deadrop.sqlite"))
    get_settings.cache_clear()
    try:
        yield
    finally:
        get_settings.cache_clear()


@pytest.fixture()
def test_settings() -> Settings:
    """Settings with short lock waits so contention tests finish quickly."""
    return Settings(
        busy_timeout_ms=200,
        retry_attempts=4,
        retry_backoff_seconds=0.01,
        retry_backoff_max_seconds=0.05,
    )


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "workspace" / "deadrop.sqlite"


@pytest.fixture()
def store(db_path: Path, test_settings: Settings) -> Iterator[MessageStore]:
    with MessageStore(db_path, test_settings) as message_store:
        yield message_store


@pytest.fixture()
def open_store(db_path: Path, test_settings: Settings) -> Iterator[Callable[..., MessageStore]]:
    """Factory for extra stores on the same file, closed after the test."""
    opened: list[MessageStore] = []

    def _open(path: Path | None = None, settings: Settings | None = None) -> MessageStore:
        message_store = MessageStore(path or db_path, settings or test_settings)
        opened.append(message_store)
        return message_store

    try:
        yield _open
    finally:
        for message_store in opened:
            message_store.close()
