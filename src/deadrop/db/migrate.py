# src/deadrop/db/migrate.py
from __future__ import annotations

from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import Engine
from sqlalchemy.engine import Connection

from deadrop.db.session import begin_connection

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


def _escape(value: str) -> str:
    # Alembic options go through configparser interpolation.
    return value.replace("%", "%%")


def alembic_config(engine: Engine, connection: Connection | None = None) -> Config:
    """Build an Alembic config pointing at the packaged migrations."""
    cfg = Config()
    cfg.set_main_option("script_location", _escape(str(MIGRATIONS_DIR)))
    cfg.set_main_option("sqlalchemy.url", _escape(engine.url.render_as_string(hide_password=False)))
    if connection is not None:
        cfg.attributes["connection"] = connection
    return cfg


def run_upgrade_head(engine: Engine) -> None:
    """Upgrade the store to the latest revision under the write lock.

    Concurrent openers queue on the lock; whoever runs second finds the schema
    already at head and does nothing.
    """
    with begin_connection(engine, immediate=True) as connection:
        command.upgrade(alembic_config(engine, connection), "head")


def head_revision(engine: Engine) -> str | None:
    """Return the newest revision shipped with the package."""
    return ScriptDirectory.from_config(alembic_config(engine)).get_current_head()


def current_revision(engine: Engine) -> str | None:
    """Return the revision recorded in the store file, if any."""
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
