"""Unit tests for the ORM mapping in deadrop.models.

These tests verify the table layout the migrations are expected to produce:
table name, nullability and the AUTOINCREMENT flag that keeps ids from being
reused.
"""

from deadrop.db.session import Base
from deadrop.db.time import UTCDateTime
from deadrop.models import Message


def test_table_name():
    """Messages live in the table the original tool used."""
    assert Message.__tablename__ == "messages"
    assert "messages" in Base.metadata.tables


def test_required_and_optional_columns():
    columns = Message.__table__.c
    assert {c.name for c in columns} == {
        "id", "from_agent", "to_agent", "subject", "body", "created_at", "read_at",
    }
    assert not columns.from_agent.nullable
    assert not columns.to_agent.nullable
    assert not columns.body.nullable
    assert not columns.created_at.nullable
    assert columns.subject.nullable
    assert columns.read_at.nullable


def test_timestamps_use_utc_type():
    assert isinstance(Message.__table__.c.created_at.type, UTCDateTime)
    assert isinstance(Message.__table__.c.read_at.type, UTCDateTime)


def test_ids_are_never_reused():
    assert Message.__table__.kwargs.get("sqlite_autoincrement") is True


def test_inbox_index():
    (index,) = Message.__table__.indexes
    assert index.name == "ix_messages_inbox"
    assert [c.name for c in index.columns] == ["to_agent", "read_at", "created_at"]
