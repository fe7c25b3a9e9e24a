"""rename legacy timestamp column

Revision ID: 0002
Revises: 0001
Create Date: 2026-02-09 00:05:00.000000

Stores written by the original command-line tool recorded creation time in a
``timestamp`` column filled by ``CURRENT_TIMESTAMP``. Rename it in place so
existing messages keep their history.
"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: Union[str, Sequence[str], None] = "0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _column_names() -> set[str]:
    return {column["name"] for column in sa.inspect(op.get_bind()).get_columns("messages")}


def upgrade() -> None:
    """Rename ``timestamp`` to ``created_at`` on legacy stores."""
    columns = _column_names()
    if "timestamp" not in columns or "created_at" in columns:
        return
    op.execute('ALTER TABLE messages RENAME COLUMN "timestamp" TO created_at')
    # The legacy column was nullable; an explicit NULL insert left rows undated.
    op.execute(
        "UPDATE messages SET created_at = COALESCE(read_at, CURRENT_TIMESTAMP) "
        "WHERE created_at IS NULL"
    )


def downgrade() -> None:
    # Fresh stores never had the legacy column; nothing to restore.
    pass
