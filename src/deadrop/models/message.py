# src/deadrop/models/message.py
"""Model describing a message left in an agent's inbox."""

from datetime import datetime

from sqlalchemy import Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from deadrop.db.session import Base
from deadrop.db.time import UTCDateTime, utcnow


class Message(Base):
    """Message deposited by one agent for another.

    Rows are append-only: the only mutation is the single transition of
    ``read_at`` from NULL to the time the recipient drained it.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_inbox", "to_agent", "read_at", "created_at"),
        # AUTOINCREMENT keeps ids from being reused after out-of-band deletes.
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    from_agent: Mapped[str] = mapped_column(Text, nullable=False)
    to_agent: Mapped[str] = mapped_column(Text, nullable=False)

    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def __repr__(self) -> str:
        state = "read" if self.read_at is not None else "unread"
        return f"<Message id={self.id} {self.from_agent}->{self.to_agent} {state}>"
