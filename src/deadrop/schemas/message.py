# src/deadrop/schemas/message.py
"""Message-related Pydantic schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints, TypeAdapter


def _reject_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


AgentName = Annotated[str, StringConstraints(strict=True, min_length=1), AfterValidator(_reject_blank)]
"""Opaque agent identifier: any non-blank string."""

agent_name_adapter: TypeAdapter[str] = TypeAdapter(AgentName)


class MessageCreate(BaseModel):
    """Schema validating a deposit before it reaches storage."""

    from_agent: AgentName = Field(..., description="Sender agent name")
    to_agent: AgentName = Field(..., description="Recipient agent name (inbox partition)")
    subject: str | None = Field(None, description="Optional subject; empty is kept distinct from absent")
    body: str = Field(..., min_length=1, description="Message payload")

    model_config = ConfigDict(strict=True, frozen=True)


class MessageRecord(BaseModel):
    """A stored message as returned by drain and list operations.

    Serializes with ``from``/``to`` keys, the external record shape.
    """

    id: int
    from_agent: str = Field(..., serialization_alias="from")
    to_agent: str = Field(..., serialization_alias="to")
    subject: str | None
    body: str
    created_at: datetime
    read_at: datetime | None

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def is_read(self) -> bool:
        """Return True once the message has been drained."""
        return self.read_at is not None

    def to_external(self) -> dict[str, Any]:
        """Return the JSON-ready external record."""
        return self.model_dump(mode="json", by_alias=True)
