# src/deadrop/schemas/__init__.py
"""
Pydantic schemas for store inputs and returned records.

These schemas validate deposits and define the record shape callers receive.
"""

from .message import AgentName, MessageCreate, MessageRecord, agent_name_adapter

__all__ = ["AgentName", "MessageCreate", "MessageRecord", "agent_name_adapter"]
