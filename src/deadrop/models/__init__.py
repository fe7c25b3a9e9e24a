# src/deadrop/models/__init__.py
"""SQLAlchemy models for the deadrop message store."""

from .message import Message

__all__ = ["Message"]
