# src/deadrop/db/__init__.py
"""Database configuration and utilities."""

from .session import Base, begin_connection, create_store_engine, transaction_scope

__all__ = ["Base", "begin_connection", "create_store_engine", "transaction_scope"]
