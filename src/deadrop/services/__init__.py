# src/deadrop/services/__init__.py
"""Message store and presentation services."""

from .store import (
    Corrupted,
    DeadropError,
    InvalidInput,
    MessageStore,
    StoreBusy,
    StoreUnavailable,
)

__all__ = [
    "MessageStore",
    "DeadropError", "InvalidInput", "StoreUnavailable", "StoreBusy", "Corrupted",
]
