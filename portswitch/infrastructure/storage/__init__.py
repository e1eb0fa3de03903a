"""
Persistent key-value storage for the desired forwarding state.
"""

from .store import JsonFileStore, MemoryStore

__all__ = [
    "JsonFileStore",
    "MemoryStore",
]
