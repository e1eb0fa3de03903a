"""
Infrastructure layer containing external dependencies and I/O operations.

This layer handles configuration files, logging, desired-state storage and
the socket-level forwarding engine.
"""

from .config.loader import ConfigLoader
from .config.models import ApplicationConfig
from .engine.tcp_forwarder import TcpForwardEngine
from .storage.store import JsonFileStore, MemoryStore

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "TcpForwardEngine",
    "JsonFileStore",
    "MemoryStore",
]
