"""
Core service implementations.

This module contains the concrete implementations of the core services
that implement the interfaces defined in the core.interfaces module.
"""

from .event_bus import EventBus
from .controller import ForwardController

__all__ = [
    "EventBus",
    "ForwardController",
]
