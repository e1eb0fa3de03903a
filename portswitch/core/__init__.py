"""
Core module containing the forwarding state machine, domain models and
service interfaces.

This module is independent of the network engine, storage backend and
presentation concerns, which live in the infrastructure and application layers.
"""

from .interfaces.lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .interfaces.messaging import IEventBus, EventListener
from .interfaces.engine import IForwardEngine, EngineResult
from .domain.events import Event, EventKind
from .domain.state import PersistedConfig, ListenerState, ListenerPhase

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "IEventBus",
    "EventListener",
    "IForwardEngine",
    "EngineResult",
    "Event",
    "EventKind",
    "PersistedConfig",
    "ListenerState",
    "ListenerPhase",
]
