"""
Portswitch - control plane for a single TCP port-forwarding endpoint.

This package starts and stops a forwarding listener on a user-chosen port,
persists the desired state across restarts, and reports the outcome of every
transition as events on a decoupled event bus.
"""

__version__ = "0.1.0"

# Public API exports
from .core.domain.state import PersistedConfig, ConfigEditor, ListenerState, ListenerPhase
from .core.domain.events import Event, EventKind
from .core.domain.errors import ForwardError, EngineFailure, BusyError, ConfigInvalid
from .core.interfaces.engine import IForwardEngine, EngineResult
from .core.interfaces.messaging import IEventBus
from .core.services.event_bus import EventBus
from .core.services.controller import ForwardController

__all__ = [
    "PersistedConfig",
    "ConfigEditor",
    "ListenerState",
    "ListenerPhase",
    "Event",
    "EventKind",
    "ForwardError",
    "EngineFailure",
    "BusyError",
    "ConfigInvalid",
    "IForwardEngine",
    "EngineResult",
    "IEventBus",
    "EventBus",
    "ForwardController",
]
