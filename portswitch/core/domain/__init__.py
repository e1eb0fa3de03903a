"""
Domain models for the forwarding control plane.

These are plain immutable value objects: the desired configuration, the
runtime listener state and the events reported to observers.
"""

from .state import PersistedConfig, ConfigEditor, ListenerState, ListenerPhase, DEFAULT_PORT
from .events import Event, EventKind, ForwardEvents
from .errors import ForwardError, EngineFailure, BusyError, ConfigInvalid

__all__ = [
    "PersistedConfig",
    "ConfigEditor",
    "ListenerState",
    "ListenerPhase",
    "DEFAULT_PORT",
    "Event",
    "EventKind",
    "ForwardEvents",
    "ForwardError",
    "EngineFailure",
    "BusyError",
    "ConfigInvalid",
]
