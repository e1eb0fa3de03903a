"""
Core interfaces defining the contracts between the controller, the event bus
and the forwarding engine.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable, IComponent
from .messaging import IEventBus, EventListener
from .engine import IForwardEngine, EngineResult

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IComponent",
    "IEventBus",
    "EventListener",
    "IForwardEngine",
    "EngineResult",
]
