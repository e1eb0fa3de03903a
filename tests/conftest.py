"""
Shared fixtures for the portswitch test suite.
"""

import asyncio
from collections import deque
from typing import Deque, List, Optional, Set, Tuple

import pytest

from portswitch.core.domain.events import Event
from portswitch.core.interfaces.engine import IForwardEngine, EngineResult
from portswitch.core.services.event_bus import EventBus


class FakeEngine(IForwardEngine):
    """Scriptable engine recording every call."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, int]] = []
        self.start_results: Deque[EngineResult] = deque()
        self.stop_results: Deque[EngineResult] = deque()
        self.start_error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.ports: Set[int] = set()

    def listening_ports(self) -> List[int]:
        return sorted(self.ports)

    async def start(self, port: int) -> EngineResult:
        self.calls.append(("start", port))
        if self.gate is not None:
            await self.gate.wait()
        if self.start_error is not None:
            raise self.start_error
        result = self.start_results.popleft() if self.start_results else EngineResult.success()
        if result.ok:
            self.ports.add(port)
        return result

    async def stop(self, port: int) -> EngineResult:
        self.calls.append(("stop", port))
        if self.gate is not None:
            await self.gate.wait()
        result = self.stop_results.popleft() if self.stop_results else EngineResult.success()
        if result.ok:
            self.ports.discard(port)
        return result


@pytest.fixture
def engine() -> FakeEngine:
    """Create a fake engine."""
    return FakeEngine()


@pytest.fixture
def event_bus() -> EventBus:
    """Create an event bus."""
    return EventBus()


@pytest.fixture
def received(event_bus: EventBus) -> List[Event]:
    """Events delivered to a plain listener registered on the bus."""
    events: List[Event] = []
    event_bus.register(events.append)
    return events
