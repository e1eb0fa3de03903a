"""
Forwarding engine interface.

The engine owns the actual sockets. The controller only asks it to start or
stop listening on a port and maps the returned result to events.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineResult:
    """Outcome of an engine start/stop call."""

    ok: bool
    reason: str = ""

    @classmethod
    def success(cls) -> 'EngineResult':
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> 'EngineResult':
        return cls(ok=False, reason=reason)


class IForwardEngine(ABC):
    """
    Interface for forwarding engines.

    Both operations must be idempotent: starting a port that is already
    listening, or stopping one that is not, returns a successful result.
    """

    @abstractmethod
    async def start(self, port: int) -> EngineResult:
        """
        Start listening on the given port.

        Args:
            port: Port to bind

        Returns:
            Result describing success or the failure reason
        """
        pass

    @abstractmethod
    async def stop(self, port: int) -> EngineResult:
        """
        Stop listening on the given port.

        Args:
            port: Port to release

        Returns:
            Result describing success or the failure reason
        """
        pass

    @abstractmethod
    def listening_ports(self) -> List[int]:
        """Ports currently bound by the engine."""
        pass

    async def close(self) -> None:
        """Stop every port still listening; failures are logged."""
        for port in self.listening_ports():
            result = await self.stop(port)
            if not result.ok:
                logger.error(f"Failed to release :{port}: {result.reason}")
