"""
Messaging interfaces for the controller notification channel.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Union

from ..domain.events import Event

EventListener = Callable[[Event], Union[None, Awaitable[None]]]
"""A listener receives one event; coroutine functions are supported."""


class IEventBus(ABC):
    """Interface for fire-and-forget event delivery."""

    @abstractmethod
    def publish(self, event: Event) -> int:
        """
        Deliver an event to every currently registered listener.

        Events published while no listener is registered are dropped.

        Args:
            event: Event to deliver

        Returns:
            Number of listeners the event was submitted to
        """
        pass

    @abstractmethod
    def register(self, listener: EventListener) -> bool:
        """
        Register a listener. Registering twice is a no-op.

        Returns:
            True if the listener was not registered before
        """
        pass

    @abstractmethod
    def unregister(self, listener: EventListener) -> bool:
        """
        Unregister a listener. Unregistering an unknown listener is a no-op.

        Returns:
            True if the listener was registered
        """
        pass

    @abstractmethod
    def get_metrics(self) -> Dict[str, Any]:
        """
        Get event bus metrics.

        Returns:
            Dictionary with delivery counters and listener count
        """
        pass
