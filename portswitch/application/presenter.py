"""
Headless presenter for the forwarding toggle.

The presenter owns the desired configuration while the user interacts: it
loads it from the store, flips it on toggle, persists it, carries it across
to the controller as a transferable payload and surfaces controller events
as short notices. It never waits for the outcome of a transition.
"""

import logging
from collections import deque
from typing import Any, Callable, Deque, MutableMapping, Optional

from ..core.domain.events import Event
from ..core.domain.state import PersistedConfig
from ..core.interfaces.messaging import IEventBus
from ..core.services.controller import ForwardController, TransitionFuture

logger = logging.getLogger(__name__)

Notify = Callable[[Event], None]


class ForwardPresenter:
    """Binds the persisted desired state to the controller and the bus."""

    def __init__(self, controller: ForwardController, event_bus: IEventBus,
                 store: MutableMapping[str, Any], notify: Optional[Notify] = None,
                 history: int = 50):
        self._controller = controller
        self._event_bus = event_bus
        self._store = store
        self._notify = notify
        self._notices: Deque[Event] = deque(maxlen=history)
        self._config = PersistedConfig.load(store)

    @property
    def config(self) -> PersistedConfig:
        return self._config

    @property
    def notices(self) -> Deque[Event]:
        """Most recent events, oldest first."""
        return self._notices

    def attach(self) -> None:
        self._event_bus.register(self.on_event)

    def detach(self) -> None:
        self._event_bus.unregister(self.on_event)

    def resync(self) -> PersistedConfig:
        """Reload the desired state from the store."""
        self._config = PersistedConfig.load(self._store)
        return self._config

    def checkpoint(self) -> None:
        """Persist the current desired state."""
        self._config.save(self._store)

    def toggle(self) -> Optional[TransitionFuture]:
        """
        Flip ``listening``, persist it and submit it to the controller.

        Returns:
            The scheduled transition, or None when nothing was scheduled
        """
        self._config = self._config.toggled()
        self.checkpoint()
        logger.info(f"Toggled listening to {self._config.listening} on :{self._config.port}")
        return self.submit()

    def set_port(self, port: int) -> PersistedConfig:
        """
        Change the desired port and persist it.

        Raises:
            ConfigInvalid: If the port is out of range
        """
        self._config = self._config.edit().port(port).build()
        self.checkpoint()
        return self._config

    def submit(self) -> Optional[TransitionFuture]:
        """Hand the current desired state to the controller as a payload."""
        payload = self._config.to_payload()
        return self._controller.reconcile(PersistedConfig.load(payload))

    def on_event(self, event: Event) -> None:
        self._notices.append(event)
        if event.is_error:
            logger.warning(f"Notice: {event.message}")
        else:
            logger.info(f"Notice: {event.message}")

        if self._notify is not None:
            self._notify(event)
