"""
Application startup and wiring.

This module builds the event bus, engine, controller and presenter from the
application configuration and manages their startup and shutdown sequence.
"""

import logging
from typing import Any, Dict, List, MutableMapping, Optional

from .presenter import ForwardPresenter, Notify
from ..core.domain.state import PORT_KEY, PersistedConfig
from ..core.interfaces.engine import IForwardEngine
from ..core.interfaces.lifecycle import IComponent
from ..core.services.controller import ForwardController
from ..core.services.event_bus import EventBus
from ..infrastructure.config.models import ApplicationConfig
from ..infrastructure.engine.tcp_forwarder import TcpForwardEngine
from ..infrastructure.storage.store import JsonFileStore

logger = logging.getLogger(__name__)


def seed_desired_state(store: MutableMapping[str, Any], default_port: int) -> PersistedConfig:
    """
    Give a first-run store the configured default port.

    Stores that already hold a port are left untouched.
    """
    desired = PersistedConfig.load(store)
    if PORT_KEY not in store:
        desired = desired.edit().port(default_port).build()
        desired.save(store)
        logger.info(f"Initialised desired state with port {default_port}")
    return desired


class ApplicationStartup:
    """
    Manages application startup and shutdown.

    Components are started in order and stopped in reverse order. On start
    the persisted desired state is reconciled, so a restarted process
    resumes listening where it left off.
    """

    def __init__(self, config: ApplicationConfig,
                 engine: Optional[IForwardEngine] = None,
                 store: Optional[MutableMapping[str, Any]] = None,
                 notify: Optional[Notify] = None) -> None:
        self._config = config
        self._engine = engine or TcpForwardEngine(
            bind_host=config.forwarder.bind_host,
            dial_timeout=config.forwarder.dial_timeout,
            buffer_size=config.forwarder.buffer_size,
        )
        self._store = store if store is not None else JsonFileStore(config.storage.state_file)

        self.event_bus = EventBus()
        self.controller = ForwardController(self._engine, self.event_bus)
        self.presenter = ForwardPresenter(
            self.controller, self.event_bus, self._store,
            notify=notify, history=config.notice_history)

        self._components: List[IComponent] = [self.event_bus, self.controller]
        self._started_components: List[IComponent] = []

    @property
    def engine(self) -> IForwardEngine:
        return self._engine

    async def start_application(self) -> None:
        """
        Start all components and resume the persisted desired state.
        """
        logger.info("Starting application components...")

        for component in self._components:
            try:
                logger.debug(f"Starting component: {component.name}")
                await component.start()
                self._started_components.append(component)
                logger.info(f"Started component: {component.name}")

            except Exception as e:
                logger.error(
                    f"Failed to start component {component.name}: {e}")
                await self._stop_started_components()
                raise

        self.presenter.attach()

        seed_desired_state(self._store, self._config.forwarder.default_port)
        desired = self.presenter.resync()
        logger.info(f"Resuming desired state: port={desired.port}, listening={desired.listening}")
        self.presenter.submit()
        await self.controller.wait_idle()

        logger.info("Application startup completed successfully")

    async def stop_application(self) -> None:
        """
        Checkpoint the desired state and stop all components in reverse order.
        """
        logger.info("Stopping application components...")

        try:
            self.presenter.checkpoint()
        except OSError as e:
            logger.error(f"Failed to persist desired state: {e}")

        await self._stop_started_components()
        self.presenter.detach()

        await self._engine.close()

        logger.info("Application shutdown completed")

    async def check_health(self) -> Dict[str, Any]:
        """Collect health from every component."""
        return {
            component.name: await component.check_health()
            for component in self._components
        }

    async def _stop_started_components(self) -> None:
        """Stop all components that have been started so far."""
        for component in reversed(self._started_components):
            try:
                logger.debug(f"Stopping component: {component.name}")
                await component.stop()
                logger.info(f"Stopped component: {component.name}")
            except Exception as e:
                logger.error(f"Error stopping component {component.name}: {e}")
                # Continue stopping other components

        self._started_components.clear()
