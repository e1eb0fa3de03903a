"""
Forward controller: the listener state machine.

The controller reconciles the desired ``PersistedConfig`` with its own
``ListenerState``. A transition is claimed with a compare-and-set on the
state, the engine work runs as a task on the event loop, and every outcome
is reported on the event bus. Nothing is ever raised to the caller of
``reconcile``.
"""

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Callable, Coroutine, Dict, Optional, Tuple, Union

from ..interfaces.engine import IForwardEngine, EngineResult
from ..interfaces.lifecycle import IComponent
from ..interfaces.messaging import IEventBus
from ..domain.errors import BusyError, EngineFailure
from ..domain.events import Event, ForwardEvents
from ..domain.state import ListenerPhase, ListenerState, PersistedConfig

logger = logging.getLogger(__name__)

TransitionFuture = Union["asyncio.Future[None]", "concurrent.futures.Future[None]"]
Transition = Callable[[], Coroutine[Any, Any, None]]


class ForwardController(IComponent):
    """
    Drives the forwarding engine toward the desired state.

    At most one transition is in flight per controller. A request arriving
    while one is running is rejected with a busy error event; the caller
    decides whether to retry once the transition has settled.
    """

    def __init__(self, engine: IForwardEngine, event_bus: IEventBus,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self._engine = engine
        self._event_bus = event_bus
        self._loop = loop
        self._state = ListenerState.stopped()
        self._state_lock = threading.Lock()
        self._desired: Optional[PersistedConfig] = None
        self._inflight: Optional[TransitionFuture] = None

        # Metrics
        self._metrics: Dict[str, int] = {
            'reconciles': 0,
            'transitions': 0,
            'noops': 0,
            'busy_rejections': 0,
            'failures': 0,
        }

    @property
    def name(self) -> str:
        """Get component name."""
        return "ForwardController"

    @property
    def state(self) -> ListenerState:
        """Current listener state."""
        return self._state

    @property
    def desired(self) -> Optional[PersistedConfig]:
        """Last desired configuration accepted by ``reconcile``."""
        return self._desired

    async def start(self) -> None:
        """Bind the controller to the running event loop."""
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        logger.info("Forward controller started")

    async def stop(self) -> None:
        """Wait for the in-flight transition and release a running listener."""
        await self.wait_idle()

        state = self._state
        if state.phase == ListenerPhase.LISTENING and state.port is not None:
            logger.info(f"Releasing listener on :{state.port}")
            self.reconcile(PersistedConfig(port=state.port, listening=False))
            await self.wait_idle()

        logger.info("Forward controller stopped")

    async def check_health(self) -> Dict[str, Any]:
        """Check controller health."""
        state = self._state
        return {
            'healthy': state.phase != ListenerPhase.FAILED,
            'status': state.phase.value,
            'details': {
                **state.to_dict(),
                **self._metrics,
            }
        }

    def get_metrics(self) -> Dict[str, int]:
        return dict(self._metrics)

    def reconcile(self, desired: PersistedConfig) -> Optional[TransitionFuture]:
        """
        Bring the listener toward the desired state.

        Returns immediately. The engine call, if any, runs on the event loop
        and its outcome is published on the event bus.

        Args:
            desired: Desired configuration

        Returns:
            Future of the scheduled transition, or None for a no-op or a
            busy rejection
        """
        self._metrics['reconciles'] += 1

        while True:
            current = self._state
            if current.is_busy:
                self._reject_busy(current)
                return None

            plan = self._plan(current, desired)
            if plan is None:
                self._desired = desired
                self._metrics['noops'] += 1
                logger.debug(f"Already {current}, nothing to do for {desired}")
                return None

            transitional, transition = plan
            if self._compare_and_set(current, transitional):
                break
            # State moved between read and claim; evaluate again

        self._desired = desired
        self._metrics['transitions'] += 1
        logger.info(f"Transition {current.phase.value} -> {transitional.phase.value} "
                    f"(desired port={desired.port}, listening={desired.listening})")

        try:
            return self._schedule(transition)
        except RuntimeError as e:
            self._compare_and_set(transitional, current)
            logger.error(f"Cannot schedule transition: {e}")
            self._metrics['failures'] += 1
            self._event_bus.publish(ForwardEvents.failure(str(e)))
            return None

    async def wait_idle(self) -> None:
        """Wait until the in-flight transition, if any, has settled."""
        inflight = self._inflight
        if inflight is None:
            return
        if isinstance(inflight, concurrent.futures.Future):
            await asyncio.wrap_future(inflight)
        else:
            await asyncio.shield(inflight)

    def _plan(self, current: ListenerState,
              desired: PersistedConfig) -> Optional[Tuple[ListenerState, Transition]]:
        """Decide the transition for the current state, None for a no-op."""
        if current.phase in (ListenerPhase.STOPPED, ListenerPhase.FAILED):
            # A failed listener retries from a clean slate
            if not desired.listening:
                return None
            port = desired.port
            return ListenerState.starting(port), lambda: self._run_start(port)

        if current.phase == ListenerPhase.LISTENING:
            running_port = current.port
            assert running_port is not None
            if not desired.listening:
                return ListenerState.stopping(running_port), lambda: self._run_stop(running_port)
            if desired.port == running_port:
                return None
            new_port = desired.port
            return (ListenerState.stopping(running_port),
                    lambda: self._run_restart(running_port, new_port))

        return None

    def _compare_and_set(self, expected: ListenerState, new: ListenerState) -> bool:
        with self._state_lock:
            if self._state is not expected:
                return False
            self._state = new
            return True

    def _schedule(self, transition: Transition) -> TransitionFuture:
        loop = self._loop
        try:
            running: Optional[asyncio.AbstractEventLoop] = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if loop is None:
            loop = running
        if loop is None or loop.is_closed():
            raise RuntimeError("no event loop available to run the transition")

        future: TransitionFuture
        if running is loop:
            future = loop.create_task(self._guarded(transition))
        else:
            future = asyncio.run_coroutine_threadsafe(self._guarded(transition), loop)

        self._inflight = future
        return future

    async def _guarded(self, transition: Transition) -> None:
        try:
            await transition()
        except asyncio.CancelledError:
            self._settle(ListenerState.failed("transition cancelled"),
                         ForwardEvents.failure("transition cancelled"))
            raise
        except Exception as e:
            logger.exception(f"Unexpected error during transition: {e}")
            self._settle(ListenerState.failed(str(e)), ForwardEvents.failure(str(e)))

    async def _run_start(self, port: int) -> None:
        result = await self._call_engine(self._engine.start, port, "start")
        if result.ok:
            logger.info(f"Listening on :{port}")
            self._settle(ListenerState.listening(port), ForwardEvents.listening(port))
        else:
            self._fail(result.reason)

    async def _run_stop(self, port: int) -> None:
        result = await self._call_engine(self._engine.stop, port, "stop")
        if result.ok:
            logger.info(f"Stopped listening on :{port}")
            self._settle(ListenerState.stopped(), ForwardEvents.stopped(port))
        else:
            # The listener is assumed to be still running
            self._fail(result.reason)

    async def _run_restart(self, old_port: int, new_port: int) -> None:
        result = await self._call_engine(self._engine.stop, old_port, "stop")
        if not result.ok:
            self._fail(result.reason)
            return

        logger.info(f"Stopped listening on :{old_port}, moving to :{new_port}")
        self._settle(ListenerState.starting(new_port), ForwardEvents.stopped(old_port))
        await self._run_start(new_port)

    async def _call_engine(self, operation: Callable[[int], Awaitable[EngineResult]],
                           port: int, verb: str) -> EngineResult:
        try:
            result = await operation(port)
        except Exception as e:
            failure = EngineFailure(str(e) or f"failed to {verb} listener on :{port}")
            logger.error(f"Engine raised during {verb} on :{port}: {failure.reason}")
            return EngineResult.failure(failure.reason)

        if not result.ok and not result.reason:
            return EngineResult.failure(f"failed to {verb} listener on :{port}")
        return result

    def _fail(self, reason: str) -> None:
        logger.error(f"Engine failure: {reason}")
        self._metrics['failures'] += 1
        self._settle(ListenerState.failed(reason), ForwardEvents.failure(reason))

    def _settle(self, state: ListenerState, event: Event) -> None:
        with self._state_lock:
            self._state = state
        self._event_bus.publish(event)

    def _reject_busy(self, current: ListenerState) -> None:
        error = BusyError()
        self._metrics['busy_rejections'] += 1
        logger.warning(f"Rejecting reconcile while {current.phase.value}: {error}")
        self._event_bus.publish(Event.error(str(error), source=ForwardEvents.SOURCE))
