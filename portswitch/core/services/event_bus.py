"""
Event bus implementation for controller notifications.

Delivery is fire-and-forget: events go to the listeners registered at the
moment of publishing and are dropped when there are none. Plain callables
are invoked inline; coroutine listeners are fed through a per-listener queue
so that each one observes events in publish order.
"""

import asyncio
import inspect
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from ..interfaces.messaging import IEventBus, EventListener
from ..interfaces.lifecycle import IComponent
from ..domain.events import Event

logger = logging.getLogger(__name__)


class ListenerSubscription:
    """Represents one registered listener."""

    def __init__(self, listener: EventListener,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.listener = listener
        self.is_async = inspect.iscoroutinefunction(listener)
        self.loop = loop
        self.created_at = time.time()
        self.call_count = 0
        self.error_count = 0
        self.last_called: Optional[float] = None
        self._queue: Optional[asyncio.Queue[Event]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._closed = False

    def submit(self, event: Event) -> None:
        """Hand an event to the listener, inline or through its queue."""
        if self.is_async:
            assert self.loop is not None
            self.loop.call_soon_threadsafe(self._enqueue, event)
        else:
            self._invoke(event)

    def close(self) -> Optional[asyncio.Task[None]]:
        """Stop delivering; returns the drain task if one was running."""
        self._closed = True
        worker = self._worker
        if worker is not None and not worker.done() and self.loop is not None:
            if not self.loop.is_closed():
                self.loop.call_soon_threadsafe(worker.cancel)
        return worker

    def _invoke(self, event: Event) -> None:
        try:
            self.listener(event)
        except Exception as e:
            self.error_count += 1
            logger.error(f"Listener error for event {event.event_id}: {e}")
            raise
        finally:
            self.call_count += 1
            self.last_called = time.time()

    def _enqueue(self, event: Event) -> None:
        if self._closed:
            return
        if self._queue is None:
            self._queue = asyncio.Queue()
        self._queue.put_nowait(event)
        if self._worker is None or self._worker.done():
            assert self.loop is not None
            self._worker = self.loop.create_task(self._drain())

    async def _drain(self) -> None:
        assert self._queue is not None
        while not self._closed:
            event = await self._queue.get()
            try:
                await self.listener(event)  # type: ignore[misc]
            except Exception as e:
                self.error_count += 1
                logger.error(f"Async listener error for event {event.event_id}: {e}")
            finally:
                self.call_count += 1
                self.last_called = time.time()
                self._queue.task_done()


class EventBus(IComponent, IEventBus):
    """
    Decoupled notification channel from the controller to its observers.

    Registration is idempotent and compares listeners by equality, so bound
    methods of the same object register once.
    """

    def __init__(self) -> None:
        self._subscriptions: List[ListenerSubscription] = []
        self._lock = threading.Lock()
        self._running = False

        # Metrics
        self._metrics: Dict[str, int] = {
            'events_published': 0,
            'events_delivered': 0,
            'events_dropped': 0,
            'events_failed': 0,
        }

    @property
    def name(self) -> str:
        """Get component name."""
        return "EventBus"

    async def start(self) -> None:
        """Mark the event bus as running."""
        if self._running:
            return
        self._running = True
        logger.info("Event bus started")

    async def stop(self) -> None:
        """Unregister every listener and cancel pending async deliveries."""
        if not self._running:
            return

        logger.info("Stopping event bus...")
        self._running = False

        with self._lock:
            subscriptions = self._subscriptions
            self._subscriptions = []

        current_loop = asyncio.get_running_loop()
        workers = []
        for subscription in subscriptions:
            worker = subscription.close()
            if worker is not None and subscription.loop is current_loop:
                workers.append(worker)

        if workers:
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info("Event bus stopped")

    async def check_health(self) -> Dict[str, Any]:
        """Check event bus health."""
        return {
            'healthy': True,
            'status': 'running' if self._running else 'stopped',
            'details': self.get_metrics(),
        }

    def publish(self, event: Event) -> int:
        """Deliver an event to every currently registered listener."""
        with self._lock:
            subscriptions = list(self._subscriptions)

        self._metrics['events_published'] += 1

        if not subscriptions:
            self._metrics['events_dropped'] += 1
            logger.debug(f"No listeners, dropping event: {event.message}")
            return 0

        delivered = 0
        for subscription in subscriptions:
            try:
                subscription.submit(event)
                delivered += 1
            except Exception:
                # Already logged by the subscription
                self._metrics['events_failed'] += 1

        self._metrics['events_delivered'] += delivered
        logger.debug(f"Published {event.kind.value} event to {delivered} listener(s): {event.message}")
        return delivered

    def register(self, listener: EventListener) -> bool:
        """Register a listener; coroutine listeners need a running loop."""
        with self._lock:
            if self._find(listener) is not None:
                return False

            loop = None
            if inspect.iscoroutinefunction(listener):
                loop = asyncio.get_running_loop()

            self._subscriptions.append(ListenerSubscription(listener, loop))

        logger.debug(f"Registered listener {listener!r}")
        return True

    def unregister(self, listener: EventListener) -> bool:
        """Unregister a listener."""
        with self._lock:
            subscription = self._find(listener)
            if subscription is None:
                return False
            self._subscriptions.remove(subscription)

        subscription.close()
        logger.debug(f"Unregistered listener {listener!r}")
        return True

    def is_registered(self, listener: EventListener) -> bool:
        with self._lock:
            return self._find(listener) is not None

    def get_metrics(self) -> Dict[str, Any]:
        """Get event bus metrics."""
        with self._lock:
            listeners = len(self._subscriptions)
            listener_errors = sum(s.error_count for s in self._subscriptions)

        return {
            **self._metrics,
            'listeners': listeners,
            'listener_errors': listener_errors,
        }

    def listeners(self) -> List[EventListener]:
        with self._lock:
            return [s.listener for s in self._subscriptions]

    def _find(self, listener: EventListener) -> Optional[ListenerSubscription]:
        # Caller holds the lock
        for subscription in self._subscriptions:
            if subscription.listener == listener:
                return subscription
        return None
