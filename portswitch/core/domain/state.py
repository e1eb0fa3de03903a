"""
Desired and actual state of the forwarding listener.

``PersistedConfig`` is the desired state chosen by the user and written to
storage; ``ListenerState`` is the runtime state owned by the controller.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, MutableMapping, Optional

from .errors import ConfigInvalid

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9090
MIN_PORT = 1
MAX_PORT = 65535

PORT_KEY = "port"
LISTENING_KEY = "listening"

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off"})


def _parse_port(value: Any) -> int:
    # bool is an int subclass but never a port
    if isinstance(value, bool):
        raise ConfigInvalid(PORT_KEY, value)
    if isinstance(value, int):
        port = value
    elif isinstance(value, str) and value.strip().isdigit():
        port = int(value.strip())
    else:
        raise ConfigInvalid(PORT_KEY, value)

    if not (MIN_PORT <= port <= MAX_PORT):
        raise ConfigInvalid(PORT_KEY, value)
    return port


def _parse_listening(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ConfigInvalid(LISTENING_KEY, value)


@dataclass(frozen=True)
class PersistedConfig:
    """
    Immutable desired state of the forwarding endpoint.

    Instances are never mutated; ``edit()`` returns a builder producing a new
    snapshot. Serialization targets are plain mappings, so the same code
    writes to the persistent store and to the transferable payload.
    """

    port: int = DEFAULT_PORT
    """Port the listener should bind."""

    listening: bool = False
    """Whether the listener should be running."""

    def __post_init__(self) -> None:
        """Validate the port range."""
        _parse_port(self.port)
        if not isinstance(self.listening, bool):
            raise ConfigInvalid(LISTENING_KEY, self.listening)

    @classmethod
    def load(cls, source: Optional[Mapping[str, Any]]) -> 'PersistedConfig':
        """
        Reconstruct a configuration from storage or a transferable payload.

        Missing, malformed or out-of-range fields fall back to their default
        values. This never raises.

        Args:
            source: Mapping holding ``port`` and ``listening``, or None

        Returns:
            Loaded configuration
        """
        if source is None:
            return cls()

        port = DEFAULT_PORT
        listening = False

        try:
            raw_port = source.get(PORT_KEY)
        except Exception as e:
            logger.debug(f"Unreadable configuration source, using defaults: {e}")
            return cls()

        if raw_port is not None:
            try:
                port = _parse_port(raw_port)
            except ConfigInvalid as e:
                logger.debug(f"{e}; falling back to port {DEFAULT_PORT}")

        raw_listening = source.get(LISTENING_KEY)
        if raw_listening is not None:
            try:
                listening = _parse_listening(raw_listening)
            except ConfigInvalid as e:
                logger.debug(f"{e}; falling back to not listening")

        return cls(port=port, listening=listening)

    def save(self, destination: MutableMapping[str, Any]) -> None:
        """
        Write both fields into a mutable mapping.

        Args:
            destination: Persistent store or payload dict
        """
        destination.update({PORT_KEY: self.port, LISTENING_KEY: self.listening})

    def to_payload(self) -> Dict[str, Any]:
        """Return the flat key-value form used across process boundaries."""
        payload: Dict[str, Any] = {}
        self.save(payload)
        return payload

    def edit(self) -> 'ConfigEditor':
        """Return a builder seeded with the current values."""
        return ConfigEditor(self.port, self.listening)

    def toggled(self) -> 'PersistedConfig':
        """Return a copy with ``listening`` flipped."""
        return self.edit().listening(not self.listening).build()


class ConfigEditor:
    """Mutable builder for ``PersistedConfig`` snapshots."""

    def __init__(self, port: int = DEFAULT_PORT, listening: bool = False) -> None:
        self._port = port
        self._listening = listening

    def port(self, port: int) -> 'ConfigEditor':
        self._port = port
        return self

    def listening(self, listening: bool) -> 'ConfigEditor':
        self._listening = listening
        return self

    def build(self) -> PersistedConfig:
        """
        Build a new immutable snapshot.

        Raises:
            ConfigInvalid: If the port was set out of range
        """
        return PersistedConfig(port=self._port, listening=bool(self._listening))


class ListenerPhase(Enum):
    """Phases of the listener lifecycle."""
    STOPPED = "stopped"
    STARTING = "starting"
    LISTENING = "listening"
    STOPPING = "stopping"
    FAILED = "failed"


@dataclass(frozen=True)
class ListenerState:
    """
    Runtime state of the listener, owned by a single controller.

    ``port`` is set for ``LISTENING`` and for the in-flight phases;
    ``reason`` only for ``FAILED``.
    """

    phase: ListenerPhase = ListenerPhase.STOPPED
    port: Optional[int] = None
    reason: Optional[str] = None

    @classmethod
    def stopped(cls) -> 'ListenerState':
        return cls(ListenerPhase.STOPPED)

    @classmethod
    def starting(cls, port: int) -> 'ListenerState':
        return cls(ListenerPhase.STARTING, port=port)

    @classmethod
    def listening(cls, port: int) -> 'ListenerState':
        return cls(ListenerPhase.LISTENING, port=port)

    @classmethod
    def stopping(cls, port: int) -> 'ListenerState':
        return cls(ListenerPhase.STOPPING, port=port)

    @classmethod
    def failed(cls, reason: str) -> 'ListenerState':
        return cls(ListenerPhase.FAILED, reason=reason)

    @property
    def is_busy(self) -> bool:
        """True while a transition is in flight."""
        return self.phase in (ListenerPhase.STARTING, ListenerPhase.STOPPING)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'phase': self.phase.value,
            'port': self.port,
            'reason': self.reason,
        }

    def __str__(self) -> str:
        if self.phase == ListenerPhase.LISTENING:
            return f"listening on :{self.port}"
        if self.phase == ListenerPhase.FAILED:
            return f"failed: {self.reason}"
        return self.phase.value
