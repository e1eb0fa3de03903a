"""
Event domain models for controller notifications.

Events are the only channel through which the controller reports the outcome
of a transition. They are transient and never persisted.
"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventKind(Enum):
    """Kinds of notification."""
    INFO = "info"
    ERROR = "error"


@dataclass(frozen=True)
class Event:
    """
    Immutable notification emitted by the controller.

    Consumers usually surface ``message`` as an ephemeral notice and use
    ``kind`` to pick its presentation.
    """

    kind: EventKind
    """Whether this reports progress or a failure."""

    message: str
    """Human readable message."""

    timestamp: float = field(default_factory=time.time)
    """Unix timestamp when event was created."""

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    """Unique event identifier."""

    source: Optional[str] = None
    """Component that generated the event."""

    def __post_init__(self) -> None:
        """Validate event after creation."""
        if not isinstance(self.kind, EventKind):
            raise ValueError("Kind must be an EventKind enum value")

    @classmethod
    def info(cls, message: str, source: Optional[str] = None) -> 'Event':
        return cls(kind=EventKind.INFO, message=message, source=source)

    @classmethod
    def error(cls, message: str, source: Optional[str] = None) -> 'Event':
        return cls(kind=EventKind.ERROR, message=message, source=source)

    @property
    def is_error(self) -> bool:
        return self.kind == EventKind.ERROR

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert event to dictionary representation.

        Returns:
            Dictionary representation of the event
        """
        return {
            'kind': self.kind.value,
            'message': self.message,
            'timestamp': self.timestamp,
            'event_id': self.event_id,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        """
        Create event from dictionary representation.

        Args:
            data: Dictionary containing event data

        Returns:
            Event instance
        """
        return cls(
            kind=EventKind(data.get('kind', EventKind.INFO.value)),
            message=data['message'],
            timestamp=data.get('timestamp', time.time()),
            event_id=data.get('event_id', str(uuid.uuid4())),
            source=data.get('source'),
        )


class ForwardEvents:
    """Builders for the messages the controller reports."""

    SOURCE = "ForwardController"

    @classmethod
    def listening(cls, port: int) -> Event:
        return Event.info(f"listening on :{port}", source=cls.SOURCE)

    @classmethod
    def stopped(cls, port: int) -> Event:
        return Event.info(f"stopped listening on :{port}", source=cls.SOURCE)

    @classmethod
    def failure(cls, reason: str) -> Event:
        return Event.error(reason, source=cls.SOURCE)
