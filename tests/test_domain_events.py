"""
Tests for Event domain model.

This module tests the Event domain model including validation,
serialization and the controller message builders.
"""

import pytest
import time

from portswitch.core.domain.errors import BusyError, EngineFailure
from portswitch.core.domain.events import Event, EventKind, ForwardEvents


class TestEvent:
    """Test cases for Event domain model."""

    def test_info_event(self) -> None:
        """Info events carry the message and kind."""
        event = Event.info("listening on :9090")

        assert event.kind == EventKind.INFO
        assert event.message == "listening on :9090"
        assert event.is_error is False
        assert event.source is None
        assert isinstance(event.timestamp, float)
        assert len(event.event_id) > 0

    def test_error_event(self) -> None:
        """Error events are flagged as errors."""
        event = Event.error("port busy", source="test")

        assert event.kind == EventKind.ERROR
        assert event.is_error is True
        assert event.source == "test"

    def test_event_ids_are_unique(self) -> None:
        """Every event gets its own identifier."""
        assert Event.info("a").event_id != Event.info("a").event_id

    def test_invalid_kind(self) -> None:
        """Kind must be an EventKind."""
        with pytest.raises(ValueError, match="EventKind"):
            Event(kind="info", message="x")  # type: ignore[arg-type]

    def test_event_is_immutable(self) -> None:
        """Events cannot be changed after creation."""
        event = Event.info("x")

        with pytest.raises(AttributeError):
            event.message = "y"  # type: ignore[misc]

    def test_dict_round_trip(self) -> None:
        """to_dict/from_dict preserve all fields."""
        event = Event(
            kind=EventKind.ERROR,
            message="port busy",
            timestamp=time.time(),
            event_id="evt-1",
            source="ForwardController",
        )

        data = event.to_dict()

        assert data['kind'] == 'error'
        assert Event.from_dict(data) == event

    def test_from_dict_minimal(self) -> None:
        """Only the message is required."""
        event = Event.from_dict({'message': 'hello'})

        assert event.kind == EventKind.INFO
        assert event.message == 'hello'


class TestForwardEvents:
    """Test cases for the controller message builders."""

    def test_listening_message(self) -> None:
        event = ForwardEvents.listening(9090)

        assert event.kind == EventKind.INFO
        assert event.message == "listening on :9090"
        assert event.source == ForwardEvents.SOURCE

    def test_stopped_message(self) -> None:
        event = ForwardEvents.stopped(9090)

        assert event.kind == EventKind.INFO
        assert event.message == "stopped listening on :9090"

    def test_failure_message(self) -> None:
        event = ForwardEvents.failure("port busy")

        assert event.kind == EventKind.ERROR
        assert event.message == "port busy"


class TestErrors:
    """Test cases for the error taxonomy."""

    def test_engine_failure_reason(self) -> None:
        error = EngineFailure("permission denied")

        assert error.reason == "permission denied"
        assert str(error) == "permission denied"

    def test_busy_message(self) -> None:
        assert "busy" in str(BusyError())
