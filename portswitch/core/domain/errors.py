"""
Error taxonomy for the forwarding control plane.

None of these cross the ``reconcile`` boundary: engine failures and busy
rejections are reported as error events, invalid configuration is recovered
while loading.
"""

from typing import Any


class ForwardError(Exception):
    """Base class for forwarding control errors."""


class EngineFailure(ForwardError):
    """The engine failed to start or stop a listener."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class BusyError(ForwardError):
    """A transition is already in flight."""

    def __init__(self, message: str = "busy: a transition is already in progress") -> None:
        super().__init__(message)


class ConfigInvalid(ForwardError):
    """A configuration value is out of range or malformed."""

    def __init__(self, field: str, value: Any) -> None:
        super().__init__(f"invalid {field}: {value!r}")
        self.field = field
        self.value = value
