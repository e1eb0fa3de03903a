"""
Application layer wiring the core services to storage and the user.
"""

from .presenter import ForwardPresenter
from .startup import ApplicationStartup

__all__ = [
    "ForwardPresenter",
    "ApplicationStartup",
]
