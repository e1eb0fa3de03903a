"""
Configuration infrastructure.

This module provides configuration loading, validation and saving for the
application.
"""

from .models import ApplicationConfig, ForwarderConfig, StorageConfig, LoggingConfig
from .loader import ConfigLoader

__all__ = [
    "ApplicationConfig",
    "ForwarderConfig",
    "StorageConfig",
    "LoggingConfig",
    "ConfigLoader",
]
