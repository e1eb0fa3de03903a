"""
Configuration models and data structures.

This module defines the application configuration, providing type safety
and validation for configuration values.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict

from ...core.domain.state import DEFAULT_PORT, MIN_PORT, MAX_PORT


@dataclass
class ForwarderConfig:
    """Forwarding engine configuration."""
    bind_host: str = "0.0.0.0"
    default_port: int = DEFAULT_PORT
    dial_timeout: float = 10.0
    buffer_size: int = 65536


@dataclass
class StorageConfig:
    """Desired-state storage configuration."""
    state_file: str = "data/forward_state.json"


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_directory: str = "logs"
    max_file_size: str = "10MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    # Basic application settings
    name: str = "Portswitch"
    version: str = "0.1.0"
    debug: bool = False
    notice_history: int = 50

    # Component configurations
    forwarder: ForwarderConfig = field(default_factory=ForwarderConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_ports()
        self._validate_sizes()

    def _validate_ports(self) -> None:
        """Validate port numbers."""
        port = self.forwarder.default_port
        if isinstance(port, bool) or not (MIN_PORT <= port <= MAX_PORT):
            raise ValueError(
                f"Default port must be between {MIN_PORT} and {MAX_PORT}, got {port}")

    def _validate_sizes(self) -> None:
        """Validate timeouts and sizes."""
        positives = [
            ("Dial timeout", self.forwarder.dial_timeout),
            ("Buffer size", self.forwarder.buffer_size),
            ("Notice history", self.notice_history),
        ]

        for name, value in positives:
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Portswitch'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            notice_history=data.get('notice_history', 50),
            forwarder=ForwarderConfig(**data.get('forwarder', {})),
            storage=StorageConfig(**data.get('storage', {})),
            logging=LoggingConfig(**data.get('logging', {})),
        )
