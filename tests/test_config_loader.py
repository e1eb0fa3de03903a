"""
Tests for configuration loader.

This module tests the ConfigLoader class including file loading,
environment variable processing and saving.
"""

import json
from pathlib import Path
from typing import Any, Dict
from unittest.mock import patch

import pytest
import yaml

from portswitch.infrastructure.config.loader import ConfigLoader
from portswitch.infrastructure.config.models import ApplicationConfig


class TestConfigLoader:
    """Test cases for ConfigLoader class."""

    @pytest.fixture
    def config_loader(self) -> ConfigLoader:
        """Create a ConfigLoader instance."""
        return ConfigLoader()

    @pytest.fixture
    def sample_config_dict(self) -> Dict[str, Any]:
        """Sample configuration dictionary."""
        return {
            "name": "Test Portswitch",
            "debug": True,
            "forwarder": {
                "bind_host": "127.0.0.1",
                "default_port": 8080,
            },
            "storage": {
                "state_file": "state.json",
            },
            "logging": {
                "level": "DEBUG",
                "file_enabled": False,
            },
        }

    def test_load_defaults(self, config_loader: ConfigLoader) -> None:
        """Test loading without a file."""
        with patch.dict('os.environ', {}, clear=True):
            config = config_loader.load_config()

        assert config == ApplicationConfig()

    def test_load_yaml(self, config_loader: ConfigLoader, tmp_path: Path,
                       sample_config_dict: Dict[str, Any]) -> None:
        """Test loading a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(sample_config_dict), encoding="utf-8")

        with patch.dict('os.environ', {}, clear=True):
            config = config_loader.load_config(str(path))

        assert config.name == "Test Portswitch"
        assert config.debug is True
        assert config.forwarder.bind_host == "127.0.0.1"
        assert config.forwarder.default_port == 8080
        assert config.logging.level == "DEBUG"

    def test_load_json(self, config_loader: ConfigLoader, tmp_path: Path,
                       sample_config_dict: Dict[str, Any]) -> None:
        """Test loading a JSON file."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps(sample_config_dict), encoding="utf-8")

        with patch.dict('os.environ', {}, clear=True):
            config = config_loader.load_config(str(path))

        assert config.storage.state_file == "state.json"

    def test_empty_yaml_is_defaults(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")

        with patch.dict('os.environ', {}, clear=True):
            assert config_loader.load_config(str(path)) == ApplicationConfig()

    def test_missing_file(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            config_loader.load_config(str(tmp_path / "missing.yaml"))

    def test_unsupported_format(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("x = 1", encoding="utf-8")

        with pytest.raises(ValueError, match="Unsupported configuration file format"):
            config_loader.load_config(str(path))

    def test_invalid_yaml(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("forwarder: [unclosed", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid YAML"):
            config_loader.load_config(str(path))

    def test_invalid_json(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            config_loader.load_config(str(path))

    def test_non_mapping_root(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ValueError, match="must be a mapping"):
            config_loader.load_config(str(path))

    def test_unknown_section_key(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("forwarder:\n  listen_port: 1\n", encoding="utf-8")

        with patch.dict('os.environ', {}, clear=True):
            with pytest.raises(ValueError, match="Invalid configuration"):
                config_loader.load_config(str(path))

    def test_environment_overrides(self, config_loader: ConfigLoader, tmp_path: Path,
                                   sample_config_dict: Dict[str, Any]) -> None:
        """Environment variables win over file values."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(sample_config_dict), encoding="utf-8")
        env = {
            "PORTSWITCH_PORT": "7070",
            "PORTSWITCH_BIND_HOST": "0.0.0.0",
            "PORTSWITCH_DEBUG": "false",
            "PORTSWITCH_DIAL_TIMEOUT": "2.5",
            "PORTSWITCH_STATE_FILE": "/var/lib/portswitch/state.json",
            "PORTSWITCH_LOG_LEVEL": "WARNING",
            "PORTSWITCH_LOG_FILE_ENABLED": "yes",
        }

        with patch.dict('os.environ', env, clear=True):
            config = config_loader.load_config(str(path))

        assert config.forwarder.default_port == 7070
        assert config.forwarder.bind_host == "0.0.0.0"
        assert config.forwarder.dial_timeout == 2.5
        assert config.debug is False
        assert config.storage.state_file == "/var/lib/portswitch/state.json"
        assert config.logging.level == "WARNING"
        assert config.logging.file_enabled is True
        assert config.logging.console_enabled is True

    def test_invalid_environment_value(self, config_loader: ConfigLoader) -> None:
        with patch.dict('os.environ', {"PORTSWITCH_PORT": "not-a-port"}, clear=True):
            with pytest.raises(ValueError, match="PORTSWITCH_PORT"):
                config_loader.load_config()

    def test_custom_prefix(self) -> None:
        loader = ConfigLoader(env_prefix="PS_")

        with patch.dict('os.environ', {"PS_PORT": "6000"}, clear=True):
            assert loader.load_config().forwarder.default_port == 6000

    @pytest.mark.parametrize("fmt, suffix", [("yaml", ".yaml"), ("json", ".json")])
    def test_save_and_load(self, config_loader: ConfigLoader, tmp_path: Path,
                           fmt: str, suffix: str) -> None:
        """Saved configurations load back unchanged."""
        config = ApplicationConfig(debug=True)
        config.forwarder.default_port = 8443
        path = tmp_path / f"config{suffix}"

        config_loader.save_config(config, str(path), format=fmt)

        with patch.dict('os.environ', {}, clear=True):
            assert config_loader.load_config(str(path)) == config

    def test_save_unsupported_format(self, config_loader: ConfigLoader, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unsupported format"):
            config_loader.save_config(ApplicationConfig(), str(tmp_path / "x.ini"), format="ini")
