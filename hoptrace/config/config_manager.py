#!/usr/bin/env python3
"""
Configuration Manager for hoptrace

Features:
- JSON configuration file
- Environment variable overrides
- Schema validation with jsonschema
- RunConfig construction with type and range checks
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from hoptrace.core.icmp_probe import DEFAULT_IDENTIFIER
from hoptrace.core.probe_base import ProbeMode
from hoptrace.core.probe_engine import DEFAULT_MAX_TTL
from hoptrace.core.tcp_probe import TCP_BASE_PORT
from hoptrace.core.udp_probe import DEFAULT_PAYLOAD_SIZE, UDP_BASE_PORT

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "hoptrace.json"

_INT_FIELDS = (
    "first_ttl", "max_ttl", "nqueries", "udp_base_port", "tcp_base_port",
    "identifier", "packet_size",
)
_NUMBER_FIELDS = ("max_wait_time", "near_multiplier", "here_multiplier")
_BOOL_FIELDS = ("tcp_port_increment", "numeric")


class ConfigurationError(Exception):
    """Raised for invalid configuration, before any probe is sent."""
    pass


@dataclass
class RunConfig:
    """Everything one traceroute run needs."""
    hostname: str
    mode: ProbeMode = ProbeMode.ICMP
    first_ttl: int = 1
    max_ttl: int = DEFAULT_MAX_TTL
    nqueries: int = 3
    max_wait_time: float = 5.0
    near_multiplier: float = 10.0
    here_multiplier: float = 3.0
    udp_base_port: int = UDP_BASE_PORT
    tcp_base_port: int = TCP_BASE_PORT
    tcp_port_increment: bool = True
    identifier: int = DEFAULT_IDENTIFIER
    packet_size: int = DEFAULT_PAYLOAD_SIZE
    numeric: bool = False

    def validate(self) -> 'RunConfig':
        """
        Check value types and ranges.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: On the first invalid value
        """
        if not isinstance(self.hostname, str) or not self.hostname:
            raise ConfigurationError("hostname must not be empty")
        if not isinstance(self.mode, ProbeMode):
            raise ConfigurationError(f"unknown probe mode: {self.mode}")
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        for name in _NUMBER_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"{name} must be a number, got {value!r}")
        for name in _BOOL_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise ConfigurationError(f"{name} must be true or false, got {getattr(self, name)!r}")
        if self.first_ttl < 1:
            raise ConfigurationError(f"first_ttl must be at least 1, got {self.first_ttl}")
        if self.max_ttl > 255:
            raise ConfigurationError(f"max_ttl must be at most 255, got {self.max_ttl}")
        if self.max_ttl < self.first_ttl:
            raise ConfigurationError(
                f"max_ttl ({self.max_ttl}) must not be below first_ttl ({self.first_ttl})"
            )
        if self.nqueries < 1:
            raise ConfigurationError(f"nqueries must be at least 1, got {self.nqueries}")
        for name in _NUMBER_FIELDS:
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        for name in ("udp_base_port", "tcp_base_port"):
            if not 1 <= getattr(self, name) <= 65535:
                raise ConfigurationError(f"{name} out of range: {getattr(self, name)}")
        if not 0 <= self.identifier <= 0xFFFF:
            raise ConfigurationError(f"identifier out of range: {self.identifier}")
        if self.packet_size < 0:
            raise ConfigurationError(f"packet_size must not be negative, got {self.packet_size}")
        return self


class ConfigSchema:
    """Configuration schema with validation"""

    SCHEMA = {
        "type": "object",
        "required": ["version", "probe", "timing", "ports"],
        "properties": {
            "version": {"type": "string", "pattern": r"^\d+\.\d+\.\d+$"},
            "probe": {
                "type": "object",
                "required": ["mode", "first_ttl", "max_ttl", "nqueries"],
                "properties": {
                    "mode": {"type": "string", "enum": [m.value for m in ProbeMode]},
                    "first_ttl": {"type": "integer", "minimum": 1, "maximum": 255},
                    "max_ttl": {"type": "integer", "minimum": 1, "maximum": 255},
                    "nqueries": {"type": "integer", "minimum": 1, "maximum": 10},
                    "identifier": {"type": ["integer", "null"], "minimum": 0, "maximum": 65535},
                    "packet_size": {"type": "integer", "minimum": 0, "maximum": 1400}
                }
            },
            "timing": {
                "type": "object",
                "required": ["max_wait_time", "near_multiplier", "here_multiplier"],
                "properties": {
                    "max_wait_time": {"type": "number", "exclusiveMinimum": 0, "maximum": 60.0},
                    "near_multiplier": {"type": "number", "exclusiveMinimum": 0},
                    "here_multiplier": {"type": "number", "exclusiveMinimum": 0}
                }
            },
            "ports": {
                "type": "object",
                "required": ["udp_base_port", "tcp_base_port"],
                "properties": {
                    "udp_base_port": {"type": "integer", "minimum": 1, "maximum": 65535},
                    "tcp_base_port": {"type": "integer", "minimum": 1, "maximum": 65535},
                    "tcp_port_increment": {"type": "boolean"}
                }
            },
            "output": {
                "type": "object",
                "properties": {
                    "numeric": {"type": "boolean"},
                    "colors_enabled": {"type": "boolean"},
                    "log_level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR"]}
                }
            }
        }
    }

    @staticmethod
    def get_defaults() -> Dict[str, Any]:
        """Return default configuration"""
        return {
            "version": "1.0.0",
            "probe": {
                "mode": ProbeMode.ICMP.value,
                "first_ttl": 1,
                "max_ttl": DEFAULT_MAX_TTL,
                "nqueries": 3,
                "identifier": None,
                "packet_size": DEFAULT_PAYLOAD_SIZE
            },
            "timing": {
                "max_wait_time": 5.0,
                "near_multiplier": 10.0,
                "here_multiplier": 3.0
            },
            "ports": {
                "udp_base_port": UDP_BASE_PORT,
                "tcp_base_port": TCP_BASE_PORT,
                "tcp_port_increment": True
            },
            "output": {
                "numeric": False,
                "colors_enabled": True,
                "log_level": "WARNING"
            }
        }


class ConfigManager:
    """
    Configuration manager with file, env, and validation support

    Usage:
        config = ConfigManager("hoptrace.json")
        config.load()
        max_ttl = config.get("probe.max_ttl")
        run = config.build_run_config("example.com", mode="udp")
    """

    ENV_PREFIX = "HOPTRACE_"

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration manager

        Args:
            config_file: Path to JSON config file (default: hoptrace.json)
        """
        self.explicit = config_file is not None
        self.config_file = config_file or DEFAULT_CONFIG_FILE
        self.config = ConfigSchema.get_defaults()

    def load(self, config_file: Optional[str] = None) -> bool:
        """
        Load configuration from file

        A missing default file is not an error; a missing file that was
        asked for explicitly is.

        Returns:
            True if a file was loaded, False if defaults are in use

        Raises:
            ConfigurationError: If the file is missing (explicit path),
                unreadable, not JSON, or fails validation
        """
        if config_file:
            self.config_file = config_file
            self.explicit = True

        path = Path(self.config_file)
        if not path.exists():
            if self.explicit:
                raise ConfigurationError(f"Config file not found: {self.config_file}")
            logger.debug(f"No config file at {self.config_file}, using defaults")
            return False

        try:
            with open(path, 'r') as f:
                loaded_config = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config parse error in {self.config_file}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Config load error: {e}") from e

        if not isinstance(loaded_config, dict):
            raise ConfigurationError(f"Config root must be an object: {self.config_file}")

        merged = ConfigSchema.get_defaults()
        self._merge_config(merged, loaded_config)
        self.validate(merged)
        self.config = merged
        logger.info(f"Config loaded: {self.config_file}")
        return True

    def _merge_config(self, base: Dict, override: Dict) -> None:
        """Deep merge configuration"""
        for key, value in override.items():
            if (key in base and
                    isinstance(base[key], dict) and
                    isinstance(value, dict)):
                self._merge_config(base[key], value)
            else:
                base[key] = value

    def validate(self, config: Optional[Dict[str, Any]] = None) -> None:
        """
        Validate configuration against ConfigSchema.SCHEMA.

        Raises:
            ConfigurationError: With the failing path and message
        """
        try:
            jsonschema.validate(instance=config if config is not None else self.config,
                                schema=ConfigSchema.SCHEMA)
        except jsonschema.ValidationError as e:
            where = ".".join(str(p) for p in e.absolute_path) or "<root>"
            raise ConfigurationError(f"Invalid configuration at {where}: {e.message}") from e

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation

        Args:
            key: Configuration key (e.g., "timing.max_wait_time")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        # Check environment variable first
        env_key = (self.ENV_PREFIX + key.upper().replace(".", "_"))
        env_value = os.environ.get(env_key)
        if env_value is not None:
            return self._parse_env_value(env_value)

        value = self.config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def _parse_env_value(self, value: str) -> Any:
        """Parse environment variable value"""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def build_run_config(self, hostname: str, **overrides: Any) -> RunConfig:
        """
        Build a validated RunConfig.

        Precedence, highest first: ``overrides`` that are not None,
        environment variables, config file, defaults.

        Raises:
            ConfigurationError: If the result is invalid
        """
        identifier = self.get("probe.identifier")
        values = {
            "mode": self.get("probe.mode"),
            "first_ttl": self.get("probe.first_ttl"),
            "max_ttl": self.get("probe.max_ttl"),
            "nqueries": self.get("probe.nqueries"),
            "identifier": DEFAULT_IDENTIFIER if identifier is None else identifier,
            "packet_size": self.get("probe.packet_size"),
            "max_wait_time": self.get("timing.max_wait_time"),
            "near_multiplier": self.get("timing.near_multiplier"),
            "here_multiplier": self.get("timing.here_multiplier"),
            "udp_base_port": self.get("ports.udp_base_port"),
            "tcp_base_port": self.get("ports.tcp_base_port"),
            "tcp_port_increment": self.get("ports.tcp_port_increment"),
            "numeric": self.get("output.numeric"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        mode = values["mode"]
        if not isinstance(mode, ProbeMode):
            try:
                values["mode"] = ProbeMode(str(mode).lower())
            except ValueError:
                raise ConfigurationError(f"unknown probe mode: {mode}") from None

        try:
            return RunConfig(hostname=hostname, **values).validate()
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e
