"""
Configuration management for Certificate Expiry Monitor.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cert_expiry_monitor.errors import ConfigError

DEFAULT_CONFIG_PATH = "monitor.yaml"
DEFAULT_TLS_PORT = 443

_HOST_PORT_PATTERN = re.compile(r"^(?:\[(?P<ipv6>[0-9A-Fa-f:.]+)\]|(?P<name>[^:\[\]\s]+))(?::(?P<port>\d+))?$")


def parse_host_target(target: str) -> Tuple[str, int]:
    """
    Split a ``host:port`` target into hostname and port.

    IPv6 literals must be bracketed (``[::1]:8443``). A missing port
    defaults to 443.

    Raises:
        ValueError: if the target cannot be parsed
    """
    match = _HOST_PORT_PATTERN.match(target.strip())
    if not match:
        raise ValueError(f"Invalid host target '{target}', expected 'host:port'")

    hostname = match.group("ipv6") or match.group("name")
    port = int(match.group("port")) if match.group("port") else DEFAULT_TLS_PORT
    if not 1 <= port <= 65535:
        raise ValueError(f"Invalid port in host target '{target}': {port}")

    return hostname, port


class AccountConfig(BaseModel):
    """SMTP submission credentials."""

    model_config = ConfigDict(frozen=True)

    server: str
    port: int = Field(default=587, ge=1, le=65535)
    email: str
    password: str = Field(default="", repr=False)


class AlertConfig(BaseModel):
    """Alert recipient."""

    model_config = ConfigDict(frozen=True)

    email: str


class SSLCheckConfig(BaseModel):
    """Hosts to check and the warning window."""

    model_config = ConfigDict(frozen=True)

    hosts: List[str] = Field(default_factory=list)
    days_before_warning: int = Field(default=30, ge=0)

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: List[str]) -> List[str]:
        """Validate every host target parses as host:port."""
        validated = []
        for host in v:
            parse_host_target(host)
            validated.append(host.strip())

        if not validated:
            logging.warning("No hosts configured for SSL checks")

        return validated


class Config(BaseModel):
    """Configuration model for Certificate Expiry Monitor."""

    model_config = ConfigDict(frozen=True)

    account: AccountConfig
    alert: AlertConfig
    ssl_check: SSLCheckConfig = Field(default_factory=SSLCheckConfig)

    # Schedule and network settings
    check_interval: str = Field(default="24h")
    connect_timeout: float = Field(default=10.0, gt=0)
    smtp_timeout: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = None

    # Prometheus exporter, disabled when unset
    metrics_port: Optional[int] = Field(default=None, ge=1, le=65535)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("check_interval")
    @classmethod
    def validate_duration(cls, v: str) -> str:
        """Validate duration format (e.g., '5m', '1h', '30s', '1d')."""
        if not v:
            raise ValueError("Duration cannot be empty")

        if not re.match(r"^\d+[smhd]$", v):
            raise ValueError("Duration must be in format like '5m', '1h', '30s', '1d'")
        if parse_duration_seconds(v) <= 0:
            raise ValueError("Duration must be greater than zero")
        return v

    @property
    def check_interval_seconds(self) -> int:
        """Get check interval in seconds."""
        return parse_duration_seconds(self.check_interval)


def parse_duration_seconds(duration: str) -> int:
    """Parse duration string to seconds."""
    match = re.match(r"^(\d+)([smhd])$", duration)
    if not match:
        raise ValueError(f"Invalid duration format: {duration}")

    value, unit = match.groups()
    multipliers = {"s": 1, "m": 60, "h": 3600, "d": 86400}

    return int(value) * multipliers[unit]


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from a YAML file and environment variables.

    Args:
        config_path: Path to configuration file, defaults to ./monitor.yaml

    Returns:
        Config object

    Raises:
        ConfigError: if the file cannot be read, parsed or validated
    """
    config_file = Path(config_path or DEFAULT_CONFIG_PATH)

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {config_file}") from e
    except OSError as e:
        raise ConfigError(f"Can't read configuration file {config_file}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse configuration file {config_file}: {e}") from e

    if not isinstance(config_data, dict):
        raise ConfigError(f"Configuration file {config_file} must contain a mapping")

    _apply_env_overrides(config_data, _get_env_overrides())

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_file}: {e}") from e


def _get_env_overrides() -> Dict[str, Any]:
    """Get configuration overrides from environment variables."""
    env_mapping: Dict[str, Tuple[str, Callable[[str], Any]]] = {
        "CERT_MONITOR_LOG_LEVEL": ("log_level", str),
        "CERT_MONITOR_LOG_FILE": ("log_file", str),
        "CERT_MONITOR_CHECK_INTERVAL": ("check_interval", str),
        "CERT_MONITOR_CONNECT_TIMEOUT": ("connect_timeout", float),
        "CERT_MONITOR_SMTP_TIMEOUT": ("smtp_timeout", float),
        "CERT_MONITOR_METRICS_PORT": ("metrics_port", int),
        "CERT_MONITOR_SMTP_PASSWORD": ("account.password", str),
        "CERT_MONITOR_ALERT_EMAIL": ("alert.email", str),
        "CERT_MONITOR_DAYS_BEFORE_WARNING": ("ssl_check.days_before_warning", int),
    }

    overrides = {}
    for env_var, (config_key, converter) in env_mapping.items():
        value = os.getenv(env_var)
        if value is not None:
            try:
                overrides[config_key] = converter(value)
            except (ValueError, TypeError) as e:
                logging.warning(f"Invalid value for {env_var}: {value} - {e}")

    hosts = os.getenv("CERT_MONITOR_HOSTS")
    if hosts:
        overrides["ssl_check.hosts"] = [h.strip() for h in hosts.split(",") if h.strip()]

    return overrides


def _apply_env_overrides(config_data: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    """Apply dotted-key overrides onto the nested configuration mapping."""
    for dotted_key, value in overrides.items():
        section, _, key = dotted_key.rpartition(".")
        target = config_data
        if section:
            if not isinstance(config_data.get(section), dict):
                config_data[section] = {}
            target = config_data[section]
        target[key] = value


def create_example_config(output_path: str = "monitor.example.yaml") -> None:
    """Create an example configuration file."""
    example_config = {
        "account": {
            "server": "smtp.example.com",
            "port": 587,
            "email": "monitor@example.com",
            "password": "change-me",
        },
        "alert": {"email": "ops@example.com"},
        "ssl_check": {
            "hosts": ["example.com:443", "mail.example.com:993"],
            "days_before_warning": 30,
        },
        "check_interval": "24h",
        "connect_timeout": 10,
        "smtp_timeout": 30,
        "log_level": "INFO",
        "log_file": None,
        "metrics_port": None,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        yaml.dump(example_config, f, default_flow_style=False, sort_keys=False)
