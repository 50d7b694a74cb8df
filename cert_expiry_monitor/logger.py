"""
Logging configuration for Certificate Expiry Monitor.

Console lines are tagged with the component and, for host-scoped events,
the ``host:port`` being checked. The optional log file holds one JSON object
per line carrying the same monitor fields as structured keys.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

from cert_expiry_monitor.config import Config

ROOT_LOGGER = "cert_expiry_monitor"

# Monitor fields passed through ``extra`` by the helpers below
MONITOR_FIELDS = ("host", "expires_at", "recipient", "error_type", "cycle_duration", "host_statuses")


def _component(record: logging.LogRecord) -> str:
    """Logger name without the package prefix."""
    prefix = f"{ROOT_LOGGER}."
    if record.name.startswith(prefix):
        return record.name[len(prefix) :]
    return record.name


class CustomFormatter(logging.Formatter):
    """Console formatter; expiry warnings and failures stand out in color."""

    LEVEL_COLORS = {
        "DEBUG": "\033[2m",  # Dim
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[1;31m",  # Bold red
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True) -> None:
        self.use_color = use_color
        super().__init__()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = self.formatTime(record, "%Y-%m-%d %H:%M:%S")
        message = record.getMessage()

        host = getattr(record, "host", None)
        if host and host not in message:
            message = f"[{host}] {message}"

        if record.exc_info:
            message = f"{message.rstrip()}\n{self.formatException(record.exc_info)}"

        line = f"{timestamp} {record.levelname:<7} {_component(record):<10} {message}"

        color = self.LEVEL_COLORS.get(record.levelname)
        if self.use_color and color:
            return f"{color}{line}{self.RESET}"
        return line


class StructuredFormatter(logging.Formatter):
    """JSON lines formatter for the log file."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record),
            "message": record.getMessage(),
        }

        for name in MONITOR_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(config: Config) -> None:
    """
    Configure the root logger from the monitor configuration.

    Args:
        config: Configuration object
    """
    level = getattr(logging, config.log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    # Colors only when attached to a terminal
    use_color = hasattr(sys.stdout, "isatty") and sys.stdout.isatty()
    console_handler.setFormatter(CustomFormatter(use_color=use_color))
    root_logger.addHandler(console_handler)

    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        # Rotating file handler (10MB max, 5 backups)
        file_handler = logging.handlers.RotatingFileHandler(
            log_path, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(StructuredFormatter())
        root_logger.addHandler(file_handler)

    app_logger = logging.getLogger(ROOT_LOGGER)
    app_logger.info(
        f"Logging initialized - Level: {config.log_level}"
        + (f", file: {config.log_file}" if config.log_file else "")
    )


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


# Logging helpers for monitor operations
def log_host_check_start(logger: logging.Logger, host: str) -> None:
    """Log the start of a host check."""
    logger.info(f"Checking SSL for {host}", extra={"host": host})


def log_certificate_status(
    logger: logging.Logger, host: str, subject: str, expires_at: datetime, expiring: bool
) -> None:
    """Log the expiry status of one certificate in a chain."""
    extra = {"host": host, "expires_at": expires_at.isoformat()}
    if expiring:
        logger.warning(f"=== SSL expires soon, expires: {expires_at} === ({subject})", extra=extra)
    else:
        logger.info(f"SSL ok, expires: {expires_at} ({subject})", extra=extra)


def log_inspection_error(logger: logging.Logger, host: str, error: Exception) -> None:
    """Log a failed host inspection."""
    cause = getattr(error, "cause", None) or error
    logger.error(
        f"Certificate inspection failed: {error}",
        extra={"host": host, "error_type": type(cause).__name__},
    )


def log_alert_sent(logger: logging.Logger, host: str, recipient: str, expires_at: datetime) -> None:
    """Log a delivered expiry alert."""
    logger.info(
        f"Email sent to {recipient} for {host}",
        extra={"host": host, "recipient": recipient, "expires_at": expires_at.isoformat()},
    )


def log_delivery_error(
    logger: logging.Logger, host: Optional[str], recipient: str, error: Exception
) -> None:
    """Log a failed message delivery."""
    cause = getattr(error, "cause", None) or error
    extra = {"recipient": recipient, "error_type": type(cause).__name__}
    if host:
        extra["host"] = host
    logger.error(f"Email delivery failed: {error}", extra=extra)


def log_cycle_complete(
    logger: logging.Logger, duration: float, statuses: Dict[str, int], alerts: int
) -> None:
    """Log monitor cycle completion with the per-status host counts."""
    counts = ", ".join(f"{status}={count}" for status, count in statuses.items())
    logger.info(
        f"Cycle completed - Duration: {duration:.2f}s, Hosts: {sum(statuses.values())} "
        f"({counts}), Alerts: {alerts}",
        extra={"cycle_duration": duration, "host_statuses": statuses},
    )


def log_metrics_collection(
    logger: logging.Logger, metric_name: str, value: float, labels: Optional[dict] = None
) -> None:
    """Log metrics collection."""
    extra = {"metric_name": metric_name, "metric_value": value}
    if labels:
        extra["metric_labels"] = labels

    logger.debug(f"Metric collected: {metric_name}={value}", extra=extra)
