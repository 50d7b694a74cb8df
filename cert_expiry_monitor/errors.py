"""
Exception types for Certificate Expiry Monitor.
"""

from typing import Optional


class CertMonitorError(Exception):
    """Base class for monitor errors."""


class ConfigError(CertMonitorError):
    """Configuration file is missing, unreadable or invalid."""


class ConnectivityError(CertMonitorError):
    """TLS connection, handshake or verification to a host failed."""

    def __init__(self, host: str, cause: Optional[BaseException] = None):
        self.host = host
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"Failed to inspect {host}: {detail}")


class DeliveryError(CertMonitorError):
    """Mail submission failed."""

    def __init__(self, recipient: str, cause: Optional[BaseException] = None):
        self.recipient = recipient
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"Failed to deliver message to {recipient}: {detail}")
