"""
Certificate Expiry Monitor

Periodically connects to TLS hosts, inspects their verified certificate
chains and emails an alert when a certificate is about to expire.
"""

__version__ = "1.0.0"
__author__ = "Certificate Expiry Monitor Team"
__description__ = "Periodic TLS certificate expiry monitor with email alerts"

from cert_expiry_monitor.config import Config
from cert_expiry_monitor.inspector import CertificateInspector
from cert_expiry_monitor.monitor import CycleReport, MonitorCycle
from cert_expiry_monitor.policy import AlertEvent, WarningPolicy, evaluate

__all__ = [
    "AlertEvent",
    "CertificateInspector",
    "Config",
    "CycleReport",
    "MonitorCycle",
    "WarningPolicy",
    "evaluate",
]
