"""
Prometheus metrics collection for Certificate Expiry Monitor.
"""

import time
from typing import TYPE_CHECKING

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    start_http_server,
)

from cert_expiry_monitor.logger import get_logger, log_metrics_collection

if TYPE_CHECKING:
    from cert_expiry_monitor.monitor import CycleReport, HostReport

# Numeric encoding of HostStatus for the host status gauge
HOST_STATUS_CODES = {
    "ok": 0,
    "alerted": 1,
    "inspection_failed": 2,
    "send_failed": 3,
}


class MetricsCollector:
    """Prometheus metrics collector for monitor cycles and checked certificates."""

    def __init__(self) -> None:
        self.logger = get_logger("metrics")
        self.registry = CollectorRegistry()

        # Certificate metrics
        self.certificate_expiry_timestamp = Gauge(
            "cert_monitor_certificate_expiry_timestamp",
            "Certificate expiration time (Unix timestamp)",
            ["host", "subject"],
            registry=self.registry,
        )

        self.host_status = Gauge(
            "cert_monitor_host_status",
            "Outcome of the last check (0 ok, 1 alerted, 2 inspection failed, 3 send failed)",
            ["host"],
            registry=self.registry,
        )

        # Alerting metrics
        self.alerts_sent_total = Counter(
            "cert_monitor_alerts_sent",
            "Expiry alerts delivered",
            registry=self.registry,
        )

        self.inspection_failures_total = Counter(
            "cert_monitor_inspection_failures",
            "Hosts whose certificate chain could not be inspected",
            ["host"],
            registry=self.registry,
        )

        self.delivery_failures_total = Counter(
            "cert_monitor_delivery_failures",
            "Alert messages that could not be delivered",
            registry=self.registry,
        )

        # Cycle metrics
        self.cycle_duration_seconds = Histogram(
            "cert_monitor_cycle_duration_seconds",
            "Monitor cycle duration",
            registry=self.registry,
        )

        self.last_cycle_timestamp = Gauge(
            "cert_monitor_last_cycle_timestamp",
            "Completion time of the last monitor cycle",
            registry=self.registry,
        )

        self.logger.info("Metrics collector initialized")

    def record_host(self, report: "HostReport") -> None:
        """
        Update metrics for one checked host.

        Args:
            report: Outcome of the host check
        """
        try:
            self.host_status.labels(host=report.host).set(HOST_STATUS_CODES[report.status.value])

            for record in report.certificates:
                self.certificate_expiry_timestamp.labels(
                    host=report.host, subject=record.subject
                ).set(record.not_after.timestamp())

            if report.delivered:
                self.alerts_sent_total.inc(report.delivered)
            if report.send_failures:
                self.delivery_failures_total.inc(report.send_failures)
            if report.status.value == "inspection_failed":
                self.inspection_failures_total.labels(host=report.host).inc()

            log_metrics_collection(
                self.logger, "host_checked", 1.0, {"host": report.host, "status": report.status.value}
            )

        except Exception as e:
            self.logger.error(f"Failed to update host metrics: {e}")

    def record_cycle(self, report: "CycleReport") -> None:
        """
        Update cycle-level metrics.

        Args:
            report: Completed cycle report
        """
        try:
            self.cycle_duration_seconds.observe(report.duration)
            self.last_cycle_timestamp.set(time.time())

            log_metrics_collection(
                self.logger,
                "cycle_completed",
                report.duration,
                {"hosts": len(report.hosts), "alerts": report.alerts_sent},
            )

        except Exception as e:
            self.logger.error(f"Failed to update cycle metrics: {e}")

    def start_server(self, port: int, addr: str = "0.0.0.0") -> None:  # nosec B104
        """Serve the registry on a background HTTP exporter."""
        start_http_server(port, addr=addr, registry=self.registry)
        self.logger.info(f"Metrics exporter listening on {addr}:{port}")

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format."""
        return generate_latest(self.registry).decode("utf-8")

