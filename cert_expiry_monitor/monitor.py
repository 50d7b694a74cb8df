"""
Monitor cycle for Certificate Expiry Monitor.

One cycle walks the configured hosts in order: inspect the verified chain,
evaluate it against the warning window and mail an alert for every
certificate inside it. Failures are contained per host and per message.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional

from cert_expiry_monitor.config import Config
from cert_expiry_monitor.errors import ConnectivityError, DeliveryError
from cert_expiry_monitor.inspector import CertificateInspector, CertificateRecord
from cert_expiry_monitor.logger import (
    get_logger,
    log_alert_sent,
    log_certificate_status,
    log_cycle_complete,
    log_delivery_error,
    log_host_check_start,
    log_inspection_error,
)
from cert_expiry_monitor.metrics import MetricsCollector
from cert_expiry_monitor.notifier import NotificationSink, render_alert_message
from cert_expiry_monitor.policy import AlertEvent, WarningPolicy, evaluate, iter_certificates


class HostStatus(str, Enum):
    """Terminal outcome of one host within a cycle."""

    OK = "ok"
    ALERTED = "alerted"
    INSPECTION_FAILED = "inspection_failed"
    SEND_FAILED = "send_failed"


@dataclass
class HostReport:
    """Outcome of checking one host."""

    host: str
    status: HostStatus
    certificates: List[CertificateRecord] = field(default_factory=list)
    events: List[AlertEvent] = field(default_factory=list)
    delivered: int = 0
    send_failures: int = 0
    error: Optional[str] = None


@dataclass
class CycleReport:
    """Per-host outcomes of one cycle, in configuration order."""

    started_at: datetime
    hosts: List[HostReport] = field(default_factory=list)
    duration: float = 0.0

    @property
    def alerts_sent(self) -> int:
        return sum(report.delivered for report in self.hosts)

    @property
    def failures(self) -> int:
        counts = self.summary()
        return counts[HostStatus.INSPECTION_FAILED.value] + counts[HostStatus.SEND_FAILED.value]

    def status_for(self, host: str) -> Optional[HostStatus]:
        """Status of the first report for ``host``, if it was checked."""
        for report in self.hosts:
            if report.host == host:
                return report.status
        return None

    def summary(self) -> Dict[str, int]:
        """Number of hosts per status, every status present."""
        counts = {status.value: 0 for status in HostStatus}
        for report in self.hosts:
            counts[report.status.value] += 1
        return counts


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MonitorCycle:
    """Runs the inspect, evaluate and alert pipeline over all configured hosts."""

    def __init__(
        self,
        inspector: CertificateInspector,
        sink: NotificationSink,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.inspector = inspector
        self.sink = sink
        self.metrics = metrics
        self.clock = clock
        self.logger = get_logger("monitor")

    async def run(self, config: Config) -> CycleReport:
        """
        Check every configured host once.

        Args:
            config: Configuration snapshot, read only

        Returns:
            Report with one entry per configured host
        """
        start_time = time.time()
        report = CycleReport(started_at=self.clock())
        policy = WarningPolicy(config.ssl_check.days_before_warning)

        for host in config.ssl_check.hosts:
            host_report = await self._check_host(host, config, policy)
            report.hosts.append(host_report)

            if self.metrics:
                self.metrics.record_host(host_report)

        report.duration = time.time() - start_time

        log_cycle_complete(self.logger, report.duration, report.summary(), report.alerts_sent)
        if self.metrics:
            self.metrics.record_cycle(report)

        return report

    async def _check_host(self, host: str, config: Config, policy: WarningPolicy) -> HostReport:
        log_host_check_start(self.logger, host)

        try:
            chains = await self.inspector.inspect(host)
        except ConnectivityError as e:
            log_inspection_error(self.logger, host, e)
            return HostReport(host=host, status=HostStatus.INSPECTION_FAILED, error=str(e))
        except Exception as e:
            self.logger.error(f"Unexpected error inspecting {host}: {e}", extra={"host": host})
            return HostReport(host=host, status=HostStatus.INSPECTION_FAILED, error=str(e))

        now = self.clock()
        events = evaluate(host, chains, policy, now)

        certificates = []
        for _, record in iter_certificates(host, chains):
            certificates.append(record)
            log_certificate_status(
                self.logger, host, record.subject, record.not_after, policy.is_expiring(record, now)
            )

        host_report = HostReport(
            host=host, status=HostStatus.OK, certificates=certificates, events=events
        )
        if not events:
            return host_report

        for event in events:
            if await self._deliver(event, config):
                host_report.delivered += 1
            else:
                host_report.send_failures += 1

        host_report.status = (
            HostStatus.SEND_FAILED if host_report.send_failures else HostStatus.ALERTED
        )
        return host_report

    async def _deliver(self, event: AlertEvent, config: Config) -> bool:
        """Send one alert; returns False when delivery failed."""
        message = render_alert_message(event, config.alert.email)
        loop = asyncio.get_event_loop()

        try:
            # Blocking mail submission runs off the event loop
            await loop.run_in_executor(None, self.sink.send, config.account, message)
        except DeliveryError as e:
            log_delivery_error(self.logger, event.host, message.recipient, e)
            return False
        except Exception as e:
            self.logger.error(
                f"Unexpected error sending alert for {event.host}: {e}", extra={"host": event.host}
            )
            return False

        log_alert_sent(self.logger, event.host, message.recipient, event.expires_at)
        return True
