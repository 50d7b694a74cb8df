#!/usr/bin/env python3
"""
Certificate Expiry Monitor - Main Application Entry Point
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

import click

from cert_expiry_monitor import __version__
from cert_expiry_monitor.config import Config, create_example_config, load_config
from cert_expiry_monitor.errors import ConfigError, DeliveryError
from cert_expiry_monitor.inspector import CertificateInspector
from cert_expiry_monitor.logger import log_delivery_error, setup_logging
from cert_expiry_monitor.metrics import MetricsCollector
from cert_expiry_monitor.monitor import MonitorCycle
from cert_expiry_monitor.notifier import (
    NotificationSink,
    SMTPNotificationSink,
    render_test_message,
)
from cert_expiry_monitor.scheduler import Scheduler


class CertExpiryMonitor:
    """Main application class for Certificate Expiry Monitor."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        test_email: bool = False,
        check_ssl: bool = False,
    ):
        self.config: Optional[Config] = None
        self.metrics: Optional[MetricsCollector] = None
        self.sink: Optional[NotificationSink] = None
        self.cycle: Optional[MonitorCycle] = None
        self.scheduler: Optional[Scheduler] = None
        self.config_path = config_path
        self.test_email = test_email
        self.check_ssl = check_ssl
        self._shutdown_event: Optional[asyncio.Event] = None
        self._loop_signals: List[int] = []
        self.logger = logging.getLogger(__name__)

    def initialize(self) -> None:
        """
        Load configuration and build all application components.

        Raises:
            ConfigError: if the configuration cannot be loaded
        """
        self.config = load_config(self.config_path)

        setup_logging(self.config)
        self.logger.info("Initializing Certificate Expiry Monitor")

        self.metrics = MetricsCollector()
        if self.config.metrics_port:
            self.metrics.start_server(self.config.metrics_port)

        inspector = CertificateInspector(timeout=self.config.connect_timeout)
        self.sink = SMTPNotificationSink(timeout=self.config.smtp_timeout)
        self.cycle = MonitorCycle(inspector=inspector, sink=self.sink, metrics=self.metrics)
        self.scheduler = Scheduler(config=self.config, cycle=self.cycle)

        self.logger.info(
            f"Monitoring {len(self.config.ssl_check.hosts)} hosts - "
            f"Warning window: {self.config.ssl_check.days_before_warning} days"
        )

    def send_test_email(self) -> bool:
        """Send the fixed test message to the alert recipient."""
        assert self.config is not None and self.sink is not None, "Monitor not initialized"

        message = render_test_message(self.config.alert.email)
        try:
            self.sink.send(self.config.account, message)
        except DeliveryError as e:
            log_delivery_error(self.logger, None, message.recipient, e)
            return False

        self.logger.info(f"Email sent to {message.recipient}")
        return True

    async def run(self) -> None:
        """Run the optional one-off actions, then the recurring schedule."""
        if not self.scheduler:
            self.initialize()

        assert self.config is not None and self.cycle is not None and self.scheduler is not None

        self._shutdown_event = asyncio.Event()
        self._install_signal_handlers()

        try:
            if self.test_email:
                # Blocking mail submission runs off the event loop
                loop = asyncio.get_event_loop()
                await loop.run_in_executor(None, self.send_test_email)

            if self.check_ssl:
                await self.scheduler.run_cycle()

            await self.scheduler.start()
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_event_loop()
        for sig in [signal.SIGTERM, signal.SIGINT]:
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
                self._loop_signals.append(sig)
            except (NotImplementedError, RuntimeError):
                # Event loops without signal support (e.g. Windows)
                signal.signal(sig, lambda signum, frame: self._signal_handler(signum))

    def _signal_handler(self, signum: int) -> None:
        """Handle shutdown signals."""
        self.logger.info(f"Received signal {signum}, initiating graceful shutdown")
        if self._shutdown_event:
            self._shutdown_event.set()

    async def shutdown(self) -> None:
        """Gracefully stop the schedule."""
        self.logger.info("Starting graceful shutdown")

        if self.scheduler:
            await self.scheduler.stop()

        loop = asyncio.get_event_loop()
        while self._loop_signals:
            loop.remove_signal_handler(self._loop_signals.pop())

        self.logger.info("Graceful shutdown completed")


@click.command()
@click.option(
    "--config",
    "-f",
    type=click.Path(path_type=Path),
    help="Path to configuration file (default: ./monitor.yaml)",
)
@click.option("--test-email", is_flag=True, help="Send a test email to the alert recipient")
@click.option("--check-ssl", is_flag=True, help="Run an SSL check immediately before scheduling")
@click.option(
    "--example-config",
    type=click.Path(path_type=Path),
    help="Write an example configuration file and exit",
)
@click.option("--version", "-v", is_flag=True, help="Show version information")
def main(
    config: Optional[Path],
    test_email: bool,
    check_ssl: bool,
    example_config: Optional[Path],
    version: bool,
) -> None:
    """Certificate Expiry Monitor - Email alerts for TLS certificates about to expire."""

    if version:
        print(f"Certificate Expiry Monitor v{__version__}")
        return

    if example_config:
        create_example_config(str(example_config))
        print(f"Example configuration written to {example_config}")
        return

    monitor = CertExpiryMonitor(
        str(config) if config else None, test_email=test_email, check_ssl=check_ssl
    )

    try:
        monitor.initialize()
    except ConfigError as e:
        print(f"Failed to read the config file! {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(monitor.run())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)
    except Exception as e:
        print(f"Application failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
