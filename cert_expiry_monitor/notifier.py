"""
Alert messages and mail delivery for Certificate Expiry Monitor.
"""

import smtplib
import ssl
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional

from cert_expiry_monitor.config import AccountConfig
from cert_expiry_monitor.errors import DeliveryError
from cert_expiry_monitor.logger import get_logger
from cert_expiry_monitor.policy import AlertEvent

SMTP_SSL_PORT = 465

TEST_SUBJECT = "Monitor Test"
TEST_BODY = "Test"


@dataclass(frozen=True)
class AlertMessage:
    """A composed message ready for delivery."""

    recipient: str
    subject: str
    body: str = ""


def render_alert_message(event: AlertEvent, recipient: str) -> AlertMessage:
    """Render an expiry alert; the subject carries host and expiry, the body is empty."""
    return AlertMessage(
        recipient=recipient,
        subject=f"SSL Certificate for {event.host} expires soon - {event.expires_at}",
        body="",
    )


def render_test_message(recipient: str) -> AlertMessage:
    """Render the fixed test message."""
    return AlertMessage(recipient=recipient, subject=TEST_SUBJECT, body=TEST_BODY)


class NotificationSink(ABC):
    """Delivers composed messages using the configured account."""

    @abstractmethod
    def send(self, account: AccountConfig, message: AlertMessage) -> None:
        """
        Deliver a message.

        Raises:
            DeliveryError: if the message could not be submitted
        """


class SMTPNotificationSink(NotificationSink):
    """
    Submits messages to an SMTP server.

    Port 465 uses implicit TLS; any other port connects in plain text and
    upgrades with STARTTLS when the server advertises it. The account is
    always authenticated before submission.
    """

    def __init__(self, timeout: float = 30.0, ssl_context: Optional[ssl.SSLContext] = None):
        self.timeout = timeout
        self.ssl_context = ssl_context or ssl.create_default_context()
        self.logger = get_logger("notifier")

    def send(self, account: AccountConfig, message: AlertMessage) -> None:
        email = self._build_email(account, message)
        implicit_tls = account.port == SMTP_SSL_PORT

        try:
            with self._connect(account, implicit_tls) as smtp:
                if not implicit_tls:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls(context=self.ssl_context)
                        smtp.ehlo()
                smtp.login(account.email, account.password)
                smtp.send_message(email)
        except (smtplib.SMTPException, OSError, ValueError) as e:
            # ValueError covers credentials smtplib cannot encode for AUTH
            raise DeliveryError(message.recipient, e) from e

        self.logger.debug(f"Submitted '{message.subject}' to {account.server}:{account.port}")

    def _connect(self, account: AccountConfig, implicit_tls: bool) -> smtplib.SMTP:
        if implicit_tls:
            return smtplib.SMTP_SSL(
                account.server, account.port, timeout=self.timeout, context=self.ssl_context
            )
        return smtplib.SMTP(account.server, account.port, timeout=self.timeout)

    @staticmethod
    def _build_email(account: AccountConfig, message: AlertMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = account.email
        email["To"] = message.recipient
        email["Subject"] = message.subject
        email.set_content(message.body)
        return email
