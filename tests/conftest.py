"""
Shared fixtures for Certificate Expiry Monitor tests.
"""

import ipaddress
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Tuple

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from cert_expiry_monitor.config import Config
from cert_expiry_monitor.errors import DeliveryError
from cert_expiry_monitor.notifier import AlertMessage, NotificationSink


class RecordingSink(NotificationSink):
    """Notification sink that records messages and fails on demand."""

    def __init__(self, fail_on: Optional[List[int]] = None):
        self.sent: List[AlertMessage] = []
        self.attempts: List[AlertMessage] = []
        self.fail_on = set(fail_on or [])

    def send(self, account, message: AlertMessage) -> None:
        index = len(self.attempts)
        self.attempts.append(message)
        if index in self.fail_on:
            raise DeliveryError(message.recipient, ConnectionRefusedError("smtp down"))
        self.sent.append(message)


def make_config(hosts: List[str], days_before_warning: int = 30, **overrides) -> Config:
    """Build a configuration with test account settings."""
    data = {
        "account": {
            "server": "smtp.test.local",
            "port": 587,
            "email": "monitor@test.local",
            "password": "secret",
        },
        "alert": {"email": "ops@test.local"},
        "ssl_check": {"hosts": hosts, "days_before_warning": days_before_warning},
    }
    data.update(overrides)
    return Config(**data)


def _key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def generate_ca(common_name: str = "Test Root CA") -> Tuple[x509.Certificate, rsa.RSAPrivateKey]:
    """Generate a self-signed CA certificate."""
    key = _key()
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=3650))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return cert, key


def generate_leaf(
    ca_cert: x509.Certificate,
    ca_key: rsa.RSAPrivateKey,
    days_valid: int,
    common_name: str = "127.0.0.1",
) -> Tuple[x509.Certificate, rsa.RSAPrivateKey]:
    """Generate a server certificate for 127.0.0.1 signed by the given CA."""
    key = _key()
    now = datetime.now(timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)]))
        .issuer_name(ca_cert.subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=days_valid))
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.SubjectAlternativeName([x509.IPAddress(ipaddress.ip_address("127.0.0.1"))]),
            critical=False,
        )
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH]), critical=False)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca_key.public_key()),
            critical=False,
        )
        .sign(ca_key, hashes.SHA256())
    )
    return cert, key


def write_pem(path: Path, cert: x509.Certificate, key: Optional[rsa.RSAPrivateKey] = None) -> Path:
    """Write a certificate (and optionally its key) as PEM."""
    data = cert.public_bytes(serialization.Encoding.PEM)
    if key is not None:
        data += key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
    path.write_bytes(data)
    return path


@pytest.fixture(scope="session")
def test_ca():
    """A test CA shared by the whole session."""
    return generate_ca()


@pytest.fixture
def recording_sink():
    """A notification sink that records every message."""
    return RecordingSink()
