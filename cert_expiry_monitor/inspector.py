"""
TLS certificate inspector for Certificate Expiry Monitor.
"""

import asyncio
import ssl
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional

from cryptography import x509

from cert_expiry_monitor.config import parse_host_target
from cert_expiry_monitor.errors import ConnectivityError
from cert_expiry_monitor.logger import get_logger


@dataclass(frozen=True)
class CertificateRecord:
    """The parts of a peer certificate the monitor cares about."""

    subject: str
    not_after: datetime

    @classmethod
    def from_der(cls, der: bytes) -> "CertificateRecord":
        cert = x509.load_der_x509_certificate(der)
        return cls(subject=cert.subject.rfc4514_string(), not_after=cert.not_valid_after_utc)


# One entry per verified trust path, each ordered leaf to root
ChainVerificationResult = List[List[CertificateRecord]]


class CertificateInspector:
    """
    Connects to TLS hosts and returns their verified certificate chains.

    Trust validation is left entirely to the ssl module: the default context
    verifies against the system trust store and checks the hostname, so any
    chain that comes back has already been accepted by the TLS library.
    """

    def __init__(self, timeout: float = 10.0, ssl_context: Optional[ssl.SSLContext] = None):
        self.timeout = timeout
        self.ssl_context = ssl_context or ssl.create_default_context()
        self.logger = get_logger("inspector")

    async def inspect(self, host: str) -> ChainVerificationResult:
        """
        Inspect the certificate chain served by a host.

        Args:
            host: Host target in ``host:port`` form

        Returns:
            Verified chains, empty if the handshake produced no certificate

        Raises:
            ConnectivityError: DNS, connection, timeout, handshake or
                verification failure
        """
        try:
            hostname, port = parse_host_target(host)
        except ValueError as e:
            raise ConnectivityError(host, e) from e

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    hostname, port, ssl=self.ssl_context, server_hostname=hostname
                ),
                timeout=self.timeout,
            )
        except (asyncio.TimeoutError, OSError) as e:
            # ssl.SSLError and certificate verification errors are OSErrors
            raise ConnectivityError(host, e) from e

        try:
            ssl_object = writer.get_extra_info("ssl_object")
            if ssl_object is None:
                raise ConnectivityError(host, RuntimeError("no TLS session established"))

            chains = self._extract_chains(ssl_object)
            self.logger.debug(
                f"Inspected {host} - Chains: {len(chains)}, "
                f"Certificates: {sum(len(chain) for chain in chains)}"
            )
            return chains

        except ValueError as e:
            raise ConnectivityError(host, e) from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (OSError, asyncio.TimeoutError) as e:
                self.logger.debug(f"Error while closing connection to {host}: {e}")

    def _extract_chains(self, ssl_object: Any) -> ChainVerificationResult:
        """
        Decode the verified chain of an established TLS session.

        ``get_verified_chain`` is only available on Python 3.13+; older
        interpreters expose just the verified peer certificate.
        """
        get_verified_chain = getattr(ssl_object, "get_verified_chain", None)
        if get_verified_chain is not None:
            der_chain = list(get_verified_chain() or [])
        else:
            leaf = ssl_object.getpeercert(binary_form=True)
            der_chain = [leaf] if leaf else []

        records = [CertificateRecord.from_der(der) for der in der_chain]
        return [records] if records else []
