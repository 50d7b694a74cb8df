"""
Expiry policy for Certificate Expiry Monitor.

Evaluation is a pure function over an already fetched certificate chain set
and an injected ``now``, so it needs neither a network nor a clock.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterator, List, Sequence, Tuple

from cert_expiry_monitor.inspector import CertificateRecord, ChainVerificationResult


@dataclass(frozen=True)
class WarningPolicy:
    """Number of days before expiry at which certificates are reported."""

    days_before_warning: int

    def __post_init__(self) -> None:
        if self.days_before_warning < 0:
            raise ValueError(
                f"days_before_warning must be non-negative, got {self.days_before_warning}"
            )

    def threshold(self, now: datetime) -> datetime:
        """Latest expiry that still falls inside the warning window."""
        return now + timedelta(days=self.days_before_warning)

    def is_expiring(self, record: CertificateRecord, now: datetime) -> bool:
        return self.threshold(now) >= record.not_after


@dataclass(frozen=True)
class AlertEvent:
    """A certificate of ``host`` expiring at ``expires_at`` inside the window."""

    host: str
    expires_at: datetime


def iter_certificates(
    host: str, chains: ChainVerificationResult
) -> Iterator[Tuple[str, CertificateRecord]]:
    """Flatten every verified chain into (host, certificate) pairs, in order."""
    for chain in chains:
        for record in chain:
            yield host, record


def evaluate(
    host: str,
    chains: Sequence[Sequence[CertificateRecord]],
    policy: WarningPolicy,
    now: datetime,
) -> List[AlertEvent]:
    """
    Decide which certificates of a host are expiring soon.

    Certificates appearing in several chains are reported once per chain.

    Args:
        host: Host target the chains were fetched from
        chains: Verified chains, each ordered leaf to root
        policy: Warning window
        now: Evaluation time, timezone-aware

    Returns:
        One AlertEvent per certificate whose expiry is at or before
        ``now + days_before_warning``
    """
    return [
        AlertEvent(host=pair_host, expires_at=record.not_after)
        for pair_host, record in iter_certificates(host, chains)
        if policy.is_expiring(record, now)
    ]
