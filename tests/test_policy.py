"""
Tests for the expiry policy.
"""

from datetime import datetime, timedelta, timezone

import pytest

from cert_expiry_monitor.inspector import CertificateRecord
from cert_expiry_monitor.policy import AlertEvent, WarningPolicy, evaluate, iter_certificates

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
HOST = "example.com:443"


def record(not_after: datetime, subject: str = "CN=example.com") -> CertificateRecord:
    return CertificateRecord(subject=subject, not_after=not_after)


class TestWarningPolicy:
    """Test warning policy construction."""

    def test_negative_days_rejected(self):
        """Test that a negative warning window is rejected."""
        with pytest.raises(ValueError):
            WarningPolicy(days_before_warning=-1)

    def test_threshold(self):
        """Test threshold is now plus the warning window."""
        policy = WarningPolicy(days_before_warning=30)
        assert policy.threshold(NOW) == datetime(2024, 1, 31, tzinfo=timezone.utc)


class TestEvaluate:
    """Test expiry evaluation."""

    def test_certificate_inside_window_alerts(self):
        """Test a certificate expiring inside the window produces one event."""
        expires = datetime(2024, 1, 20, tzinfo=timezone.utc)

        events = evaluate(HOST, [[record(expires)]], WarningPolicy(30), NOW)

        assert events == [AlertEvent(host=HOST, expires_at=expires)]

    def test_certificate_outside_window_is_quiet(self):
        """Test a certificate expiring after the window produces nothing."""
        expires = datetime(2024, 3, 1, tzinfo=timezone.utc)

        assert evaluate(HOST, [[record(expires)]], WarningPolicy(5), NOW) == []

    def test_far_future_certificate_no_false_alarm(self):
        """Test a certificate valid for 400 more days does not alert."""
        chains = [[record(NOW + timedelta(days=400))]]

        assert evaluate(HOST, chains, WarningPolicy(30), NOW) == []

    def test_threshold_boundary_is_inclusive(self):
        """Test expiry exactly at the threshold alerts, one second later does not."""
        policy = WarningPolicy(10)
        at_threshold = NOW + timedelta(days=10)
        just_after = at_threshold + timedelta(seconds=1)

        assert len(evaluate(HOST, [[record(at_threshold)]], policy, NOW)) == 1
        assert evaluate(HOST, [[record(just_after)]], policy, NOW) == []

    @pytest.mark.parametrize(
        "offset_days,days_before_warning,expected",
        [
            (-5, 0, 1),
            (0, 0, 1),
            (1, 0, 0),
            (29, 30, 1),
            (31, 30, 0),
            (-100, 7, 1),
        ],
    )
    def test_threshold_predicate(self, offset_days, days_before_warning, expected):
        """Test one event exactly when now + window >= not_after."""
        chains = [[record(NOW + timedelta(days=offset_days))]]

        events = evaluate(HOST, chains, WarningPolicy(days_before_warning), NOW)

        assert len(events) == expected

    def test_zero_window_only_expired(self):
        """Test a zero-day window alerts on expired certificates only."""
        chains = [
            [
                record(NOW - timedelta(hours=1), "CN=expired"),
                record(NOW + timedelta(hours=1), "CN=valid"),
            ]
        ]

        events = evaluate(HOST, chains, WarningPolicy(0), NOW)

        assert [event.expires_at for event in events] == [NOW - timedelta(hours=1)]

    def test_empty_chain_set(self):
        """Test no verified chains produce no events."""
        assert evaluate(HOST, [], WarningPolicy(30), NOW) == []

    def test_every_certificate_in_every_chain(self):
        """Test evaluation walks all chains in order without deduplication."""
        leaf = record(NOW + timedelta(days=3), "CN=leaf")
        intermediate = record(NOW + timedelta(days=500), "CN=intermediate")
        root = record(NOW + timedelta(days=20), "CN=root")
        chains = [[leaf, intermediate, root], [leaf, root]]

        events = evaluate(HOST, chains, WarningPolicy(30), NOW)

        assert [event.expires_at for event in events] == [
            leaf.not_after,
            root.not_after,
            leaf.not_after,
            root.not_after,
        ]
        assert all(event.host == HOST for event in events)

    def test_deterministic_and_pure(self):
        """Test identical inputs give identical output and inputs are untouched."""
        chains = [[record(NOW + timedelta(days=2)), record(NOW + timedelta(days=90))]]
        snapshot = [list(chain) for chain in chains]
        policy = WarningPolicy(30)

        first = evaluate(HOST, chains, policy, NOW)
        second = evaluate(HOST, chains, policy, NOW)

        assert first == second
        assert chains == snapshot
        assert policy.days_before_warning == 30


def test_iter_certificates_flattens_in_order():
    """Test chains flatten into (host, certificate) pairs."""
    a = record(NOW, "CN=a")
    b = record(NOW, "CN=b")
    c = record(NOW, "CN=c")

    pairs = list(iter_certificates(HOST, [[a, b], [c]]))

    assert pairs == [(HOST, a), (HOST, b), (HOST, c)]
