"""
Tests for HealthMonitor.
"""

from unittest.mock import MagicMock

import pytest

from school_signage.common.errors import NetworkError
from school_signage.display.health_monitor import OFFLINE_THRESHOLD, HealthMonitor


@pytest.fixture
def client():
    client = MagicMock()
    client.base_url = "http://signage.local:3000"
    client.health.return_value = {'status': 'ok'}
    return client


@pytest.fixture
def changes():
    return []


@pytest.fixture
def monitor(client, changes, interval_factory):
    return HealthMonitor(client, interval=30.0, on_state_changed=changes.append, interval_factory=interval_factory)


class TestHealthMonitor:
    """Tests for online/offline tracking."""

    def test_starts_offline(self, monitor):
        assert monitor.is_online is False

    def test_one_success_goes_online(self, monitor, changes):
        assert monitor.check_now() is True
        assert monitor.is_online
        assert changes == [True]
        assert monitor.get_status()['last_status'] == {'status': 'ok'}

    def test_offline_needs_consecutive_failures(self, monitor, client, changes):
        monitor.check_now()
        client.health.side_effect = NetworkError("down")

        for _ in range(OFFLINE_THRESHOLD - 1):
            monitor.check_now()
        assert monitor.is_online

        monitor.check_now()
        assert not monitor.is_online
        assert changes == [True, False]

    def test_success_resets_failure_count(self, monitor, client):
        monitor.check_now()
        client.health.side_effect = NetworkError("down")
        monitor.check_now()
        client.health.side_effect = None
        monitor.check_now()
        client.health.side_effect = NetworkError("down")
        monitor.check_now()

        assert monitor.is_online
        assert monitor.get_status()['consecutive_failures'] == 1

    def test_callback_error_does_not_propagate(self, client, interval_factory):
        def broken(online):
            raise RuntimeError("callback failed")

        monitor = HealthMonitor(client, on_state_changed=broken, interval_factory=interval_factory)
        assert monitor.check_now() is True

    def test_start_polls_on_interval(self, monitor, client, interval_factory):
        monitor.start()
        monitor.start()

        assert len(interval_factory.timers) == 1
        assert interval_factory.last.delay == 30.0
        interval_factory.last.fire()
        assert client.health.call_count == 1

    def test_stop(self, monitor, interval_factory):
        monitor.start()
        monitor.stop()
        assert interval_factory.last.cancelled
