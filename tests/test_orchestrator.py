"""
Tests for DisplayOrchestrator.
"""

from unittest.mock import MagicMock

import pytest

from school_signage.common.errors import HttpError, NetworkError
from school_signage.display.applier import PROP_ACCENT, SettingsApplier
from school_signage.display.emergency import EmergencyAlertOverlay
from school_signage.display.events import (
    EmergencyAlertEvent,
    EmergencyCancelEvent,
    InitialEvent,
    ServerShutdownEvent,
    SettingsUpdateEvent,
)
from school_signage.display.livestream import Livestream
from school_signage.display.orchestrator import DisplayOrchestrator, StateTransitionError, SyncState
from school_signage.display.slideshow import Slideshow

STREAM_URL = "http://signage.local:3000/api/settings/stream"

SERVER_BUNDLE = {
    'generalConfig': {'schoolName': 'Server HS'},
    'customSlides': [{'id': '1', 'content': 'One'}, {'id': '2', 'content': 'Two'}],
}


@pytest.fixture
def client():
    client = MagicMock()
    client.get_all.return_value = SERVER_BUNDLE
    client.get_emergency_status.return_value = {'active': False, 'alert': None}
    return client


@pytest.fixture
def subscriber():
    return MagicMock()


@pytest.fixture
def slideshow(surface, interval_factory):
    return Slideshow(surface, interval_factory=interval_factory)


@pytest.fixture
def livestream(surface, slideshow, interval_factory):
    return Livestream(surface, slideshow, http=MagicMock(), interval_factory=interval_factory)


@pytest.fixture
def emergency(surface):
    return EmergencyAlertOverlay(surface)


@pytest.fixture
def orchestrator(client, cache, surface, slideshow, livestream, subscriber, emergency):
    applier = SettingsApplier(surface, slideshow, livestream)
    return DisplayOrchestrator(
        client=client,
        cache=cache,
        applier=applier,
        subscriber=subscriber,
        emergency=emergency,
        stream_url=STREAM_URL,
        schedule_checker=MagicMock(),
        health_monitor=MagicMock()
    )


class TestBootstrap:
    """Tests for the startup sequence."""

    def test_registers_handler(self, orchestrator, subscriber):
        subscriber.on_event.assert_called_once_with(orchestrator.handle_event)

    def test_server_bundle_applied_and_cached(self, orchestrator, surface, cache):
        orchestrator.bootstrap()

        assert surface.school_name == 'Server HS'
        assert cache.load_bundle() == SERVER_BUNDLE
        assert orchestrator.bundle_source == 'server'
        assert orchestrator.state is SyncState.SYNCING

    def test_stream_connected_after_apply(self, orchestrator, subscriber, surface):
        seen = []
        subscriber.connect.side_effect = lambda url: seen.append((url, surface.school_name))

        orchestrator.bootstrap()

        assert seen == [(STREAM_URL, 'Server HS')]

    def test_network_failure_falls_back_to_cache(self, orchestrator, client, cache, surface, subscriber):
        """Test the cached school name is shown when the server is unreachable."""
        client.get_all.side_effect = NetworkError("connection refused")
        cache.save_bundle({'generalConfig': {'schoolName': 'Lincoln HS'}})

        orchestrator.bootstrap()

        assert surface.school_name == 'Lincoln HS'
        assert orchestrator.bundle_source == 'cache'
        assert orchestrator.state is SyncState.SYNCING
        subscriber.connect.assert_called_once_with(STREAM_URL)

    def test_http_error_falls_back_to_cache(self, orchestrator, client, cache, surface):
        client.get_all.side_effect = HttpError(500)
        cache.save_bundle({'generalConfig': {'schoolName': 'Lincoln HS'}})

        orchestrator.bootstrap()

        assert surface.school_name == 'Lincoln HS'

    def test_failure_does_not_overwrite_cache(self, orchestrator, client, cache):
        client.get_all.side_effect = NetworkError("down")
        cache.save_bundle({'generalConfig': {'schoolName': 'Lincoln HS'}})

        orchestrator.bootstrap()

        assert cache.load_bundle() == {'generalConfig': {'schoolName': 'Lincoln HS'}}

    def test_empty_cache_still_connects(self, orchestrator, client, subscriber, surface):
        client.get_all.side_effect = NetworkError("down")
        orchestrator.bootstrap()

        assert surface.school_name == 'School Name'
        subscriber.connect.assert_called_once()

    def test_start_runs_in_background(self, orchestrator, subscriber):
        orchestrator.start()
        orchestrator._bootstrap_thread.join(timeout=5)

        subscriber.connect.assert_called_once_with(STREAM_URL)
        orchestrator._schedule_checker.start.assert_called_once()
        orchestrator._health_monitor.start.assert_called_once()


class TestStreamEvents:
    """Tests for handle_event()."""

    def test_initial_goes_live(self, orchestrator, surface, client):
        orchestrator.bootstrap()
        orchestrator.handle_event(InitialEvent(bundle={'customTheme': {'accentColor': '#ff0000'}}))

        assert orchestrator.state is SyncState.LIVE
        assert surface.get_style_property(PROP_ACCENT) == '#ff0000'
        client.get_emergency_status.assert_called_once()

    def test_initial_replaces_fetched_bundle(self, orchestrator, surface):
        """Test the later bundle wins."""
        orchestrator.bootstrap()
        orchestrator.handle_event(InitialEvent(bundle={'generalConfig': {'schoolName': 'Stream HS'}}))

        assert surface.school_name == 'Stream HS'
        assert orchestrator.settings == {'generalConfig': {'schoolName': 'Stream HS'}}

    def test_initial_before_bootstrap_rejected(self, orchestrator):
        with pytest.raises(StateTransitionError):
            orchestrator.handle_event(InitialEvent(bundle={}))

    def test_rejected_initial_changes_nothing(self, orchestrator, surface, cache):
        with pytest.raises(StateTransitionError):
            orchestrator.handle_event(InitialEvent(bundle={'generalConfig': {'schoolName': 'Early HS'}}))

        assert surface.school_name == 'School Name'
        assert cache.load_bundle() == {}
        assert orchestrator.settings == {}
        assert orchestrator.state is SyncState.BOOTSTRAPPING

    def test_update_applies_and_caches(self, orchestrator, surface, cache):
        orchestrator.bootstrap()
        orchestrator.handle_event(InitialEvent(bundle=SERVER_BUNDLE))

        bundle = dict(SERVER_BUNDLE, generalConfig={'schoolName': 'Updated HS'})
        orchestrator.handle_event(SettingsUpdateEvent(bundle=bundle, changed_key='generalConfig'))

        assert orchestrator.state is SyncState.LIVE
        assert surface.school_name == 'Updated HS'
        assert cache.load_bundle()['generalConfig'] == {'schoolName': 'Updated HS'}

    def test_repeated_initial_stays_live(self, orchestrator):
        orchestrator.bootstrap()
        orchestrator.handle_event(InitialEvent(bundle={}))
        orchestrator.handle_event(InitialEvent(bundle={}))
        assert orchestrator.state is SyncState.LIVE

    def test_server_shutdown_is_only_logged(self, orchestrator, subscriber):
        orchestrator.bootstrap()
        orchestrator.handle_event(ServerShutdownEvent())

        assert orchestrator.state is SyncState.SYNCING
        subscriber.disconnect.assert_not_called()

    def test_settings_are_copies(self, orchestrator):
        orchestrator.bootstrap()
        snapshot = orchestrator.settings
        snapshot['generalConfig']['schoolName'] = 'Tampered'

        assert orchestrator.settings['generalConfig']['schoolName'] == 'Server HS'

    def test_apply_all_out_of_band(self, orchestrator, surface):
        orchestrator.apply_all({'generalConfig': {'schoolName': 'Manual HS'}})
        assert surface.school_name == 'Manual HS'
        assert orchestrator.bundle_source == 'manual'


class TestEmergency:
    """Tests for emergency routing."""

    def test_alert_then_cancel(self, client, cache, surface, slideshow, livestream, subscriber):
        """Test one show then one hide, in that order, without the applier."""
        overlay = MagicMock()
        applier = MagicMock()
        orchestrator = DisplayOrchestrator(client, cache, applier, subscriber, overlay, STREAM_URL)

        orchestrator.handle_event(EmergencyAlertEvent(alert={'message': 'Lockdown'}))
        orchestrator.handle_event(EmergencyCancelEvent())

        assert [c[0] for c in overlay.method_calls] == ['show', 'hide']
        overlay.show.assert_called_once_with({'message': 'Lockdown'})
        applier.apply_all.assert_not_called()

    def test_missed_alert_shown_on_initial(self, orchestrator, client, emergency):
        client.get_emergency_status.return_value = {'active': True, 'alert': {'message': 'Evacuate'}}
        orchestrator.bootstrap()
        orchestrator.handle_event(InitialEvent(bundle={}))

        assert emergency.current.message == 'Evacuate'

    def test_missed_cancel_clears_alert(self, orchestrator, emergency):
        orchestrator.bootstrap()
        emergency.show({'message': 'Old alert'})
        orchestrator.handle_event(InitialEvent(bundle={}))

        assert emergency.current is None

    def test_status_failure_is_logged(self, orchestrator, client):
        client.get_emergency_status.side_effect = NetworkError("down")
        orchestrator.bootstrap()
        orchestrator.handle_event(InitialEvent(bundle={}))

        assert orchestrator.state is SyncState.LIVE


class TestStop:
    """Tests for teardown."""

    def test_stop_clears_everything(self, orchestrator, subscriber, interval_factory, livestream):
        orchestrator.bootstrap()
        orchestrator.apply_all({
            'customSlides': [{'id': '1', 'content': 'One'}],
            'livestreamConfig': {'enabled': True, 'url': 'https://x/y', 'autoDetect': True},
        })

        orchestrator.stop()

        subscriber.disconnect.assert_called_once()
        orchestrator._schedule_checker.stop.assert_called_once()
        orchestrator._health_monitor.stop.assert_called_once()
        assert interval_factory.live == []
        assert not livestream.is_monitoring
