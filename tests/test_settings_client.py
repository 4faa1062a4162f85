"""
Tests for SettingsClient.

A small in-memory stand-in for the settings API answers the requests so
writes and reads can be checked end to end.
"""

from unittest.mock import MagicMock

import pytest
import requests

from school_signage.common.errors import AuthError, DecodeError, HttpError, NetworkError
from school_signage.common.settings_client import SESSION_HEADER, SettingsClient

BASE_URL = "http://signage.local:3000"


def make_response(status_code=200, payload=None, bad_json=False):
    response = MagicMock()
    response.status_code = status_code
    response.url = BASE_URL
    if bad_json:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = payload
    return response


class FakeSettingsApi:
    """Answers requests.Session.request() like the settings server."""

    PASSWORD = "letmein"
    TOKEN = "session-abc"

    def __init__(self):
        self.settings = {}
        self.calls = []
        self.emergency = {'active': False}

    def request(self, method, url, json=None, headers=None, timeout=None):
        path = url[len(BASE_URL):]
        headers = headers or {}
        self.calls.append((method, path, json, headers))
        authed = headers.get(SESSION_HEADER) == self.TOKEN

        if method == 'POST' and path == '/api/auth/login':
            if json.get('password') != self.PASSWORD:
                return make_response(401, {'error': 'Invalid password'})
            return make_response(200, {'token': self.TOKEN})

        if method == 'GET' and path == '/api/settings':
            return make_response(200, dict(self.settings))

        if method == 'GET' and path.startswith('/api/settings/'):
            key = path[len('/api/settings/'):]
            if key not in self.settings:
                return make_response(404, {'error': 'Not found'})
            return make_response(200, {'key': key, 'value': self.settings[key]})

        if method == 'POST' and path == '/api/settings':
            if not authed:
                return make_response(401, {'error': 'Unauthorized'})
            if json['value'] is None:
                self.settings.pop(json['key'], None)
            else:
                self.settings[json['key']] = json['value']
            return make_response(200, {'success': True})

        if method == 'GET' and path == '/api/auth/validate':
            return make_response(200 if authed else 401, {'valid': authed})

        if method == 'POST' and path == '/api/auth/logout':
            return make_response(200, {'success': True})

        if method == 'GET' and path == '/api/emergency/status':
            return make_response(200, self.emergency)

        if method == 'POST' and path == '/api/emergency/alert':
            if not authed:
                return make_response(401)
            self.emergency = {'active': True, 'alert': json}
            return make_response(200, {'success': True})

        if method == 'POST' and path == '/api/emergency/cancel':
            if not authed:
                return make_response(401)
            self.emergency = {'active': False}
            return make_response(200, {'success': True})

        if method == 'GET' and path == '/api/health':
            return make_response(200, {'status': 'ok', 'connections': {'sse_clients': 3}})

        return make_response(404)


@pytest.fixture
def api():
    return FakeSettingsApi()


@pytest.fixture
def client(api):
    return SettingsClient(BASE_URL, http=api)


@pytest.fixture
def logged_in(client):
    client.login(FakeSettingsApi.PASSWORD)
    return client


class TestReads:
    """Tests for get_all() and get()."""

    def test_get_all_empty(self, client):
        assert client.get_all() == {}

    def test_get_missing_key_is_none(self, client):
        assert client.get('customTheme') is None

    def test_get_all_rejects_non_object(self):
        http = MagicMock()
        http.request.return_value = make_response(200, [1, 2])
        with pytest.raises(DecodeError):
            SettingsClient(BASE_URL, http=http).get_all()

    def test_get_all_bad_json(self):
        http = MagicMock()
        http.request.return_value = make_response(200, bad_json=True)
        with pytest.raises(DecodeError):
            SettingsClient(BASE_URL, http=http).get_all()

    def test_network_failure(self):
        """Test transport errors surface as NetworkError."""
        http = MagicMock()
        http.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(NetworkError) as exc:
            SettingsClient(BASE_URL, http=http).get_all()
        assert exc.value.retryable

    def test_server_error(self):
        """Test a 503 becomes a retryable HttpError."""
        http = MagicMock()
        http.request.return_value = make_response(503)
        with pytest.raises(HttpError) as exc:
            SettingsClient(BASE_URL, http=http).get_all()
        assert exc.value.status == 503
        assert exc.value.retryable

    def test_client_error_not_retryable(self):
        http = MagicMock()
        http.request.return_value = make_response(400)
        with pytest.raises(HttpError) as exc:
            SettingsClient(BASE_URL, http=http).get_all()
        assert not exc.value.retryable

    def test_trailing_slash_trimmed(self, api):
        client = SettingsClient(BASE_URL + "/", http=api)
        client.get_all()
        assert api.calls[-1][1] == '/api/settings'


class TestWrites:
    """Tests for save()."""

    def test_save_then_get_all(self, api, logged_in):
        """Test a saved value is returned by the next get_all()."""
        theme = {'name': 'Sunset', 'accentColor': '#fff5e6'}
        logged_in.save('customTheme', theme)
        assert logged_in.get_all()['customTheme'] == theme
        assert logged_in.get('customTheme') == theme

    def test_save_none_clears(self, logged_in):
        logged_in.save('generalConfig', {'schoolName': 'A'})
        logged_in.save('generalConfig', None)
        assert 'generalConfig' not in logged_in.get_all()

    def test_save_sends_session_header(self, api, logged_in):
        logged_in.save('USE_IMAGE_SLIDES', True)
        method, path, body, headers = api.calls[-1]
        assert (method, path) == ('POST', '/api/settings')
        assert body == {'key': 'USE_IMAGE_SLIDES', 'value': True}
        assert headers[SESSION_HEADER] == FakeSettingsApi.TOKEN

    def test_save_without_token_raises_auth_error(self, api, client):
        """Test no request is made without a token."""
        with pytest.raises(AuthError):
            client.save('customTheme', {})
        assert api.calls == []

    def test_rejected_token_raises_auth_error(self, api):
        client = SettingsClient(BASE_URL, session_token='stale', http=api)
        with pytest.raises(AuthError):
            client.save('customTheme', {})


class TestSession:
    """Tests for login, validation and logout."""

    def test_login_stores_token(self, client):
        assert client.login(FakeSettingsApi.PASSWORD) == FakeSettingsApi.TOKEN
        assert client.session_token == FakeSettingsApi.TOKEN

    def test_wrong_password(self, client):
        with pytest.raises(AuthError):
            client.login('wrong')
        assert client.session_token is None

    def test_login_without_token_in_response(self):
        http = MagicMock()
        http.request.return_value = make_response(200, {'success': True})
        with pytest.raises(AuthError):
            SettingsClient(BASE_URL, http=http).login('x')

    def test_validate_session(self, logged_in):
        assert logged_in.validate_session() is True

    def test_validate_without_token(self, client):
        assert client.validate_session() is False

    def test_validate_never_raises(self):
        http = MagicMock()
        http.request.side_effect = requests.exceptions.Timeout("slow")
        client = SettingsClient(BASE_URL, session_token='t', http=http)
        assert client.validate_session() is False

    def test_logout_clears_token(self, logged_in):
        logged_in.logout()
        assert logged_in.session_token is None

    def test_logout_swallows_errors(self):
        """Test logout is best effort."""
        http = MagicMock()
        http.request.side_effect = requests.exceptions.ConnectionError("down")
        client = SettingsClient(BASE_URL, session_token='t', http=http)
        client.logout()
        assert client.session_token is None


class TestEmergencyAndHealth:
    """Tests for emergency endpoints and health."""

    def test_status_inactive(self, client):
        assert client.get_emergency_status() == {'active': False, 'alert': None}

    def test_send_and_cancel(self, logged_in):
        logged_in.send_emergency({'message': 'Lockdown'})
        status = logged_in.get_emergency_status()
        assert status['active'] is True
        assert status['alert'] == {'message': 'Lockdown'}

        logged_in.cancel_emergency()
        assert logged_in.get_emergency_status()['active'] is False

    def test_send_requires_login(self, client):
        with pytest.raises(AuthError):
            client.send_emergency({'message': 'x'})

    def test_health(self, client):
        assert client.health()['status'] == 'ok'
