"""
Settings API Client - typed access to the school signage settings server.

Used by the display (read-all at startup, emergency status catch-up) and by
the admin console (writes, session handling, emergency broadcast).
"""

from typing import Any, Dict, Optional

import requests

from .errors import AuthError, DecodeError, HttpError, NetworkError
from .logger import setup_logger

logger = setup_logger(__name__)

# Header carrying the admin session token on write requests
SESSION_HEADER = "X-Session-Token"

DEFAULT_TIMEOUT = 10


class SettingsClient:
    """Client for the settings API (/api/settings, /api/auth, /api/emergency)."""

    def __init__(
        self,
        base_url: str,
        session_token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http: Optional[requests.Session] = None
    ):
        """
        Initialize the settings client.

        Args:
            base_url: API root, e.g. http://signage-server:3000
            session_token: Admin session token from a previous login
            timeout: Request timeout in seconds
            http: requests.Session to use (created if None)
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._session_token = session_token
        self._http = http or requests.Session()

    @property
    def session_token(self) -> Optional[str]:
        """Current admin session token, if logged in."""
        return self._session_token

    def clear_session(self) -> None:
        """Forget the session token locally."""
        self._session_token = None

    # -------------------------------------------------------------------------
    # Request plumbing
    # -------------------------------------------------------------------------

    def _request(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        authenticated: bool = False
    ) -> requests.Response:
        """
        Send a request and map failures onto the error taxonomy.

        Raises:
            AuthError: No token for an authenticated call, or 401/403
            HttpError: Any other non-2xx status
            NetworkError: Connection failure or timeout
        """
        headers = {}
        if authenticated:
            if not self._session_token:
                raise AuthError("Not logged in - no session token")
            headers[SESSION_HEADER] = self._session_token

        url = f"{self.base_url}{path}"
        try:
            response = self._http.request(
                method,
                url,
                json=json_body,
                headers=headers,
                timeout=self.timeout
            )
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(f"Session rejected by server (HTTP {response.status_code})")

        if not 200 <= response.status_code < 300:
            raise HttpError(response.status_code, f"{method} {path} returned HTTP {response.status_code}")

        return response

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {response.url}: {e}") from e

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    def get_all(self) -> Dict[str, Any]:
        """
        Fetch the full settings bundle.

        Returns:
            Mapping of setting key to value

        Raises:
            NetworkError, HttpError, DecodeError
        """
        data = self._json(self._request('GET', '/api/settings'))
        if not isinstance(data, dict):
            raise DecodeError(f"Settings bundle must be an object, got {type(data).__name__}")

        logger.debug("Fetched settings bundle: %s", sorted(data.keys()))
        return data

    def get(self, key: str) -> Any:
        """
        Fetch a single setting.

        Returns:
            The stored value, or None if the key is not set
        """
        try:
            response = self._request('GET', f'/api/settings/{key}')
        except HttpError as e:
            if e.status == 404:
                return None
            raise

        data = self._json(response)
        if isinstance(data, dict) and 'value' in data:
            return data['value']
        return data

    def save(self, key: str, value: Any) -> None:
        """
        Persist one setting. A value of None clears it back to default.

        Raises:
            AuthError: Not logged in or session rejected
            NetworkError, HttpError
        """
        self._request('POST', '/api/settings', json_body={'key': key, 'value': value}, authenticated=True)
        if value is None:
            logger.info("Setting cleared: %s", key)
        else:
            logger.info("Setting saved: %s", key)

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    def login(self, credential: str) -> str:
        """
        Exchange the admin password for a session token.

        Returns:
            The session token (also kept on the client)

        Raises:
            AuthError: Credential rejected or no token in the response
            NetworkError, HttpError
        """
        response = self._request('POST', '/api/auth/login', json_body={'password': credential})
        data = self._json(response)

        token = None
        if isinstance(data, dict):
            token = data.get('token') or data.get('sessionToken')
        if not token:
            raise AuthError("Login response did not contain a session token")

        self._session_token = token
        logger.info("Logged in to settings API")
        return token

    def validate_session(self) -> bool:
        """
        Check the current token with the server. Never raises.

        Returns:
            True if the server accepts the session token
        """
        if not self._session_token:
            return False

        try:
            response = self._request('GET', '/api/auth/validate', authenticated=True)
        except Exception as e:
            logger.debug("Session validation failed: %s", e)
            return False

        try:
            data = response.json()
        except ValueError:
            return True

        if isinstance(data, dict) and 'valid' in data:
            return bool(data['valid'])
        return True

    def logout(self) -> None:
        """End the session on the server. Best effort; errors are logged and dropped."""
        if self._session_token:
            try:
                self._request('POST', '/api/auth/logout', authenticated=True)
            except Exception as e:
                logger.warning("Logout request failed (ignored): %s", e)

        self.clear_session()
        logger.info("Logged out")

    # -------------------------------------------------------------------------
    # Emergency alerts and health
    # -------------------------------------------------------------------------

    def get_emergency_status(self) -> Dict[str, Any]:
        """
        Get the current emergency state.

        Returns:
            {'active': bool, 'alert': dict or None}
        """
        data = self._json(self._request('GET', '/api/emergency/status'))
        if not isinstance(data, dict):
            raise DecodeError("Emergency status must be an object")

        return {
            'active': bool(data.get('active', False)),
            'alert': data.get('alert'),
        }

    def send_emergency(self, alert: Dict[str, Any]) -> None:
        """Broadcast an emergency alert to every display."""
        self._request('POST', '/api/emergency/alert', json_body=alert, authenticated=True)
        logger.warning("Emergency alert sent: %s", alert.get('title') or alert.get('message'))

    def cancel_emergency(self) -> None:
        """Cancel the active emergency alert on every display."""
        self._request('POST', '/api/emergency/cancel', authenticated=True)
        logger.info("Emergency alert cancelled")

    def health(self) -> Dict[str, Any]:
        """Get server health (status, connected displays, uptime)."""
        data = self._json(self._request('GET', '/api/health'))
        if not isinstance(data, dict):
            raise DecodeError("Health response must be an object")
        return data

    def __repr__(self) -> str:
        """String representation."""
        return f"SettingsClient(base_url={self.base_url}, logged_in={self._session_token is not None})"
