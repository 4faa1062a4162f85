"""
Error types for the signage display and admin console.
"""

from typing import Optional


class SignageError(Exception):
    """Base class for all signage errors."""
    pass


class NetworkError(SignageError):
    """Transport-level failure (connection refused, timeout, DNS). Always retryable."""

    retryable = True


class HttpError(SignageError):
    """The settings API answered with a failure status."""

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"HTTP {status}")

    @property
    def retryable(self) -> bool:
        """Server errors may be retried, client errors may not."""
        return self.status >= 500


class AuthError(SignageError):
    """Session token missing, invalid or expired."""

    retryable = False


class DecodeError(SignageError):
    """Malformed JSON payload from the API or the settings stream."""

    retryable = False


class ConfigError(SignageError):
    """Required configuration is missing or still a placeholder."""

    retryable = False
