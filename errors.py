"""Error taxonomy shared by the session manager and the Fleet API client"""

from typing import Optional


class EnergyMonitorError(Exception):
    """Base class for every failure surfaced by the core

    ``message`` is human readable and is what ends up in ``AuthState.error``.
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(EnergyMonitorError):
    """Client configuration is incomplete (e.g. missing client ID)"""


class TransportError(EnergyMonitorError):
    """The request never produced an HTTP response"""

    def __init__(self, cause: Exception):
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class HttpStatusError(EnergyMonitorError):
    """The server answered with a status code >= 400"""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None):
        super().__init__(message or f"HTTP error ({status_code})")
        self.status_code = status_code
        self.body = body


class ForbiddenError(HttpStatusError):
    def __init__(self, body: str = ""):
        super().__init__(403, body, "Access forbidden. Check your permissions.")


class NotFoundError(HttpStatusError):
    def __init__(self, body: str = ""):
        super().__init__(404, body, "Resource not found")


class RateLimitedError(HttpStatusError):
    def __init__(self, body: str = ""):
        super().__init__(429, body, "Rate limited. Please try again later.")


class ServerError(HttpStatusError):
    def __init__(self, status_code: int, body: str = ""):
        super().__init__(status_code, body, f"Server error ({status_code})")


class DecodeError(EnergyMonitorError):
    """A response body did not have the expected shape"""


class AuthenticationRequired(EnergyMonitorError):
    """No usable access token; the user must sign in again"""

    def __init__(self, message: str = "Authentication required. Please sign in to Tesla."):
        super().__init__(message)


class StateMismatch(EnergyMonitorError):
    """The OAuth callback state does not match the stored anti-forgery token"""

    def __init__(self, message: str = "Invalid state parameter"):
        super().__init__(message)


class Cancelled(EnergyMonitorError):
    """The authorization attempt was abandoned, denied or timed out"""


def error_for_status(status_code: int, body: str = "") -> HttpStatusError:
    """Map a non-success status (other than 401) to its typed error

    Args:
        status_code: HTTP status code >= 400
        body: Response text, kept for diagnostics

    Returns:
        The matching HttpStatusError subclass instance
    """
    if status_code == 403:
        return ForbiddenError(body)
    if status_code == 404:
        return NotFoundError(body)
    if status_code == 429:
        return RateLimitedError(body)
    if 500 <= status_code <= 599:
        return ServerError(status_code, body)
    return HttpStatusError(status_code, body)
