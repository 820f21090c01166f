# errors.py – Taxonomie des erreurs exposées à la couche HTTP

from typing import Optional


class ScoutError(Exception):
    """Base exception for Steam Scout."""
    pass


class RateLimitExceeded(ScoutError):
    """Raised when a caller exceeded its quota (HTTP 429)."""

    def __init__(self, retry_after_seconds: int, limit: int, window_seconds: float,
                 message: str = "Too many requests, please try again later."):
        super().__init__(message)
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit
        self.window_seconds = window_seconds
        self.message = message


class UpstreamNotFound(ScoutError):
    """The external identifier is definitively absent upstream (HTTP 404)."""

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found on Steam")
        self.resource = resource


class UpstreamUnavailable(ScoutError):
    """Transient upstream failure: network error, malformed payload, 5xx."""

    def __init__(self, resource: str, reason: Optional[str] = None):
        msg = f"Steam unavailable for {resource}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.resource = resource
        self.reason = reason


class InternalLimiterError(ScoutError):
    """Unexpected fault inside a rate limiter. Logged, never surfaced."""
    pass
