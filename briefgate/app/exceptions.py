"""Custom exceptions for the service.

Every exception maps to one HTTP status and one machine-readable ``code``
so handlers can turn it into the ``{ok: false, error, code, ...}`` body.
"""

from typing import Any, Dict


class GatewayException(Exception):
    """Base class for service exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code and code for consistent response handling.
    """
    status_code: int = 500
    code: str = "SERVER_ERROR"

    def __init__(self, message: str = "Server error"):
        self.message = message
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        """Convert to the failure response body."""
        return {"ok": False, "error": self.message, "code": self.code}


class RateLimitedError(GatewayException):
    """Raised when the gate refuses a request.

    Not a fault: the caller may retry after the disclosed wait.
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429


class CooldownActiveError(RateLimitedError):
    """Raised when a request arrives before the identity's cooldown expired."""
    code = "COOLDOWN"

    def __init__(self, cooldown_seconds: int, detail: str | None = None):
        self.cooldown_seconds = cooldown_seconds
        message = detail or (
            f"Please wait {cooldown_seconds}s before generating again (cooldown)."
        )
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["cooldownSeconds"] = self.cooldown_seconds
        return body


class DailyLimitExceededError(RateLimitedError):
    """Raised when the identity used up its daily quota.

    The quota resets when the UTC calendar day rolls over.
    """
    code = "DAILY_LIMIT"

    def __init__(self, limit: int, detail: str | None = None):
        self.limit = limit
        self.remaining_today = 0
        message = detail or (
            f"Daily limit reached ({limit}/day). Try again tomorrow."
        )
        super().__init__(message)

    def to_response(self) -> Dict[str, Any]:
        body = super().to_response()
        body["remainingToday"] = self.remaining_today
        return body


class BadRequestError(GatewayException):
    """Raised when the request payload is malformed or out of range.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad request"):
        super().__init__(message)


class UpstreamError(GatewayException):
    """Raised when the generative provider fails.

    Maps to HTTP 500 with code SERVER_ERROR.
    """
    status_code = 500
    code = "SERVER_ERROR"

    def __init__(self, message: str = "Upstream provider error"):
        super().__init__(message)


class UpstreamTimeoutError(UpstreamError):
    """Raised when the provider did not answer in time."""

    def __init__(self, message: str = "Upstream provider timed out"):
        super().__init__(message)


class InvalidUpstreamResponseError(UpstreamError):
    """Raised when the provider answered with unusable content."""

    def __init__(self, message: str = "Upstream provider returned an invalid response"):
        super().__init__(message)


class ConfigurationError(GatewayException):
    """Raised when a required credential or setting is missing.

    Fatal to the request; operators need to fix the deployment.
    """
    status_code = 500
    code = "SERVER_ERROR"
