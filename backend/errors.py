# backend/errors.py

from typing import Any, Dict, Optional


class RelayError(Exception):
    """
    Base class for every failure the relay reports to the browser.
    Carries the HTTP status and the {error, details} body to return.
    """

    status_code: int = 500

    def __init__(self, error: str, details: Any = None, status_code: Optional[int] = None):
        self.error = error
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(error)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(RelayError):
    status_code = 400


class ConfigurationError(RelayError):
    status_code = 500


class RateLimitedError(RelayError):
    status_code = 429

    def __init__(self, retry_after: int):
        self.retry_after = retry_after
        super().__init__(
            "Rate limited - please wait and try again",
            f"Try again in {retry_after} seconds. Add $5+ credit to Replicate to remove limits.",
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["retryAfter"] = self.retry_after
        return payload


class ProviderError(RelayError):
    """Non-2xx from Replicate. `details` is the response body verbatim."""


class GenerationFailedError(RelayError):
    status_code = 500


class GenerationTimeoutError(RelayError):
    status_code = 500
