"""
External provider error taxonomy.

Each error knows the message recorded on the lead, so the distinguishing
detail (status code and payload, no response, local build error, schema
mismatch) survives into the lead's error field.
"""

from __future__ import annotations

from typing import Any, Optional


class ProviderError(Exception):
    """Base class for lookup/analysis provider failures."""

    @property
    def record_message(self) -> str:
        return str(self)


class ProviderResponseError(ProviderError):
    """The provider answered with a non-2xx status."""

    def __init__(self, status_code: int, message: str, payload: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload

    @property
    def record_message(self) -> str:
        return f"API Error {self.status_code}: {self.message}"


class ProviderUnavailableError(ProviderError):
    """No response was received (connection failure or timeout)."""

    @property
    def record_message(self) -> str:
        return f"API Request Error: No response received. {self}"


class ProviderRequestError(ProviderError):
    """The request could not be built or sent (bad URL, bad header, ...)."""

    @property
    def record_message(self) -> str:
        return f"API Config Error: {self}"


class MalformedProviderResponse(ProviderError):
    """The provider answered 2xx but the body did not match the expected schema."""

    @property
    def record_message(self) -> str:
        return f"API Response Error: {self}"


__all__ = [
    "MalformedProviderResponse",
    "ProviderError",
    "ProviderRequestError",
    "ProviderResponseError",
    "ProviderUnavailableError",
]
