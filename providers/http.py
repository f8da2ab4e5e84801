"""
Shared JSON-over-HTTP call used by provider clients.

Classifies every failure into the provider error taxonomy so callers only
ever handle ProviderError.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from providers.errors import (
    MalformedProviderResponse,
    ProviderRequestError,
    ProviderResponseError,
    ProviderUnavailableError,
)

logger = logging.getLogger(__name__)


def _error_message(response: requests.Response, payload: Any) -> str:
    if isinstance(payload, Mapping):
        message = payload.get("message")
        if message:
            return str(message)
        status = payload.get("status")
        if isinstance(status, Mapping) and status.get("text"):
            return str(status["text"])
        error = payload.get("error")
        if isinstance(error, Mapping) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return f"Request failed with status code {response.status_code}"


def post_json(
    session: requests.Session,
    url: str,
    *,
    body: Mapping[str, Any],
    headers: Mapping[str, str],
    timeout: float,
) -> Any:
    """
    POST a JSON body and return the decoded JSON response.

    Raises:
        ProviderUnavailableError: connection failure or timeout (no response)
        ProviderRequestError: the request could not be built or sent
        ProviderResponseError: non-2xx response (status code + payload kept)
        MalformedProviderResponse: 2xx response whose body is not JSON
    """

    try:
        response = session.post(url, json=body, headers=dict(headers), timeout=timeout)
    except (requests.ConnectionError, requests.Timeout) as exc:
        raise ProviderUnavailableError(str(exc)) from exc
    except (requests.RequestException, ValueError) as exc:
        # MissingSchema, InvalidURL, InvalidHeader, unserializable body, ...
        raise ProviderRequestError(str(exc)) from exc

    if not response.ok:
        try:
            payload: Any = response.json()
        except ValueError:
            payload = response.text
        logger.error(
            f"Provider returned HTTP {response.status_code}",
            extra={"url": url, "status_code": response.status_code, "payload": payload},
        )
        raise ProviderResponseError(response.status_code, _error_message(response, payload), payload)

    try:
        return response.json()
    except ValueError as exc:
        raise MalformedProviderResponse(f"Response body is not valid JSON: {exc}") from exc


__all__ = ["post_json"]
