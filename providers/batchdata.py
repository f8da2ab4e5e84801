"""
BatchData skip-trace client.

Sends one property-search request per lead and parses the response strictly:
any mismatch with the expected schema becomes MalformedProviderResponse
instead of letting missing or mistyped fields reach the selection logic.
Only the fields selection needs are modelled; everything else is ignored.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domain.skiptrace import PersonMatch, PhoneCandidate, SkiptraceRequest, SkiptraceResult
from providers.errors import MalformedProviderResponse
from providers.http import post_json

logger = logging.getLogger(__name__)


# ============================================================================
# Response schema
# ============================================================================

class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BatchDataPhoneNumber(_Schema):
    number: Optional[str] = None
    carrier: Optional[str] = None
    type: Optional[str] = None
    tested: bool = False
    reachable: bool = False
    score: Optional[float] = None


class BatchDataPerson(_Schema):
    dnc: Optional[Dict[str, Any]] = None
    phone_numbers: Optional[List[BatchDataPhoneNumber]] = Field(default=None, alias="phoneNumbers")


class BatchDataMetaResults(_Schema):
    request_count: int = Field(default=0, alias="requestCount")
    match_count: int = Field(default=0, alias="matchCount")
    no_match_count: int = Field(default=0, alias="noMatchCount")
    error_count: int = Field(default=0, alias="errorCount")


class BatchDataMeta(_Schema):
    results: Optional[BatchDataMetaResults] = None


class BatchDataResults(_Schema):
    persons: Optional[List[BatchDataPerson]] = None
    meta: Optional[BatchDataMeta] = None


class BatchDataStatus(_Schema):
    code: Optional[int] = None
    text: Optional[str] = None


class BatchDataResponse(_Schema):
    status: Optional[BatchDataStatus] = None
    results: Optional[BatchDataResults] = None

    def to_result(self) -> SkiptraceResult:
        results = self.results or BatchDataResults()
        persons = tuple(
            PersonMatch(
                phones=tuple(
                    PhoneCandidate(
                        number=phone.number or "",
                        type=phone.type or "",
                        tested=phone.tested,
                        reachable=phone.reachable,
                        score=phone.score,
                        carrier=phone.carrier,
                    )
                    for phone in person.phone_numbers or []
                ),
                dnc=dict(person.dnc or {}),
            )
            for person in results.persons or []
        )
        no_match = 0
        if results.meta is not None and results.meta.results is not None:
            no_match = results.meta.results.no_match_count
        return SkiptraceResult(persons=persons, no_match_count=no_match)


def parse_skiptrace_response(payload: Any) -> SkiptraceResult:
    """Validate a raw BatchData response body and convert it to domain values."""

    try:
        response = BatchDataResponse.model_validate(payload)
    except ValidationError as exc:
        raise MalformedProviderResponse(
            f"Unexpected skip-trace response shape ({exc.error_count()} validation errors)"
        ) from exc
    return response.to_result()


# ============================================================================
# Client
# ============================================================================

def build_request_body(request: SkiptraceRequest) -> dict[str, Any]:
    return {
        "requests": [
            {
                "name": {"first": request.first_name, "last": request.last_name},
                "propertyAddress": {
                    "street": request.street,
                    "city": request.city,
                    "state": request.state,
                    "zip": request.postal_code,
                },
            }
        ]
    }


class BatchDataClient:
    """Phone-lookup provider client (one HTTP call per lookup, no retries)."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self.session = session or requests.Session()
        self._headers = {
            "Authorization": api_key,
            "Content-Type": "application/json",
            "Accept": "application/json, application/xml",
        }

    def lookup(self, request: SkiptraceRequest) -> SkiptraceResult:
        """
        Look up phone candidates for a person at a property address.

        Raises:
            ProviderError subclasses for transport, HTTP and schema failures.
        """

        logger.info(
            f'Calling BatchData for "{request.name}", {request.street}, {request.city}, '
            f"{request.state}, {request.postal_code}"
        )
        payload = post_json(
            self.session,
            self.endpoint,
            body=build_request_body(request),
            headers=self._headers,
            timeout=self.timeout,
        )
        logger.debug("BatchData raw response", extra={"payload": payload})
        return parse_skiptrace_response(payload)


__all__ = [
    "BatchDataClient",
    "BatchDataResponse",
    "build_request_body",
    "parse_skiptrace_response",
]
