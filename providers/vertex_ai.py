"""
Lead analysis clients.

Two implementations share the AnalysisClient interface:
- VertexAIAnalysisClient calls a deployed Vertex AI endpoint's :predict method.
- SimulatedAnalysisClient returns a deterministic canned analysis; this is the
  default mode until a real model endpoint is deployed.

The analysis text is treated as opaque; only the first prediction is used.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domain.analysis import AnalysisRequest
from providers.errors import MalformedProviderResponse
from providers.http import post_json

logger = logging.getLogger(__name__)

# Keys checked, in order, when a prediction is an object instead of a string.
_TEXT_KEYS = ("content", "analysis", "text", "output")


class AnalysisClient(Protocol):
    def analyze(self, request: AnalysisRequest) -> str:  # pragma: no cover - protocol
        """Return free-text analysis for a resolved lead."""


class PredictResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    predictions: List[Any] = Field(..., min_length=1)


def extract_analysis_text(payload: Any) -> str:
    """Pull the analysis string out of a :predict response, failing closed."""

    try:
        response = PredictResponse.model_validate(payload)
    except ValidationError as exc:
        raise MalformedProviderResponse(
            f"Unexpected prediction response shape ({exc.error_count()} validation errors)"
        ) from exc

    prediction = response.predictions[0]
    if isinstance(prediction, str) and prediction.strip():
        return prediction.strip()
    if isinstance(prediction, dict):
        for key in _TEXT_KEYS:
            value = prediction.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    raise MalformedProviderResponse("Prediction did not contain analysis text")


class VertexAIAnalysisClient:
    def __init__(
        self,
        project_id: str,
        endpoint_id: str,
        *,
        location: str = "us-central1",
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = (
            f"https://{location}-aiplatform.googleapis.com/v1/projects/{project_id}"
            f"/locations/{location}/endpoints/{endpoint_id}:predict"
        )
        self.timeout = timeout
        self.session = session or requests.Session()
        self._headers = {"Content-Type": "application/json"}
        if access_token:
            self._headers["Authorization"] = f"Bearer {access_token}"

    def analyze(self, request: AnalysisRequest) -> str:
        payload = post_json(
            self.session,
            self.url,
            body={"instances": [request.as_instance()]},
            headers=self._headers,
            timeout=self.timeout,
        )
        return extract_analysis_text(payload)


class SimulatedAnalysisClient:
    def analyze(self, request: AnalysisRequest) -> str:
        result = (
            f"AI analysis for {request.first_name} {request.last_name}: (Simulated Result) - "
            "Score 85/100, Good prospect based on mobile phone availability and address."
        )
        logger.info(f"Simulated analysis prediction: {result}")
        return result


__all__ = [
    "AnalysisClient",
    "SimulatedAnalysisClient",
    "VertexAIAnalysisClient",
    "extract_analysis_text",
]
