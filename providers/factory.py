"""Build provider clients from settings; None means "not configured"."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from config.settings import Settings
from providers.batchdata import BatchDataClient
from providers.vertex_ai import AnalysisClient, SimulatedAnalysisClient, VertexAIAnalysisClient

logger = logging.getLogger(__name__)


def build_skiptrace_client(
    settings: Settings, session: Optional[requests.Session] = None
) -> Optional[BatchDataClient]:
    if not settings.skiptrace_configured:
        logger.warning("BatchData endpoint or API key not configured; skiptrace will fail leads")
        return None
    return BatchDataClient(
        settings.batchdata_api_endpoint,  # type: ignore[arg-type]
        settings.batchdata_api_key,  # type: ignore[arg-type]
        timeout=settings.http_timeout_seconds,
        session=session,
    )


def build_analysis_client(
    settings: Settings, session: Optional[requests.Session] = None
) -> Optional[AnalysisClient]:
    if not settings.analysis_configured:
        logger.warning("Vertex AI endpoint ID or GCP project ID not configured; analysis disabled")
        return None
    if settings.analysis_mode == "simulated":
        return SimulatedAnalysisClient()
    return VertexAIAnalysisClient(
        settings.gcp_project_id,  # type: ignore[arg-type]
        settings.vertexai_endpoint_id,  # type: ignore[arg-type]
        location=settings.vertexai_location,
        access_token=settings.vertexai_access_token,
        timeout=settings.http_timeout_seconds,
        session=session,
    )


__all__ = ["build_analysis_client", "build_skiptrace_client"]
