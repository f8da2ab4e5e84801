"""
Pipeline wiring.

The entry point (API startup or a script) owns the lifecycle of the store and
provider clients and passes them in here; nothing is created lazily at import.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from config.settings import Settings
from domain.time import utc_now
from providers.factory import build_analysis_client, build_skiptrace_client
from providers.vertex_ai import AnalysisClient
from repositories.client import create_supabase_client
from repositories.lead_repository import LeadRepository, LeadStore
from repositories.memory_lead_repository import InMemoryLeadRepository
from services.analysis_service import AnalysisStage
from services.dispatcher import LeadEventDispatcher
from services.skiptrace_service import SkiptraceClient, SkiptraceStage

logger = logging.getLogger(__name__)


@dataclass
class LeadPipeline:
    settings: Settings
    store: LeadStore
    dispatcher: LeadEventDispatcher
    skiptrace: SkiptraceStage
    analysis: AnalysisStage


def build_store(settings: Settings) -> LeadStore:
    """Create the configured lead store (Supabase by default)."""

    if settings.lead_store == "memory":
        logger.warning("Using the in-process lead store; leads are not persisted")
        return InMemoryLeadRepository(max_batch_size=settings.ingest_batch_size)
    client = create_supabase_client(settings)
    return LeadRepository(client, max_batch_size=settings.ingest_batch_size)


def build_pipeline(
    settings: Settings,
    store: LeadStore,
    *,
    skiptrace_client: Optional[SkiptraceClient] = None,
    analysis_client: Optional[AnalysisClient] = None,
    use_configured_clients: bool = True,
    clock: Callable[[], datetime] = utc_now,
) -> LeadPipeline:
    """
    Build both stages and register them on a dispatcher.

    Explicit clients take precedence; otherwise, when use_configured_clients is
    set, clients are built from settings (None when not configured).
    """

    if skiptrace_client is None and use_configured_clients:
        skiptrace_client = build_skiptrace_client(settings)
    if analysis_client is None and use_configured_clients:
        analysis_client = build_analysis_client(settings)

    skiptrace = SkiptraceStage(store, skiptrace_client)
    analysis = AnalysisStage(store, analysis_client, clock=clock)

    dispatcher = LeadEventDispatcher()
    dispatcher.on_created(skiptrace.handle_created)
    dispatcher.on_updated(analysis.handle_updated)

    logger.info(
        "Lead pipeline ready",
        extra={
            "skiptrace_configured": skiptrace_client is not None,
            "analysis_configured": analysis_client is not None,
        },
    )
    return LeadPipeline(
        settings=settings,
        store=store,
        dispatcher=dispatcher,
        skiptrace=skiptrace,
        analysis=analysis,
    )


__all__ = ["LeadPipeline", "build_pipeline", "build_store"]
