"""
Analysis stage.

Reacts to every lead-updated event and runs only for a genuine new phone
resolution (see domain.analysis.is_new_phone_resolution). Analysis is
best-effort: a missing configuration or provider failure is recorded in
ai_analysis_error and the lead stays Completed, so a later reconciliation pass
can retry it. Success moves the lead to Analyzed.

All writes are conditional on the lead still being Completed.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from domain.analysis import AnalysisRequest, is_new_phone_resolution
from domain.events import LeadUpdatedEvent
from domain.lead import Lead, LeadStatus, require_transition
from domain.time import utc_now
from providers.errors import ProviderError
from providers.vertex_ai import AnalysisClient
from repositories.lead_repository import LeadStore

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "Analysis provider configuration missing."


class AnalysisStage:
    def __init__(
        self,
        store: LeadStore,
        client: Optional[AnalysisClient],
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._client = client
        self._clock = clock

    def handle_updated(self, event: LeadUpdatedEvent) -> Optional[Lead]:
        """
        Handle a lead-updated event.

        Returns:
            The lead as written by this invocation, or None for the (usual) no-op.
        """

        if event.after is None:
            return None
        if not is_new_phone_resolution(event.before, event.after):
            return None

        current = self._store.get_lead(event.owner_id, event.lead_id)
        if (
            current is None
            or current.status is not LeadStatus.COMPLETED
            or current.phone_number != event.after.phone_number
        ):
            logger.info(
                f"Lead {event.lead_id} no longer matches the triggering update; skipping analysis",
                extra={"owner_id": event.owner_id, "lead_id": event.lead_id},
            )
            return None

        return self._analyze(current)

    def _analyze(self, lead: Lead) -> Optional[Lead]:
        log_extra = {"owner_id": lead.owner_id, "lead_id": lead.lead_id}
        logger.info(f"Initiating analysis for lead {lead.lead_id}", extra=log_extra)

        if self._client is None:
            logger.error(
                f"Analysis provider not configured; skipping analysis for lead {lead.lead_id}",
                extra=log_extra,
            )
            return self._write(lead, {"ai_analysis_error": NOT_CONFIGURED_MESSAGE})

        try:
            analysis = self._client.analyze(AnalysisRequest.from_lead(lead))
        except ProviderError as exc:
            logger.error(
                f"Analysis failed for lead {lead.lead_id}: {exc.record_message}",
                extra={**log_extra, "error_type": type(exc).__name__},
            )
            return self._write(lead, {"ai_analysis_error": exc.record_message, "status": LeadStatus.COMPLETED})
        except Exception as exc:
            logger.exception(f"Unexpected error during analysis for lead {lead.lead_id}", extra=log_extra)
            return self._write(lead, {"ai_analysis_error": str(exc) or type(exc).__name__, "status": LeadStatus.COMPLETED})

        return self._write(
            lead,
            {
                "ai_analysis": analysis,
                "analyzed_at": self._clock(),
                "status": LeadStatus.ANALYZED,
                "ai_analysis_error": None,
            },
        )

    def _write(self, lead: Lead, changes: Dict[str, Any]) -> Optional[Lead]:
        require_transition(lead.status, changes.get("status", lead.status))
        updated = self._store.update_lead(
            lead.owner_id,
            lead.lead_id,
            changes,
            expected_status=LeadStatus.COMPLETED,
        )
        if updated is None:
            logger.info(
                f"Lead {lead.lead_id} left Completed before the analysis write; dropping result",
                extra={"owner_id": lead.owner_id, "lead_id": lead.lead_id},
            )
        return updated


__all__ = ["AnalysisStage", "NOT_CONFIGURED_MESSAGE"]
