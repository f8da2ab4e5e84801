"""
Skiptrace stage.

Reacts to lead-created events:
1. Re-reads the lead; anything not in Processing is a duplicate delivery (no write)
2. Processing leads missing required fields become Malformed Data
3. Missing provider configuration fails the lead immediately (no retry)
4. One lookup call, then DNC suppression and mobile selection
5. Completed with phone_number, or Skiptrace Failed with a descriptive error

Every write is conditional on the lead still being in Processing; that write is
the only way an invocation claims the transition. Provider failures of any kind
end in Skiptrace Failed and never escape the handler.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Protocol

from domain.events import LeadCreatedEvent
from domain.lead import InvalidTransitionError, Lead, LeadStatus, require_transition
from domain.skiptrace import SkiptraceRequest, SkiptraceResult, select_phone
from providers.errors import ProviderError
from repositories.lead_repository import LeadStore

logger = logging.getLogger(__name__)

MALFORMED_MESSAGE = "Missing required lead fields for skiptrace."
NOT_CONFIGURED_MESSAGE = "Skiptrace API credentials missing in configuration."


class SkiptraceClient(Protocol):
    def lookup(self, request: SkiptraceRequest) -> SkiptraceResult:  # pragma: no cover - protocol
        """Return ranked person matches for a name + property address."""


class LeadNotFoundError(LookupError):
    """Raised when an explicit operation targets a lead that does not exist."""


class SkiptraceStage:
    def __init__(self, store: LeadStore, client: Optional[SkiptraceClient]) -> None:
        self._store = store
        self._client = client

    def handle_created(self, event: LeadCreatedEvent) -> Optional[Lead]:
        """
        Handle a lead-created event.

        Returns:
            The lead as written by this invocation, or None when nothing was
            written (duplicate delivery, lead gone, or lost the conditional write).
        """

        current = self._store.get_lead(event.owner_id, event.lead_id)
        if current is None:
            logger.warning(
                f"Lead {event.lead_id} not found for owner {event.owner_id}; skipping skiptrace",
                extra={"owner_id": event.owner_id, "lead_id": event.lead_id},
            )
            return None
        return self._enrich(current)

    def reenrich(self, owner_id: str, lead_id: str) -> Optional[Lead]:
        """
        Explicitly re-run skiptrace for a lead whose previous attempt failed.

        Raises:
            LeadNotFoundError: no such lead for this owner
            InvalidTransitionError: the lead is not in Skiptrace Failed
        """

        current = self._store.get_lead(owner_id, lead_id)
        if current is None:
            raise LeadNotFoundError(f"Lead not found: {lead_id}")
        require_transition(current.status, LeadStatus.PROCESSING)

        reset = self._store.update_lead(
            owner_id,
            lead_id,
            {"status": LeadStatus.PROCESSING, "error": None, "phone_number": None},
            expected_status=current.status,
        )
        if reset is None:
            raise InvalidTransitionError(
                f"Lead {lead_id} changed status before re-enrichment could start"
            )
        logger.info(
            f"Re-enrichment requested for lead {lead_id}",
            extra={"owner_id": owner_id, "lead_id": lead_id},
        )
        return self._enrich(reset)

    def _enrich(self, lead: Lead) -> Optional[Lead]:
        log_extra = {"owner_id": lead.owner_id, "lead_id": lead.lead_id}

        if lead.status is not LeadStatus.PROCESSING:
            logger.info(
                f"Lead {lead.lead_id} is {lead.status.value!r}, not Processing; skipping skiptrace",
                extra=log_extra,
            )
            return None

        missing = lead.missing_required_fields()
        if missing:
            logger.warning(
                f"Lead {lead.lead_id} missing critical data ({', '.join(missing)})",
                extra=log_extra,
            )
            return self._write(lead, LeadStatus.MALFORMED_DATA, phone_number=None, error=MALFORMED_MESSAGE)

        if self._client is None:
            logger.error(
                f"Skiptrace provider not configured; cannot skiptrace lead {lead.lead_id}",
                extra=log_extra,
            )
            return self._write(lead, LeadStatus.SKIPTRACE_FAILED, phone_number=None, error=NOT_CONFIGURED_MESSAGE)

        request = SkiptraceRequest.from_lead(lead)
        try:
            result = self._client.lookup(request)
        except ProviderError as exc:
            logger.error(
                f"Skiptrace provider error for lead {lead.lead_id}: {exc.record_message}",
                extra={**log_extra, "error_type": type(exc).__name__},
            )
            return self._write(lead, LeadStatus.SKIPTRACE_FAILED, phone_number=None, error=exc.record_message)
        except Exception as exc:
            logger.exception(f"Unexpected error during skiptrace for lead {lead.lead_id}", extra=log_extra)
            return self._write(
                lead,
                LeadStatus.SKIPTRACE_FAILED,
                phone_number=None,
                error=f"Unexpected skiptrace error: {exc}",
            )

        selection = select_phone(result)
        logger.info(
            f"Skiptrace result for {request.name}: Phone Number - "
            f"{selection.phone_number or 'Not found'}. Message: {selection.message}",
            extra=log_extra,
        )
        if selection.found:
            return self._write(lead, LeadStatus.COMPLETED, phone_number=selection.phone_number, error=None)
        return self._write(lead, LeadStatus.SKIPTRACE_FAILED, phone_number=None, error=selection.message)

    def _write(
        self,
        lead: Lead,
        status: LeadStatus,
        *,
        phone_number: Optional[str],
        error: Optional[str],
    ) -> Optional[Lead]:
        require_transition(lead.status, status)
        changes: Dict[str, Any] = {"status": status, "phone_number": phone_number, "error": error}
        updated = self._store.update_lead(
            lead.owner_id,
            lead.lead_id,
            changes,
            expected_status=LeadStatus.PROCESSING,
        )
        if updated is None:
            logger.info(
                f"Lead {lead.lead_id} left Processing before the skiptrace write; dropping result",
                extra={"owner_id": lead.owner_id, "lead_id": lead.lead_id},
            )
        return updated


__all__ = [
    "LeadNotFoundError",
    "MALFORMED_MESSAGE",
    "NOT_CONFIGURED_MESSAGE",
    "SkiptraceClient",
    "SkiptraceStage",
]
