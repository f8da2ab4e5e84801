"""
Polling delivery for deployments without database webhooks.

Each poll synthesizes events from persisted state:
- every Processing lead gets a created event (skiptrace)
- every Completed lead gets an updated event with no "before" snapshot, which
  the analysis stage treats as a new resolution

Because the stages re-check status before writing, polling the same lead
repeatedly is safe; it also doubles as the reconciliation pass that retries
analysis for leads left Completed after a provider failure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List

from domain.events import LeadCreatedEvent, LeadUpdatedEvent
from domain.lead import LeadStatus
from repositories.lead_repository import LeadStore
from services.dispatcher import LeadEventDispatcher

logger = logging.getLogger(__name__)


@dataclass
class PollResult:
    created_events: int = 0
    updated_events: int = 0
    errors: List[str] = field(default_factory=list)


class LeadPoller:
    def __init__(self, store: LeadStore, dispatcher: LeadEventDispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    def poll_once(self, limit: int = 100) -> PollResult:
        result = PollResult()

        for lead in self._store.list_leads_by_status(LeadStatus.PROCESSING, limit):
            dispatched = self._dispatcher.dispatch(LeadCreatedEvent(lead.owner_id, lead.lead_id, lead))
            result.created_events += 1
            result.errors.extend(dispatched.errors)

        for lead in self._store.list_leads_by_status(LeadStatus.COMPLETED, limit):
            dispatched = self._dispatcher.dispatch(
                LeadUpdatedEvent(lead.owner_id, lead.lead_id, before=None, after=lead)
            )
            result.updated_events += 1
            result.errors.extend(dispatched.errors)

        logger.info(
            f"Poll dispatched {result.created_events} created and "
            f"{result.updated_events} updated events ({len(result.errors)} errors)"
        )
        return result


__all__ = ["LeadPoller", "PollResult"]
