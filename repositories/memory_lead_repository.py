"""
In-process lead store.

Implements the same contract as LeadRepository and, like a trigger-capable
document database, records a change event for every created and updated row.
Events accumulate in an outbox until a dispatcher drains them, so delivery is
asynchronous with respect to the write and may be repeated by the caller.

Used for local runs and the test suite.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace
from typing import Any, Deque, Dict, List, Mapping, Optional, Tuple

from domain.events import LeadCreatedEvent, LeadEvent, LeadUpdatedEvent
from domain.lead import Lead, LeadStatus
from repositories.lead_repository import (
    DEFAULT_MAX_BATCH_SIZE,
    PartialInsertError,
    validate_changes,
)


class InMemoryLeadRepository:
    def __init__(self, *, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        self.max_batch_size = max_batch_size
        self._leads: Dict[Tuple[str, str], Lead] = {}
        self._outbox: Deque[LeadEvent] = deque()
        self._lock = threading.Lock()
        self.insert_calls = 0
        self.update_calls = 0

    def insert_leads_bulk(self, leads: List[Lead]) -> int:
        inserted = 0
        for start in range(0, len(leads), self.max_batch_size):
            chunk = leads[start : start + self.max_batch_size]
            with self._lock:
                self.insert_calls += 1
                duplicates = [lead.lead_id for lead in chunk if (lead.owner_id, lead.lead_id) in self._leads]
                if duplicates:
                    raise PartialInsertError(
                        f"Failed to bulk insert {len(chunk)} leads: duplicate lead_id {duplicates[0]}",
                        inserted_count=inserted,
                    )
                for lead in chunk:
                    self._leads[(lead.owner_id, lead.lead_id)] = lead
                    self._outbox.append(LeadCreatedEvent(lead.owner_id, lead.lead_id, lead))
            inserted += len(chunk)
        return inserted

    def get_lead(self, owner_id: str, lead_id: str) -> Optional[Lead]:
        with self._lock:
            return self._leads.get((owner_id, lead_id))

    def update_lead(
        self,
        owner_id: str,
        lead_id: str,
        changes: Mapping[str, Any],
        *,
        expected_status: Optional[LeadStatus] = None,
    ) -> Optional[Lead]:
        validate_changes(changes)
        with self._lock:
            current = self._leads.get((owner_id, lead_id))
            if current is None:
                return None
            if expected_status is not None and current.status is not expected_status:
                return None
            self.update_calls += 1
            updated = replace(current, **dict(changes))
            self._leads[(owner_id, lead_id)] = updated
            self._outbox.append(LeadUpdatedEvent(owner_id, lead_id, before=current, after=updated))
            return updated

    def list_leads_by_owner(self, owner_id: str, limit: Optional[int] = None) -> List[Lead]:
        with self._lock:
            leads = [lead for (owner, _), lead in self._leads.items() if owner == owner_id]
        leads.sort(key=lambda lead: lead.uploaded_at, reverse=True)
        return leads[:limit] if limit is not None else leads

    def list_leads_by_status(self, status: LeadStatus, limit: int = 100) -> List[Lead]:
        with self._lock:
            leads = [lead for lead in self._leads.values() if lead.status is status]
        leads.sort(key=lambda lead: lead.uploaded_at)
        return leads[:limit]

    def pop_events(self) -> List[LeadEvent]:
        """Remove and return all pending change events in write order."""

        with self._lock:
            events = list(self._outbox)
            self._outbox.clear()
        return events


__all__ = ["InMemoryLeadRepository"]
