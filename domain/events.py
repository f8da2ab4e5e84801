"""
Domain: lead change events.

Events are delivered at least once and not necessarily in order. Handlers must
treat them as hints and re-read the persisted lead before acting.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from domain.lead import Lead


@dataclass(frozen=True, slots=True)
class LeadCreatedEvent:
    owner_id: str
    lead_id: str
    lead: Lead


@dataclass(frozen=True, slots=True)
class LeadUpdatedEvent:
    """Before/after snapshots of a single lead row."""

    owner_id: str
    lead_id: str
    before: Optional[Lead]
    after: Optional[Lead]


LeadEvent = Union[LeadCreatedEvent, LeadUpdatedEvent]
