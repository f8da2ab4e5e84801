"""
Domain: Lead entity and status state machine.

Rules implemented here:
- A Lead represents a single homeowner lead uploaded by one owner and is
  identified by lead_id, scoped under owner_id.
- Name and address fields are immutable after creation; the pipeline only reads them.
- status is the single field that gates every stage transition.
- uploaded_at / analyzed_at are UTC timestamps.

This module contains only pure domain entities/value objects: no I/O, no database,
no frameworks. Transitions are enforced by the stages, not by storage.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from uuid import uuid4

from domain.time import require_utc_timestamp


class LeadStatus(str, Enum):
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    SKIPTRACE_FAILED = "Skiptrace Failed"
    MALFORMED_DATA = "Malformed Data"
    ANALYZED = "Analyzed"

    # Display vocabulary reserved for stages outside this pipeline.
    # Never produced by the skiptrace or analysis stages.
    PENDING_AI_ANALYSIS = "Pending AI Analysis"
    PENDING_ZILLOW = "Pending Zillow"
    ZILLOW_FAILED = "Zillow Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: object) -> "LeadStatus":
        """Parse a stored status; unrecognised values map to UNKNOWN."""

        try:
            return cls(str(value))
        except ValueError:
            return cls.UNKNOWN


RESERVED_STATUSES: FrozenSet[LeadStatus] = frozenset(
    {
        LeadStatus.PENDING_AI_ANALYSIS,
        LeadStatus.PENDING_ZILLOW,
        LeadStatus.ZILLOW_FAILED,
        LeadStatus.UNKNOWN,
    }
)

_TRANSITIONS: Dict[LeadStatus, FrozenSet[LeadStatus]] = {
    LeadStatus.PROCESSING: frozenset(
        {
            LeadStatus.COMPLETED,
            LeadStatus.SKIPTRACE_FAILED,
            LeadStatus.MALFORMED_DATA,
        }
    ),
    # Completed -> Completed is the degraded analysis write (error recorded, status kept).
    LeadStatus.COMPLETED: frozenset({LeadStatus.ANALYZED, LeadStatus.COMPLETED}),
    # Only reachable through the explicit re-enrichment operation.
    LeadStatus.SKIPTRACE_FAILED: frozenset({LeadStatus.PROCESSING}),
}


class InvalidTransitionError(ValueError):
    """Raised when a status change is not part of the pipeline's state machine."""


def can_transition(current: LeadStatus, target: LeadStatus) -> bool:
    return target in _TRANSITIONS.get(current, frozenset())


def require_transition(current: LeadStatus, target: LeadStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Illegal lead status transition: {current.value!r} -> {target.value!r}"
        )


# Attribute names of the six fields every lead needs before it can be skiptraced.
REQUIRED_FIELDS: tuple[str, ...] = (
    "first_name",
    "last_name",
    "street_address",
    "city",
    "state",
    "postal_code",
)


@dataclass(frozen=True, slots=True)
class Lead:
    """
    Pure domain entity for a homeowner Lead.

    Immutability:
    - Instances are frozen; stages express changes as column updates applied
      by the repository, which returns a fresh Lead.

    Notes:
    - Construction does not enforce the status invariants. Stored rows can be
      messy (that is what Malformed Data is for); use invariant_violations()
      to audit a lead.
    """

    lead_id: str
    owner_id: str
    first_name: str
    last_name: str
    street_address: str
    city: str
    state: str
    postal_code: str
    status: LeadStatus
    uploaded_at: datetime
    phone_number: Optional[str] = None
    error: Optional[str] = None
    ai_analysis: Optional[str] = None
    analyzed_at: Optional[datetime] = None
    ai_analysis_error: Optional[str] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("uploaded_at", self.uploaded_at)
        if self.analyzed_at is not None:
            require_utc_timestamp("analyzed_at", self.analyzed_at)

    @classmethod
    def new(
        cls,
        *,
        owner_id: str,
        first_name: str,
        last_name: str,
        street_address: str,
        city: str,
        state: str,
        postal_code: str,
        uploaded_at: datetime,
    ) -> "Lead":
        """Create a freshly uploaded lead in the initial Processing state."""

        return cls(
            lead_id=str(uuid4()),
            owner_id=owner_id,
            first_name=first_name,
            last_name=last_name,
            street_address=street_address,
            city=city,
            state=state,
            postal_code=postal_code,
            status=LeadStatus.PROCESSING,
            uploaded_at=uploaded_at,
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def missing_required_fields(self) -> List[str]:
        """Names of required fields that are empty (or whitespace only)."""

        return [name for name in REQUIRED_FIELDS if not (getattr(self, name) or "").strip()]

    def invariant_violations(self) -> List[str]:
        """Return human-readable descriptions of broken lead invariants."""

        violations: List[str] = []
        if self.status is LeadStatus.COMPLETED and not self.phone_number:
            violations.append("Completed lead has no phone_number")
        if self.status in (LeadStatus.SKIPTRACE_FAILED, LeadStatus.MALFORMED_DATA):
            if not self.error:
                violations.append(f"{self.status.value} lead has no error")
            if self.phone_number:
                violations.append(f"{self.status.value} lead has a phone_number")
        if self.status is not LeadStatus.ANALYZED and (
            self.ai_analysis is not None or self.analyzed_at is not None
        ):
            violations.append("ai_analysis/analyzed_at set on a lead that is not Analyzed")
        if not self.owner_id:
            violations.append("lead has no owner_id")
        return violations
