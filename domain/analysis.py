"""
Domain: analysis request and the "phone newly resolved" predicate.

The analysis stage runs on every lead update, so the predicate below is what
keeps it a cheap no-op for almost all of them. Its own success write moves the
lead to Analyzed, which fails the status == Completed check and cannot
re-trigger it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from domain.lead import Lead, LeadStatus


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    """Resolved name, phone and address context sent to the analysis provider."""

    first_name: str
    last_name: str
    phone_number: str
    street_address: str
    city: str
    state: str
    postal_code: str

    @classmethod
    def from_lead(cls, lead: Lead) -> "AnalysisRequest":
        if not lead.phone_number:
            raise ValueError("AnalysisRequest requires a resolved phone_number")
        return cls(
            first_name=lead.first_name,
            last_name=lead.last_name,
            phone_number=lead.phone_number,
            street_address=lead.street_address,
            city=lead.city,
            state=lead.state,
            postal_code=lead.postal_code,
        )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def as_instance(self) -> dict[str, str]:
        return {
            "name": self.full_name,
            "phoneNumber": self.phone_number,
            "streetAddress": self.street_address,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
        }


def _only_analysis_error_changed(before: Lead, after: Lead) -> bool:
    # Degraded analysis writes only touch ai_analysis_error.
    return replace(before, ai_analysis_error=None) == replace(after, ai_analysis_error=None)


def is_new_phone_resolution(before: Optional[Lead], after: Optional[Lead]) -> bool:
    """
    True when an update represents a genuinely new phone resolution.

    Requires after.phone_number and after.status == Completed, plus one of:
    - no analysis before and none after (first pass),
    - the phone number changed,
    - the status just became Completed.
    """

    if after is None or not after.phone_number or after.status is not LeadStatus.COMPLETED:
        return False
    if before is None:
        return True
    if _only_analysis_error_changed(before, after):
        return False

    first_pass = not before.ai_analysis and after.ai_analysis is None
    phone_changed = before.phone_number != after.phone_number
    newly_completed = before.status is not LeadStatus.COMPLETED
    return first_pass or phone_changed or newly_completed
