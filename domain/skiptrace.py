"""
Domain: skiptrace lookup values and phone candidate selection.

Selection rules (applied to the first person match only):
- Any do-not-call entry suppresses phone extraction entirely, regardless of
  which numbers are available.
- Only Mobile numbers are candidates; landlines are never selected.
- Among mobiles, the first tested + reachable number wins; otherwise the first
  mobile with any non-empty number; otherwise nothing.

This module is pure: provider clients translate wire responses into these
value objects before selection runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence, Tuple

from domain.lead import Lead

MOBILE_PHONE_TYPE = "Mobile"

DNC_MESSAGE = "Person is on DNC list. Skipping phone number extraction."
NO_MOBILE_MESSAGE = "No suitable mobile phone number found for this lead (not on DNC)."
NO_MATCH_MESSAGE = "No match found for address by BatchData."
MISSING_RESULTS_MESSAGE = "API response missing person results or other issue."


@dataclass(frozen=True, slots=True)
class SkiptraceRequest:
    """Lookup query built from a lead's name and property address."""

    first_name: str
    last_name: str
    street: str
    city: str
    state: str
    postal_code: str

    @classmethod
    def from_lead(cls, lead: Lead) -> "SkiptraceRequest":
        return cls(
            first_name=lead.first_name,
            last_name=lead.last_name,
            street=lead.street_address,
            city=lead.city,
            state=lead.state,
            postal_code=lead.postal_code,
        )

    @property
    def name(self) -> str:
        """Subject name sent to the provider."""

        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True, slots=True)
class PhoneCandidate:
    number: str
    type: str
    tested: bool = False
    reachable: bool = False
    score: Optional[float] = None
    carrier: Optional[str] = None

    @property
    def is_mobile(self) -> bool:
        return self.type == MOBILE_PHONE_TYPE

    def describe(self) -> str:
        score = _format_score(self.score)
        flags = ""
        if self.tested:
            flags += ", Tested"
        if self.reachable:
            flags += ", Reachable"
        return f"Mobile ({self.type}, Score: {score}{flags})"


@dataclass(frozen=True, slots=True)
class PersonMatch:
    phones: Tuple[PhoneCandidate, ...] = ()
    dnc: Mapping[str, object] = field(default_factory=dict)

    @property
    def is_dnc(self) -> bool:
        return len(self.dnc) > 0


@dataclass(frozen=True, slots=True)
class SkiptraceResult:
    """Ranked person matches returned by a lookup provider."""

    persons: Tuple[PersonMatch, ...] = ()
    no_match_count: int = 0


@dataclass(frozen=True, slots=True)
class PhoneSelection:
    phone_number: Optional[str]
    message: str

    @property
    def found(self) -> bool:
        return bool(self.phone_number)


def _format_score(score: Optional[float]) -> str:
    if not score:
        return "N/A"
    if float(score).is_integer():
        return str(int(score))
    return str(score)


def select_mobile(candidates: Sequence[PhoneCandidate]) -> Optional[PhoneCandidate]:
    """Pick the preferred mobile candidate, or None if no mobile qualifies."""

    mobiles = [candidate for candidate in candidates if candidate.is_mobile]
    for candidate in mobiles:
        if candidate.tested and candidate.reachable and candidate.number:
            return candidate
    for candidate in mobiles:
        if candidate.number:
            return candidate
    return None


def select_phone(result: SkiptraceResult) -> PhoneSelection:
    """Apply DNC suppression and mobile selection to a lookup result."""

    if not result.persons:
        if result.no_match_count > 0:
            return PhoneSelection(phone_number=None, message=NO_MATCH_MESSAGE)
        return PhoneSelection(phone_number=None, message=MISSING_RESULTS_MESSAGE)

    person = result.persons[0]
    if person.is_dnc:
        return PhoneSelection(phone_number=None, message=DNC_MESSAGE)

    best = select_mobile(person.phones)
    if best is None:
        return PhoneSelection(phone_number=None, message=NO_MOBILE_MESSAGE)
    return PhoneSelection(phone_number=best.number, message=best.describe())
