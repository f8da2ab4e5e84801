"""
Pytest configuration.

This file adds the project root to the Python path so that tests can import
the domain, repositories, providers and services packages, and provides a few
shared builders for leads and fake provider clients.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.lead import Lead, LeadStatus  # noqa: E402
from domain.skiptrace import PersonMatch, PhoneCandidate, SkiptraceResult  # noqa: E402

UPLOADED_AT = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def build_lead(**overrides) -> Lead:
    fields = dict(
        lead_id="lead-1",
        owner_id="user-123",
        first_name="Jane",
        last_name="Doe",
        street_address="123 Main St",
        city="Springfield",
        state="IL",
        postal_code="62701",
        status=LeadStatus.PROCESSING,
        uploaded_at=UPLOADED_AT,
    )
    fields.update(overrides)
    return Lead(**fields)


def mobile_result(number: str = "217-555-0100", **phone_overrides) -> SkiptraceResult:
    phone = dict(number=number, type="Mobile", tested=True, reachable=True, score=95)
    phone.update(phone_overrides)
    return SkiptraceResult(persons=(PersonMatch(phones=(PhoneCandidate(**phone),)),))


class FakeSkiptraceClient:
    """Returns a canned result (or raises) and records every request."""

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else mobile_result()
        self.error = error
        self.requests = []

    def lookup(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result


class FakeAnalysisClient:
    def __init__(self, text="Strong prospect", error=None):
        self.text = text
        self.error = error
        self.requests = []

    def analyze(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def fixed_clock():
    analyzed_at = datetime(2025, 1, 2, 9, 30, 0, tzinfo=timezone.utc)
    return lambda: analyzed_at
