"""
Tests for the Supabase lead repository against a recorded fake client.

The fake records the query builder calls (table, insert, update, eq, ...) so
tests can check the exact filters sent without a live database.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from postgrest.exceptions import APIError

from conftest import build_lead
from domain.lead import LeadStatus
from repositories.lead_repository import (
    LeadRepository,
    PartialInsertError,
    RepositoryError,
    changes_to_row,
    lead_to_row,
    row_to_lead,
)


class FakeQuery:
    def __init__(self, client, table):
        self.client = client
        self.table = table
        self.calls = []

    def __getattr__(self, name):
        if name not in {"select", "insert", "update", "eq", "order", "limit"}:
            raise AttributeError(name)

        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self

        return record

    def execute(self):
        outcome = self.client.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(data=outcome)


class FakeSupabase:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.queries = []

    def table(self, name):
        query = FakeQuery(self, name)
        self.queries.append(query)
        return query


class TestRowMapping:
    """Tests for converting between domain leads and table rows."""

    def test_round_trip_of_an_analyzed_lead(self):
        lead = build_lead(
            status=LeadStatus.ANALYZED,
            phone_number="217-555-0100",
            ai_analysis="Strong prospect",
            analyzed_at=datetime(2025, 1, 2, tzinfo=timezone.utc),
        )

        row = lead_to_row(lead)

        assert row["status"] == "Analyzed"
        assert row["uploaded_at_utc"] == "2025-01-01T12:00:00+00:00"
        assert row["analyzed_at_utc"] == "2025-01-02T00:00:00+00:00"
        assert row_to_lead(row) == lead

    def test_unknown_status_and_empty_strings(self):
        row = lead_to_row(build_lead())
        row.update({"status": "Archived", "phone_number": "", "error": None})

        lead = row_to_lead(row)

        assert lead.status is LeadStatus.UNKNOWN
        assert lead.phone_number is None

    def test_changes_use_column_names(self):
        at = datetime(2025, 1, 2, tzinfo=timezone.utc)

        assert changes_to_row({"status": LeadStatus.ANALYZED, "analyzed_at": at}) == {
            "status": "Analyzed",
            "analyzed_at_utc": "2025-01-02T00:00:00+00:00",
        }

    def test_immutable_fields_cannot_be_changed(self):
        with pytest.raises(ValueError):
            changes_to_row({"owner_id": "someone-else"})


class TestLeadRepository:
    """Tests for queries sent through the Supabase client."""

    def test_bulk_insert_is_chunked(self):
        client = FakeSupabase([], [], [])
        repo = LeadRepository(client, max_batch_size=2)
        leads = [build_lead(lead_id=f"lead-{i}") for i in range(5)]

        assert repo.insert_leads_bulk(leads) == 5

        sizes = [len(query.calls[0][1][0]) for query in client.queries]
        assert sizes == [2, 2, 1]
        assert all(query.table == "leads" for query in client.queries)

    def test_failed_chunk_reports_earlier_inserts(self):
        client = FakeSupabase([], APIError({"message": "duplicate key", "code": "23505"}))
        repo = LeadRepository(client, max_batch_size=2)
        leads = [build_lead(lead_id=f"lead-{i}") for i in range(4)]

        with pytest.raises(PartialInsertError) as exc_info:
            repo.insert_leads_bulk(leads)

        assert exc_info.value.inserted_count == 2

    def test_conditional_update_filters_on_status(self):
        updated = lead_to_row(build_lead(status=LeadStatus.COMPLETED, phone_number="217-555-0100"))
        client = FakeSupabase([updated])
        repo = LeadRepository(client)

        lead = repo.update_lead(
            "user-123",
            "lead-1",
            {"status": LeadStatus.COMPLETED, "phone_number": "217-555-0100", "error": None},
            expected_status=LeadStatus.PROCESSING,
        )

        assert lead.status is LeadStatus.COMPLETED
        calls = client.queries[0].calls
        assert calls[0] == (
            "update",
            ({"status": "Completed", "phone_number": "217-555-0100", "error": None},),
            {},
        )
        assert ("eq", ("owner_id", "user-123"), {}) in calls
        assert ("eq", ("lead_id", "lead-1"), {}) in calls
        assert ("eq", ("status", "Processing"), {}) in calls

    def test_update_matching_no_row_returns_none(self):
        repo = LeadRepository(FakeSupabase([]))

        assert repo.update_lead("user-123", "lead-1", {"error": "x"}, expected_status=LeadStatus.PROCESSING) is None

    def test_get_lead(self):
        client = FakeSupabase([lead_to_row(build_lead())], [])
        repo = LeadRepository(client)

        assert repo.get_lead("user-123", "lead-1").first_name == "Jane"
        assert repo.get_lead("user-123", "missing") is None

    def test_list_by_owner_orders_newest_first(self):
        client = FakeSupabase([])
        LeadRepository(client).list_leads_by_owner("user-123", limit=10)

        calls = client.queries[0].calls
        assert ("order", ("uploaded_at_utc",), {"desc": True}) in calls
        assert ("limit", (10,), {}) in calls

    def test_api_error_becomes_repository_error(self):
        repo = LeadRepository(FakeSupabase(APIError({"message": "permission denied", "code": "42501"})))

        with pytest.raises(RepositoryError):
            repo.list_leads_by_status(LeadStatus.PROCESSING)

    def test_batch_size_must_be_positive(self):
        with pytest.raises(ValueError):
            LeadRepository(FakeSupabase(), max_batch_size=0)
