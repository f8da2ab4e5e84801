"""
Unit tests for CSV ingestion functionality.

Tests CSV parsing, column alias resolution, row dropping and bulk persistence.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from domain.lead import LeadStatus
from repositories.lead_repository import PartialInsertError, RepositoryError
from repositories.memory_lead_repository import InMemoryLeadRepository
from services.ingestion_service import (
    COLUMN_ALIASES,
    NO_VALID_LEADS_MESSAGE,
    PARSE_ERROR_MESSAGE,
    SUCCESS_MESSAGE,
    CsvParseError,
    LeadPersistenceError,
    NoValidRecordsError,
    build_leads,
    ingest_csv,
    parse_csv_rows,
    resolve_field,
)

NOW = datetime(2025, 3, 1, 8, 0, 0, tzinfo=timezone.utc)

JANE_CSV = (
    "First Name,Last Name,Street Address,City,State,Postal Code\n"
    "Jane,Doe,123 Main St,Springfield,IL,62701\n"
).encode("utf-8")


class TestParsing:
    """Tests for decoding and parsing the uploaded bytes."""

    def test_parse_basic_rows(self):
        rows = parse_csv_rows(JANE_CSV)
        assert rows == [
            {
                "First Name": "Jane",
                "Last Name": "Doe",
                "Street Address": "123 Main St",
                "City": "Springfield",
                "State": "IL",
                "Postal Code": "62701",
            }
        ]

    def test_parse_tolerates_utf8_bom(self):
        rows = parse_csv_rows(b"\xef\xbb\xbf" + JANE_CSV)
        assert "First Name" in rows[0]

    def test_parse_skips_blank_lines(self):
        content = JANE_CSV + b"\n\n" + b"John,Roe,9 Elm St,Peoria,IL,61602\n"
        assert len(parse_csv_rows(content)) == 2

    def test_parse_quoted_fields_with_commas(self):
        content = (
            'First Name,Last Name,Street Address,City,State,Postal Code\n'
            'Jane,Doe,"123 Main St, Apt 4",Springfield,IL,62701\n'
        ).encode("utf-8")
        assert parse_csv_rows(content)[0]["Street Address"] == "123 Main St, Apt 4"

    def test_parse_rejects_undecodable_bytes(self):
        with pytest.raises(CsvParseError) as exc_info:
            parse_csv_rows(b"\xff\xfe\x00\x81garbage")
        assert str(exc_info.value) == PARSE_ERROR_MESSAGE

    def test_parse_empty_file_has_no_rows(self):
        assert parse_csv_rows(b"") == []
        assert parse_csv_rows(b"\n\n") == []


class TestFieldResolution:
    """Tests for alias priority when mapping columns to lead fields."""

    def test_first_alias_wins(self):
        row = {"First Name": "Jane", "first_name": "Janet", "firstName": "J"}
        assert resolve_field(row, COLUMN_ALIASES["first_name"]) == "Jane"

    def test_falls_through_empty_alias(self):
        row = {"First Name": "  ", "first_name": "", "firstName": "Jane"}
        assert resolve_field(row, COLUMN_ALIASES["first_name"]) == "Jane"

    def test_values_are_trimmed(self):
        assert resolve_field({"City": "  Springfield "}, COLUMN_ALIASES["city"]) == "Springfield"

    def test_missing_column_resolves_empty(self):
        assert resolve_field({}, COLUMN_ALIASES["postal_code"]) == ""

    def test_column_names_are_case_sensitive(self):
        assert resolve_field({"CITY": "Springfield"}, COLUMN_ALIASES["city"]) == ""


class TestLeadFactory:
    """Tests for building Processing leads from parsed rows."""

    def test_build_leads_from_mixed_aliases(self):
        rows = [
            {
                "firstName": "Jane",
                "last_name": "Doe",
                "streetAddress": "123 Main St",
                "city": "Springfield",
                "State": "IL",
                "postalCode": "62701",
            }
        ]

        leads, dropped = build_leads(rows, "user-123", NOW)

        assert dropped == 0
        lead = leads[0]
        assert lead.owner_id == "user-123"
        assert lead.status is LeadStatus.PROCESSING
        assert lead.uploaded_at == NOW
        assert (lead.first_name, lead.last_name, lead.postal_code) == ("Jane", "Doe", "62701")

    def test_rows_missing_required_fields_are_dropped(self):
        rows = parse_csv_rows(
            JANE_CSV
            + b"John,Roe,,Peoria,IL,61602\n"
            + b"Ann,Lee,5 Oak Ave,Dover,DE,\n"
        )

        leads, dropped = build_leads(rows, "user-123", NOW)

        assert len(leads) == 1
        assert dropped == 2

    def test_build_leads_requires_utc_timestamp(self):
        with pytest.raises(ValueError):
            build_leads([], "user-123", datetime(2025, 3, 1))


class TestIngest:
    """Tests for the end-to-end ingest operation against the in-memory store."""

    def test_ingest_persists_leads_and_reports_counts(self):
        store = InMemoryLeadRepository()
        content = JANE_CSV + b"John,Roe,,Peoria,IL,61602\n"

        result = ingest_csv(content, "user-123", store, clock=lambda: NOW)

        assert result.leads_created == 1
        assert result.rows_total == 2
        assert result.rows_dropped == 1
        assert result.message == SUCCESS_MESSAGE
        stored = store.list_leads_by_owner("user-123")
        assert [lead.first_name for lead in stored] == ["Jane"]
        assert stored[0].status is LeadStatus.PROCESSING

    def test_each_created_lead_emits_a_created_event(self):
        store = InMemoryLeadRepository()
        content = JANE_CSV + b"John,Roe,9 Elm St,Peoria,IL,61602\n"

        ingest_csv(content, "user-123", store, clock=lambda: NOW)

        events = store.pop_events()
        assert len(events) == 2
        assert {type(event).__name__ for event in events} == {"LeadCreatedEvent"}

    def test_large_upload_is_chunked(self):
        store = InMemoryLeadRepository(max_batch_size=2)
        lines = [b"First Name,Last Name,Street Address,City,State,Postal Code"]
        lines += [f"P{i},Q{i},{i} Main St,Springfield,IL,62701".encode() for i in range(5)]

        result = ingest_csv(b"\n".join(lines), "user-123", store, clock=lambda: NOW)

        assert result.leads_created == 5
        assert store.insert_calls == 3

    def test_zero_valid_rows_persists_nothing(self):
        store = InMemoryLeadRepository()

        with pytest.raises(NoValidRecordsError) as exc_info:
            ingest_csv(b"First Name,Last Name\nJane,Doe\n", "user-123", store, clock=lambda: NOW)

        assert str(exc_info.value) == NO_VALID_LEADS_MESSAGE
        assert exc_info.value.rows_total == 1
        assert store.insert_calls == 0

    def test_header_only_file_has_no_valid_rows(self):
        with pytest.raises(NoValidRecordsError):
            ingest_csv(JANE_CSV.splitlines()[0], "user-123", InMemoryLeadRepository())

    def test_empty_file_has_no_valid_rows(self):
        store = InMemoryLeadRepository()

        with pytest.raises(NoValidRecordsError) as exc_info:
            ingest_csv(b"", "user-123", store, clock=lambda: NOW)

        assert str(exc_info.value) == NO_VALID_LEADS_MESSAGE
        assert exc_info.value.rows_total == 0
        assert store.insert_calls == 0

    def test_owner_id_required(self):
        with pytest.raises(ValueError):
            ingest_csv(JANE_CSV, "  ", InMemoryLeadRepository())

    def test_store_failure_reports_partial_count(self):
        class FailingSecondChunk(InMemoryLeadRepository):
            def insert_leads_bulk(self, leads):
                if len(leads) > self.max_batch_size:
                    super().insert_leads_bulk(leads[: self.max_batch_size])
                    raise PartialInsertError("connection reset", inserted_count=self.max_batch_size)
                return super().insert_leads_bulk(leads)

        store = FailingSecondChunk(max_batch_size=1)
        content = JANE_CSV + b"John,Roe,9 Elm St,Peoria,IL,61602\n"

        with pytest.raises(LeadPersistenceError) as exc_info:
            ingest_csv(content, "user-123", store, clock=lambda: NOW)

        assert exc_info.value.leads_created == 1
        assert len(store.list_leads_by_owner("user-123")) == 1

    def test_repository_error_reports_zero_created(self):
        class BrokenStore(InMemoryLeadRepository):
            def insert_leads_bulk(self, leads):
                raise RepositoryError("database unavailable")

        with pytest.raises(LeadPersistenceError) as exc_info:
            ingest_csv(JANE_CSV, "user-123", BrokenStore(), clock=lambda: NOW)

        assert exc_info.value.leads_created == 0
        assert "database unavailable" in str(exc_info.value)
