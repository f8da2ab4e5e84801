"""
Tests for the HTTP boundary (FastAPI TestClient, in-memory pipeline).
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from conftest import FakeAnalysisClient, FakeSkiptraceClient, build_lead
from config.settings import Settings
from domain.lead import LeadStatus
from repositories.lead_repository import RepositoryError, lead_to_row
from repositories.memory_lead_repository import InMemoryLeadRepository
from services.pipeline import build_pipeline

UPLOAD_URL = "/api/v1/upload-csv"

CSV = (
    "First Name,Last Name,Street Address,City,State,Postal Code\n"
    "Jane,Doe,123 Main St,Springfield,IL,62701\n"
    "John,Roe,,Peoria,IL,61602\n"
).encode("utf-8")


def _client(store=None, settings=None, skiptrace=None):
    store = store if store is not None else InMemoryLeadRepository()
    pipeline = build_pipeline(
        settings or Settings(lead_store="memory"),
        store,
        skiptrace_client=skiptrace or FakeSkiptraceClient(),
        analysis_client=FakeAnalysisClient("Strong prospect"),
        use_configured_clients=False,
    )
    return TestClient(create_app(pipeline)), pipeline


class TestHealth:
    """Tests for service endpoints."""

    def test_health(self):
        client, _ = _client()
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_upload_route_check(self):
        client, _ = _client()
        response = client.get(UPLOAD_URL)
        assert response.status_code == 200
        assert response.json() == {"status": 200, "message": "API route is working!"}


class TestUpload:
    """Tests for POST /api/v1/upload-csv."""

    def test_successful_upload_runs_pipeline(self):
        client, pipeline = _client()

        response = client.post(
            UPLOAD_URL,
            files={"csvFile": ("leads.csv", CSV, "text/csv")},
            data={"userId": "user-123"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "message": "CSV file processed and leads saved. Skip-tracing will begin shortly.",
            "leadsCount": 1,
            "rowsDropped": 1,
        }
        (lead,) = pipeline.store.list_leads_by_owner("user-123")
        assert lead.status is LeadStatus.ANALYZED
        assert lead.phone_number == "217-555-0100"

    def test_missing_file(self):
        client, _ = _client()
        response = client.post(UPLOAD_URL, data={"userId": "user-123"})
        assert response.status_code == 400
        assert response.json() == {"error": "No CSV file uploaded."}

    def test_missing_user(self):
        client, pipeline = _client()
        response = client.post(UPLOAD_URL, files={"csvFile": ("leads.csv", CSV, "text/csv")})
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized: User ID missing."}
        assert pipeline.store.insert_calls == 0

    def test_unparseable_file(self):
        client, _ = _client()
        response = client.post(
            UPLOAD_URL,
            files={"csvFile": ("leads.csv", b"\xff\xfe\x00\x81", "text/csv")},
            data={"userId": "user-123"},
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Failed to parse CSV file. Please ensure it is a valid CSV."}

    def test_no_valid_rows(self):
        client, pipeline = _client()
        response = client.post(
            UPLOAD_URL,
            files={"csvFile": ("leads.csv", b"First Name,Last Name\nJane,Doe\n", "text/csv")},
            data={"userId": "user-123"},
        )
        assert response.status_code == 400
        assert response.json() == {"message": "No valid leads found in CSV file after parsing."}
        assert pipeline.store.list_leads_by_owner("user-123") == []

    def test_empty_file(self):
        client, pipeline = _client()
        response = client.post(
            UPLOAD_URL,
            files={"csvFile": ("leads.csv", b"", "text/csv")},
            data={"userId": "user-123"},
        )
        assert response.status_code == 400
        assert response.json() == {"message": "No valid leads found in CSV file after parsing."}
        assert pipeline.store.insert_calls == 0

    def test_storage_failure(self):
        class BrokenStore(InMemoryLeadRepository):
            def insert_leads_bulk(self, leads):
                raise RepositoryError("database unavailable")

        client, _ = _client(store=BrokenStore())
        response = client.post(
            UPLOAD_URL,
            files={"csvFile": ("leads.csv", CSV, "text/csv")},
            data={"userId": "user-123"},
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Server error: database unavailable"}


class TestLeads:
    """Tests for lead listing and re-enrichment."""

    def test_list_leads_newest_first(self):
        store = InMemoryLeadRepository()
        store.insert_leads_bulk(
            [
                build_lead(lead_id="older"),
                build_lead(lead_id="newer", uploaded_at=datetime(2025, 2, 1, tzinfo=timezone.utc)),
                build_lead(lead_id="other-owner", owner_id="user-999"),
            ]
        )
        client, _ = _client(store=store)

        response = client.get("/api/v1/users/user-123/leads")

        assert response.status_code == 200
        body = response.json()
        assert body["total_count"] == 2
        assert [item["lead_id"] for item in body["items"]] == ["newer", "older"]
        assert body["items"][0]["status"] == "Processing"

    def test_reenrich_failed_lead(self):
        store = InMemoryLeadRepository()
        store.insert_leads_bulk([build_lead(status=LeadStatus.SKIPTRACE_FAILED, error="No match")])
        client, _ = _client(store=store)

        response = client.post("/api/v1/users/user-123/leads/lead-1/reenrich")

        assert response.status_code == 200
        assert response.json()["status"] == "Completed"
        assert response.json()["phone_number"] == "217-555-0100"
        # Analysis runs after the response from the drained outbox
        assert store.get_lead("user-123", "lead-1").status is LeadStatus.ANALYZED

    def test_reenrich_rejects_other_statuses(self):
        store = InMemoryLeadRepository()
        store.insert_leads_bulk([build_lead(status=LeadStatus.COMPLETED, phone_number="217-555-0100")])
        client, _ = _client(store=store)

        response = client.post("/api/v1/users/user-123/leads/lead-1/reenrich")

        assert response.status_code == 409

    def test_reenrich_unknown_lead(self):
        client, _ = _client()
        response = client.post("/api/v1/users/user-123/leads/missing/reenrich")
        assert response.status_code == 404


class TestWebhook:
    """Tests for the Supabase Database Webhook receiver."""

    URL = "/api/v1/webhooks/leads"

    def _insert_payload(self, lead):
        return {"type": "INSERT", "table": "leads", "schema": "public", "record": lead_to_row(lead), "old_record": None}

    def test_secret_required_when_configured(self):
        client, _ = _client(settings=Settings(lead_store="memory", webhook_secret="s3cret"))

        response = client.post(self.URL, json=self._insert_payload(build_lead()))

        assert response.status_code == 401

    def test_non_ascii_secret_is_rejected(self):
        client, _ = _client(settings=Settings(lead_store="memory", webhook_secret="s3cret"))

        response = client.post(
            self.URL,
            json=self._insert_payload(build_lead()),
            headers={"X-Webhook-Secret": b"caf\xe9"},
        )

        assert response.status_code == 401

    def test_insert_runs_skiptrace(self):
        store = InMemoryLeadRepository()
        lead = build_lead()
        store.insert_leads_bulk([lead])
        client, _ = _client(store=store, settings=Settings(lead_store="memory", webhook_secret="s3cret"))

        response = client.post(
            self.URL,
            json=self._insert_payload(lead),
            headers={"X-Webhook-Secret": "s3cret"},
        )

        assert response.status_code == 200
        assert response.json() == {"accepted": True, "event": "LeadCreatedEvent", "handled": 1}
        assert store.get_lead("user-123", "lead-1").status is LeadStatus.COMPLETED

    def test_other_tables_are_acknowledged(self):
        client, _ = _client()
        response = client.post(self.URL, json={"type": "INSERT", "table": "profiles", "record": {}})
        assert response.status_code == 200
        assert response.json()["accepted"] is False

    def test_malformed_payload(self):
        client, _ = _client()
        response = client.post(self.URL, json={"type": "INSERT", "table": "leads", "record": None})
        assert response.status_code == 400

    def test_handler_failure_requests_redelivery(self):
        client, pipeline = _client()

        def broken(event):
            raise RepositoryError("database unavailable")

        pipeline.dispatcher.on_created(broken)

        response = client.post(self.URL, json=self._insert_payload(build_lead()))

        assert response.status_code == 500
        assert "database unavailable" in response.json()["error"]


@pytest.mark.parametrize("path", ["/health", "/"])
def test_app_without_pipeline_still_serves_service_endpoints(path: str) -> None:
    response = TestClient(create_app()).get(path)
    assert response.status_code == 200
