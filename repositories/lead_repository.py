"""
Lead repository (persistence).

This module provides *only* persistence operations for the Lead domain entity.
No pipeline rules (status transitions, phone selection) belong here; the only
rule enforced is the optional status precondition on updates, which is how
stages claim a transition without a separate lock.

Change events for this table are delivered by Supabase Database Webhooks
(see services/webhook_events.py); this adapter does not emit them itself.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, List, Mapping, Optional, Protocol

from postgrest.exceptions import APIError

from domain.lead import Lead, LeadStatus
from domain.time import parse_utc_datetime, to_iso_utc

if TYPE_CHECKING:  # pragma: no cover - typing only
    from supabase import Client

# Supabase table name for Lead records.
# Keep this aligned with migrations/001_create_leads.sql.
_LEADS_TABLE: str = "leads"

# Lead attribute -> column name, for attributes whose column differs.
_COLUMN_NAMES: dict[str, str] = {
    "uploaded_at": "uploaded_at_utc",
    "analyzed_at": "analyzed_at_utc",
}

# Attributes stages may change after creation.
UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "phone_number",
        "error",
        "ai_analysis",
        "analyzed_at",
        "ai_analysis_error",
    }
)

DEFAULT_MAX_BATCH_SIZE: int = 500


class RepositoryError(RuntimeError):
    """Raised when the backing store rejects or fails an operation."""


class PartialInsertError(RepositoryError):
    """A chunk of a bulk insert failed after earlier chunks were committed."""

    def __init__(self, message: str, inserted_count: int) -> None:
        super().__init__(message)
        self.inserted_count = inserted_count


class LeadStore(Protocol):
    """Record store contract shared by the Supabase and in-memory adapters."""

    max_batch_size: int

    def insert_leads_bulk(self, leads: List[Lead]) -> int: ...

    def get_lead(self, owner_id: str, lead_id: str) -> Optional[Lead]: ...

    def update_lead(
        self,
        owner_id: str,
        lead_id: str,
        changes: Mapping[str, Any],
        *,
        expected_status: Optional[LeadStatus] = None,
    ) -> Optional[Lead]: ...

    def list_leads_by_owner(self, owner_id: str, limit: Optional[int] = None) -> List[Lead]: ...

    def list_leads_by_status(self, status: LeadStatus, limit: int = 100) -> List[Lead]: ...


def _serialize(name: str, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, LeadStatus):
        return value.value
    if isinstance(value, datetime):
        return to_iso_utc(value, name=name)
    return value


def validate_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update immutable or unknown lead fields: {sorted(unknown)}")


def changes_to_row(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Convert attribute-keyed changes into a column-keyed update payload."""

    validate_changes(changes)
    return {_COLUMN_NAMES.get(name, name): _serialize(name, value) for name, value in changes.items()}


def lead_to_row(lead: Lead) -> dict[str, Any]:
    """Convert a domain Lead to a Supabase row payload."""

    return {
        "lead_id": lead.lead_id,
        "owner_id": lead.owner_id,
        "first_name": lead.first_name,
        "last_name": lead.last_name,
        "street_address": lead.street_address,
        "city": lead.city,
        "state": lead.state,
        "postal_code": lead.postal_code,
        "status": lead.status.value,
        "uploaded_at_utc": to_iso_utc(lead.uploaded_at, name="uploaded_at"),
        "phone_number": lead.phone_number,
        "error": lead.error,
        "ai_analysis": lead.ai_analysis,
        "analyzed_at_utc": _serialize("analyzed_at", lead.analyzed_at),
        "ai_analysis_error": lead.ai_analysis_error,
    }


def row_to_lead(row: Mapping[str, Any]) -> Lead:
    """Convert a Supabase row into a domain Lead."""

    # Helper to convert empty strings to None
    def get_optional(key: str) -> str | None:
        value = row.get(key)
        return str(value) if value else None

    analyzed_at = row.get("analyzed_at_utc")
    return Lead(
        lead_id=str(row["lead_id"]),
        owner_id=str(row["owner_id"]),
        first_name=str(row.get("first_name") or ""),
        last_name=str(row.get("last_name") or ""),
        street_address=str(row.get("street_address") or ""),
        city=str(row.get("city") or ""),
        state=str(row.get("state") or ""),
        postal_code=str(row.get("postal_code") or ""),
        status=LeadStatus.parse(row.get("status")),
        uploaded_at=parse_utc_datetime(row["uploaded_at_utc"]),
        phone_number=get_optional("phone_number"),
        error=get_optional("error"),
        ai_analysis=get_optional("ai_analysis"),
        analyzed_at=parse_utc_datetime(analyzed_at) if analyzed_at else None,
        ai_analysis_error=get_optional("ai_analysis_error"),
    )


def _chunks(leads: List[Lead], size: int) -> Iterable[List[Lead]]:
    for start in range(0, len(leads), size):
        yield leads[start : start + size]


class LeadRepository:
    """Supabase-backed store for leads, partitioned by owner_id."""

    def __init__(self, client: "Client", *, max_batch_size: int = DEFAULT_MAX_BATCH_SIZE) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        self._client = client
        self.max_batch_size = max_batch_size

    def _execute(self, query: Any, action: str) -> List[Mapping[str, Any]]:
        try:
            response = query.execute()
        except APIError as exc:
            raise RepositoryError(f"Failed to {action}: {exc}") from exc

        error = getattr(response, "error", None)
        if error:
            raise RepositoryError(f"Failed to {action}: {error}")
        return getattr(response, "data", None) or []

    def insert_leads_bulk(self, leads: List[Lead]) -> int:
        """
        Insert leads in chunks of at most max_batch_size rows.

        Chunks are independent requests: if one fails, the rows of earlier
        chunks stay committed and PartialInsertError reports how many.

        Returns:
            Number of leads inserted (len(leads) on success).
        """

        inserted = 0
        for chunk in _chunks(leads, self.max_batch_size):
            payloads = [lead_to_row(lead) for lead in chunk]
            try:
                self._execute(
                    self._client.table(_LEADS_TABLE).insert(payloads),
                    f"bulk insert {len(chunk)} leads",
                )
            except RepositoryError as exc:
                raise PartialInsertError(str(exc), inserted_count=inserted) from exc
            inserted += len(chunk)
        return inserted

    def get_lead(self, owner_id: str, lead_id: str) -> Lead | None:
        """
        Fetch a Lead by owner and ID.

        Returns:
        - Lead if found
        - None if no record exists for the given owner/ID
        """

        rows = self._execute(
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .eq("lead_id", lead_id)
            .limit(1),
            "fetch lead",
        )
        if not rows:
            return None
        return row_to_lead(rows[0])

    def update_lead(
        self,
        owner_id: str,
        lead_id: str,
        changes: Mapping[str, Any],
        *,
        expected_status: Optional[LeadStatus] = None,
    ) -> Lead | None:
        """
        Apply a single-row update, optionally conditional on the current status.

        Returns:
        - the updated Lead
        - None if the lead does not exist or its status no longer matches
          expected_status (another invocation already claimed the transition)
        """

        query = (
            self._client.table(_LEADS_TABLE)
            .update(changes_to_row(changes))
            .eq("owner_id", owner_id)
            .eq("lead_id", lead_id)
        )
        if expected_status is not None:
            query = query.eq("status", expected_status.value)

        rows = self._execute(query, "update lead")
        if not rows:
            return None
        return row_to_lead(rows[0])

    def list_leads_by_owner(self, owner_id: str, limit: int | None = None) -> List[Lead]:
        """List an owner's leads, newest upload first."""

        query = (
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("owner_id", owner_id)
            .order("uploaded_at_utc", desc=True)
        )
        if limit is not None:
            query = query.limit(limit)
        return [row_to_lead(row) for row in self._execute(query, "list leads")]

    def list_leads_by_status(self, status: LeadStatus, limit: int = 100) -> List[Lead]:
        """List leads in a given status across owners, oldest upload first."""

        query = (
            self._client.table(_LEADS_TABLE)
            .select("*")
            .eq("status", status.value)
            .order("uploaded_at_utc")
            .limit(limit)
        )
        return [row_to_lead(row) for row in self._execute(query, "list leads by status")]


__all__ = [
    "LeadRepository",
    "LeadStore",
    "PartialInsertError",
    "RepositoryError",
    "UPDATABLE_FIELDS",
    "changes_to_row",
    "lead_to_row",
    "row_to_lead",
]
