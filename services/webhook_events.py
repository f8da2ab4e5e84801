"""
Supabase Database Webhook payloads -> lead events.

Supabase posts one JSON body per row change:
    {"type": "INSERT" | "UPDATE" | "DELETE", "table": "leads", "schema": "public",
     "record": {...} | null, "old_record": {...} | null}

INSERT becomes a LeadCreatedEvent, UPDATE a LeadUpdatedEvent. Other tables and
DELETE are ignored (None).
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.events import LeadCreatedEvent, LeadEvent, LeadUpdatedEvent
from repositories.lead_repository import row_to_lead

LEADS_TABLE = "leads"


class WebhookPayloadError(ValueError):
    """Raised when a webhook body cannot be turned into a lead event."""


def _to_lead(record: Any):
    if record is None:
        return None
    if not isinstance(record, Mapping):
        raise WebhookPayloadError("record must be an object")
    try:
        return row_to_lead(record)
    except (KeyError, TypeError, ValueError) as exc:
        raise WebhookPayloadError(f"Invalid lead record: {exc}") from exc


def parse_webhook_payload(payload: Any) -> Optional[LeadEvent]:
    if not isinstance(payload, Mapping):
        raise WebhookPayloadError("Webhook payload must be a JSON object")

    if payload.get("table") != LEADS_TABLE:
        return None

    change_type = str(payload.get("type", "")).upper()
    if change_type == "INSERT":
        lead = _to_lead(payload.get("record"))
        if lead is None:
            raise WebhookPayloadError("INSERT payload has no record")
        return LeadCreatedEvent(owner_id=lead.owner_id, lead_id=lead.lead_id, lead=lead)

    if change_type == "UPDATE":
        after = _to_lead(payload.get("record"))
        before = _to_lead(payload.get("old_record"))
        reference = after or before
        if reference is None:
            raise WebhookPayloadError("UPDATE payload has neither record nor old_record")
        return LeadUpdatedEvent(
            owner_id=reference.owner_id,
            lead_id=reference.lead_id,
            before=before,
            after=after,
        )

    if change_type == "DELETE":
        return None
    raise WebhookPayloadError(f"Unsupported change type: {change_type or '(missing)'}")


__all__ = ["WebhookPayloadError", "parse_webhook_payload"]
