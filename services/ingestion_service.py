"""
CSV lead ingestion service.

Turns an uploaded CSV file into Processing leads for one owner:
- Header-based parsing with per-field alias lists (checked in priority order)
- Rows missing any of the six required fields are dropped and counted, never fatal
- Zero accepted rows fails the request and persists nothing
- Accepted leads are persisted through the store's chunked bulk insert

Each created lead triggers skiptracing on its own; ingestion never waits for it.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from io import StringIO
from typing import Callable, Dict, List, Mapping, Tuple

from domain.lead import Lead
from domain.time import require_utc_timestamp, utc_now
from repositories.lead_repository import LeadStore, PartialInsertError, RepositoryError

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "CSV file processed and leads saved. Skip-tracing will begin shortly."
NO_VALID_LEADS_MESSAGE = "No valid leads found in CSV file after parsing."
PARSE_ERROR_MESSAGE = "Failed to parse CSV file. Please ensure it is a valid CSV."

# Lead attribute -> accepted CSV column names, highest priority first.
# Column names are matched case-sensitively.
COLUMN_ALIASES: Dict[str, Tuple[str, ...]] = {
    "first_name": ("First Name", "first_name", "firstName"),
    "last_name": ("Last Name", "last_name", "lastName"),
    "street_address": ("Street Address", "street_address", "streetAddress"),
    "city": ("City", "city"),
    "state": ("State", "state"),
    "postal_code": ("Postal Code", "postal_code", "postalCode"),
}


class CsvParseError(ValueError):
    """Raised when the upload cannot be decoded or parsed as CSV."""


class NoValidRecordsError(ValueError):
    """Raised when no row of the upload has all required fields."""

    def __init__(self, rows_total: int) -> None:
        super().__init__(NO_VALID_LEADS_MESSAGE)
        self.rows_total = rows_total


class LeadPersistenceError(RuntimeError):
    """Raised when storing accepted leads fails; earlier chunks are not rolled back."""

    def __init__(self, message: str, leads_created: int) -> None:
        super().__init__(message)
        self.leads_created = leads_created


@dataclass(frozen=True, slots=True)
class IngestionResult:
    """Results from a CSV ingestion request."""
    leads_created: int
    rows_total: int
    rows_dropped: int
    message: str = SUCCESS_MESSAGE


def parse_csv_rows(content: bytes) -> List[Dict[str, str]]:
    """
    Decode and parse CSV bytes into header-keyed rows.

    Blank lines are skipped and an empty upload yields no rows. Raises
    CsvParseError for undecodable or malformed input.
    """

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise CsvParseError(PARSE_ERROR_MESSAGE) from exc

    try:
        reader = csv.DictReader(StringIO(text, newline=""), skipinitialspace=True)
        if not reader.fieldnames:
            return []
        rows = list(reader)
    except csv.Error as exc:
        raise CsvParseError(PARSE_ERROR_MESSAGE) from exc

    return rows


def resolve_field(row: Mapping[str, object], aliases: Tuple[str, ...]) -> str:
    """Return the first non-empty (trimmed) value among the alias columns."""

    for column in aliases:
        value = row.get(column)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def build_leads(
    rows: List[Dict[str, str]],
    owner_id: str,
    uploaded_at: datetime,
) -> Tuple[List[Lead], int]:
    """
    Convert parsed rows into Processing leads.

    Returns:
        Tuple of (accepted leads, number of dropped rows)
    """

    require_utc_timestamp("uploaded_at", uploaded_at)
    leads: List[Lead] = []
    dropped = 0

    for row_num, row in enumerate(rows, start=2):  # Row 1 is header
        fields = {name: resolve_field(row, aliases) for name, aliases in COLUMN_ALIASES.items()}
        missing = [name for name, value in fields.items() if not value]
        if missing:
            dropped += 1
            logger.warning(
                f"Skipping malformed CSV row {row_num}: missing {', '.join(missing)}",
                extra={"owner_id": owner_id, "row_num": row_num, "missing_fields": missing},
            )
            continue
        leads.append(Lead.new(owner_id=owner_id, uploaded_at=uploaded_at, **fields))

    return leads, dropped


def ingest_csv(
    content: bytes,
    owner_id: str,
    store: LeadStore,
    *,
    clock: Callable[[], datetime] = utc_now,
) -> IngestionResult:
    """
    Ingest an uploaded CSV for one owner.

    Raises:
        ValueError: owner_id is empty
        CsvParseError: the upload is not a readable CSV
        NoValidRecordsError: no row had all six required fields (nothing stored)
        LeadPersistenceError: the store failed; leads_created reports partial success
    """

    if not owner_id or not owner_id.strip():
        raise ValueError("owner_id is required")

    rows = parse_csv_rows(content)
    leads, dropped = build_leads(rows, owner_id, clock())

    if not leads:
        logger.info(
            f"No valid leads in upload for owner {owner_id} ({len(rows)} rows)",
            extra={"owner_id": owner_id, "rows_total": len(rows)},
        )
        raise NoValidRecordsError(rows_total=len(rows))

    try:
        created = store.insert_leads_bulk(leads)
    except PartialInsertError as exc:
        raise LeadPersistenceError(str(exc), leads_created=exc.inserted_count) from exc
    except RepositoryError as exc:
        raise LeadPersistenceError(str(exc), leads_created=0) from exc

    logger.info(
        f"Saved {created} leads for owner {owner_id} ({dropped} rows dropped)",
        extra={"owner_id": owner_id, "leads_created": created, "rows_dropped": dropped},
    )
    return IngestionResult(leads_created=created, rows_total=len(rows), rows_dropped=dropped)


__all__ = [
    "COLUMN_ALIASES",
    "CsvParseError",
    "IngestionResult",
    "LeadPersistenceError",
    "NoValidRecordsError",
    "build_leads",
    "ingest_csv",
    "parse_csv_rows",
    "resolve_field",
]
