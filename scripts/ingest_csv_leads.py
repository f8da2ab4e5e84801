#!/usr/bin/env python3
"""
CSV Lead Ingestion Script

Imports a CSV of homeowner leads for one owner with:
- Header alias matching (e.g. "First Name" / first_name / firstName)
- Malformed rows dropped and counted
- Chunked bulk inserts into the configured lead store
- Summary statistics and error logging

With LEAD_STORE=memory the skiptrace and analysis stages run in-process before
the summary is printed; with Supabase they are triggered by the database webhook.

Usage:
    python ingest_csv_leads.py path/to/leads.csv --owner-id user-123
    python ingest_csv_leads.py path/to/leads.csv --owner-id user-123 --batch-size 200 --dry-run
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from collections import Counter
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import load_settings
from domain.time import utc_now
from services.ingestion_service import (
    CsvParseError,
    LeadPersistenceError,
    NoValidRecordsError,
    build_leads,
    ingest_csv,
    parse_csv_rows,
)
from services.pipeline import build_pipeline, build_store


def print_summary(rows_total: int, leads_created: int, rows_dropped: int, dry_run: bool) -> None:
    """Print ingestion summary statistics."""
    print()
    print("=" * 60)
    print("INGESTION SUMMARY" + (" (DRY RUN)" if dry_run else ""))
    print("=" * 60)
    print(f"Total Rows:       {rows_total}")
    print(f"Leads {'Valid' if dry_run else 'Created'}:    {leads_created}")
    print(f"Rows Dropped:     {rows_dropped}")
    print("=" * 60)


def print_status_counts(leads) -> None:
    counts = Counter(lead.status.value for lead in leads)
    print()
    print("Lead statuses after processing:")
    for status, count in sorted(counts.items()):
        print(f"  {status:<20} {count}")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Ingest homeowner leads from CSV into the lead store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Basic import
  python ingest_csv_leads.py leads.csv --owner-id user-123

  # Dry run (parse only, don't insert)
  python ingest_csv_leads.py leads.csv --owner-id user-123 --dry-run

  # Custom batch size
  python ingest_csv_leads.py leads.csv --owner-id user-123 --batch-size 200
        """
    )

    parser.add_argument(
        "csv_path",
        help="Path to the CSV file to ingest"
    )

    parser.add_argument(
        "--owner-id",
        required=True,
        help="Owner (user id) the leads belong to"
    )

    parser.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Maximum rows per bulk insert (default: INGEST_BATCH_SIZE or 500)"
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Parse and validate CSV without inserting"
    )

    args = parser.parse_args()

    try:
        settings = load_settings()
        logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
        if args.batch_size is not None:
            if args.batch_size <= 0:
                parser.error("--batch-size must be positive")
            settings = dataclasses.replace(settings, ingest_batch_size=args.batch_size)

        content = Path(args.csv_path).read_bytes()

        print("Starting CSV ingestion...")

        if args.dry_run:
            rows = parse_csv_rows(content)
            leads, dropped = build_leads(rows, args.owner_id, utc_now())
            print_summary(len(rows), len(leads), dropped, dry_run=True)
            return 0 if leads else 1

        store = build_store(settings)
        pipeline = build_pipeline(settings, store)
        result = ingest_csv(content, args.owner_id, store)
        print_summary(result.rows_total, result.leads_created, result.rows_dropped, dry_run=False)

        if hasattr(store, "pop_events"):
            dispatched = pipeline.dispatcher.run_until_idle(store)
            print_status_counts(store.list_leads_by_owner(args.owner_id))
            if not dispatched.ok:
                print(f"\n{len(dispatched.errors)} handler errors; see log for details")

        # Exit code based on results
        return 1 if result.rows_dropped > 0 else 0

    except (CsvParseError, NoValidRecordsError) as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        return 1

    except LeadPersistenceError as e:
        print(f"\nERROR: {e} ({e.leads_created} leads were saved before the failure)", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\n\nIngestion interrupted by user")
        return 130

    except Exception as e:
        print(f"\nFATAL ERROR: {e}", file=sys.stderr)
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
