#!/usr/bin/env python3
"""
Lead Polling Worker

Delivers lead events by polling the store instead of relying on database
webhooks. Each pass skip-traces leads still in "Processing" and analyzes
"Completed" leads that have no analysis yet. Re-running a pass is safe.

Usage:
    python poll_leads.py --once
    python poll_leads.py --interval 30 --limit 200
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

# Add parent directory to path to import modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import load_settings
from services.pipeline import build_pipeline, build_store
from services.poller import LeadPoller

logger = logging.getLogger("poll_leads")


def main() -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(description="Poll the lead store and run pipeline stages")
    parser.add_argument(
        "--interval",
        type=float,
        default=15.0,
        help="Seconds between polls (default: 15)"
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum leads per status per poll (default: 100)"
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single poll and exit"
    )
    args = parser.parse_args()

    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    store = build_store(settings)
    pipeline = build_pipeline(settings, store)
    poller = LeadPoller(store, pipeline.dispatcher)

    try:
        while True:
            result = poller.poll_once(limit=args.limit)
            if args.once:
                return 1 if result.errors else 0
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Polling stopped by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
