"""
Supabase client initialization.

This module contains *only* the database connection setup. The client is built
explicitly by the process entry point (API startup, scripts) and passed into
repositories; nothing here runs at import time.

Settings required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from supabase import Client, create_client  # type: ignore[import-not-found]

from config.settings import Settings


def create_supabase_client(settings: Settings) -> Client:
    """Create the Supabase client, failing fast when credentials are missing."""

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return create_client(settings.supabase_url, settings.supabase_key)


__all__ = ["create_supabase_client"]
