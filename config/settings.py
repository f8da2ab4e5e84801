"""
Runtime configuration.

Values are read from the process environment after loading the project's .env
file. Provider credentials are optional: their absence is recorded on each
lead by the stages rather than failing at startup.

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: Supabase project URL and server-side key
- BATCHDATA_API_ENDPOINT / BATCHDATA_API_KEY: phone-lookup (skiptrace) provider
- VERTEXAI_ENDPOINT_ID / GCP_PROJECT_ID / VERTEXAI_LOCATION / VERTEXAI_ACCESS_TOKEN:
  analysis provider
- ANALYSIS_MODE: "simulated" (default) or "vertex"
- LEAD_STORE: "supabase" (default) or "memory" (in-process, local runs)
- HTTP_TIMEOUT_SECONDS, INGEST_BATCH_SIZE, WEBHOOK_SECRET, LOG_LEVEL
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

_DEFAULT_ENV_PATH = Path(__file__).parent.parent / ".env"

ANALYSIS_MODES = ("simulated", "vertex")
LEAD_STORES = ("supabase", "memory")


class ConfigurationError(RuntimeError):
    """Raised when a configuration value is present but invalid."""


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    batchdata_api_endpoint: Optional[str] = None
    batchdata_api_key: Optional[str] = None
    vertexai_endpoint_id: Optional[str] = None
    gcp_project_id: Optional[str] = None
    vertexai_location: str = "us-central1"
    vertexai_access_token: Optional[str] = None
    analysis_mode: str = "simulated"
    lead_store: str = "supabase"
    http_timeout_seconds: float = 30.0
    ingest_batch_size: int = 500
    webhook_secret: Optional[str] = None
    log_level: str = "INFO"

    @property
    def skiptrace_configured(self) -> bool:
        return bool(self.batchdata_api_endpoint and self.batchdata_api_key)

    @property
    def analysis_configured(self) -> bool:
        return bool(self.vertexai_endpoint_id and self.gcp_project_id)


def _optional(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(key, "").strip()
    return value or None


def _positive_number(env: Mapping[str, str], key: str, default: float, cast) -> float:
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{key} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigurationError(f"{key} must be positive, got {raw!r}")
    return value


def settings_from_mapping(env: Mapping[str, str]) -> Settings:
    """Build Settings from an environment-like mapping (no .env loading)."""

    analysis_mode = (env.get("ANALYSIS_MODE", "") or "simulated").strip().lower()
    if analysis_mode not in ANALYSIS_MODES:
        raise ConfigurationError(
            f"ANALYSIS_MODE must be one of {ANALYSIS_MODES}, got {analysis_mode!r}"
        )

    lead_store = (env.get("LEAD_STORE", "") or "supabase").strip().lower()
    if lead_store not in LEAD_STORES:
        raise ConfigurationError(f"LEAD_STORE must be one of {LEAD_STORES}, got {lead_store!r}")

    return Settings(
        supabase_url=_optional(env, "SUPABASE_URL"),
        supabase_key=_optional(env, "SUPABASE_KEY"),
        batchdata_api_endpoint=_optional(env, "BATCHDATA_API_ENDPOINT"),
        batchdata_api_key=_optional(env, "BATCHDATA_API_KEY"),
        vertexai_endpoint_id=_optional(env, "VERTEXAI_ENDPOINT_ID"),
        gcp_project_id=_optional(env, "GCP_PROJECT_ID"),
        vertexai_location=_optional(env, "VERTEXAI_LOCATION") or "us-central1",
        vertexai_access_token=_optional(env, "VERTEXAI_ACCESS_TOKEN"),
        analysis_mode=analysis_mode,
        lead_store=lead_store,
        http_timeout_seconds=_positive_number(env, "HTTP_TIMEOUT_SECONDS", 30.0, float),
        ingest_batch_size=int(_positive_number(env, "INGEST_BATCH_SIZE", 500, int)),
        webhook_secret=_optional(env, "WEBHOOK_SECRET"),
        log_level=(_optional(env, "LOG_LEVEL") or "INFO").upper(),
    )


def load_settings(env_path: Optional[Path] = None) -> Settings:
    """Load .env (without overriding real environment variables) and read Settings."""

    load_dotenv(dotenv_path=env_path or _DEFAULT_ENV_PATH)
    return settings_from_mapping(os.environ)


__all__ = [
    "ConfigurationError",
    "Settings",
    "load_settings",
    "settings_from_mapping",
]
