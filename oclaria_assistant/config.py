from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_CATALOG_PATH = BASE_DIR / "data" / "catalog.json"


@dataclass(frozen=True)
class Settings:
    """Configuration container for the completion model, catalog, and request limits."""
    gemini_api_key: str
    gemini_model: str
    port: int
    catalog_path: Path
    log_level: str = "INFO"
    temperature: float = 0.5
    max_output_tokens: int = 220
    detection_window: int = 8
    history_window: int = 6
    rate_limit_backoff_sec: float = 5.0
    server_error_backoff_sec: float = 1.2


def load_settings() -> Settings:
    """Purpose: Load configuration from environment variables and defaults.
    Inputs/Outputs: No inputs; returns a Settings instance.
    Side Effects / State: Reads environment variables.
    Dependencies: Uses os.getenv and DEFAULT_CATALOG_PATH.
    Failure Modes: An invalid PORT env value raises ValueError.
    If Removed: App cannot configure the model, port, or catalog and fails at startup.
    Testing Notes: Verify defaults and overrides via environment variables.
    """
    # Resolve the catalog path, then build Settings.
    catalog_path = os.getenv("CATALOG_PATH")
    if catalog_path:
        catalog_file = Path(catalog_path)
    else:
        catalog_file = DEFAULT_CATALOG_PATH

    return Settings(
        gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
        gemini_model=os.getenv("GEMINI_MODEL", "gemini-2.5-flash-lite"),
        port=int(os.getenv("PORT", "8787")),
        catalog_path=catalog_file,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
