"""Verify that the configured Gemini API key works by listing models.

Usage: python -m oclaria_assistant.check_key
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from google.api_core import exceptions as google_exceptions

from .config import load_settings
from .gemini_client import GeminiClient
from .utils import mask_secret

logger = logging.getLogger("oclaria.check_key")


def check_key(client: GeminiClient) -> int:
    """Purpose: Call the model listing endpoint and report the outcome.
    Inputs/Outputs: Input is a GeminiClient; output is a process exit code.
    Side Effects / State: One network call; logs the result.
    Dependencies: Uses GeminiClient.list_model_names.
    Failure Modes: Missing key or API errors are logged and return 1.
    If Removed: Operators have no quick way to validate a new key.
    Testing Notes: Use a fake client that raises PermissionDenied and expect 1.
    """
    try:
        names = client.list_model_names()
    except (ValueError, google_exceptions.GoogleAPIError) as exc:
        logger.error("Key test failed: %s %s", getattr(exc, "code", ""), exc)
        return 1
    logger.info("Key OK, models: %d", len(names))
    return 0


def main() -> int:
    load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    settings = load_settings()
    logger.info("Key %s", mask_secret(settings.gemini_api_key))
    return check_key(GeminiClient(settings))


if __name__ == "__main__":
    sys.exit(main())
