"""Configuration settings for the TeleStore HTTP service."""

import os
from pathlib import Path

from common.constants import DEFAULT_RELAY_ADDRESS, SERVICE_PORT
from transfer.config import TEMP_DIR


SERVICE_HOST = os.environ.get("TELESTORE_HOST", "0.0.0.0")

SERVICE_PORT = int(os.environ.get("TELESTORE_PORT", str(SERVICE_PORT)))

RELAY_ADDRESS = os.environ.get("TELESTORE_RELAY_ADDRESS", DEFAULT_RELAY_ADDRESS)

RELAY_CHANNEL_ID = os.environ.get("TELESTORE_RELAY_CHANNEL_ID", "")

RELAY_CACHE_DIR = os.environ.get("TELESTORE_RELAY_CACHE_DIR", str(Path(TEMP_DIR) / "relay_cache"))

UPLOAD_STAGING_DIR = Path(TEMP_DIR) / "uploads"

# Leftovers older than this were abandoned by a previous process.
STALE_ENTRY_MAX_AGE_SECONDS = float(os.environ.get("TELESTORE_STALE_MAX_AGE", "86400"))
