"""TeleStore CLI settings, persisted as JSON next to the user's home directory."""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

FALLBACK_DIR_NAME = '.telestore'


class Config:
    """JSON-backed CLI settings with defaults for every key the client reads."""

    DEFAULT_CONFIG = {
        "service_host": os.environ.get("TELESTORE_SERVICE_HOST", "localhost"),
        "service_port": int(os.environ.get("TELESTORE_SERVICE_PORT", "8000")),
        "timeout": 30,
        "transfer_timeout": 3600,
        "max_retries": 3,
        "retry_backoff_multiplier": 2,
    }

    def __init__(self, config_path: Path):
        self.config_path = self._writable_location(config_path)
        self.data = self._load()

    @staticmethod
    def _writable_location(config_path: Path) -> Path:
        """Home directories are read-only in some containers; settle for the temp dir there."""
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            return config_path
        except PermissionError:
            fallback = Path(tempfile.gettempdir()) / FALLBACK_DIR_NAME / config_path.name
            fallback.parent.mkdir(parents=True, exist_ok=True)
            logger.debug(f"Config directory not writable, using {fallback}")
            return fallback

    def _load(self) -> dict:
        merged = dict(self.DEFAULT_CONFIG)

        if not self.config_path.exists():
            self._write(merged)
            return merged

        try:
            stored = json.loads(self.config_path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Unreadable config {self.config_path}, using defaults: {e}")
            self._keep_backup()
            return merged

        merged.update(stored)
        return merged

    def _keep_backup(self) -> None:
        try:
            shutil.copy(self.config_path, self.config_path.with_suffix('.json.bak'))
        except OSError as e:
            logger.debug(f"No backup of {self.config_path}: {e}")

    def _write(self, values: dict) -> bool:
        try:
            self.config_path.write_text(json.dumps(values, indent=2))
            return True
        except OSError as e:
            logger.warning(f"Could not save config {self.config_path}: {e}")
            return False

    def save(self) -> None:
        """Persist ``data`` back to the config file."""
        self._write(self.data)

    def get_base_url(self) -> str:
        """Root URL of the transfer service, e.g. ``http://localhost:8000``."""
        return f"http://{self.data.get('service_host', 'localhost')}:{self.data.get('service_port', 8000)}"

    def get_timeout(self) -> int:
        """Timeout in seconds for short requests."""
        return self.data.get('timeout', 30)

    def get_transfer_timeout(self) -> int:
        """Timeout in seconds for upload and download requests, which wait on every part."""
        return self.data.get('transfer_timeout', 3600)

    def get_retry_config(self) -> dict:
        """
        Retry policy for idempotent requests.

        Returns:
            Dictionary with 'max_retries' and 'retry_backoff_multiplier'
        """
        return {
            key: self.data.get(key, self.DEFAULT_CONFIG[key])
            for key in ('max_retries', 'retry_backoff_multiplier')
        }
