"""Configuration settings for the transfer core."""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path

from common.constants import (
    RELAY_MAX_OBJECT_BYTES,
    DEFAULT_MAX_PART_SIZE_BYTES,
    DEFAULT_UPLOAD_TIMEOUT_SECONDS,
    DEFAULT_DOWNLOAD_TIMEOUT_SECONDS,
    DEFAULT_PART_RETRIES,
    DEFAULT_SEARCH_LIMIT,
    TEMP_DIR_NAME,
)


MAX_PART_SIZE = int(os.environ.get("TELESTORE_MAX_PART_SIZE", str(DEFAULT_MAX_PART_SIZE_BYTES)))

UPLOAD_TIMEOUT_SECONDS = float(os.environ.get("TELESTORE_UPLOAD_TIMEOUT", str(DEFAULT_UPLOAD_TIMEOUT_SECONDS)))

DOWNLOAD_TIMEOUT_SECONDS = float(os.environ.get("TELESTORE_DOWNLOAD_TIMEOUT", str(DEFAULT_DOWNLOAD_TIMEOUT_SECONDS)))

PART_RETRIES = int(os.environ.get("TELESTORE_PART_RETRIES", str(DEFAULT_PART_RETRIES)))

SEARCH_LIMIT = int(os.environ.get("TELESTORE_SEARCH_LIMIT", str(DEFAULT_SEARCH_LIMIT)))

TEMP_DIR = os.environ.get("TELESTORE_TEMP_DIR", str(Path(tempfile.gettempdir()) / TEMP_DIR_NAME))


@dataclass
class TransferSettings:
    """
    Tunables shared by the gateway and the orchestrator.

    Attributes:
        max_part_size: Largest part handed to the relay, strictly below the relay cap
        upload_timeout: Seconds to wait for the relay to confirm one stored part
        download_timeout: Seconds to wait for one part to finish downloading
        part_retries: Extra attempts per part for retryable errors
        search_limit: Upper bound on relay search results
        temp_dir: Root for per-transfer work directories and download outputs
    """
    max_part_size: int = DEFAULT_MAX_PART_SIZE_BYTES
    upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT_SECONDS
    download_timeout: float = DEFAULT_DOWNLOAD_TIMEOUT_SECONDS
    part_retries: int = DEFAULT_PART_RETRIES
    search_limit: int = DEFAULT_SEARCH_LIMIT
    temp_dir: Path = Path(tempfile.gettempdir()) / TEMP_DIR_NAME

    def __post_init__(self):
        self.temp_dir = Path(self.temp_dir)
        self.validate()

    def validate(self) -> None:
        """
        Raises:
            ValueError: If a setting is out of range
        """
        if not 0 < self.max_part_size < RELAY_MAX_OBJECT_BYTES:
            raise ValueError(
                f"max_part_size must be between 1 and {RELAY_MAX_OBJECT_BYTES - 1} bytes, "
                f"got {self.max_part_size}"
            )
        if self.upload_timeout <= 0 or self.download_timeout <= 0:
            raise ValueError("Relay timeouts must be positive")
        if self.part_retries < 0:
            raise ValueError("part_retries cannot be negative")
        if self.search_limit <= 0:
            raise ValueError("search_limit must be positive")

    @property
    def work_root(self) -> Path:
        """Directory holding one sub-directory of chunk files per transfer."""
        return self.temp_dir / "work"

    @property
    def downloads_dir(self) -> Path:
        """Directory holding reassembled files until the caller deletes them."""
        return self.temp_dir / "downloads"

    @classmethod
    def from_env(cls) -> 'TransferSettings':
        return cls(
            max_part_size=MAX_PART_SIZE,
            upload_timeout=UPLOAD_TIMEOUT_SECONDS,
            download_timeout=DOWNLOAD_TIMEOUT_SECONDS,
            part_retries=PART_RETRIES,
            search_limit=SEARCH_LIMIT,
            temp_dir=Path(TEMP_DIR),
        )
