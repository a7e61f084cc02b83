"""Shared pytest fixtures for all tests."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from cli.config import Config
from relay.client import (
    FileUpdate,
    RelayClient,
    RelayClientError,
    RelayFile,
    RelayMessage,
    UpdateHandler,
    RELAY_NOT_AUTHENTICATED,
    RELAY_NOT_FOUND,
)
from transfer.config import TransferSettings
from transfer.gateway import RelayGateway
from transfer.orchestrator import TransferOrchestrator

CHANNEL_ID = "-100777"

_BASE_DATE = datetime(2025, 1, 1, tzinfo=timezone.utc)


class FakeRelayClient(RelayClient):
    """
    In-memory relay that reports completion through update events, like the real one.

    Switches:
        authenticated: Session authorization
        never_complete_uploads: Uploads stay active forever
        stall_downloads: Downloads stay active forever
        short_downloads: Downloads complete with one byte missing
        fail_next_uploads: Number of upcoming uploads the relay stops before completion
        fail_next_downloads: Number of upcoming downloads the relay stops before completion
        search_noise: Extra non-matching results returned by every search
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.authenticated = True
        self.never_complete_uploads = False
        self.stall_downloads = False
        self.short_downloads = False
        self.fail_next_uploads = 0
        self.fail_next_downloads = 0
        self.search_noise = False

        self.started = False
        self.closed = False
        self.messages: Dict[Tuple[str, int], RelayMessage] = {}
        self.contents: Dict[int, bytes] = {}
        self.sent_captions: List[str] = []
        self.search_queries: List[str] = []
        self.download_requests: List[int] = []
        self.released: List[int] = []
        self._handlers: List[UpdateHandler] = []
        self._message_ids = itertools.count(1)
        self._file_ids = itertools.count(1000)

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    def is_authenticated(self) -> bool:
        return self.authenticated

    def add_update_handler(self, handler: UpdateHandler) -> None:
        self._handlers.append(handler)

    def remove_update_handler(self, handler: UpdateHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self, file: RelayFile) -> None:
        for handler in list(self._handlers):
            handler(FileUpdate(file=file))

    def _emit_later(self, file: RelayFile) -> None:
        asyncio.get_running_loop().call_later(0.01, self.emit, file)

    def store(
        self,
        data: bytes,
        caption: str,
        file_name: str = "blob.bin",
        date: Optional[datetime] = None,
        channel_id: str = CHANNEL_ID
    ) -> RelayMessage:
        """Place a completed document on the relay directly."""
        message_id = next(self._message_ids)
        file_id = next(self._file_ids)
        self.contents[file_id] = data
        message = RelayMessage(
            channel_id=channel_id,
            message_id=message_id,
            caption=caption,
            file=RelayFile(file_id=file_id, size=len(data), uploaded_size=len(data), is_uploading_completed=True),
            file_name=file_name,
            date=date or _BASE_DATE + timedelta(seconds=message_id),
        )
        self.messages[(channel_id, message_id)] = message
        return message

    def delete(self, message: RelayMessage) -> None:
        self.messages.pop((message.channel_id, message.message_id), None)

    def find_by_caption(self, caption: str) -> List[RelayMessage]:
        return [m for m in self.messages.values() if m.caption == caption]

    async def send_document(self, channel_id: str, path: str, caption: str) -> RelayMessage:
        if not self.authenticated:
            raise RelayClientError("Unauthorized", RELAY_NOT_AUTHENTICATED)

        data = Path(path).read_bytes()
        stored = self.store(data, caption, file_name=Path(path).name, channel_id=channel_id)
        self.sent_captions.append(caption)

        pending = stored.file.with_changes(uploaded_size=0, is_uploading_active=True, is_uploading_completed=False)
        accepted = RelayMessage(
            channel_id=stored.channel_id,
            message_id=stored.message_id,
            caption=stored.caption,
            file=pending,
            file_name=stored.file_name,
            date=stored.date,
        )

        if self.fail_next_uploads:
            self.fail_next_uploads -= 1
            self.delete(stored)
            self._emit_later(pending.with_changes(is_uploading_active=False))
        elif not self.never_complete_uploads:
            self._emit_later(stored.file)
        return accepted

    async def get_message(self, channel_id: str, message_id: int) -> RelayMessage:
        if not self.authenticated:
            raise RelayClientError("Unauthorized", RELAY_NOT_AUTHENTICATED)
        message = self.messages.get((str(channel_id), message_id))
        if message is None:
            raise RelayClientError(f"Message {message_id} not found", RELAY_NOT_FOUND)
        return message

    async def download_file(self, file_id: int) -> RelayFile:
        if file_id not in self.contents:
            raise RelayClientError(f"File {file_id} not found", RELAY_NOT_FOUND)
        self.download_requests.append(file_id)

        data = self.contents[file_id]
        local_path = self.cache_dir / f"file_{file_id}"
        started = RelayFile(
            file_id=file_id,
            size=len(data),
            local_path=str(local_path),
            is_downloading_active=True,
        )

        if self.fail_next_downloads:
            self.fail_next_downloads -= 1
            self._emit_later(started.with_changes(is_downloading_active=False))
            return started
        if self.stall_downloads:
            return started

        written = data[:-1] if self.short_downloads and data else data
        local_path.write_bytes(written)
        self._emit_later(started.with_changes(
            downloaded_size=len(written),
            is_downloading_active=False,
            is_downloading_completed=True,
        ))
        return started

    async def release_file(self, file_id: int) -> None:
        self.released.append(file_id)
        (self.cache_dir / f"file_{file_id}").unlink(missing_ok=True)

    async def search_messages(self, channel_id: str, query: str, limit: int) -> List[RelayMessage]:
        self.search_queries.append(query)
        # relay search is fuzzy: anything containing the query matches
        found = [
            m for m in self.messages.values()
            if m.channel_id == str(channel_id) and query in m.caption
        ]
        if self.search_noise:
            found.append(self.store(b"noise", f"{query} (copy)"))
        return found[:limit]


@pytest.fixture
def settings(tmp_path):
    """Small parts and short timeouts so every scenario runs in milliseconds."""
    return TransferSettings(
        max_part_size=10,
        upload_timeout=0.3,
        download_timeout=0.3,
        part_retries=1,
        search_limit=10,
        temp_dir=tmp_path / "telestore",
    )


@pytest.fixture
def fake_relay(tmp_path):
    return FakeRelayClient(tmp_path / "relay_cache")


@pytest_asyncio.fixture
async def gateway(fake_relay, settings):
    """Started gateway over the fake relay."""
    gw = RelayGateway(fake_relay, CHANNEL_ID, settings)
    await gw.start()
    yield gw
    await gw.close()


@pytest.fixture
def orchestrator(gateway, settings):
    return TransferOrchestrator(gateway, settings)


@pytest.fixture
def make_file(tmp_path):
    """Factory writing a source file with deterministic content."""
    source_dir = tmp_path / "source"
    source_dir.mkdir()

    def _make(size: int, name: str = "data.bin") -> Path:
        path = source_dir / name
        path.write_bytes(bytes((i * 7 + 3) % 256 for i in range(size)))
        return path

    return _make


@pytest.fixture
def work_dir_entries(settings):
    """Callable listing everything left in the per-transfer work root."""
    def _entries() -> list:
        if not settings.work_root.exists():
            return []
        return list(settings.work_root.rglob("*"))

    return _entries


@pytest.fixture
def channel_id():
    return CHANNEL_ID


@pytest.fixture
def temp_config_dir(tmp_path):
    """
    Create temporary config directory.

    Returns:
        Path to temporary .telestore directory
    """
    config_dir = tmp_path / '.telestore'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    """
    Create temporary config instance.

    Returns:
        Config instance with temp config file
    """
    return Config(temp_config_dir / "config.json")
