"""Tests for the relay gateway over the in-memory relay."""

import asyncio
import time
from datetime import datetime, timedelta, timezone

import pytest

from common.types import RemoteRef
from relay.client import RelayFile
from transfer.config import TransferSettings
from transfer.gateway import RelayGateway
from transfer.exceptions import (
    DownloadTimeoutError,
    DownloadVerificationFailedError,
    NotAuthenticatedError,
    ObjectNotFoundError,
    RelayOperationFailedError,
    UploadTimeoutError,
)


def test_gateway_requires_channel(fake_relay, settings):
    with pytest.raises(ValueError):
        RelayGateway(fake_relay, "", settings)


@pytest.mark.asyncio
async def test_start_and_close_lifecycle(fake_relay, settings, channel_id):
    gateway = RelayGateway(fake_relay, channel_id, settings)
    assert gateway.status() == {"initialized": False, "authenticated": False}
    assert not gateway.is_ready()

    async with gateway:
        assert fake_relay.started
        assert gateway.is_ready()
        assert gateway.status() == {"initialized": True, "authenticated": True}

    assert fake_relay.closed
    assert not gateway.is_ready()


@pytest.mark.asyncio
async def test_put_waits_for_confirmation(gateway, fake_relay, tmp_path, channel_id):
    chunk = tmp_path / "chunk.bin"
    chunk.write_bytes(b"0123456789")

    remote = await gateway.put(chunk, "big.iso.part1/2")

    assert remote.ref.channel_id == channel_id
    assert remote.size == 10
    assert remote.caption == "big.iso.part1/2"
    assert fake_relay.messages[(channel_id, remote.ref.message_id)].caption == "big.iso.part1/2"


@pytest.mark.asyncio
async def test_put_times_out_at_budget(gateway, fake_relay, settings, tmp_path):
    """A put whose confirmation never arrives fails with UploadTimeoutError, not a hang."""
    fake_relay.never_complete_uploads = True
    chunk = tmp_path / "chunk.bin"
    chunk.write_bytes(b"abc")

    started = time.monotonic()
    with pytest.raises(UploadTimeoutError):
        await gateway.put(chunk, "")
    elapsed = time.monotonic() - started

    assert elapsed >= settings.upload_timeout * 0.9
    assert elapsed < settings.upload_timeout + 2


@pytest.mark.asyncio
async def test_put_reports_relay_stop(gateway, fake_relay, tmp_path):
    fake_relay.fail_next_uploads = 1
    chunk = tmp_path / "chunk.bin"
    chunk.write_bytes(b"abc")

    with pytest.raises(RelayOperationFailedError):
        await gateway.put(chunk, "")


@pytest.mark.asyncio
async def test_put_resolves_from_update_that_arrived_first(gateway, fake_relay, tmp_path):
    """A completion event that races ahead of the request's own result is not lost."""
    original_send = fake_relay.send_document

    async def send_and_confirm_immediately(channel_id, path, caption):
        fake_relay.never_complete_uploads = True
        message = await original_send(channel_id, path, caption)
        fake_relay.emit(message.file.with_changes(is_uploading_active=False, is_uploading_completed=True))
        return message

    fake_relay.send_document = send_and_confirm_immediately
    chunk = tmp_path / "chunk.bin"
    chunk.write_bytes(b"abc")

    remote = await gateway.put(chunk, "")

    assert remote.size == 3


@pytest.mark.asyncio
async def test_put_when_not_authenticated_fails_fast(gateway, fake_relay, tmp_path):
    fake_relay.authenticated = False
    chunk = tmp_path / "chunk.bin"
    chunk.write_bytes(b"abc")

    with pytest.raises(NotAuthenticatedError):
        await gateway.put(chunk, "")

    assert fake_relay.sent_captions == []


@pytest.mark.asyncio
async def test_get_moves_verified_object_out_of_relay_cache(gateway, fake_relay, tmp_path, channel_id):
    message = fake_relay.store(b"hello relay", "notes.txt", file_name="notes.txt")
    dest = tmp_path / "dest"

    downloaded = await gateway.get(RemoteRef(channel_id, message.message_id), dest)

    assert downloaded.path.parent == dest
    assert downloaded.path.read_bytes() == b"hello relay"
    assert downloaded.caption == "notes.txt"
    assert downloaded.remote.file_name == "notes.txt"
    assert fake_relay.released == [message.file.file_id]
    assert list(fake_relay.cache_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_get_missing_message_is_object_not_found(gateway, tmp_path, channel_id):
    with pytest.raises(ObjectNotFoundError):
        await gateway.get(RemoteRef(channel_id, 999), tmp_path)


@pytest.mark.asyncio
async def test_get_short_download_fails_verification(gateway, fake_relay, tmp_path, channel_id):
    fake_relay.short_downloads = True
    message = fake_relay.store(b"0123456789", "")
    dest = tmp_path / "dest"

    with pytest.raises(DownloadVerificationFailedError):
        await gateway.get(RemoteRef(channel_id, message.message_id), dest)

    assert not dest.exists() or list(dest.iterdir()) == []
    assert list(fake_relay.cache_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_get_stalled_download_times_out(gateway, fake_relay, tmp_path, channel_id):
    fake_relay.stall_downloads = True
    message = fake_relay.store(b"0123456789", "")

    with pytest.raises(DownloadTimeoutError):
        await gateway.get(RemoteRef(channel_id, message.message_id), tmp_path)

    assert fake_relay.released == [message.file.file_id]


@pytest.mark.asyncio
async def test_get_stopped_download_is_relay_failure(gateway, fake_relay, tmp_path, channel_id):
    fake_relay.fail_next_downloads = 1
    message = fake_relay.store(b"0123456789", "")

    with pytest.raises(RelayOperationFailedError):
        await gateway.get(RemoteRef(channel_id, message.message_id), tmp_path)


@pytest.mark.asyncio
async def test_stale_download_update_does_not_resolve_next_get(gateway, fake_relay, tmp_path, channel_id):
    """An unclaimed completion left over from an earlier download is discarded."""
    message = fake_relay.store(b"0123456789", "")
    fake_relay.emit(RelayFile(
        file_id=message.file.file_id,
        size=10,
        downloaded_size=10,
        is_downloading_completed=True,
    ))
    fake_relay.stall_downloads = True

    with pytest.raises(DownloadTimeoutError):
        await gateway.get(RemoteRef(channel_id, message.message_id), tmp_path)


@pytest.mark.asyncio
async def test_find_by_tag_keeps_exact_matches_only(gateway, fake_relay):
    fake_relay.store(b"a", "film.mkv.part1/3")
    fake_relay.store(b"b", "film.mkv.part1/30")
    fake_relay.store(b"c", "old film.mkv.part1/3")
    fake_relay.search_noise = True

    found = await gateway.find_by_tag("film.mkv.part1/3")

    assert [o.caption for o in found] == ["film.mkv.part1/3"]


@pytest.mark.asyncio
async def test_find_by_tag_orders_most_recent_first(gateway, fake_relay):
    """Duplicate tags resolve to the newest message, then the highest id."""
    now = datetime(2025, 6, 1, tzinfo=timezone.utc)
    older = fake_relay.store(b"old", "x.part2/2", date=now - timedelta(days=1))
    newest = fake_relay.store(b"new", "x.part2/2", date=now)
    newest_higher_id = fake_relay.store(b"tie", "x.part2/2", date=now)

    found = await gateway.find_by_tag("x.part2/2")

    assert [o.ref.message_id for o in found] == [
        newest_higher_id.message_id,
        newest.message_id,
        older.message_id,
    ]


@pytest.mark.asyncio
async def test_find_by_tag_empty(gateway):
    assert await gateway.find_by_tag("nothing.part1/2") == []


@pytest.mark.asyncio
async def test_find_by_tag_when_not_authenticated(gateway, fake_relay):
    fake_relay.authenticated = False

    with pytest.raises(NotAuthenticatedError):
        await gateway.find_by_tag("x.part1/2")


@pytest.mark.asyncio
async def test_close_fails_pending_put(fake_relay, settings, tmp_path, channel_id):
    fake_relay.never_complete_uploads = True
    gateway = RelayGateway(fake_relay, channel_id, TransferSettings(
        max_part_size=settings.max_part_size,
        upload_timeout=5,
        download_timeout=5,
        temp_dir=settings.temp_dir,
    ))
    await gateway.start()
    chunk = tmp_path / "chunk.bin"
    chunk.write_bytes(b"abc")

    pending = asyncio.create_task(gateway.put(chunk, ""))
    await asyncio.sleep(0.05)
    await gateway.close()

    with pytest.raises(RelayOperationFailedError):
        await pending
