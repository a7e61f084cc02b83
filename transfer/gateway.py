"""Remote object gateway: the single authenticated channel to the blob relay."""

import asyncio
import logging
import shutil
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from common.types import DownloadedObject, RemoteObject, RemoteRef
from relay.client import (
    FileUpdate,
    RelayClient,
    RelayClientError,
    RelayFile,
    RelayMessage,
    RELAY_NOT_AUTHENTICATED,
    RELAY_NOT_FOUND,
)
from transfer.config import TransferSettings
from transfer.exceptions import (
    DownloadTimeoutError,
    DownloadVerificationFailedError,
    NotAuthenticatedError,
    ObjectNotFoundError,
    RelayOperationFailedError,
    TransferError,
    UploadTimeoutError,
)

logger = logging.getLogger(__name__)

UPLOAD = "upload"
DOWNLOAD = "download"

# Updates that arrive before anyone waits on them are kept briefly so a
# confirmation racing the request's own return value is not lost.
_MAX_UNCLAIMED_UPDATES = 256


def _evaluate(kind: str, file: RelayFile) -> Optional[bool]:
    """
    Classify a file state for an operation.

    Returns:
        True when the operation completed, False when the relay stopped it
        without completing, None while it is still running
    """
    if kind == UPLOAD:
        if file.is_uploading_completed:
            return True
        return None if file.is_uploading_active else False

    if file.is_downloading_completed:
        return True
    return None if file.is_downloading_active else False


class RelayGateway:
    """
    Bounds all relay access to put / get / find_by_tag plus readiness.

    Every operation is serialized on one lock, mirroring the single relay
    session. Completion of a put or get is awaited through a one-shot future
    keyed by the relay file id and resolved from the client's update stream.
    """

    def __init__(
        self,
        client: RelayClient,
        channel_id: str,
        settings: Optional[TransferSettings] = None
    ):
        """
        Initialize gateway.

        Args:
            client: Relay session to drive
            channel_id: Channel that holds every stored object
            settings: Timeouts and search limits (default: TransferSettings())
        """
        if not channel_id:
            raise ValueError("channel_id is required")

        self._client = client
        self._channel_id = str(channel_id)
        self._settings = settings or TransferSettings()
        self._lock = asyncio.Lock()
        self._waiters: Dict[int, Tuple[str, asyncio.Future]] = {}
        self._unclaimed: "OrderedDict[int, RelayFile]" = OrderedDict()
        self._started = False

    @property
    def channel_id(self) -> str:
        return self._channel_id

    async def start(self) -> None:
        """Open the relay session and subscribe to file updates."""
        if self._started:
            return

        self._client.add_update_handler(self._on_update)
        try:
            await self._client.start()
        except Exception:
            self._client.remove_update_handler(self._on_update)
            raise

        self._started = True
        logger.info(
            f"Relay gateway started [channel={self._channel_id}] "
            f"[authenticated={self._client.is_authenticated()}]"
        )

    async def close(self) -> None:
        """Fail pending waits, unsubscribe and close the relay session."""
        if not self._started:
            return

        self._started = False
        for file_id, (_, future) in list(self._waiters.items()):
            if not future.done():
                future.set_exception(RelayOperationFailedError(f"Gateway closed while waiting on file {file_id}"))
        self._waiters.clear()
        self._unclaimed.clear()

        self._client.remove_update_handler(self._on_update)
        await self._client.close()
        logger.info("Relay gateway closed")

    async def __aenter__(self) -> 'RelayGateway':
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def is_ready(self) -> bool:
        """Whether the authenticated relay session is currently usable."""
        return self._started and self._client.is_authenticated()

    def status(self) -> dict:
        return {
            "initialized": self._started,
            "authenticated": self._started and self._client.is_authenticated(),
        }

    def _ensure_ready(self) -> None:
        if not self.is_ready():
            raise NotAuthenticatedError("Relay session is not ready")

    def _on_update(self, update: FileUpdate) -> None:
        file = update.file
        waiter = self._waiters.get(file.file_id)
        if waiter is None:
            self._unclaimed[file.file_id] = file
            self._unclaimed.move_to_end(file.file_id)
            while len(self._unclaimed) > _MAX_UNCLAIMED_UPDATES:
                self._unclaimed.popitem(last=False)
            return

        kind, future = waiter
        self._resolve(kind, future, file)

    @staticmethod
    def _resolve(kind: str, future: asyncio.Future, file: RelayFile, initial: bool = False) -> None:
        if future.done():
            return

        outcome = _evaluate(kind, file)
        if outcome is True:
            future.set_result(file)
        elif outcome is False and not initial:
            future.set_exception(
                RelayOperationFailedError(f"Relay stopped {kind} of file {file.file_id} before completion")
            )

    def _register_waiter(self, kind: str, file_id: int) -> asyncio.Future:
        future = asyncio.get_running_loop().create_future()
        self._waiters[file_id] = (kind, future)
        return future

    def _claim_unclaimed(self, kind: str, file_id: int, future: asyncio.Future) -> None:
        cached = self._unclaimed.pop(file_id, None)
        if cached is not None:
            self._resolve(kind, future, cached)

    @staticmethod
    def _translate(error: RelayClientError, what: str) -> TransferError:
        if error.code == RELAY_NOT_FOUND:
            return ObjectNotFoundError(f"{what} not found on relay: {error}")
        if error.code == RELAY_NOT_AUTHENTICATED:
            return NotAuthenticatedError(f"Relay rejected {what}: {error}")
        return RelayOperationFailedError(f"Relay error for {what}: {error}")

    def _to_remote_object(self, message: RelayMessage) -> RemoteObject:
        return RemoteObject(
            ref=RemoteRef(channel_id=str(message.channel_id), message_id=message.message_id),
            file_id=message.file.file_id,
            size=message.file.size,
            caption=message.caption or "",
            file_name=message.file_name,
            mime_type=message.mime_type,
            date=message.date,
        )

    async def put(self, local_chunk: Union[str, Path], caption_tag: str) -> RemoteObject:
        """
        Upload a chunk and wait until the relay confirms it is fully stored.

        Args:
            local_chunk: Path of the chunk to upload
            caption_tag: Part tag, empty for an untagged whole file

        Returns:
            RemoteObject describing the stored object

        Raises:
            NotAuthenticatedError: If the session is not ready
            UploadTimeoutError: If confirmation does not arrive within the budget
            RelayOperationFailedError: If the relay reports the upload stopped
        """
        self._ensure_ready()
        local_chunk = Path(local_chunk)
        expected_size = local_chunk.stat().st_size
        timeout = self._settings.upload_timeout

        async with self._lock:
            self._ensure_ready()
            try:
                return await asyncio.wait_for(
                    self._put_locked(local_chunk, caption_tag, expected_size),
                    timeout
                )
            except asyncio.TimeoutError:
                logger.error(f"Upload of {local_chunk.name} not confirmed within {timeout}s [tag={caption_tag!r}]")
                raise UploadTimeoutError(
                    f"Relay did not confirm upload of {local_chunk.name} within {timeout}s"
                )

    async def _put_locked(self, local_chunk: Path, caption_tag: str, expected_size: int) -> RemoteObject:
        try:
            message = await self._client.send_document(self._channel_id, str(local_chunk), caption_tag)
        except RelayClientError as e:
            raise self._translate(e, f"upload of {local_chunk.name}")

        file_id = message.file.file_id
        logger.info(
            f"Relay accepted {local_chunk.name} as message {message.message_id} "
            f"[file_id={file_id}] [tag={caption_tag!r}], waiting for confirmation"
        )

        future = self._register_waiter(UPLOAD, file_id)
        try:
            self._resolve(UPLOAD, future, message.file, initial=True)
            self._claim_unclaimed(UPLOAD, file_id, future)
            stored = await future
        finally:
            self._waiters.pop(file_id, None)

        if stored.size and stored.size != expected_size:
            raise RelayOperationFailedError(
                f"Relay stored {stored.size} bytes for {local_chunk.name}, expected {expected_size}"
            )

        logger.info(f"Upload confirmed: message {message.message_id} ({expected_size} bytes)")
        return self._to_remote_object(message)

    async def get(self, remote_ref: RemoteRef, dest_dir: Union[str, Path]) -> DownloadedObject:
        """
        Download an object and move it from the relay cache into ``dest_dir``.

        Args:
            remote_ref: Reference returned by an earlier put
            dest_dir: Directory that receives the local file

        Returns:
            DownloadedObject with the object's metadata and local path

        Raises:
            NotAuthenticatedError: If the session is not ready
            ObjectNotFoundError: If the reference no longer resolves
            DownloadTimeoutError: If the download stalls past the budget
            DownloadVerificationFailedError: If the byte count does not match
            RelayOperationFailedError: If the relay reports the download stopped
        """
        self._ensure_ready()
        timeout = self._settings.download_timeout

        async with self._lock:
            self._ensure_ready()
            try:
                return await asyncio.wait_for(self._get_locked(remote_ref, Path(dest_dir)), timeout)
            except asyncio.TimeoutError:
                logger.error(f"Download of {remote_ref} did not complete within {timeout}s")
                raise DownloadTimeoutError(f"Download of {remote_ref} did not complete within {timeout}s")

    async def _get_locked(self, remote_ref: RemoteRef, dest_dir: Path) -> DownloadedObject:
        try:
            message = await self._client.get_message(remote_ref.channel_id, remote_ref.message_id)
        except RelayClientError as e:
            raise self._translate(e, f"message {remote_ref}")

        remote = self._to_remote_object(message)
        file_id = remote.file_id
        logger.info(f"Downloading {remote_ref} [file_id={file_id}] [size={remote.size}] [caption={remote.caption!r}]")

        self._unclaimed.pop(file_id, None)
        future = self._register_waiter(DOWNLOAD, file_id)
        try:
            try:
                started = await self._client.download_file(file_id)
            except RelayClientError as e:
                raise self._translate(e, f"file {file_id} of {remote_ref}")
            self._resolve(DOWNLOAD, future, started, initial=True)
            self._claim_unclaimed(DOWNLOAD, file_id, future)
            downloaded = await future

            if downloaded.downloaded_size != remote.size:
                raise DownloadVerificationFailedError(
                    f"Relay reported {downloaded.downloaded_size} bytes for {remote_ref}, declared size is {remote.size}"
                )

            dest_dir.mkdir(parents=True, exist_ok=True)
            local_path = dest_dir / f"relay-{remote_ref.message_id}-{file_id}"
            await asyncio.to_thread(shutil.move, downloaded.local_path, local_path)
        finally:
            self._waiters.pop(file_id, None)
            # the relay cache never outlives one get
            await self._client.release_file(file_id)

        actual_size = local_path.stat().st_size
        if actual_size != remote.size:
            local_path.unlink(missing_ok=True)
            raise DownloadVerificationFailedError(
                f"Local copy of {remote_ref} has {actual_size} bytes, declared size is {remote.size}"
            )

        logger.info(f"Download verified: {remote_ref} ({actual_size} bytes)")
        return DownloadedObject(remote=remote, path=local_path)

    async def find_by_tag(self, tag: str, limit: Optional[int] = None) -> List[RemoteObject]:
        """
        Search the channel for objects whose caption equals ``tag``.

        The relay's search is fuzzy, so only exact caption matches are kept.
        Results are ordered most recent first (message date, then message id);
        callers that need one object take the first.

        Args:
            tag: Caption to look for
            limit: Maximum results (default: settings.search_limit)

        Returns:
            Matching objects, possibly empty

        Raises:
            NotAuthenticatedError: If the session is not ready
            RelayOperationFailedError: If the relay search fails
        """
        self._ensure_ready()
        limit = limit or self._settings.search_limit

        async with self._lock:
            self._ensure_ready()
            try:
                messages = await self._client.search_messages(self._channel_id, tag, limit)
            except RelayClientError as e:
                raise self._translate(e, f"search for {tag!r}")

        matches = [m for m in messages if (m.caption or "") == tag]
        matches.sort(key=lambda m: (m.date, m.message_id), reverse=True)

        logger.info(f"Search for {tag!r} returned {len(messages)} message(s), {len(matches)} exact match(es)")
        return [self._to_remote_object(m) for m in matches[:limit]]
