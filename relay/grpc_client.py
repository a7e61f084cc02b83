"""gRPC transport for the relay bridge, implementing RelayClient."""

import asyncio
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

import grpc

from common.constants import (
    DEFAULT_RELAY_ADDRESS,
    GRPC_KEEPALIVE_TIME_MS,
    GRPC_KEEPALIVE_TIMEOUT_MS,
    RELAY_RPC_TIMEOUT_SECONDS,
    STREAM_PIECE_SIZE_BYTES,
)
from common.protocol import (
    AuthorizationStateRequest,
    AuthorizationStateResponse,
    DocumentMetadata,
    DownloadFileRequest,
    DownloadFileResponse,
    FileState,
    GetMessageRequest,
    MessageInfo,
    MessageResponse,
    SearchMessagesRequest,
    SearchMessagesResponse,
    SendDocumentRequest,
    UpdateEvent,
)
from relay.client import (
    FileUpdate,
    RelayClient,
    RelayClientError,
    RelayFile,
    RelayMessage,
    UpdateHandler,
    RELAY_INTERNAL_ERROR,
    RELAY_NOT_AUTHENTICATED,
    RELAY_NOT_FOUND,
)

logger = logging.getLogger(__name__)

SERVICE = "/relay.RelayBridge"

_RESUBSCRIBE_DELAY_SECONDS = 2.0


def _to_relay_file(state: FileState, local_path: str = "") -> RelayFile:
    return RelayFile(
        file_id=state.file_id,
        size=state.size,
        local_path=local_path,
        downloaded_size=state.downloaded_size,
        uploaded_size=state.uploaded_size,
        is_uploading_active=state.is_uploading_active,
        is_uploading_completed=state.is_uploading_completed,
        is_downloading_active=state.is_downloading_active,
        is_downloading_completed=state.is_downloading_completed,
    )


def _to_relay_message(info: MessageInfo) -> RelayMessage:
    return RelayMessage(
        channel_id=info.channel_id,
        message_id=info.message_id,
        caption=info.caption,
        file=_to_relay_file(info.file),
        file_name=info.file_name,
        mime_type=info.mime_type,
        date=datetime.fromtimestamp(info.date, tz=timezone.utc),
    )


def _status_to_code(code: grpc.StatusCode) -> int:
    if code == grpc.StatusCode.NOT_FOUND:
        return RELAY_NOT_FOUND
    if code in (grpc.StatusCode.UNAUTHENTICATED, grpc.StatusCode.PERMISSION_DENIED):
        return RELAY_NOT_AUTHENTICATED
    return RELAY_INTERNAL_ERROR


class GrpcRelayClient(RelayClient):
    """
    Relay session held by a bridge process, reached over gRPC.

    Upload progress is pushed by the bridge on the SubscribeUpdates stream.
    Downloads are streamed into ``cache_dir``; their progress is reported to
    the same handlers once the stream ends.
    """

    def __init__(
        self,
        address: str = DEFAULT_RELAY_ADDRESS,
        cache_dir: Union[str, Path] = "relay_cache",
        rpc_timeout: float = RELAY_RPC_TIMEOUT_SECONDS
    ):
        """
        Initialize client with lazy connection.

        Args:
            address: host:port of the relay bridge
            cache_dir: Directory receiving downloaded files
            rpc_timeout: Deadline for unary calls
        """
        self._target = address
        self._cache_dir = Path(cache_dir)
        self._rpc_timeout = rpc_timeout
        self._channel: Optional[grpc.aio.Channel] = None
        self._handlers: List[UpdateHandler] = []
        self._authenticated = False
        self._updates_task: Optional[asyncio.Task] = None
        self._download_tasks: Dict[int, asyncio.Task] = {}

    def _ensure_channel(self):
        """Ensure gRPC channel is established."""
        if self._channel is None:
            options = [
                ('grpc.keepalive_time_ms', GRPC_KEEPALIVE_TIME_MS),
                ('grpc.keepalive_timeout_ms', GRPC_KEEPALIVE_TIMEOUT_MS),
                ('grpc.keepalive_permit_without_calls', 1),
            ]
            self._channel = grpc.aio.insecure_channel(self._target, options=options)
            logger.info(f"Established gRPC channel to {self._target}")

    def _unary(self, method: str):
        return self._channel.unary_unary(
            f"{SERVICE}/{method}",
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

    def _unary_stream(self, method: str):
        return self._channel.unary_stream(
            f"{SERVICE}/{method}",
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

    async def start(self) -> None:
        """Connect, read the authorization state and subscribe to updates."""
        self._ensure_channel()
        self._cache_dir.mkdir(parents=True, exist_ok=True)

        try:
            response_bytes = await self._unary('GetAuthorizationState')(
                AuthorizationStateRequest().to_json(),
                timeout=self._rpc_timeout
            )
        except grpc.RpcError as e:
            raise RelayClientError(f"Relay bridge unavailable: {e.details()}", _status_to_code(e.code()))

        state = AuthorizationStateResponse.from_json(response_bytes)
        self._authenticated = state.authenticated
        logger.info(f"Relay authorization state: {state.state or 'unknown'} [authenticated={state.authenticated}]")

        if self._updates_task is None:
            self._updates_task = asyncio.create_task(self._consume_updates())

    async def close(self) -> None:
        """Stop background tasks and close the gRPC channel."""
        tasks = list(self._download_tasks.values())
        if self._updates_task:
            tasks.append(self._updates_task)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._download_tasks.clear()
        self._updates_task = None

        if self._channel:
            await self._channel.close()
            self._channel = None
        self._authenticated = False

    def is_authenticated(self) -> bool:
        return self._authenticated

    def add_update_handler(self, handler: UpdateHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove_update_handler(self, handler: UpdateHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def _dispatch(self, file: RelayFile) -> None:
        update = FileUpdate(file=file)
        for handler in list(self._handlers):
            try:
                handler(update)
            except Exception as e:
                logger.error(f"Update handler failed for file {file.file_id}: {e}", exc_info=True)

    async def _consume_updates(self) -> None:
        """Read the SubscribeUpdates stream until cancelled, reconnecting on errors."""
        while True:
            try:
                call = self._unary_stream('SubscribeUpdates')(b'{}')
                async for event_bytes in call:
                    event = UpdateEvent.from_json(event_bytes)
                    if event.kind == 'authorization' and event.authenticated is not None:
                        if event.authenticated != self._authenticated:
                            logger.warning(f"Relay authorization changed [authenticated={event.authenticated}]")
                        self._authenticated = event.authenticated
                    elif event.kind == 'file' and event.file:
                        self._dispatch(_to_relay_file(event.file))
                logger.warning("Relay update stream ended, resubscribing")
            except asyncio.CancelledError:
                raise
            except grpc.RpcError as e:
                logger.warning(f"Relay update stream failed ({e.code()}), resubscribing: {e.details()}")
            await asyncio.sleep(_RESUBSCRIBE_DELAY_SECONDS)

    async def send_document(self, channel_id: str, path: str, caption: str) -> RelayMessage:
        """
        Stream a local file to the bridge and post it as a document.

        Returns:
            Message as accepted by the bridge; its upload may still be active

        Raises:
            RelayClientError: If the bridge rejects the document
        """
        self._ensure_channel()
        total_size = os.path.getsize(path)

        async def request_generator():
            metadata = DocumentMetadata(
                channel_id=str(channel_id),
                caption=caption,
                file_name=os.path.basename(path),
                total_size=total_size
            )
            yield SendDocumentRequest(metadata=metadata).to_json()

            with open(path, 'rb') as f:
                while True:
                    piece = f.read(STREAM_PIECE_SIZE_BYTES)
                    if not piece:
                        break
                    yield SendDocumentRequest(data=piece).to_json()

        multi_callable = self._channel.stream_unary(
            f"{SERVICE}/SendDocument",
            request_serializer=lambda x: x,
            response_deserializer=lambda x: x,
        )

        try:
            # Streaming the body is bounded by the caller's upload budget, not the RPC deadline.
            response_bytes = await multi_callable(request_generator())
        except grpc.RpcError as e:
            logger.error(f"gRPC error sending {path}: {e}")
            raise RelayClientError(f"SendDocument failed: {e.details()}", _status_to_code(e.code()))

        return self._message_from_response(MessageResponse.from_json(response_bytes), "SendDocument")

    async def get_message(self, channel_id: str, message_id: int) -> RelayMessage:
        self._ensure_channel()
        request = GetMessageRequest(channel_id=str(channel_id), message_id=message_id)

        try:
            response_bytes = await self._unary('GetMessage')(request.to_json(), timeout=self._rpc_timeout)
        except grpc.RpcError as e:
            raise RelayClientError(f"GetMessage failed: {e.details()}", _status_to_code(e.code()))

        return self._message_from_response(MessageResponse.from_json(response_bytes), "GetMessage")

    @staticmethod
    def _message_from_response(response: MessageResponse, rpc: str) -> RelayMessage:
        if not response.success or response.message is None:
            raise RelayClientError(
                f"{rpc} failed: {response.error_message or 'no message returned'}",
                response.error_code or RELAY_INTERNAL_ERROR
            )
        return _to_relay_message(response.message)

    async def download_file(self, file_id: int) -> RelayFile:
        """
        Start streaming a file into the cache directory.

        Returns:
            File state with ``is_downloading_active`` set; completion is
            reported through the update handlers

        Raises:
            RelayClientError: If the bridge refuses the download
        """
        self._ensure_channel()

        existing = self._download_tasks.pop(file_id, None)
        if existing:
            existing.cancel()

        call = self._unary_stream('DownloadFile')(DownloadFileRequest(file_id=file_id).to_json())
        try:
            first_bytes = await call.read()
        except grpc.RpcError as e:
            raise RelayClientError(f"DownloadFile failed: {e.details()}", _status_to_code(e.code()))

        if first_bytes is grpc.aio.EOF:
            raise RelayClientError(f"DownloadFile returned no data for file {file_id}")

        first = DownloadFileResponse.from_json(first_bytes)
        if first.file is None:
            raise RelayClientError(f"DownloadFile stream for file {file_id} did not start with file state")

        local_path = self._cached_path(file_id)
        started = _to_relay_file(first.file, str(local_path)).with_changes(
            downloaded_size=0,
            is_downloading_active=True,
            is_downloading_completed=False
        )
        self._download_tasks[file_id] = asyncio.create_task(
            self._stream_download(call, started, local_path, first.data)
        )
        return started

    async def _stream_download(
        self,
        call,
        started: RelayFile,
        local_path: Path,
        first_data: Optional[bytes]
    ) -> None:
        received = 0
        try:
            with open(local_path, 'wb') as f:
                if first_data:
                    f.write(first_data)
                    received += len(first_data)
                while True:
                    response_bytes = await call.read()
                    if response_bytes is grpc.aio.EOF:
                        break
                    response = DownloadFileResponse.from_json(response_bytes)
                    if response.data:
                        f.write(response.data)
                        received += len(response.data)

            logger.info(f"Downloaded file {started.file_id} to {local_path} ({received} bytes)")
            self._dispatch(started.with_changes(
                downloaded_size=received,
                is_downloading_active=False,
                is_downloading_completed=True
            ))
        except asyncio.CancelledError:
            call.cancel()
            local_path.unlink(missing_ok=True)
            raise
        except (grpc.RpcError, OSError) as e:
            logger.error(f"Download of file {started.file_id} stopped after {received} bytes: {e}")
            local_path.unlink(missing_ok=True)
            self._dispatch(started.with_changes(
                downloaded_size=received,
                is_downloading_active=False,
                is_downloading_completed=False
            ))
        finally:
            if self._download_tasks.get(started.file_id) is asyncio.current_task():
                del self._download_tasks[started.file_id]

    def _cached_path(self, file_id: int) -> Path:
        return self._cache_dir / f"file_{file_id}"

    async def release_file(self, file_id: int) -> None:
        task = self._download_tasks.pop(file_id, None)
        if task:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        try:
            self._cached_path(file_id).unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Could not remove cached file {file_id}: {e}")

    async def search_messages(self, channel_id: str, query: str, limit: int) -> List[RelayMessage]:
        self._ensure_channel()
        request = SearchMessagesRequest(channel_id=str(channel_id), query=query, limit=limit)

        try:
            response_bytes = await self._unary('SearchMessages')(request.to_json(), timeout=self._rpc_timeout)
        except grpc.RpcError as e:
            raise RelayClientError(f"SearchMessages failed: {e.details()}", _status_to_code(e.code()))

        response = SearchMessagesResponse.from_json(response_bytes)
        if response.error_code:
            raise RelayClientError(f"SearchMessages failed: {response.error_message}", response.error_code)
        return [_to_relay_message(m) for m in response.messages]
