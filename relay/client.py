"""Capability contract of the external blob relay, as seen by the gateway."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Callable, List

RELAY_NOT_AUTHENTICATED = 401
RELAY_NOT_FOUND = 404
RELAY_INTERNAL_ERROR = 500


class RelayClientError(Exception):
    """
    Error reported by the relay client or the relay itself.

    Attributes:
        code: HTTP-like status (401 not authenticated, 404 not found, 500 other)
    """

    def __init__(self, message: str, code: int = RELAY_INTERNAL_ERROR):
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class RelayFile:
    """
    Relay-side state of one stored file.

    Upload and download progress are reported independently: a file being
    sent has ``is_uploading_active`` set until the relay either completes it
    or gives up; a file being fetched has ``is_downloading_active`` set until
    its local copy is complete.
    """
    file_id: int
    size: int
    local_path: str = ""
    downloaded_size: int = 0
    uploaded_size: int = 0
    is_uploading_active: bool = False
    is_uploading_completed: bool = False
    is_downloading_active: bool = False
    is_downloading_completed: bool = False

    def with_changes(self, **changes) -> 'RelayFile':
        return replace(self, **changes)


@dataclass(frozen=True)
class RelayMessage:
    """A channel message carrying one document."""
    channel_id: str
    message_id: int
    caption: str
    file: RelayFile
    file_name: str = ""
    mime_type: str = "application/octet-stream"
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class FileUpdate:
    """Asynchronous notification that a file's relay-side state changed."""
    file: RelayFile


UpdateHandler = Callable[[FileUpdate], None]


class RelayClient(ABC):
    """
    Authenticated session to the relay.

    Completion of uploads and downloads is signalled only through
    ``FileUpdate`` events delivered to registered handlers; the values
    returned by ``send_document`` and ``download_file`` describe the state at
    the moment the request was accepted.
    """

    @abstractmethod
    async def start(self) -> None:
        """Open the session."""

    @abstractmethod
    async def close(self) -> None:
        """Close the session and release transport resources."""

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Whether the session is currently authorized."""

    @abstractmethod
    async def send_document(self, channel_id: str, path: str, caption: str) -> RelayMessage:
        """Post a local file as a document message; upload continues in the background."""

    @abstractmethod
    async def get_message(self, channel_id: str, message_id: int) -> RelayMessage:
        """Fetch one message. Raises RelayClientError(code=404) if it no longer exists."""

    @abstractmethod
    async def download_file(self, file_id: int) -> RelayFile:
        """Start downloading a file to the client's local cache."""

    @abstractmethod
    async def release_file(self, file_id: int) -> None:
        """Stop any download of the file and delete its cached copy."""

    @abstractmethod
    async def search_messages(self, channel_id: str, query: str, limit: int) -> List[RelayMessage]:
        """Relay-side text search over the channel's captions."""

    @abstractmethod
    def add_update_handler(self, handler: UpdateHandler) -> None:
        """Subscribe to file updates."""

    @abstractmethod
    def remove_update_handler(self, handler: UpdateHandler) -> None:
        """Unsubscribe from file updates."""

