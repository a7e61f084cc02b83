"""Shared data type definitions (RemoteRef, relay objects, transfer results)."""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

REMOTE_REF_SEPARATOR = ":"


@dataclass(frozen=True)
class RemoteRef:
    """
    Relay-assigned locator of one uploaded object.

    Serialized for the metadata store as ``"{channel_id}:{message_id}"``.
    """
    channel_id: str
    message_id: int

    def to_token(self) -> str:
        return f"{self.channel_id}{REMOTE_REF_SEPARATOR}{self.message_id}"

    @classmethod
    def from_token(cls, token: str) -> 'RemoteRef':
        """
        Parse a token produced by ``to_token``.

        Channel ids may themselves be negative numbers, so the split happens
        on the last separator.

        Raises:
            ValueError: If the token is malformed
        """
        channel_id, sep, message_id = token.strip().rpartition(REMOTE_REF_SEPARATOR)
        if not sep or not channel_id or not message_id:
            raise ValueError(f"Malformed remote reference: {token!r}")
        try:
            return cls(channel_id=channel_id, message_id=int(message_id))
        except ValueError:
            raise ValueError(f"Malformed remote reference: {token!r}")

    def __str__(self) -> str:
        return self.to_token()


@dataclass(frozen=True)
class RemoteObject:
    """Metadata of an object stored on the relay, as reported by the relay."""
    ref: RemoteRef
    file_id: int
    size: int
    caption: str
    file_name: str
    mime_type: str
    date: Optional[datetime] = None


@dataclass(frozen=True)
class DownloadedObject:
    """A relay object copied into local storage and verified by size."""
    remote: RemoteObject
    path: Path

    @property
    def size(self) -> int:
        return self.remote.size

    @property
    def caption(self) -> str:
        return self.remote.caption


@dataclass(frozen=True)
class UploadResult:
    """What the caller persists as the logical file's locator."""
    remote_ref: RemoteRef
    total_size: int
    part_count: int


@dataclass(frozen=True)
class DownloadResult:
    """A fully reassembled local file; the caller deletes it after serving."""
    path: Path
    file_name: str
    total_size: int
    part_count: int
