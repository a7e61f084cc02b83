"""Command request and response data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class UploadCommand:
    """Upload a local file."""

    path: str
    command: Literal["upload"] = "upload"


@dataclass(frozen=True)
class DownloadCommand:
    """Download a file by remote reference."""

    remote_ref: str
    output_path: str | None = None
    command: Literal["download"] = "download"


@dataclass(frozen=True)
class StatusCommand:
    """Show relay session status."""

    command: Literal["status"] = "status"


@dataclass(frozen=True)
class TransfersCommand:
    """List active transfers."""

    command: Literal["transfers"] = "transfers"


@dataclass(frozen=True)
class CancelCommand:
    """Cancel an active transfer."""

    transfer_id: str
    command: Literal["cancel"] = "cancel"


CommandRequest = (
    UploadCommand
    | DownloadCommand
    | StatusCommand
    | TransfersCommand
    | CancelCommand
)
