"""In-memory bookkeeping for one in-flight upload or download."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from common.types import RemoteRef
from transfer.exceptions import TransferCancelledError, TransferError


class TransferDirection(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"


class TransferState(str, Enum):
    PLANNING = "planning"
    IN_FLIGHT = "in_flight"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, Enum):
    PENDING = "pending"
    IN_FLIGHT = "in_flight"
    DONE = "done"
    FAILED = "failed"


_ALLOWED_TRANSITIONS = {
    TransferState.PLANNING: {TransferState.IN_FLIGHT, TransferState.FAILED},
    TransferState.IN_FLIGHT: {TransferState.COMPLETED, TransferState.FAILED},
    TransferState.COMPLETED: set(),
    TransferState.FAILED: set(),
}


@dataclass
class PartJob:
    """Transfer of one part to or from the relay."""
    index: int
    total: int
    tag: str = ""
    size: int = 0
    status: JobStatus = JobStatus.PENDING
    attempts: int = 0
    remote_ref: Optional[RemoteRef] = None
    error: Optional[str] = None

    def start_attempt(self) -> None:
        self.status = JobStatus.IN_FLIGHT
        self.attempts += 1
        self.error = None

    def complete(self, remote_ref: RemoteRef, size: int) -> None:
        self.status = JobStatus.DONE
        self.remote_ref = remote_ref
        self.size = size

    def fail(self, error: Exception) -> None:
        self.status = JobStatus.FAILED
        self.error = str(error)

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "total": self.total,
            "tag": self.tag,
            "size": self.size,
            "status": self.status.value,
            "attempts": self.attempts,
            "remote_ref": self.remote_ref.to_token() if self.remote_ref else None,
            "error": self.error,
        }


class TransferSession:
    """
    Tracks the part jobs and aggregate state of one transfer.

    Sessions are never persisted; a failed transfer restarts from part 1.
    Cancellation is cooperative and only observed between parts.
    """

    def __init__(self, direction: TransferDirection, name: str, transfer_id: Optional[str] = None):
        self.transfer_id = transfer_id or uuid.uuid4().hex
        self.direction = direction
        self.name = name
        self.state = TransferState.PLANNING
        self.jobs: List[PartJob] = []
        self.error: Optional[TransferError] = None
        self.created_at = datetime.now(timezone.utc)
        self._cancel_requested = False

    def plan_jobs(self, tags: List[str], sizes: Optional[List[int]] = None) -> None:
        """
        Create one pending job per part.

        Args:
            tags: Part tags in ascending order (a single empty tag for an unsplit file)
            sizes: Optional planned byte lengths, same order as tags
        """
        total = len(tags)
        self.jobs = [
            PartJob(index=i + 1, total=total, tag=tag, size=sizes[i] if sizes else 0)
            for i, tag in enumerate(tags)
        ]

    def job(self, index: int) -> PartJob:
        """
        Raises:
            KeyError: If no job has this 1-based index
        """
        for job in self.jobs:
            if job.index == index:
                return job
        raise KeyError(f"Transfer {self.transfer_id} has no part {index}")

    def transition(self, state: TransferState) -> None:
        """
        Raises:
            ValueError: If the transition is not allowed
        """
        if state not in _ALLOWED_TRANSITIONS[self.state]:
            raise ValueError(f"Illegal transfer transition {self.state.value} -> {state.value}")
        self.state = state

    def mark_failed(self, error: TransferError) -> None:
        self.error = error
        if self.state not in (TransferState.COMPLETED, TransferState.FAILED):
            self.state = TransferState.FAILED

    @property
    def is_finished(self) -> bool:
        return self.state in (TransferState.COMPLETED, TransferState.FAILED)

    def cancel(self) -> None:
        """Request cancellation; honored at the next part boundary."""
        self._cancel_requested = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def check_cancelled(self) -> None:
        """
        Raises:
            TransferCancelledError: If cancellation was requested
        """
        if self._cancel_requested:
            raise TransferCancelledError(f"Transfer {self.transfer_id} was cancelled")

    @property
    def bytes_done(self) -> int:
        return sum(job.size for job in self.jobs if job.status == JobStatus.DONE)

    @property
    def parts_done(self) -> int:
        return sum(1 for job in self.jobs if job.status == JobStatus.DONE)

    def to_dict(self) -> dict:
        return {
            "transfer_id": self.transfer_id,
            "direction": self.direction.value,
            "name": self.name,
            "state": self.state.value,
            "parts_done": self.parts_done,
            "part_count": len(self.jobs),
            "bytes_done": self.bytes_done,
            "cancel_requested": self._cancel_requested,
            "created_at": self.created_at.isoformat(),
            "error": str(self.error) if self.error else None,
            "jobs": [job.to_dict() for job in self.jobs],
        }
