"""Custom exception classes for the transfer core."""

from typing import Iterable, Optional


class TransferError(Exception):
    """
    Base exception class for all transfer-related errors.
    """
    code = "TRANSFER_ERROR"
    retryable = False


class NotAuthenticatedError(TransferError):
    """
    Raised when the relay session is not ready. Never retried.
    """
    code = "NOT_AUTHENTICATED"


class UploadTimeoutError(TransferError):
    """
    Raised when the relay does not confirm a stored object within the budget.
    """
    code = "UPLOAD_TIMEOUT"
    retryable = True


class DownloadTimeoutError(TransferError):
    """
    Raised when a relay download stalls past the budget.
    """
    code = "DOWNLOAD_TIMEOUT"
    retryable = True


class RelayOperationFailedError(TransferError):
    """
    Raised when the relay reports that an upload or download stopped
    without completing.
    """
    code = "RELAY_OPERATION_FAILED"
    retryable = True


class DownloadVerificationFailedError(TransferError):
    """
    Raised when a downloaded object's byte count does not match its
    declared size.
    """
    code = "DOWNLOAD_VERIFICATION_FAILED"


class ObjectNotFoundError(TransferError):
    """
    Raised when a remote reference no longer resolves on the relay.
    """
    code = "OBJECT_NOT_FOUND"


class SiblingNotFoundError(ObjectNotFoundError):
    """
    Raised when a search finds no part for a given index.
    """
    code = "SIBLING_NOT_FOUND"

    def __init__(self, index: int, tag: str):
        super().__init__(f"Could not find part {index} (tag {tag!r})")
        self.index = index
        self.tag = tag


class IncompleteSequenceError(TransferError):
    """
    Raised when a part sequence has gaps and cannot be reassembled.
    """
    code = "INCOMPLETE_SEQUENCE"

    def __init__(self, message: str, missing: Iterable[int] = ()):
        super().__init__(message)
        self.missing = sorted(missing)


class TransferCancelledError(TransferError):
    """
    Raised at a part boundary when a transfer was cancelled.
    """
    code = "TRANSFER_CANCELLED"


class TransferFailedError(TransferError):
    """
    Transfer-level failure wrapping the part-level cause.

    Attributes:
        reason: Code of the underlying error (e.g. INCOMPLETE_SEQUENCE)
        part_index: 1-based index of the failing part, if any
    """
    code = "TRANSFER_FAILED"

    def __init__(self, reason: str, message: str, part_index: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.part_index = part_index

    @classmethod
    def from_error(cls, error: TransferError, part_index: Optional[int] = None) -> 'TransferFailedError':
        """
        Wrap a part-level error. Missing objects escalate to INCOMPLETE_SEQUENCE.
        """
        reason = error.code
        if isinstance(error, ObjectNotFoundError) and part_index is not None:
            reason = IncompleteSequenceError.code
        failed = cls(reason, str(error), part_index)
        failed.__cause__ = error
        return failed


class UnknownTransferError(TransferError):
    """
    Raised when cancelling a transfer id that is not active.
    """
    code = "UNKNOWN_TRANSFER"
