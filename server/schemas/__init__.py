"""Pydantic schemas for API requests and responses."""

from server.schemas.transfer import (
    UploadResponse,
    PartJobResponse,
    TransferSessionResponse,
    ListTransfersResponse,
    CancelTransferResponse,
    RelayStatusResponse
)
from server.schemas.common import ErrorResponse, TransferFailedResponse

__all__ = [
    "UploadResponse",
    "PartJobResponse",
    "TransferSessionResponse",
    "ListTransfersResponse",
    "CancelTransferResponse",
    "RelayStatusResponse",
    "ErrorResponse",
    "TransferFailedResponse"
]
