"""Pydantic schemas for transfer endpoints."""

from typing import List, Optional
from pydantic import BaseModel


class UploadResponse(BaseModel):
    """Response model for file upload."""
    remote_ref: str
    total_size: int
    part_count: int
    file_name: str
    file_type: str
    mime_type: str


class PartJobResponse(BaseModel):
    """Status of one part of a transfer."""
    index: int
    total: int
    tag: str
    size: int
    status: str
    attempts: int
    remote_ref: Optional[str] = None
    error: Optional[str] = None


class TransferSessionResponse(BaseModel):
    """Status of one active transfer."""
    transfer_id: str
    direction: str
    name: str
    state: str
    parts_done: int
    part_count: int
    bytes_done: int
    cancel_requested: bool
    created_at: str
    error: Optional[str] = None
    jobs: List[PartJobResponse]


class ListTransfersResponse(BaseModel):
    """Response model for listing active transfers."""
    transfers: List[TransferSessionResponse]


class CancelTransferResponse(BaseModel):
    """Response model for a cancellation request."""
    transfer_id: str
    cancel_requested: bool


class RelayStatusResponse(BaseModel):
    """Readiness of the relay session."""
    initialized: bool
    authenticated: bool
