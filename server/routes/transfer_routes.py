"""Transfer API routes."""

import asyncio
import shutil
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import FileResponse
from starlette.background import BackgroundTask

from common.file_types import classify_file_type, guess_mime_type
from common.types import RemoteRef
from server.config import UPLOAD_STAGING_DIR
from server.schemas.common import ErrorResponse, TransferFailedResponse
from server.schemas.transfer import (
    CancelTransferResponse,
    ListTransfersResponse,
    TransferSessionResponse,
    UploadResponse
)
from server.service_locator import get_orchestrator
from transfer.orchestrator import TransferOrchestrator
from transfer.temp_storage import discard_file, safe_file_name, transfer_workspace

router = APIRouter(prefix="/transfers", tags=["Transfers"])

TRANSFER_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    502: {"model": TransferFailedResponse},
    503: {"model": ErrorResponse},
}


def require_orchestrator() -> TransferOrchestrator:
    """Dependency returning the running orchestrator, 503 while the service is starting."""
    orchestrator = get_orchestrator()
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Transfer service is not initialized"
        )
    return orchestrator


def _save_upload(upload: UploadFile, destination) -> None:
    with open(destination, "wb") as out:
        shutil.copyfileobj(upload.file, out)


@router.post(
    "/upload",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    responses=TRANSFER_ERROR_RESPONSES
)
async def upload_file(
    file: UploadFile = File(...),
    orchestrator: TransferOrchestrator = Depends(require_orchestrator)
):
    """
    Upload a file to the relay, splitting it into parts when needed.

    Parameters:
        - file: File to upload (multipart/form-data)

    Returns:
        - remote_ref: Reference of the first stored part
        - total_size: File size in bytes
        - part_count: Number of relay objects
        - file_name, file_type, mime_type: Metadata for the caller's records

    Raises:
        - 400: Missing file name
        - 502: Transfer failed on the relay
        - 503: Relay session not ready
    """
    if not file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file has no name")

    file_name = file.filename

    # staged under its own name so a single-part object keeps it on the relay
    with transfer_workspace(UPLOAD_STAGING_DIR, uuid.uuid4().hex) as staging_dir:
        staged = staging_dir / safe_file_name(file_name)
        await asyncio.to_thread(_save_upload, file, staged)
        result = await orchestrator.upload(staged, file_name)

    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = guess_mime_type(file_name)

    return UploadResponse(
        remote_ref=result.remote_ref.to_token(),
        total_size=result.total_size,
        part_count=result.part_count,
        file_name=file_name,
        file_type=classify_file_type(file_name, mime_type),
        mime_type=mime_type,
    )


@router.get("/download", responses=TRANSFER_ERROR_RESPONSES)
async def download_file(
    remote_ref: str = Query(..., description="Reference returned by upload"),
    orchestrator: TransferOrchestrator = Depends(require_orchestrator)
):
    """
    Download and reassemble a file stored on the relay.

    Parameters:
        - remote_ref: Token of the form "<channel_id>:<message_id>"

    Returns:
        - File contents; the local copy is deleted after sending

    Raises:
        - 400: Malformed reference
        - 502: Transfer failed (e.g. a part is missing)
        - 503: Relay session not ready
    """
    try:
        ref = RemoteRef.from_token(remote_ref)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    result = await orchestrator.download(ref)

    return FileResponse(
        result.path,
        media_type=guess_mime_type(result.file_name),
        filename=result.file_name,
        background=BackgroundTask(discard_file, result.path)
    )


@router.get("", response_model=ListTransfersResponse)
async def list_transfers(orchestrator: TransferOrchestrator = Depends(require_orchestrator)):
    """
    List queued and running transfers with per-part status.
    """
    return ListTransfersResponse(
        transfers=[TransferSessionResponse(**s.to_dict()) for s in orchestrator.active_sessions()]
    )


@router.delete("/{transfer_id}", response_model=CancelTransferResponse, responses={404: {"model": ErrorResponse}})
async def cancel_transfer(
    transfer_id: str,
    orchestrator: TransferOrchestrator = Depends(require_orchestrator)
):
    """
    Request cancellation of an active transfer. Takes effect at the next part boundary.

    Raises:
        - 404: No active transfer with this id
    """
    session = orchestrator.cancel(transfer_id)
    return CancelTransferResponse(transfer_id=session.transfer_id, cancel_requested=session.cancel_requested)
