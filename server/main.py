"""Entry point for the TeleStore transfer service."""

import uvicorn
import asyncio
import time
import uuid
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from relay.grpc_client import GrpcRelayClient
from server.config import (
    SERVICE_HOST,
    SERVICE_PORT,
    RELAY_ADDRESS,
    RELAY_CHANNEL_ID,
    RELAY_CACHE_DIR,
    UPLOAD_STAGING_DIR,
    STALE_ENTRY_MAX_AGE_SECONDS
)
from server.routes.transfer_routes import router as transfer_router
from server.routes.relay_routes import router as relay_router
from server.service_locator import get_gateway, set_gateway, set_orchestrator
from transfer.config import TransferSettings
from transfer.exceptions import (
    TransferError,
    NotAuthenticatedError,
    TransferFailedError,
    UnknownTransferError
)
from transfer.gateway import RelayGateway
from transfer.orchestrator import TransferOrchestrator
from transfer.temp_storage import sweep_stale

logger = setup_logging('telestore')

app = FastAPI(
    title="TeleStore Transfer Service",
    description="Chunked large-file transfer over a messaging-channel blob relay",
    version="1.0.0"
)

sweep_task = None


def sweep_temp_dirs(settings: TransferSettings) -> int:
    """Remove work directories, downloads, staged uploads and relay cache files left by earlier runs."""
    removed = 0
    for root in (settings.work_root, settings.downloads_dir, UPLOAD_STAGING_DIR, RELAY_CACHE_DIR):
        removed += sweep_stale(root, STALE_ENTRY_MAX_AGE_SECONDS)
    return removed


async def stale_sweep_loop(settings: TransferSettings):
    """
    Periodically remove abandoned temp entries.
    """
    while True:
        try:
            await asyncio.sleep(3600)
            await asyncio.to_thread(sweep_temp_dirs, settings)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Temp sweep error: {e}", exc_info=True)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Open the relay session and build the transfer pipeline on application startup.
    """
    global sweep_task

    logger.info("TeleStore service starting up...")

    settings = TransferSettings.from_env()
    removed = await asyncio.to_thread(sweep_temp_dirs, settings)
    logger.info(f"Temp storage ready at {settings.temp_dir} ({removed} stale entries removed)")

    if not RELAY_CHANNEL_ID:
        logger.error("TELESTORE_RELAY_CHANNEL_ID is not set; transfers are unavailable")
        return

    client = GrpcRelayClient(address=RELAY_ADDRESS, cache_dir=RELAY_CACHE_DIR)
    gateway = RelayGateway(client, RELAY_CHANNEL_ID, settings)

    try:
        await gateway.start()
    except Exception as e:
        logger.error(f"Failed to start relay gateway at {RELAY_ADDRESS}: {e}", exc_info=True)
        await client.close()
        return

    set_gateway(gateway)
    set_orchestrator(TransferOrchestrator(gateway, settings))

    sweep_task = asyncio.create_task(stale_sweep_loop(settings))
    logger.info(f"Transfer pipeline started [relay={RELAY_ADDRESS}] [channel={RELAY_CHANNEL_ID}]")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Cleanup resources on application shutdown.
    """
    global sweep_task

    logger.info("TeleStore service shutting down...")

    if sweep_task:
        sweep_task.cancel()
        sweep_task = None

    gateway = get_gateway()
    set_orchestrator(None)
    set_gateway(None)
    if gateway:
        await gateway.close()
        logger.info("Relay gateway closed")


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Relay not authenticated: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "code": exc.code}
    )


@app.exception_handler(TransferFailedError)
async def transfer_failed_handler(request: Request, exc: TransferFailedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Transfer failed [reason={exc.reason}] [part={exc.part_index}]: {exc} "
        f"[request_id={request_id}] path={request.url.path}"
    )
    status_code = status.HTTP_502_BAD_GATEWAY
    if exc.reason == NotAuthenticatedError.code:
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "code": exc.code,
            "reason": exc.reason,
            "part_index": exc.part_index
        }
    )


@app.exception_handler(UnknownTransferError)
async def unknown_transfer_handler(request: Request, exc: UnknownTransferError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(
        f"Unknown transfer: {exc} [request_id={request_id}] path={request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc), "code": exc.code}
    )


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Transfer error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "code": exc.code}
    )


app.include_router(transfer_router)
app.include_router(relay_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "TeleStore Transfer API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for Docker healthcheck.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "telestore"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "server.main:app",
        host=SERVICE_HOST,
        port=SERVICE_PORT
    )


if __name__ == "__main__":
    main()
