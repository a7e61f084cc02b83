"""Command handler functions for CLI operations."""

from pathlib import Path
from typing import Optional

from common.logging_config import get_logger
from cli.models import (
    CancelCommand,
    DownloadCommand,
    StatusCommand,
    TransfersCommand,
    UploadCommand,
)
from cli.config import Config
from cli.store_client import StoreClient

logger = get_logger(__name__)


_client: Optional[StoreClient] = None


def get_client() -> StoreClient:
    """
    Get or create global StoreClient instance.

    Returns:
        StoreClient instance
    """
    global _client
    if _client is None:
        logger.debug("Creating new StoreClient instance")
        config = Config(Path.home() / '.telestore' / 'config.json')
        _client = StoreClient(config)
    return _client


def handle_upload(cmd: UploadCommand, client: Optional[StoreClient] = None) -> str:
    """
    Handle 'upload' command.

    Args:
        cmd: UploadCommand with the local path
        client: Optional StoreClient for dependency injection (testing)

    Returns:
        Result message with the remote reference
    """
    logger.info(f"Executing upload command: path={cmd.path}")
    if client is None:
        client = get_client()
    return client.upload(cmd.path)


def handle_download(cmd: DownloadCommand, client: Optional[StoreClient] = None) -> str:
    """
    Handle 'download' command.

    Args:
        cmd: DownloadCommand with remote_ref and optional output_path
        client: Optional StoreClient for dependency injection (testing)

    Returns:
        Success or error message with download results
    """
    logger.info(f"Executing download command: remote_ref={cmd.remote_ref} output_path={cmd.output_path}")
    if client is None:
        client = get_client()
    return client.download(cmd.remote_ref, cmd.output_path)


def handle_status(cmd: StatusCommand, client: Optional[StoreClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.status()


def handle_transfers(cmd: TransfersCommand, client: Optional[StoreClient] = None) -> str:
    if client is None:
        client = get_client()
    return client.list_transfers()


def handle_cancel(cmd: CancelCommand, client: Optional[StoreClient] = None) -> str:
    """
    Handle 'cancel' command.

    Args:
        cmd: CancelCommand with transfer_id
        client: Optional StoreClient for dependency injection (testing)
    """
    logger.info(f"Executing cancel command: transfer_id={cmd.transfer_id}")
    if client is None:
        client = get_client()
    return client.cancel(cmd.transfer_id)
