"""Scoped local storage for chunk files and reassembled downloads."""

import logging
import re
import shutil
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

logger = logging.getLogger(__name__)

_UNSAFE_NAME_CHARS = re.compile(r'[^A-Za-z0-9._ -]+')


@contextmanager
def transfer_workspace(root: Union[str, Path], transfer_id: str) -> Iterator[Path]:
    """
    Acquire a work directory for one transfer and remove it on every exit path.

    Args:
        root: Parent directory of all work directories
        transfer_id: Unique transfer id, used as directory name

    Yields:
        Path of the empty work directory

    Raises:
        OSError: If the directory cannot be created
    """
    work_dir = Path(root) / transfer_id
    work_dir.mkdir(parents=True, exist_ok=False)
    logger.debug(f"Created work directory {work_dir}")
    try:
        yield work_dir
    finally:
        try:
            shutil.rmtree(work_dir)
            logger.debug(f"Removed work directory {work_dir}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Failed to remove work directory {work_dir}: {e}")


def safe_file_name(name: str, default: str = "downloaded_file") -> str:
    """
    Reduce a relay-provided name to a single safe path component.

    Args:
        name: Name from a caption or document
        default: Returned when nothing usable remains

    Returns:
        File name without directories or unusual characters
    """
    base = Path(name.replace("\\", "/")).name if name else ""
    cleaned = _UNSAFE_NAME_CHARS.sub("_", base).strip(" .")
    return cleaned or default


def discard_file(path: Union[str, Path]) -> bool:
    """
    Delete a file handed out by a download once it has been served.

    Returns:
        True if a file was deleted, False if it did not exist
    """
    path = Path(path)
    try:
        path.unlink()
        logger.debug(f"Discarded {path}")
        return True
    except FileNotFoundError:
        return False


def sweep_stale(root: Union[str, Path], max_age_seconds: float) -> int:
    """
    Remove leftovers older than ``max_age_seconds`` directly under ``root``.

    Work directories are always removed by their transfer; anything older
    than a transfer can run was left behind by a crashed process.

    Returns:
        Number of entries removed
    """
    root = Path(root)
    if not root.exists():
        return 0

    cutoff = time.time() - max_age_seconds
    removed = 0
    for entry in root.iterdir():
        try:
            if entry.stat().st_mtime >= cutoff:
                continue
            if entry.is_dir():
                shutil.rmtree(entry)
            else:
                entry.unlink()
            removed += 1
        except OSError as e:
            logger.warning(f"Could not remove stale entry {entry}: {e}")

    if removed:
        logger.info(f"Removed {removed} stale entries from {root}")
    return removed
