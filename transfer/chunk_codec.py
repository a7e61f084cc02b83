"""Splits local files into relay-sized parts and joins them back."""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable, List, Optional, Tuple, Union

from common.constants import COPY_BUFFER_BYTES, DEFAULT_MAX_PART_SIZE_BYTES
from transfer.exceptions import IncompleteSequenceError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class PartRange:
    """
    Byte range of one part within the source file.
    """
    index: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class TransferPlan:
    """
    Result of planning a file: how many parts, and where each one lies.
    """
    file_size: int
    max_part_size: int
    ranges: Tuple[PartRange, ...]

    @property
    def part_count(self) -> int:
        return len(self.ranges)

    @property
    def is_split(self) -> bool:
        """False when the whole file goes to the relay as one untagged object."""
        return self.file_size > self.max_part_size


@dataclass(frozen=True)
class LocalPart:
    """A part available on local disk, ready to be appended in order."""
    index: int
    path: Path


def plan(file_size: int, max_part_size: int = DEFAULT_MAX_PART_SIZE_BYTES) -> TransferPlan:
    """
    Plan the split of a file of ``file_size`` bytes.

    Args:
        file_size: Size of the source file in bytes
        max_part_size: Largest allowed part

    Returns:
        TransferPlan with a single range when no split is needed, otherwise
        ceil(file_size / max_part_size) contiguous ranges covering the file

    Raises:
        ValueError: If sizes are out of range
    """
    if max_part_size <= 0:
        raise ValueError(f"max_part_size must be positive, got {max_part_size}")
    if file_size < 0:
        raise ValueError(f"file_size cannot be negative, got {file_size}")

    if file_size <= max_part_size:
        return TransferPlan(file_size, max_part_size, (PartRange(1, 0, file_size),))

    part_count = math.ceil(file_size / max_part_size)
    ranges = []
    for i in range(part_count):
        offset = i * max_part_size
        length = min(max_part_size, file_size - offset)
        ranges.append(PartRange(i + 1, offset, length))

    return TransferPlan(file_size, max_part_size, tuple(ranges))


def _copy_exact(src: BinaryIO, dst: BinaryIO, length: int) -> int:
    remaining = length
    while remaining > 0:
        piece = src.read(min(COPY_BUFFER_BYTES, remaining))
        if not piece:
            break
        dst.write(piece)
        remaining -= len(piece)
    return length - remaining


def extract_part(source: PathLike, part_range: PartRange, dest_dir: PathLike, name: Optional[str] = None) -> Path:
    """
    Copy one range of ``source`` into its own file under ``dest_dir``.

    The source is opened read-only and never modified.

    Args:
        source: Path of the file being split
        part_range: Range to copy
        dest_dir: Directory for the chunk file
        name: Optional chunk file name (default: ``{source name}.part{index}``)

    Returns:
        Path of the written chunk

    Raises:
        OSError: On read/write failure, or if the source is shorter than planned
    """
    source = Path(source)
    dest_dir = Path(dest_dir)
    dest_dir.mkdir(parents=True, exist_ok=True)
    chunk_path = dest_dir / (name or f"{source.name}.part{part_range.index}")

    with open(source, 'rb') as src, open(chunk_path, 'wb') as dst:
        src.seek(part_range.offset)
        copied = _copy_exact(src, dst, part_range.length)

    if copied != part_range.length:
        chunk_path.unlink(missing_ok=True)
        raise OSError(
            f"Source {source} ended early: part {part_range.index} expected "
            f"{part_range.length} bytes, read {copied}"
        )

    logger.debug(f"Extracted part {part_range.index} ({part_range.length} bytes) to {chunk_path}")
    return chunk_path


def _check_sequence(parts: List[LocalPart], total_parts: Optional[int]) -> None:
    indices = [p.index for p in parts]
    if len(set(indices)) != len(indices):
        raise IncompleteSequenceError(f"Duplicate part indices in {sorted(indices)}")

    expected = total_parts if total_parts is not None else (max(indices) if indices else 0)
    if expected < 1:
        raise IncompleteSequenceError("No parts to reassemble")

    missing = set(range(1, expected + 1)) - set(indices)
    extra = [i for i in indices if not 1 <= i <= expected]
    if missing or extra:
        raise IncompleteSequenceError(
            f"Part sequence incomplete: expected 1..{expected}, "
            f"missing {sorted(missing)}" + (f", unexpected {sorted(extra)}" if extra else ""),
            missing=missing,
        )


def reassemble(
    parts: Iterable[LocalPart],
    destination: PathLike,
    total_parts: Optional[int] = None
) -> Path:
    """
    Join parts into ``destination`` in ascending index order.

    Each part file is deleted as soon as it has been appended. The sequence
    is validated before anything is written; if writing fails midway the
    partial destination is removed.

    Args:
        parts: Parts in any order
        destination: Output file path
        total_parts: Expected part count (default: highest index seen)

    Returns:
        Path of the reassembled file

    Raises:
        IncompleteSequenceError: If indices 1..total_parts are not all present
        OSError: On read/write failure
    """
    ordered = sorted(parts, key=lambda p: p.index)
    _check_sequence(ordered, total_parts)

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    written = 0
    try:
        with open(destination, 'wb') as out:
            for part in ordered:
                with open(part.path, 'rb') as src:
                    while True:
                        piece = src.read(COPY_BUFFER_BYTES)
                        if not piece:
                            break
                        out.write(piece)
                        written += len(piece)
                part.path.unlink()
                logger.debug(f"Appended part {part.index}/{len(ordered)} to {destination}")
    except BaseException:
        destination.unlink(missing_ok=True)
        raise

    logger.info(f"Reassembled {len(ordered)} parts into {destination} ({written} bytes)")
    return destination
