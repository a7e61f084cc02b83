"""Drives whole-file uploads and downloads over the relay gateway."""

import asyncio
import logging
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, TypeVar, Union

from common.types import DownloadResult, RemoteRef, UploadResult
from transfer import chunk_codec
from transfer.chunk_codec import LocalPart
from transfer.config import TransferSettings
from transfer.exceptions import (
    NotAuthenticatedError,
    SiblingNotFoundError,
    TransferError,
    TransferFailedError,
    UnknownTransferError,
)
from transfer.gateway import RelayGateway
from transfer.part_tag import format_part_tag, parse_part_tag
from transfer.session import TransferDirection, TransferSession, TransferState
from transfer.temp_storage import safe_file_name, transfer_workspace

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TransferOrchestrator:
    """
    Runs transfers one at a time against a single relay gateway.

    Uploads split files larger than ``max_part_size`` into tagged parts and
    send them in ascending order; downloads follow a part's tag to find and
    fetch its siblings, then reassemble. Each part gets ``part_retries``
    extra attempts for retryable errors. Remote parts already stored when an
    upload fails are left in place.
    """

    def __init__(self, gateway: RelayGateway, settings: Optional[TransferSettings] = None):
        """
        Initialize orchestrator.

        Args:
            gateway: Started relay gateway
            settings: Part size, retry budget and temp locations (default: TransferSettings())
        """
        self._gateway = gateway
        self._settings = settings or TransferSettings()
        self._transfer_lock = asyncio.Lock()
        self._sessions: Dict[str, TransferSession] = {}

    @property
    def settings(self) -> TransferSettings:
        return self._settings

    def active_sessions(self) -> List[TransferSession]:
        """Transfers that are queued or running, oldest first."""
        return sorted(self._sessions.values(), key=lambda s: s.created_at)

    def get_session(self, transfer_id: str) -> Optional[TransferSession]:
        return self._sessions.get(transfer_id)

    def cancel(self, transfer_id: str) -> TransferSession:
        """
        Request cancellation of a queued or running transfer.

        Raises:
            UnknownTransferError: If no active transfer has this id
        """
        session = self._sessions.get(transfer_id)
        if session is None:
            raise UnknownTransferError(f"No active transfer {transfer_id}")
        session.cancel()
        logger.info(f"Cancellation requested for transfer {transfer_id}")
        return session

    def _ensure_ready(self) -> None:
        if not self._gateway.is_ready():
            raise NotAuthenticatedError("Relay session is not ready")

    async def _run_part(
        self,
        session: TransferSession,
        index: Optional[int],
        operation: Callable[[], Awaitable[T]],
        what: str
    ) -> T:
        """
        Run one part operation with the per-part retry budget.

        Args:
            session: Owning transfer
            index: Part index whose job records the attempts, None if not yet known
            operation: Zero-argument coroutine factory doing a single attempt
            what: Description for log lines

        Raises:
            TransferError: The last error once the budget is spent, or any non-retryable error
        """
        job = session.job(index) if index is not None else None
        attempts = 1 + self._settings.part_retries

        for attempt in range(1, attempts + 1):
            if job:
                job.start_attempt()
            try:
                return await operation()
            except TransferError as e:
                if job:
                    job.fail(e)
                if e.retryable and attempt < attempts:
                    logger.warning(
                        f"{what} failed (attempt {attempt}/{attempts}), retrying "
                        f"[transfer={session.transfer_id}]: {e}"
                    )
                    continue
                raise

    def _fail(self, session: TransferSession, error: TransferError, part_index: Optional[int]) -> TransferFailedError:
        failed = error if isinstance(error, TransferFailedError) else TransferFailedError.from_error(error, part_index)
        session.mark_failed(failed)
        logger.error(
            f"Transfer {session.transfer_id} ({session.direction.value} {session.name!r}) failed "
            f"[reason={failed.reason}] [part={failed.part_index}]: {error}"
        )
        return failed

    async def upload(
        self,
        local_path: Union[str, Path],
        logical_name: str,
        session: Optional[TransferSession] = None
    ) -> UploadResult:
        """
        Store a local file on the relay.

        Files up to ``max_part_size`` become one untagged object; larger files
        are sent as parts tagged ``{logical_name}.part{i}/{n}``.

        Args:
            local_path: File to upload; never modified
            logical_name: User-visible name, used as the tag base
            session: Optional pre-created session (lets callers cancel early)

        Returns:
            UploadResult with the first part's reference, total size and part count

        Raises:
            TransferFailedError: If the relay side fails; parts already stored stay on the relay
            OSError: If the local file cannot be read or chunks cannot be written
        """
        session = session or TransferSession(TransferDirection.UPLOAD, logical_name)
        self._sessions[session.transfer_id] = session
        try:
            async with self._transfer_lock:
                return await self._upload_locked(session, Path(local_path), logical_name)
        finally:
            self._sessions.pop(session.transfer_id, None)

    async def _upload_locked(self, session: TransferSession, local_path: Path, logical_name: str) -> UploadResult:
        file_size = local_path.stat().st_size
        file_plan = chunk_codec.plan(file_size, self._settings.max_part_size)

        if file_plan.is_split:
            tags = [format_part_tag(logical_name, r.index, file_plan.part_count) for r in file_plan.ranges]
        else:
            tags = [""]
        session.plan_jobs(tags, [r.length for r in file_plan.ranges])

        logger.info(
            f"Upload {session.transfer_id}: {logical_name!r} ({file_size} bytes) "
            f"-> {file_plan.part_count} part(s)"
        )

        current: Optional[int] = None
        try:
            session.check_cancelled()
            self._ensure_ready()
            session.transition(TransferState.IN_FLIGHT)

            if not file_plan.is_split:
                current = 1
                remote = await self._run_part(
                    session, 1,
                    lambda: self._gateway.put(local_path, ""),
                    f"Upload of {logical_name!r}"
                )
                session.job(1).complete(remote.ref, file_size)
                first_ref = remote.ref
            else:
                first_ref = await self._upload_parts(session, local_path, logical_name, file_plan)
                current = None
        except TransferError as e:
            raise self._fail(session, e, current) from e
        except Exception as e:
            session.mark_failed(TransferError(str(e)))
            raise

        session.transition(TransferState.COMPLETED)
        logger.info(
            f"Upload {session.transfer_id} completed: {logical_name!r} -> {first_ref} "
            f"({file_plan.part_count} part(s), {file_size} bytes)"
        )
        return UploadResult(remote_ref=first_ref, total_size=file_size, part_count=file_plan.part_count)

    async def _upload_parts(
        self,
        session: TransferSession,
        local_path: Path,
        logical_name: str,
        file_plan: chunk_codec.TransferPlan
    ) -> RemoteRef:
        first_ref: Optional[RemoteRef] = None

        with transfer_workspace(self._settings.work_root, session.transfer_id) as work_dir:
            for part_range in file_plan.ranges:
                session.check_cancelled()
                job = session.job(part_range.index)

                chunk_path = chunk_codec.extract_part(local_path, part_range, work_dir)
                try:
                    logger.info(
                        f"Uploading part {job.index}/{job.total} of {logical_name!r} "
                        f"({part_range.length} bytes) [transfer={session.transfer_id}]"
                    )
                    remote = await self._run_part(
                        session, job.index,
                        lambda: self._gateway.put(chunk_path, job.tag),
                        f"Upload of part {job.index}/{job.total}"
                    )
                except TransferError as e:
                    raise TransferFailedError.from_error(e, job.index) from e
                finally:
                    chunk_path.unlink(missing_ok=True)

                job.complete(remote.ref, part_range.length)
                if first_ref is None:
                    first_ref = remote.ref

        return first_ref

    async def download(
        self,
        remote_ref: Union[RemoteRef, str],
        session: Optional[TransferSession] = None
    ) -> DownloadResult:
        """
        Fetch a logical file from the relay into a local file.

        An untagged object is the file itself. A tagged object names its part
        position; every sibling is located by searching for its tag, the most
        recent match winning, and all parts are joined in order.

        Args:
            remote_ref: Reference (or its token) stored at upload time
            session: Optional pre-created session

        Returns:
            DownloadResult; the caller deletes ``path`` once it has been served

        Raises:
            TransferFailedError: If any part cannot be fetched; no partial file is left
            OSError: If local storage fails
        """
        if isinstance(remote_ref, str):
            remote_ref = RemoteRef.from_token(remote_ref)

        session = session or TransferSession(TransferDirection.DOWNLOAD, remote_ref.to_token())
        self._sessions[session.transfer_id] = session
        try:
            async with self._transfer_lock:
                return await self._download_locked(session, remote_ref)
        finally:
            self._sessions.pop(session.transfer_id, None)

    async def _download_locked(self, session: TransferSession, remote_ref: RemoteRef) -> DownloadResult:
        downloads_dir = self._settings.downloads_dir
        output: Optional[Path] = None
        current: Optional[int] = None

        try:
            session.check_cancelled()
            self._ensure_ready()
            session.transition(TransferState.IN_FLIGHT)

            with transfer_workspace(self._settings.work_root, session.transfer_id) as work_dir:
                first = await self._run_part(
                    session, None,
                    lambda: self._gateway.get(remote_ref, work_dir),
                    f"Download of {remote_ref}"
                )
                tag = parse_part_tag(first.caption)
                downloads_dir.mkdir(parents=True, exist_ok=True)

                if tag is None:
                    session.plan_jobs([""])
                    session.job(1).complete(remote_ref, first.size)
                    file_name = safe_file_name(first.remote.file_name or first.caption)
                    output = downloads_dir / f"{session.transfer_id}-{file_name}"
                    shutil.move(str(first.path), str(output))
                    part_count = 1
                else:
                    logger.info(
                        f"Download {session.transfer_id}: {remote_ref} is part {tag.index}/{tag.total} "
                        f"of {tag.base_name!r}, locating siblings"
                    )
                    session.plan_jobs([str(tag.sibling(i)) for i in range(1, tag.total + 1)])
                    session.job(tag.index).complete(remote_ref, first.size)
                    parts = [LocalPart(tag.index, first.path)]

                    for index in range(1, tag.total + 1):
                        if index == tag.index:
                            continue
                        current = index
                        session.check_cancelled()
                        parts.append(await self._download_sibling(session, str(tag.sibling(index)), index, work_dir))
                    current = None

                    file_name = safe_file_name(tag.base_name)
                    output = downloads_dir / f"{session.transfer_id}-{file_name}"
                    chunk_codec.reassemble(parts, output, total_parts=tag.total)
                    part_count = tag.total
        except TransferError as e:
            if output is not None:
                output.unlink(missing_ok=True)
            raise self._fail(session, e, current) from e
        except Exception as e:
            if output is not None:
                output.unlink(missing_ok=True)
            session.mark_failed(TransferError(str(e)))
            raise

        total_size = output.stat().st_size
        session.transition(TransferState.COMPLETED)
        logger.info(
            f"Download {session.transfer_id} completed: {remote_ref} -> {output} "
            f"({part_count} part(s), {total_size} bytes)"
        )
        return DownloadResult(path=output, file_name=file_name, total_size=total_size, part_count=part_count)

    async def _download_sibling(self, session: TransferSession, sibling_tag: str, index: int, work_dir: Path) -> LocalPart:
        job = session.job(index)
        matches = await self._gateway.find_by_tag(sibling_tag)
        if not matches:
            error = SiblingNotFoundError(index, sibling_tag)
            job.fail(error)
            raise error

        chosen = matches[0]
        if len(matches) > 1:
            logger.warning(
                f"{len(matches)} objects carry tag {sibling_tag!r}; using most recent {chosen.ref}"
            )

        downloaded = await self._run_part(
            session, index,
            lambda: self._gateway.get(chosen.ref, work_dir),
            f"Download of part {index}/{job.total}"
        )
        job.complete(chosen.ref, downloaded.size)
        return LocalPart(index, downloaded.path)
