"""Upload coordinator - drives one file through chunking, upload and verification."""
import asyncio
import logging
from functools import partial
from typing import Awaitable, Callable, List, Optional

from ..errors import InvalidTransitionError, R2ManagerError, VerificationError
from ..models import (
    FailureKind,
    RetryPolicy,
    UploadConfig,
    UploadResult,
    UploadStatus,
    UploadTask,
)
from ..protocols import IFileSource, IFileValidator, ITransport
from ..services.checksum import ChecksumService
from ..services.validation import FileTypePolicy
from ..utils.events import EventEmitter, ProgressEvent, RetryEvent, StatusEvent, TerminalEvent
from .chunk_uploader import ChunkUploader

logger = logging.getLogger(__name__)

MAX_PROGRESS_BEFORE_VERIFY = 99


class UploadCoordinator:
    """
    Splits a file into chunks, uploads them in order and verifies the result.

    Chunks already in ``task.completed_chunk_indices`` are never sent again,
    so a task can be resumed after an interruption. Nothing is written to
    caller-owned state: progress, retries and state changes are published on
    ``self.events`` as ``"progress"``, ``"retry"``, ``"status"`` and
    ``"terminal"``.

    Usage:
        coordinator = UploadCoordinator(transport)
        coordinator.events.on("progress", lambda e: print(f"{e.percent:.0f}%"))
        task = coordinator.create_task(LocalFileSource(path), "my-bucket", "photos")
        result = await coordinator.upload_file(task)
    """

    def __init__(
        self,
        transport: ITransport,
        config: Optional[UploadConfig] = None,
        validator: Optional[IFileValidator] = None,
        checksum: Optional[ChecksumService] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._config = config or UploadConfig()
        self._validator = validator or FileTypePolicy()
        self._checksum = checksum or ChecksumService()
        self._uploader = ChunkUploader(transport, self._checksum, sleep)
        self.events = EventEmitter()

    def create_task(
        self, source: IFileSource, bucket: str, prefix: Optional[str] = None
    ) -> UploadTask:
        return UploadTask.create(source, bucket, prefix, chunk_size=self._config.chunk_size)

    async def upload_file(
        self, task: UploadTask, policy: Optional[RetryPolicy] = None
    ) -> UploadResult:
        """
        Upload every outstanding chunk of ``task`` and verify the transfer.

        Args:
            task: Task to run (``pending``, or ``uploading`` when resumed)
            policy: Per-chunk retry policy (default from UploadConfig)

        Returns:
            UploadResult; on failure it names the failure kind and the chunk
            indices still outstanding
        """
        if task.is_terminal:
            raise InvalidTransitionError(
                f"{task.destination_key} is already {task.status.value}; use task.resume()"
            )
        policy = policy or self._config.retry_policy()
        source = task.source

        error = self._validator.validate(source.name, source.size, source.content_type)
        if error:
            logger.warning(f"Rejected {source.name}: {error}")
            return await self._fail(task, FailureKind.VALIDATION, error)

        pending = task.outstanding_chunks
        logger.info(
            f"Uploading {source.name} to {task.bucket}/{task.destination_key} "
            f"({len(pending)}/{task.total_chunks} chunks pending)"
        )
        on_retry = partial(self._on_retry, task)
        await self._set_status(task, UploadStatus.UPLOADING)

        try:
            for index in pending:
                await self._set_status(task, UploadStatus.UPLOADING)
                start, end = task.chunk_range(index)
                chunk = await source.read(start, end - start)
                if len(chunk) != end - start:
                    raise R2ManagerError(
                        f"Short read on chunk {index}: expected {end - start} bytes, got {len(chunk)}"
                    )

                result = await self._uploader.upload(
                    task.destination_key,
                    chunk,
                    index,
                    task.total_chunks,
                    policy,
                    bucket=task.bucket,
                    on_retry=on_retry,
                )
                task.mark_chunk_complete(result)

                if task.total_chunks > 1:
                    percent = min(MAX_PROGRESS_BEFORE_VERIFY, task.fraction_complete * 100)
                    await self._emit_progress(task, percent)
        except Exception as exc:
            remaining = task.outstanding_chunks
            message = f"Upload failed: {len(remaining)} chunks remaining. Last error: {exc}"
            logger.error(
                f"{message} (file={task.destination_key}, "
                f"uploaded={sorted(task.completed_chunk_indices)}, failed={remaining})"
            )
            return await self._fail(task, FailureKind.TRANSFER, message)

        await self._set_status(task, UploadStatus.VERIFYING)
        try:
            self._verify(task)
        except VerificationError as exc:
            logger.error(f"{task.destination_key}: {exc}")
            return await self._fail(task, FailureKind.VERIFICATION, str(exc))

        await self._set_status(task, UploadStatus.COMPLETE)
        await self._emit_progress(task, 100)
        await self.events.emit(
            "terminal", TerminalEvent(task.destination_key, UploadStatus.COMPLETE, verified=True)
        )
        logger.info(f"Uploaded and verified {task.bucket}/{task.destination_key}")
        return UploadResult.ok(task)

    async def upload_many(self, tasks: List[UploadTask]) -> List[UploadResult]:
        """Upload tasks one after another."""
        results = []
        for task in tasks:
            results.append(await self.upload_file(task))
        return results

    def _verify(self, task: UploadTask) -> None:
        if task.total_chunks == 1:
            result = task.chunk_results.get(0)
            if result is None or not self._checksum.matches(result.server_etag, result.local_digest):
                raise VerificationError("Checksum mismatch")
            return

        for index in range(task.total_chunks):
            result = task.chunk_results.get(index)
            if result is None or not result.server_etag or not result.local_digest:
                raise VerificationError("Chunk count mismatch")

    async def _set_status(self, task: UploadTask, status: UploadStatus) -> None:
        changed = task.status != status
        task.transition(status)
        if changed:
            await self.events.emit("status", StatusEvent(task.destination_key, status))

    async def _emit_progress(self, task: UploadTask, percent: float) -> None:
        await self.events.emit(
            "progress",
            ProgressEvent(
                destination_key=task.destination_key,
                percent=percent,
                completed_chunks=len(task.completed_chunk_indices),
                total_chunks=task.total_chunks,
            ),
        )

    async def _on_retry(self, task: UploadTask, attempt: int, chunk_index: int, error: Exception) -> None:
        await self.events.emit(
            "retry", RetryEvent(task.destination_key, attempt, chunk_index, str(error))
        )

    async def _fail(self, task: UploadTask, failure: FailureKind, error: str) -> UploadResult:
        await self._set_status(task, UploadStatus.FAILED)
        await self.events.emit(
            "terminal",
            TerminalEvent(task.destination_key, UploadStatus.FAILED, verified=False, error=error),
        )
        return UploadResult.fail(task, failure, error)
