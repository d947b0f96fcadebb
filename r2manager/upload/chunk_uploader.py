"""Upload of a single chunk with bounded retries."""
import asyncio
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from ..errors import ChunkUploadError
from ..models import ChunkUploadResult, RetryPolicy
from ..protocols import ITransport
from ..services.checksum import ChecksumService

logger = logging.getLogger(__name__)

# (attempt, chunk_index, error); attempt is 1-based
RetryCallback = Callable[[int, int, Exception], Union[None, Awaitable[None]]]


class ChunkUploader:
    """
    Uploads one chunk of one file, retrying with exponential backoff.

    The uploader only talks to the transport; marking the chunk complete on
    the task is the caller's job.
    """

    def __init__(
        self,
        transport: ITransport,
        checksum: Optional[ChecksumService] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._transport = transport
        self._checksum = checksum or ChecksumService()
        self._sleep = sleep

    async def upload(
        self,
        destination_key: str,
        chunk: bytes,
        chunk_index: int,
        total_chunks: int,
        policy: Optional[RetryPolicy] = None,
        *,
        bucket: str,
        on_retry: Optional[RetryCallback] = None,
    ) -> ChunkUploadResult:
        """
        Upload ``chunk`` as part ``chunk_index`` of ``total_chunks``.

        Args:
            destination_key: Object key the chunk belongs to
            chunk: Chunk bytes
            chunk_index: Zero-based index of the chunk
            total_chunks: Number of chunks in the file
            policy: Retry policy (default: 3 attempts, 1s base delay)
            bucket: Target bucket
            on_retry: Called before each backoff sleep

        Returns:
            ChunkUploadResult with the server ETag and the local digest

        Raises:
            ChunkUploadError: every attempt allowed by ``policy`` failed
        """
        policy = policy or RetryPolicy()
        local_digest = self._checksum.digest(chunk)
        last_error: Optional[Exception] = None

        for attempt in range(policy.max_retries):
            try:
                receipt = await self._transport.upload_chunk(
                    bucket,
                    chunk,
                    file_name=destination_key,
                    chunk_index=chunk_index,
                    total_chunks=total_chunks,
                    chunk_digest=local_digest,
                )
            except Exception as exc:
                last_error = exc
                if attempt == policy.max_retries - 1:
                    break

                delay = policy.backoff(attempt)
                logger.warning(
                    f"Chunk {chunk_index + 1}/{total_chunks} of {destination_key} failed "
                    f"(attempt {attempt + 1}/{policy.max_retries}): {exc} - retrying in {delay:.1f}s"
                )
                if on_retry is not None:
                    outcome = on_retry(attempt + 1, chunk_index, exc)
                    if inspect.isawaitable(outcome):
                        await outcome
                await self._sleep(delay)
                continue

            logger.debug(
                f"Chunk {chunk_index + 1}/{total_chunks} of {destination_key} stored (etag={receipt.etag})"
            )
            return ChunkUploadResult(
                index=chunk_index,
                server_etag=receipt.etag,
                local_digest=local_digest,
            )

        raise ChunkUploadError(chunk_index, policy.max_retries, last_error) from last_error
