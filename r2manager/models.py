"""
Models for r2manager.

Upload and transfer state as dataclasses. Results are immutable; the two
pieces of mutable state (``UploadTask`` and ``TransferBatch``) guard their own
invariants so the components driving them cannot corrupt them.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, List, Optional, Tuple

from .errors import FileValidationError, InvalidTransitionError, R2ManagerError, TransferError

if TYPE_CHECKING:
    from .protocols import IFileSource


MiB = 1024 * 1024
CHUNK_SIZE = 10 * MiB


class UploadStatus(Enum):
    """Lifecycle of one upload task."""
    PENDING = "pending"
    UPLOADING = "uploading"
    VERIFYING = "verifying"
    COMPLETE = "complete"
    FAILED = "failed"


_TRANSITIONS = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING, UploadStatus.FAILED},
    UploadStatus.UPLOADING: {UploadStatus.UPLOADING, UploadStatus.VERIFYING, UploadStatus.FAILED},
    UploadStatus.VERIFYING: {UploadStatus.COMPLETE, UploadStatus.FAILED},
    UploadStatus.COMPLETE: set(),
    UploadStatus.FAILED: set(),
}


class FailureKind(Enum):
    """Why an upload ended in ``failed``."""
    VALIDATION = "validation"
    TRANSFER = "transfer"
    VERIFICATION = "verification"


@dataclass(frozen=True)
class RetryPolicy:
    """Per-chunk retry policy: ``max_retries`` attempts, exponential backoff."""
    max_retries: int = 3
    retry_delay: float = 1.0  # seconds, doubled after every failed attempt

    def __post_init__(self):
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")

    def backoff(self, attempt: int) -> float:
        """Delay after the failed 0-based ``attempt``."""
        return self.retry_delay * (2 ** attempt)


@dataclass(frozen=True)
class UploadConfig:
    """Immutable configuration for upload operations."""
    chunk_size: int = CHUNK_SIZE
    max_retries: int = 3
    retry_delay: float = 1.0

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, retry_delay=self.retry_delay)


@dataclass(frozen=True)
class ListingConfig:
    """Immutable configuration for listing operations."""
    page_size: int = 1000  # R2 returns at most 1000 keys per page
    debounce: float = 0.25  # seconds since the last completed request


@dataclass(frozen=True)
class ChunkReceipt:
    """What the server returns for one stored chunk."""
    etag: str


@dataclass(frozen=True)
class ChunkUploadResult:
    """Outcome of one successfully uploaded chunk."""
    index: int
    server_etag: str
    local_digest: str


def join_key(prefix: Optional[str], name: str) -> str:
    """Join a folder prefix and a name into an object key."""
    prefix = (prefix or "").strip("/")
    return f"{prefix}/{name}" if prefix else name


@dataclass
class UploadTask:
    """
    One logical file transfer.

    ``completed_chunk_indices`` only ever grows, through
    ``mark_chunk_complete``, which swaps in a new frozenset.
    """
    source: "IFileSource"
    bucket: str
    destination_key: str
    chunk_size: int = CHUNK_SIZE
    completed_chunk_indices: FrozenSet[int] = frozenset()
    chunk_results: Dict[int, ChunkUploadResult] = field(default_factory=dict)
    status: UploadStatus = UploadStatus.PENDING
    total_chunks: int = field(init=False)

    def __post_init__(self):
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.total_chunks = max(1, math.ceil(self.source.size / self.chunk_size))

    @classmethod
    def create(
        cls,
        source: "IFileSource",
        bucket: str,
        prefix: Optional[str] = None,
        chunk_size: int = CHUNK_SIZE,
    ) -> "UploadTask":
        return cls(
            source=source,
            bucket=bucket,
            destination_key=join_key(prefix, source.name),
            chunk_size=chunk_size,
        )

    @property
    def size(self) -> int:
        return self.source.size

    @property
    def is_single_chunk(self) -> bool:
        return self.size <= self.chunk_size

    @property
    def is_terminal(self) -> bool:
        return self.status in (UploadStatus.COMPLETE, UploadStatus.FAILED)

    @property
    def outstanding_chunks(self) -> List[int]:
        return [i for i in range(self.total_chunks) if i not in self.completed_chunk_indices]

    @property
    def fraction_complete(self) -> float:
        return len(self.completed_chunk_indices) / self.total_chunks

    def chunk_range(self, index: int) -> Tuple[int, int]:
        """Byte range ``[start, end)`` of chunk ``index``."""
        if not 0 <= index < self.total_chunks:
            raise IndexError(f"chunk {index} out of range 0..{self.total_chunks - 1}")
        start = index * self.chunk_size
        return start, min(start + self.chunk_size, self.size)

    def transition(self, status: UploadStatus) -> None:
        if status not in _TRANSITIONS[self.status]:
            raise InvalidTransitionError(
                f"{self.destination_key}: cannot go from {self.status.value} to {status.value}"
            )
        self.status = status

    def mark_chunk_complete(self, result: ChunkUploadResult) -> None:
        if result.index in self.completed_chunk_indices:
            raise ValueError(f"chunk {result.index} of {self.destination_key} already complete")
        self.completed_chunk_indices = self.completed_chunk_indices | {result.index}
        self.chunk_results[result.index] = result

    def resume(self) -> "UploadTask":
        """
        Fresh pending task for the same transfer, keeping finished chunks.

        Chunks that would fail verification again are dropped so they get
        re-sent: the only chunk of a failed single-chunk upload, and any
        chunk stored without a server ETag or local digest.
        """
        if self.status == UploadStatus.FAILED and self.total_chunks == 1:
            kept = {}
        else:
            kept = {
                index: result
                for index, result in self.chunk_results.items()
                if result.server_etag and result.local_digest
            }
        return replace(
            self,
            completed_chunk_indices=frozenset(kept),
            chunk_results=kept,
            status=UploadStatus.PENDING,
        )


@dataclass(frozen=True)
class UploadResult:
    """Immutable result of an upload operation."""
    destination_key: str
    status: UploadStatus
    failure: Optional[FailureKind] = None
    error: Optional[str] = None
    outstanding_chunks: Tuple[int, ...] = ()
    chunk_results: Tuple[ChunkUploadResult, ...] = ()

    @property
    def success(self) -> bool:
        return self.status == UploadStatus.COMPLETE

    def raise_for_error(self) -> None:
        if self.success:
            return
        if self.failure == FailureKind.VALIDATION:
            raise FileValidationError(f"{self.destination_key}: {self.error}")
        raise R2ManagerError(f"{self.destination_key}: {self.error}")

    @classmethod
    def ok(cls, task: UploadTask) -> "UploadResult":
        return cls(
            destination_key=task.destination_key,
            status=UploadStatus.COMPLETE,
            chunk_results=tuple(task.chunk_results[i] for i in sorted(task.chunk_results)),
        )

    @classmethod
    def fail(cls, task: UploadTask, failure: FailureKind, error: str) -> "UploadResult":
        return cls(
            destination_key=task.destination_key,
            status=UploadStatus.FAILED,
            failure=failure,
            error=error,
            outstanding_chunks=tuple(task.outstanding_chunks),
            chunk_results=tuple(task.chunk_results[i] for i in sorted(task.chunk_results)),
        )


class TransferMode(Enum):
    MOVE = "move"
    COPY = "copy"


@dataclass(frozen=True)
class TransferDestination:
    bucket: str
    path: str = ""


@dataclass(frozen=True)
class TransferEntry:
    """One selected file or folder and where it goes."""
    key: str
    destination: TransferDestination
    is_folder: bool = False


@dataclass
class TransferBatch:
    """Move/copy batch confirmed by the user. ``completed_count`` only grows."""
    mode: TransferMode
    source_bucket: str
    entries: List[TransferEntry]
    completed_count: int = 0

    @classmethod
    def to(
        cls,
        mode: TransferMode,
        source_bucket: str,
        destination: TransferDestination,
        files: Optional[List[str]] = None,
        folders: Optional[List[str]] = None,
    ) -> "TransferBatch":
        """Batch sending every file, then every folder, to one destination."""
        entries = [TransferEntry(key, destination) for key in files or []]
        entries += [TransferEntry(key, destination, is_folder=True) for key in folders or []]
        return cls(mode=mode, source_bucket=source_bucket, entries=entries)

    @property
    def total_count(self) -> int:
        return len(self.entries)

    def record_success(self) -> int:
        if self.completed_count >= self.total_count:
            raise ValueError("completed_count cannot exceed total_count")
        self.completed_count += 1
        return self.completed_count


@dataclass(frozen=True)
class TransferResult:
    """Immutable result of a transfer batch."""
    mode: TransferMode
    completed_count: int
    total_count: int
    succeeded: Tuple[str, ...] = ()
    failed_key: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.failed_key is None and self.completed_count == self.total_count

    def raise_for_error(self) -> None:
        if self.failed_key is not None:
            raise TransferError(self.failed_key, self.completed_count, self.total_count, self.error)

    @classmethod
    def ok(cls, batch: TransferBatch, succeeded: List[str]) -> "TransferResult":
        return cls(
            mode=batch.mode,
            completed_count=batch.completed_count,
            total_count=batch.total_count,
            succeeded=tuple(succeeded),
        )

    @classmethod
    def fail(
        cls, batch: TransferBatch, succeeded: List[str], failed_key: str, error: str
    ) -> "TransferResult":
        return cls(
            mode=batch.mode,
            completed_count=batch.completed_count,
            total_count=batch.total_count,
            succeeded=tuple(succeeded),
            failed_key=failed_key,
            error=error,
        )
