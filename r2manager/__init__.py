"""
r2manager - Async client for an R2 object-storage management API.

Resumable, verified chunked uploads; cursor-paginated listings with
client-side sort and filter; sequential move/copy batches.

Usage:
    from r2manager import R2Manager, SortSpec, SortField, TransferDestination

    async with R2Manager(api_url, token) as r2:
        # Upload (10 MiB chunks, 3 attempts per chunk, verified)
        r2.upload_events.on("progress", lambda e: print(f"{e.percent:.0f}%"))
        result = await r2.upload("photos/cat.jpg", "media", prefix="2024")

        # Retry a failed task; only outstanding chunks are sent again
        task = r2.create_task("backup.zip", "media")
        result = await r2.resume(task)

        # Listing: first page, then further pages
        await r2.list("media", "2024", reset=True)
        await r2.list("media", "2024")
        view = r2.project(SortSpec(SortField.SIZE))

        # Move two files and a folder
        await r2.move("media", TransferDestination("archive", "old"),
                      files=["2024/a.jpg", "2024/b.jpg"], folders=["2024/raw"])
"""
from .errors import (
    ChunkUploadError,
    FileValidationError,
    InvalidTransitionError,
    ListingError,
    R2ManagerError,
    TransferError,
    TransportError,
    VerificationError,
)
from .listing import (
    AccumulatedListing,
    ClientSortFilterView,
    FilterSpec,
    ItemType,
    ListingPaginator,
    LoadResult,
    LoadStatus,
    ObjectInfo,
    Projection,
    SortDirection,
    SortField,
    SortSpec,
    project,
)
from .manager import R2Manager
from .models import (
    FailureKind,
    ListingConfig,
    RetryPolicy,
    TransferBatch,
    TransferDestination,
    TransferMode,
    TransferResult,
    UploadConfig,
    UploadResult,
    UploadStatus,
    UploadTask,
)
from .services import ChecksumService, FileTypePolicy, HTTPTransport
from .transfer import TransferOrchestrator
from .upload import BytesSource, ChunkUploader, LocalFileSource, UploadCoordinator

__version__ = "0.1.0"
__all__ = [
    # Main
    "R2Manager",
    # Components
    "ChecksumService",
    "ChunkUploader",
    "UploadCoordinator",
    "ListingPaginator",
    "ClientSortFilterView",
    "TransferOrchestrator",
    "HTTPTransport",
    "FileTypePolicy",
    "BytesSource",
    "LocalFileSource",
    "project",
    # Models
    "UploadConfig",
    "ListingConfig",
    "RetryPolicy",
    "UploadTask",
    "UploadStatus",
    "UploadResult",
    "FailureKind",
    "TransferBatch",
    "TransferDestination",
    "TransferMode",
    "TransferResult",
    "AccumulatedListing",
    "ObjectInfo",
    "LoadResult",
    "LoadStatus",
    "SortSpec",
    "SortField",
    "SortDirection",
    "FilterSpec",
    "ItemType",
    "Projection",
    # Errors
    "R2ManagerError",
    "FileValidationError",
    "TransportError",
    "ChunkUploadError",
    "VerificationError",
    "ListingError",
    "TransferError",
    "InvalidTransitionError",
]
