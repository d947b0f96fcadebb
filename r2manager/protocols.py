"""
Protocols (Interfaces) for Dependency Inversion.

Every component receives its collaborators through these small interfaces,
so tests and alternative front-ends can swap in their own implementations.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .listing.models import ListingPage
    from .models import ChunkReceipt


@runtime_checkable
class IFileSource(Protocol):
    """Read-only handle on the bytes of a file whose size is known up front."""

    name: str
    size: int
    content_type: str

    async def read(self, offset: int, length: int) -> bytes:
        """Read ``length`` bytes starting at ``offset``."""
        ...


@runtime_checkable
class IFileValidator(Protocol):
    """Type/size policy applied before any network activity."""

    def validate(self, name: str, size: int, content_type: str) -> Optional[str]:
        """Return an error message if the file is rejected, else None."""
        ...


@runtime_checkable
class ITransport(Protocol):
    """Storage backend operations consumed by the core."""

    async def list_objects(
        self,
        bucket: str,
        cursor: Optional[str] = None,
        limit: int = 1000,
        prefix: Optional[str] = None,
        skip_cache: bool = False,
    ) -> ListingPage:
        """Fetch one page of a bucket listing."""
        ...

    async def upload_chunk(
        self,
        bucket: str,
        data: bytes,
        *,
        file_name: str,
        chunk_index: int,
        total_chunks: int,
        chunk_digest: str,
    ) -> ChunkReceipt:
        """Store one chunk and return the server's identifier for it."""
        ...

    async def move_object(
        self, bucket: str, key: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        ...

    async def copy_object(
        self, bucket: str, key: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        ...

    async def move_folder(
        self, bucket: str, path: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        ...

    async def copy_folder(
        self, bucket: str, path: str, dest_bucket: str, dest_path: Optional[str] = None
    ) -> None:
        ...

    async def rename_folder(self, bucket: str, old_path: str, new_path: str) -> None:
        ...

    async def delete_object(self, bucket: str, key: str) -> None:
        ...

    async def rename_object(self, bucket: str, key: str, new_key: str) -> None:
        """Give an object a new key in the same bucket; 409 if ``new_key`` exists."""
        ...
