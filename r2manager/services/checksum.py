"""
Checksum Service - content digests for chunks and files.

MD5 is used because R2/S3 report the MD5 of a single-part object as its ETag,
which is what uploads are verified against.
"""
import asyncio
import hashlib
from pathlib import Path
from typing import Iterable, Optional

READ_BLOCK_SIZE = 65536  # 64KB


def normalize_etag(etag: Optional[str]) -> str:
    """Strip quoting/formatting from a server ETag (``W/"AbC"`` -> ``abc``)."""
    if not etag:
        return ""
    value = etag.strip()
    if value[:2].upper() == "W/":
        value = value[2:]
    return value.strip().strip('"').strip().lower()


class ChecksumService:
    """Deterministic hex digests of byte ranges."""

    algorithm = "md5"

    def _hasher(self):
        return hashlib.new(self.algorithm)

    def digest(self, chunk: bytes) -> str:
        """Hex digest of ``chunk``."""
        hasher = self._hasher()
        hasher.update(chunk)
        return hasher.hexdigest()

    def digest_stream(self, blocks: Iterable[bytes]) -> str:
        """Hex digest of the concatenation of ``blocks``, one block in memory at a time."""
        hasher = self._hasher()
        for block in blocks:
            hasher.update(block)
        return hasher.hexdigest()

    async def digest_file(self, path: Path, offset: int = 0, length: Optional[int] = None) -> str:
        """Digest of a byte range of a file, computed off the event loop."""

        def _read_blocks():
            with open(path, "rb") as f:
                f.seek(offset)
                remaining = length
                while remaining is None or remaining > 0:
                    size = READ_BLOCK_SIZE if remaining is None else min(READ_BLOCK_SIZE, remaining)
                    block = f.read(size)
                    if not block:
                        break
                    if remaining is not None:
                        remaining -= len(block)
                    yield block

        return await asyncio.to_thread(lambda: self.digest_stream(_read_blocks()))

    def matches(self, server_etag: Optional[str], local_digest: str) -> bool:
        """Compare a server ETag with a local digest, ignoring quoting and case."""
        return bool(local_digest) and normalize_etag(server_etag) == local_digest.lower()
