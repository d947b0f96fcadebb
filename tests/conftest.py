"""Shared test doubles."""
import asyncio
import hashlib
import logging
from collections import deque
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytest

from r2manager.errors import TransportError
from r2manager.listing.models import ListingPage, ObjectInfo
from r2manager.models import ChunkReceipt


def make_object(key: str, size: int = 1, day: int = 1) -> ObjectInfo:
    return ObjectInfo(key=key, size=size, uploaded_at=datetime(2024, 1, day, tzinfo=timezone.utc))


def make_page(keys, cursor=None, has_more=False, folders=()) -> ListingPage:
    return ListingPage(
        objects=tuple(make_object(k) for k in keys),
        folders=tuple(folders),
        cursor=cursor,
        has_more=has_more,
    )


class FakeTransport:
    """
    In-memory ITransport.

    - ``chunk_failures[i]``: how many times chunk ``i`` fails before succeeding
    - ``etag_for``: override the ETag returned for a chunk
    - ``pages``: queue of ListingPage (or Exception) answers to list_objects
    - ``list_gate``: when set, list_objects waits on it before answering
    - ``failing_keys``: move/copy/delete/rename of these keys fails
    """

    def __init__(self):
        self.upload_calls: List[dict] = []
        self.chunk_failures: Dict[int, int] = {}
        self.etag_for = None
        self.pages = deque()
        self.list_calls: List[dict] = []
        self.list_gate: Optional[asyncio.Event] = None
        self.failing_keys = set()
        self.transfer_calls: List[tuple] = []

    async def upload_chunk(self, bucket, data, *, file_name, chunk_index, total_chunks, chunk_digest):
        self.upload_calls.append(
            {
                "bucket": bucket,
                "file_name": file_name,
                "chunk_index": chunk_index,
                "total_chunks": total_chunks,
                "chunk_digest": chunk_digest,
                "size": len(data),
            }
        )
        remaining = self.chunk_failures.get(chunk_index, 0)
        if remaining:
            self.chunk_failures[chunk_index] = remaining - 1
            raise TransportError(f"chunk {chunk_index} rejected", status_code=503)
        if self.etag_for is not None:
            return ChunkReceipt(etag=self.etag_for(chunk_index, data))
        return ChunkReceipt(etag=f'"{hashlib.md5(data).hexdigest()}"')

    async def list_objects(self, bucket, cursor=None, limit=1000, prefix=None, skip_cache=False):
        self.list_calls.append(
            {"bucket": bucket, "cursor": cursor, "limit": limit, "prefix": prefix, "skip_cache": skip_cache}
        )
        answer = self.pages.popleft()
        if self.list_gate is not None:
            await self.list_gate.wait()
        if isinstance(answer, Exception):
            raise answer
        return answer

    async def _transfer(self, op, bucket, key, dest_bucket, dest_path):
        self.transfer_calls.append((op, bucket, key, dest_bucket, dest_path))
        if key in self.failing_keys:
            raise TransportError(f"{op} of {key} failed", status_code=500)

    async def move_object(self, bucket, key, dest_bucket, dest_path=None):
        await self._transfer("move_object", bucket, key, dest_bucket, dest_path)

    async def copy_object(self, bucket, key, dest_bucket, dest_path=None):
        await self._transfer("copy_object", bucket, key, dest_bucket, dest_path)

    async def move_folder(self, bucket, path, dest_bucket, dest_path=None):
        await self._transfer("move_folder", bucket, path, dest_bucket, dest_path)

    async def copy_folder(self, bucket, path, dest_bucket, dest_path=None):
        await self._transfer("copy_folder", bucket, path, dest_bucket, dest_path)

    async def rename_folder(self, bucket, old_path, new_path):
        self.transfer_calls.append(("rename_folder", bucket, old_path, new_path, None))

    async def delete_object(self, bucket, key):
        await self._transfer("delete_object", bucket, key, None, None)

    async def rename_object(self, bucket, key, new_key):
        await self._transfer("rename_object", bucket, key, new_key, None)


class FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _restore_logging():
    yield
    logging.disable(logging.NOTSET)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def clock():
    return FakeClock()
