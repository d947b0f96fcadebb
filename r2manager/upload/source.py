"""File sources: where upload bytes come from."""
import asyncio
import mimetypes
from pathlib import Path
from typing import Optional

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(name: str) -> str:
    mimetype, _ = mimetypes.guess_type(name)
    return mimetype or DEFAULT_CONTENT_TYPE


class LocalFileSource:
    """
    File on the local disk. Size is taken once, at construction.

    Implements IFileSource protocol.
    """

    def __init__(self, path: Path, name: Optional[str] = None, content_type: Optional[str] = None):
        self.path = Path(path)
        self.name = name or self.path.name
        self.size = self.path.stat().st_size
        self.content_type = content_type or guess_content_type(self.name)

    async def read(self, offset: int, length: int) -> bytes:
        def _read():
            with open(self.path, "rb") as f:
                f.seek(offset)
                return f.read(length)

        return await asyncio.to_thread(_read)

    def __repr__(self) -> str:
        return f"LocalFileSource({str(self.path)!r}, size={self.size})"


class BytesSource:
    """
    In-memory file contents.

    Implements IFileSource protocol.
    """

    def __init__(self, name: str, data: bytes, content_type: Optional[str] = None):
        self.name = name
        self._data = bytes(data)
        self.size = len(self._data)
        self.content_type = content_type or guess_content_type(name)

    async def read(self, offset: int, length: int) -> bytes:
        return self._data[offset:offset + length]

    def __repr__(self) -> str:
        return f"BytesSource({self.name!r}, size={self.size})"
