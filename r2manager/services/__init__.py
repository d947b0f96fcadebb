"""Services for r2manager."""
from .api_client import HTTPTransport
from .checksum import ChecksumService, normalize_etag
from .validation import FILE_TYPES, FileTypeConfig, FileTypePolicy

__all__ = [
    "HTTPTransport",
    "ChecksumService",
    "normalize_etag",
    "FILE_TYPES",
    "FileTypeConfig",
    "FileTypePolicy",
]
