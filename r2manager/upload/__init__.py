"""Upload package - chunked, resumable, verified uploads."""
from .chunk_uploader import ChunkUploader
from .coordinator import UploadCoordinator
from .source import BytesSource, LocalFileSource

__all__ = ["ChunkUploader", "UploadCoordinator", "BytesSource", "LocalFileSource"]
