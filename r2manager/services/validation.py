"""File type/size policy applied before an upload touches the network."""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

MB = 1024 * 1024


@dataclass(frozen=True)
class FileTypeConfig:
    max_size: int
    description: str
    accept: Tuple[str, ...]


FILE_TYPES: Dict[str, FileTypeConfig] = {
    "image": FileTypeConfig(
        max_size=15 * MB,
        description="Images",
        accept=(
            "image/jpeg",
            "image/png",
            "image/gif",
            "image/webp",
            "image/svg+xml",
            "image/bmp",
        ),
    ),
    "video": FileTypeConfig(
        max_size=100 * MB,
        description="Videos",
        accept=("video/mp4",),
    ),
    "document": FileTypeConfig(
        max_size=50 * MB,
        description="Documents",
        accept=(
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
            "application/vnd.ms-excel",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "application/vnd.ms-powerpoint",
            "application/vnd.openxmlformats-officedocument.presentationml.presentation",
            "text/plain",
            "text/markdown",
            "text/csv",
        ),
    ),
    "archive": FileTypeConfig(
        max_size=1024 * MB,
        description="Archives",
        accept=(
            "application/zip",
            "application/x-zip-compressed",
            "application/x-7z-compressed",
            "application/x-rar-compressed",
        ),
    ),
    "code": FileTypeConfig(
        max_size=10 * MB,
        description="Code files",
        accept=(
            "text/javascript",
            "application/javascript",
            "text/typescript",
            "text/x-python",
            "text/x-java",
            "text/x-c",
            "text/x-cpp",
            "text/x-ruby",
            "text/x-php",
            "text/x-go",
            "text/html",
            "text/css",
            "application/json",
            "text/xml",
            "application/x-yaml",
            "text/x-markdown",
        ),
    ),
}


def format_size(size: float) -> str:
    units = ["B", "KB", "MB", "GB"]
    unit_idx = 0
    while size >= 1024 and unit_idx < len(units) - 1:
        size /= 1024
        unit_idx += 1
    return f"{size:.1f} {units[unit_idx]}"


class FileTypePolicy:
    """
    Default upload policy: MIME type must belong to a known group and the
    file must fit that group's size limit.

    Implements IFileValidator protocol.
    """

    def __init__(self, file_types: Optional[Dict[str, FileTypeConfig]] = None):
        self._file_types = file_types if file_types is not None else FILE_TYPES

    def allowed_mime_types(self) -> Tuple[str, ...]:
        return tuple(mime for config in self._file_types.values() for mime in config.accept)

    def config_for(self, content_type: str) -> Optional[FileTypeConfig]:
        for config in self._file_types.values():
            if content_type in config.accept:
                return config
        return None

    def validate(self, name: str, size: int, content_type: str) -> Optional[str]:
        config = self.config_for(content_type)
        if config is None:
            allowed = ", ".join(c.description for c in self._file_types.values())
            return f"File type not allowed. Accepted file types are: {allowed}"
        if size > config.max_size:
            return (
                f"File size exceeds the limit of {format_size(config.max_size)} "
                f"for {config.description.lower()}"
            )
        return None
