"""Listing data models."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

logger = logging.getLogger(__name__)


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse a server ISO timestamp into an aware UTC datetime."""
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def file_extension(key: str) -> str:
    """``photos/a.JPG`` -> ``.jpg``; ``""`` when the name has no extension."""
    name = key.rsplit("/", 1)[-1]
    if "." not in name:
        return ""
    ext = name.rsplit(".", 1)[-1].lower()
    return f".{ext}" if ext else ""


def normalize_path(path: Optional[str]) -> str:
    """Folder path as a listing prefix: ``"/a/b"`` -> ``"a/b/"``, root -> ``""``."""
    path = (path or "").strip().strip("/")
    return f"{path}/" if path else ""


@dataclass(frozen=True)
class ObjectInfo:
    """One stored object as reported by the listing API."""
    key: str
    size: int
    uploaded_at: datetime
    url: str = ""

    @property
    def name(self) -> str:
        return self.key.rsplit("/", 1)[-1] or self.key

    @property
    def extension(self) -> str:
        return file_extension(self.key)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ObjectInfo":
        return cls(
            key=data["key"],
            size=int(data.get("size") or 0),
            uploaded_at=parse_timestamp(data.get("uploaded")),
            url=data.get("url") or "",
        )


@dataclass(frozen=True)
class FolderEntry:
    """Virtual folder one level below the current path."""
    name: str
    path: str


@dataclass(frozen=True)
class ListingPage:
    """One page of bucket contents."""
    objects: Tuple[ObjectInfo, ...] = ()
    folders: Tuple[str, ...] = ()
    cursor: Optional[str] = None
    has_more: bool = False

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "ListingPage":
        """
        Parse the worker's listing JSON.

        ``hasMore`` without a cursor cannot be followed, so the page is
        treated as the last one.
        """
        pagination = data.get("pagination") or {}
        cursor = pagination.get("cursor") or None
        has_more = bool(pagination.get("hasMore"))
        if has_more and cursor is None:
            logger.warning("Listing reported more pages without a cursor; stopping pagination")
            has_more = False
        return cls(
            objects=tuple(ObjectInfo.from_dict(o) for o in data.get("objects") or []),
            folders=tuple(data.get("folders") or []),
            cursor=cursor,
            has_more=has_more,
        )


def derive_folders(prefixes: Iterable[str], path: str) -> List[FolderEntry]:
    """
    First-level folders below ``path`` from the server's prefix strings.

    The path prefix is stripped and only the first remaining segment kept,
    so ``a/b/c/`` listed under ``a/`` yields folder ``b``.
    """
    base = normalize_path(path)
    seen = set()
    folders = []
    for prefix in prefixes:
        if not prefix.startswith(base):
            continue
        name = prefix[len(base):].strip("/").split("/", 1)[0]
        if not name or name in seen:
            continue
        seen.add(name)
        folders.append(FolderEntry(name=name, path=f"{base}{name}"))
    return folders


class ListingStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


@dataclass
class AccumulatedListing:
    """
    Every page fetched since the last reset for one (bucket, path).

    Object keys are unique. The ``remove_*``/``rename_*`` helpers apply
    optimistic local edits without refetching.
    """
    bucket: Optional[str] = None
    path: str = ""
    objects: List[ObjectInfo] = field(default_factory=list)
    folders: List[FolderEntry] = field(default_factory=list)
    cursor: Optional[str] = None
    has_more: bool = True
    status: ListingStatus = ListingStatus.IDLE
    error: Optional[str] = None
    # keys removed locally since the last reset; later pages must not revive them
    removed_keys: Set[str] = field(default_factory=set)

    @property
    def context(self) -> Tuple[Optional[str], str]:
        return self.bucket, self.path

    def keys(self) -> List[str]:
        return [obj.key for obj in self.objects]

    def reset(self, bucket: str, path: str) -> None:
        self.bucket = bucket
        self.path = normalize_path(path)
        self.objects = []
        self.folders = []
        self.cursor = None
        self.has_more = True
        self.status = ListingStatus.IDLE
        self.error = None
        self.removed_keys = set()

    def replace_with(self, page: ListingPage) -> None:
        self.objects = []
        self.append(page)
        self.folders = derive_folders(page.folders, self.path)

    def append(self, page: ListingPage) -> int:
        """Append a page's objects, skipping known and locally removed keys. Returns how many were new."""
        known = set(self.keys()) | self.removed_keys
        added = 0
        for obj in page.objects:
            if obj.key in known:
                continue
            known.add(obj.key)
            self.objects.append(obj)
            added += 1
        self.cursor = page.cursor
        self.has_more = page.has_more
        return added

    def remove_objects(self, keys: Iterable[str]) -> int:
        doomed = set(keys)
        self.removed_keys |= doomed
        before = len(self.objects)
        self.objects = [obj for obj in self.objects if obj.key not in doomed]
        return before - len(self.objects)

    def rename_object(self, old_key: str, new_key: str) -> bool:
        if old_key == new_key:
            return False
        self.removed_keys.add(old_key)
        self.removed_keys.discard(new_key)
        match = next((obj for obj in self.objects if obj.key == old_key), None)
        if match is None:
            return False
        # renaming over an existing key replaces it
        self.objects = [obj for obj in self.objects if obj.key != new_key]
        idx = self.keys().index(old_key)
        self.objects[idx] = replace(match, key=new_key)
        return True

    def remove_folder(self, path: str) -> bool:
        path = path.strip("/")
        before = len(self.folders)
        self.folders = [f for f in self.folders if f.path != path]
        return len(self.folders) != before

    def rename_folder(self, old_path: str, new_path: str) -> bool:
        old_path = old_path.strip("/")
        new_path = new_path.strip("/")
        for idx, folder in enumerate(self.folders):
            if folder.path == old_path:
                self.folders[idx] = FolderEntry(name=new_path.rsplit("/", 1)[-1], path=new_path)
                return True
        return False


class LoadStatus(Enum):
    FETCHED = "fetched"
    SKIPPED_IN_FLIGHT = "skipped_in_flight"
    SKIPPED_DEBOUNCE = "skipped_debounce"
    SKIPPED_EXHAUSTED = "skipped_exhausted"
    SUPERSEDED = "superseded"
    FAILED = "failed"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of one ``ListingPaginator.load`` call."""
    status: LoadStatus
    page: Optional[ListingPage] = None
    error: Optional[str] = None

    @property
    def fetched(self) -> bool:
        return self.status == LoadStatus.FETCHED

    @classmethod
    def ok(cls, page: ListingPage) -> "LoadResult":
        return cls(status=LoadStatus.FETCHED, page=page)

    @classmethod
    def skipped(cls, status: LoadStatus) -> "LoadResult":
        return cls(status=status)

    @classmethod
    def fail(cls, error: str) -> "LoadResult":
        return cls(status=LoadStatus.FAILED, error=error)
