"""Client-side sort and filter over an accumulated listing."""
import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple

from .models import AccumulatedListing, FolderEntry, ObjectInfo

_DIGIT_RUN = re.compile(r"(\d+)")


def natural_key(value: str) -> Tuple:
    """
    Case-insensitive, numeric-aware sort key.

    ``f2.txt`` sorts before ``f10.txt``; digit runs sort before letters.
    """
    parts = []
    for part in _DIGIT_RUN.split(value.casefold()):
        if not part:
            continue
        if part.isdigit():
            parts.append((0, int(part), part))
        else:
            parts.append((1, 0, part))
    return tuple(parts)


class SortField(Enum):
    NAME = "name"
    SIZE = "size"
    TYPE = "type"
    UPLOADED = "uploaded"


class SortDirection(Enum):
    ASC = "asc"
    DESC = "desc"


class ItemType(Enum):
    ALL = "all"
    FILES = "files"
    FOLDERS = "folders"


@dataclass(frozen=True)
class SortSpec:
    field: SortField = SortField.NAME
    direction: SortDirection = SortDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC

    def toggled(self, sort_field: SortField) -> "SortSpec":
        """Same field flips the direction; a different field starts ascending."""
        if sort_field == self.field:
            flipped = SortDirection.ASC if self.descending else SortDirection.DESC
            return replace(self, direction=flipped)
        return SortSpec(sort_field, SortDirection.ASC)


def _normalize_extension(ext: str) -> str:
    ext = ext.strip().lower()
    return ext if ext.startswith(".") else f".{ext}"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class FilterSpec:
    """
    Filter criteria; all set criteria must hold.

    ``size_*`` and ``date_*`` bounds are inclusive. Naive datetimes are
    taken as UTC. Folders are only subject to ``text`` and ``item_type``.
    """
    text: str = ""
    extensions: FrozenSet[str] = field(default_factory=frozenset)
    size_min: Optional[int] = None
    size_max: Optional[int] = None
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    item_type: ItemType = ItemType.ALL

    def __post_init__(self):
        object.__setattr__(
            self, "extensions", frozenset(_normalize_extension(e) for e in self.extensions if e.strip())
        )
        object.__setattr__(self, "date_start", _as_utc(self.date_start))
        object.__setattr__(self, "date_end", _as_utc(self.date_end))

    @property
    def is_active(self) -> bool:
        return bool(
            self.text
            or self.extensions
            or self.size_min is not None
            or self.size_max is not None
            or self.date_start is not None
            or self.date_end is not None
            or self.item_type != ItemType.ALL
        )

    def matches_object(self, obj: ObjectInfo) -> bool:
        if self.item_type == ItemType.FOLDERS:
            return False
        if self.text and self.text.casefold() not in obj.name.casefold():
            return False
        if self.extensions and obj.extension not in self.extensions:
            return False
        if self.size_min is not None and obj.size < self.size_min:
            return False
        if self.size_max is not None and obj.size > self.size_max:
            return False
        if self.date_start is not None and obj.uploaded_at < self.date_start:
            return False
        if self.date_end is not None and obj.uploaded_at > self.date_end:
            return False
        return True

    def matches_folder(self, folder: FolderEntry) -> bool:
        if self.item_type == ItemType.FILES:
            return False
        return not self.text or self.text.casefold() in folder.name.casefold()


@dataclass(frozen=True)
class Projection:
    """What a caller renders: filtered and sorted objects and folders."""
    objects: Tuple[ObjectInfo, ...]
    folders: Tuple[FolderEntry, ...]


def _sort_key(sort_field: SortField):
    if sort_field == SortField.SIZE:
        return lambda obj: obj.size
    if sort_field == SortField.TYPE:
        return lambda obj: (obj.extension, natural_key(obj.key))
    if sort_field == SortField.UPLOADED:
        return lambda obj: obj.uploaded_at
    return lambda obj: natural_key(obj.key)


def sort_objects(objects: Iterable[ObjectInfo], spec: SortSpec) -> List[ObjectInfo]:
    return sorted(objects, key=_sort_key(spec.field), reverse=spec.descending)


def project(
    listing: AccumulatedListing,
    sort_spec: Optional[SortSpec] = None,
    filter_spec: Optional[FilterSpec] = None,
) -> Projection:
    """Filter then sort ``listing``. Pure; ``listing`` is not modified."""
    sort_spec = sort_spec or SortSpec()
    filter_spec = filter_spec or FilterSpec()

    objects = [obj for obj in listing.objects if filter_spec.matches_object(obj)]
    folders = [f for f in listing.folders if filter_spec.matches_folder(f)]

    folders.sort(
        key=lambda f: natural_key(f.name),
        reverse=sort_spec.field == SortField.NAME and sort_spec.descending,
    )
    return Projection(objects=tuple(sort_objects(objects, sort_spec)), folders=tuple(folders))


class ClientSortFilterView:
    """
    Holds the current sort and filter choice for one listing view.

    Usage:
        view = ClientSortFilterView()
        view.toggle_sort(SortField.SIZE)
        view.update_filter(text="report", extensions={".pdf"})
        projection = view.project(paginator.listing)
    """

    def __init__(self, sort_spec: Optional[SortSpec] = None, filter_spec: Optional[FilterSpec] = None):
        self.sort_spec = sort_spec or SortSpec()
        self.filter_spec = filter_spec or FilterSpec()

    def toggle_sort(self, sort_field: SortField) -> SortSpec:
        self.sort_spec = self.sort_spec.toggled(sort_field)
        return self.sort_spec

    def update_filter(self, **changes) -> FilterSpec:
        self.filter_spec = replace(self.filter_spec, **changes)
        return self.filter_spec

    def clear_filters(self) -> None:
        self.filter_spec = FilterSpec()

    def project(self, listing: AccumulatedListing) -> Projection:
        return project(listing, self.sort_spec, self.filter_spec)
