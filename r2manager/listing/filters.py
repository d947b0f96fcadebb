"""Filter presets and statistics used to build FilterSpec values."""
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, Optional, Tuple

from ..models import MiB
from .models import ObjectInfo

EXTENSION_GROUPS: Dict[str, Tuple[str, ...]] = {
    "images": (".jpg", ".jpeg", ".png", ".gif", ".webp", ".avif", ".heic", ".svg", ".bmp"),
    "documents": (".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".csv"),
    "videos": (".mp4", ".mov", ".webm"),
    "code": (
        ".js", ".ts", ".jsx", ".tsx", ".py", ".java", ".cpp", ".cs", ".go", ".rs",
        ".html", ".css", ".json", ".xml", ".yaml", ".yml", ".sql",
    ),
    "archives": (".zip", ".rar", ".7z", ".tar", ".gz"),
}

# (min, max) in bytes; None means unbounded
SIZE_PRESETS: Dict[str, Tuple[Optional[int], Optional[int]]] = {
    "all": (None, None),
    "tiny": (0, 1 * MiB),
    "small": (1 * MiB, 10 * MiB),
    "medium": (10 * MiB, 50 * MiB),
    "large": (50 * MiB, 100 * MiB),
    "xlarge": (100 * MiB, None),
}

DATE_PRESETS = ("all", "today", "week", "month", "quarter", "year")


def date_preset(name: str, now: Optional[datetime] = None) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    (start, end) for a named date range ending at ``now``.

    ``today`` covers the calendar day of ``now``; ``year`` starts on
    January 1st of ``now``'s year.
    """
    now = now or datetime.now(timezone.utc)
    if name == "all":
        return None, None
    if name == "today":
        start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        return start, start + timedelta(days=1) - timedelta(microseconds=1)
    if name == "week":
        return now - timedelta(days=7), now
    if name == "month":
        return now - timedelta(days=30), now
    if name == "quarter":
        return now - timedelta(days=90), now
    if name == "year":
        return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0), now
    raise ValueError(f"Unknown date preset: {name!r} (expected one of {', '.join(DATE_PRESETS)})")


def size_preset(name: str) -> Tuple[Optional[int], Optional[int]]:
    try:
        return SIZE_PRESETS[name]
    except KeyError:
        raise ValueError(f"Unknown size preset: {name!r} (expected one of {', '.join(SIZE_PRESETS)})") from None


def detect_extensions(objects: Iterable[ObjectInfo]) -> Dict[str, int]:
    """Extension -> object count, most common first."""
    counts = Counter(obj.extension for obj in objects if obj.extension)
    return dict(counts.most_common())


@dataclass(frozen=True)
class FilterStats:
    count: int
    total_size: int
    earliest: Optional[datetime]
    latest: Optional[datetime]


def calculate_filter_stats(objects: Iterable[ObjectInfo]) -> FilterStats:
    objects = list(objects)
    dates = [obj.uploaded_at for obj in objects]
    return FilterStats(
        count=len(objects),
        total_size=sum(obj.size for obj in objects),
        earliest=min(dates) if dates else None,
        latest=max(dates) if dates else None,
    )
