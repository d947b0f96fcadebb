"""Listing package - paginated bucket listing plus client-side sort/filter."""
from .models import (
    AccumulatedListing,
    FolderEntry,
    ListingPage,
    ListingStatus,
    LoadResult,
    LoadStatus,
    ObjectInfo,
)
from .paginator import ListingPaginator
from .view import (
    ClientSortFilterView,
    FilterSpec,
    ItemType,
    Projection,
    SortDirection,
    SortField,
    SortSpec,
    natural_key,
    project,
)

__all__ = [
    "AccumulatedListing",
    "FolderEntry",
    "ListingPage",
    "ListingStatus",
    "LoadResult",
    "LoadStatus",
    "ObjectInfo",
    "ListingPaginator",
    "ClientSortFilterView",
    "FilterSpec",
    "ItemType",
    "Projection",
    "SortDirection",
    "SortField",
    "SortSpec",
    "natural_key",
    "project",
]
