"""Tests for client-side sort/filter and filter presets."""
from datetime import datetime, timezone

import pytest

from r2manager.listing.filters import (
    EXTENSION_GROUPS,
    calculate_filter_stats,
    date_preset,
    detect_extensions,
    size_preset,
)
from r2manager.listing.models import AccumulatedListing, FolderEntry, ObjectInfo
from r2manager.listing.view import (
    ClientSortFilterView,
    FilterSpec,
    ItemType,
    SortDirection,
    SortField,
    SortSpec,
    natural_key,
    project,
)


def _obj(key, size=0, day=1):
    return ObjectInfo(key=key, size=size, uploaded_at=datetime(2024, 3, day, tzinfo=timezone.utc))


@pytest.fixture
def listing():
    return AccumulatedListing(
        bucket="bucket",
        path="",
        objects=[
            _obj("f2.txt", size=300, day=5),
            _obj("f10.txt", size=100, day=1),
            _obj("F1.txt", size=200, day=9),
            _obj("photo.JPG", size=5000, day=3),
            _obj("archive.zip", size=10, day=7),
        ],
        folders=[
            FolderEntry("dir10", "dir10"),
            FolderEntry("Dir2", "Dir2"),
            FolderEntry("photos", "photos"),
        ],
    )


def _keys(projection):
    return [obj.key for obj in projection.objects]


class TestSorting:
    def test_natural_name_order(self):
        names = ["f2.txt", "f10.txt", "f1.txt"]
        assert sorted(names, key=natural_key) == ["f1.txt", "f2.txt", "f10.txt"]

    def test_name_ascending_is_case_insensitive(self, listing):
        assert _keys(project(listing)) == ["archive.zip", "F1.txt", "f2.txt", "f10.txt", "photo.JPG"]

    def test_name_descending_reverses_folders_too(self, listing):
        projection = project(listing, SortSpec(SortField.NAME, SortDirection.DESC))
        assert _keys(projection)[0] == "photo.JPG"
        assert [f.name for f in projection.folders] == ["photos", "dir10", "Dir2"]

    def test_folders_stay_by_name_for_other_fields(self, listing):
        projection = project(listing, SortSpec(SortField.SIZE, SortDirection.DESC))
        assert [f.name for f in projection.folders] == ["Dir2", "dir10", "photos"]

    def test_size(self, listing):
        projection = project(listing, SortSpec(SortField.SIZE))
        assert [o.size for o in projection.objects] == [10, 100, 200, 300, 5000]

    def test_type_then_key(self, listing):
        projection = project(listing, SortSpec(SortField.TYPE))
        assert _keys(projection) == ["photo.JPG", "F1.txt", "f2.txt", "f10.txt", "archive.zip"]

    def test_uploaded_descending(self, listing):
        projection = project(listing, SortSpec(SortField.UPLOADED, SortDirection.DESC))
        assert _keys(projection) == ["F1.txt", "archive.zip", "f2.txt", "photo.JPG", "f10.txt"]

    def test_toggle(self):
        spec = SortSpec()
        assert spec.toggled(SortField.NAME) == SortSpec(SortField.NAME, SortDirection.DESC)
        assert spec.toggled(SortField.NAME).toggled(SortField.NAME) == spec
        assert SortSpec(SortField.NAME, SortDirection.DESC).toggled(SortField.SIZE) == SortSpec(SortField.SIZE)

    def test_listing_not_modified(self, listing):
        before = list(listing.objects)
        project(listing, SortSpec(SortField.SIZE), FilterSpec(text="f"))
        assert listing.objects == before


class TestFiltering:
    def test_inactive_by_default(self):
        assert FilterSpec().is_active is False
        assert FilterSpec(item_type=ItemType.FILES).is_active is True

    def test_text_matches_name_case_insensitive(self, listing):
        projection = project(listing, filter_spec=FilterSpec(text="PHOTO"))
        assert _keys(projection) == ["photo.JPG"]
        assert [f.name for f in projection.folders] == ["photos"]

    def test_extensions_normalized(self, listing):
        spec = FilterSpec(extensions=frozenset({"jpg", ".ZIP"}))
        assert spec.extensions == frozenset({".jpg", ".zip"})
        projection = project(listing, filter_spec=spec)
        assert _keys(projection) == ["archive.zip", "photo.JPG"]
        # folders ignore extension filters
        assert len(projection.folders) == 3

    def test_size_range_inclusive(self, listing):
        projection = project(listing, SortSpec(SortField.SIZE), FilterSpec(size_min=100, size_max=300))
        assert [o.size for o in projection.objects] == [100, 200, 300]

    def test_date_range_naive_is_utc(self, listing):
        spec = FilterSpec(date_start=datetime(2024, 3, 3), date_end=datetime(2024, 3, 7))
        projection = project(listing, SortSpec(SortField.UPLOADED), spec)
        assert _keys(projection) == ["photo.JPG", "f2.txt", "archive.zip"]

    def test_item_type(self, listing):
        files_only = project(listing, filter_spec=FilterSpec(item_type=ItemType.FILES))
        folders_only = project(listing, filter_spec=FilterSpec(item_type=ItemType.FOLDERS))
        assert files_only.folders == () and len(files_only.objects) == 5
        assert folders_only.objects == () and len(folders_only.folders) == 3

    def test_view_holds_state(self, listing):
        view = ClientSortFilterView()
        view.toggle_sort(SortField.SIZE)
        view.update_filter(text="f")
        assert [o.size for o in view.project(listing).objects] == [100, 200, 300]
        view.clear_filters()
        assert view.filter_spec.is_active is False


class TestFilterPresets:
    def test_extension_groups(self):
        assert ".jpg" in EXTENSION_GROUPS["images"]
        assert ".zip" in EXTENSION_GROUPS["archives"]

    def test_size_preset(self):
        assert size_preset("all") == (None, None)
        assert size_preset("xlarge") == (100 * 1024 * 1024, None)
        with pytest.raises(ValueError):
            size_preset("huge")

    def test_date_presets(self):
        now = datetime(2024, 6, 15, 13, 30, tzinfo=timezone.utc)
        start, end = date_preset("today", now)
        assert start == datetime(2024, 6, 15, tzinfo=timezone.utc)
        assert end.date() == now.date() and end > now
        assert date_preset("week", now) == (datetime(2024, 6, 8, 13, 30, tzinfo=timezone.utc), now)
        assert date_preset("year", now)[0] == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert date_preset("all", now) == (None, None)
        with pytest.raises(ValueError):
            date_preset("decade", now)

    def test_detect_extensions(self, listing):
        assert detect_extensions(listing.objects) == {".txt": 3, ".jpg": 1, ".zip": 1}

    def test_filter_stats(self, listing):
        stats = calculate_filter_stats(listing.objects)
        assert stats.count == 5
        assert stats.total_size == 5610
        assert stats.earliest.day == 1
        assert stats.latest.day == 9
        assert calculate_filter_stats([]).earliest is None
