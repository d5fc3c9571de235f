"""
test_counts.py — Tests for per-category counting and its two paths.

The precomputed path exists only for speed, so most tests here check that
it returns exactly what the scan path returns.
"""

from itertools import combinations

import pytest

from requestmap.constants import CC_LAYER, NC_LAYER
from requestmap.counts import (
    PrecomputedCounts,
    count_by_category,
    district_selector,
    project,
    tabulate,
    tabulate_districts,
)
from requestmap.districts import DEFAULT_LAYER_SPECS
from requestmap.errors import InvalidLayerData, LayerNotLoaded, UnknownDistrict
from requestmap.models import NO_SELECTOR, DistrictSelector, PolygonSelector

from conftest import make_request

CATEGORIES = ("pothole", "graffiti", "bulky", "streetlight")


def _all_allow_lists():
    for size in range(len(CATEGORIES) + 1):
        yield from combinations(CATEGORIES, size)


@pytest.fixture
def districts(nc_index):
    return {NC_LAYER: nc_index}


class TestScanPath:

    def test_polygon_selector_scenario(self, square):
        features = [
            make_request("1", "pothole", 2, 2),
            make_request("2", "graffiti", 3, 3),
            make_request("3", "pothole", 7, 7),
            make_request("4", "pothole", 15, 15),
        ]
        result = count_by_category(
            features, PolygonSelector(square), {"pothole"}, districts={}, precomputed={}
        )
        assert result == {"pothole": 2}
        assert "graffiti" not in result

    def test_no_selector_counts_everything_allowed(self, requests):
        result = count_by_category(
            requests, NO_SELECTOR, ["pothole", "graffiti", "bulky"], districts={}, precomputed={}
        )
        assert result == {"pothole": 4, "graffiti": 2, "bulky": 2}

    def test_district_selector_without_table_scans_polygon(self, requests, districts):
        result = count_by_category(
            requests, DistrictSelector(NC_LAYER, 1), ["pothole", "graffiti", "bulky"],
            districts=districts, precomputed={},
        )
        assert result == {"pothole": 2, "graffiti": 2, "bulky": 1}

    def test_missing_categories_count_zero(self, requests):
        result = count_by_category(
            requests, NO_SELECTOR, ["streetlight"], districts={}, precomputed={}
        )
        assert result == {"streetlight": 0}

    def test_empty_allow_list_returns_empty_mapping(self, requests, districts):
        for selector in (NO_SELECTOR, DistrictSelector(NC_LAYER, 1)):
            assert count_by_category(requests, selector, [], districts=districts, precomputed={}) == {}

    def test_empty_features_zero_every_category(self, square):
        result = count_by_category(
            [], PolygonSelector(square), ["pothole", "graffiti"], districts={}, precomputed={}
        )
        assert result == {"pothole": 0, "graffiti": 0}

    def test_duplicate_allow_list_entries_collapse(self, requests):
        result = count_by_category(
            requests, NO_SELECTOR, ["bulky", "bulky"], districts={}, precomputed={}
        )
        assert result == {"bulky": 2}


class TestPrecomputedPath:

    @pytest.fixture
    def table(self) -> PrecomputedCounts:
        return PrecomputedCounts(
            DEFAULT_LAYER_SPECS[NC_LAYER],
            {"1": {"pothole": 2, "graffiti": 2, "bulky": 1}, 2: {"pothole": 1}},
        )

    def test_projects_onto_allow_list(self, table):
        result = count_by_category(
            [], DistrictSelector(NC_LAYER, 1), ["pothole", "streetlight"],
            districts={}, precomputed={NC_LAYER: table},
        )
        assert result == {"pothole": 2, "streetlight": 0}

    def test_used_without_loaded_index(self, table):
        result = count_by_category(
            [], DistrictSelector(NC_LAYER, 2), ["pothole"], districts={}, precomputed={NC_LAYER: table}
        )
        assert result == {"pothole": 1}

    def test_result_is_a_fresh_dict(self, table):
        precomputed = {NC_LAYER: table}
        first = count_by_category([], DistrictSelector(NC_LAYER, 1), ["pothole"],
                                  districts={}, precomputed=precomputed)
        first["pothole"] = 999
        again = count_by_category([], DistrictSelector(NC_LAYER, 1), ["pothole"],
                                  districts={}, precomputed=precomputed)
        assert again == {"pothole": 2}

    def test_missing_entry_falls_back_to_scan(self, requests, districts):
        partial = PrecomputedCounts(DEFAULT_LAYER_SPECS[NC_LAYER], {1: {"pothole": 2}})
        result = count_by_category(
            requests, DistrictSelector(NC_LAYER, 2), ["pothole", "bulky"],
            districts=districts, precomputed={NC_LAYER: partial},
        )
        assert result == {"pothole": 1, "bulky": 1}


class TestPathEquivalence:

    def test_tabulated_table_matches_scan_for_every_allow_list(self, requests, nc_index, districts):
        precomputed = {NC_LAYER: tabulate_districts(nc_index, requests)}
        for district_id in (1, 2):
            selector = DistrictSelector(NC_LAYER, district_id)
            for allow_list in _all_allow_lists():
                fast = count_by_category(requests, selector, allow_list,
                                         districts=districts, precomputed=precomputed)
                slow = count_by_category(requests, selector, allow_list,
                                         districts=districts, precomputed={})
                assert fast == slow, (district_id, allow_list)

    def test_boundary_request_counts_in_both_districts(self, requests, nc_index):
        table = tabulate_districts(nc_index, requests)
        assert table.lookup(1)["graffiti"] == 2
        assert table.lookup(2)["graffiti"] == 1


class TestErrors:

    def test_unknown_district(self, requests, districts):
        with pytest.raises(UnknownDistrict):
            count_by_category(requests, DistrictSelector(NC_LAYER, 99), ["pothole"],
                              districts=districts, precomputed={})

    def test_layer_not_loaded(self, requests, districts):
        with pytest.raises(LayerNotLoaded):
            count_by_category(requests, DistrictSelector(CC_LAYER, "CD 1"), ["pothole"],
                              districts=districts, precomputed={})

    def test_district_selector_helper_validates(self, nc_index):
        assert district_selector(nc_index, "2") == DistrictSelector(NC_LAYER, 2)
        with pytest.raises(UnknownDistrict):
            district_selector(nc_index, 42)

    def test_unsupported_selector(self, requests):
        with pytest.raises(TypeError):
            count_by_category(requests, "everything", ["pothole"], districts={}, precomputed={})


class TestPrecomputedValidation:

    @pytest.mark.parametrize("bad", [-1, 1.5, True, "3"])
    def test_bad_counts_rejected(self, bad):
        with pytest.raises(InvalidLayerData):
            PrecomputedCounts(DEFAULT_LAYER_SPECS[NC_LAYER], {1: {"pothole": bad}})

    def test_non_mapping_counts_rejected(self):
        with pytest.raises(InvalidLayerData):
            PrecomputedCounts(DEFAULT_LAYER_SPECS[NC_LAYER], {1: [("pothole", 1)]})

    def test_ids_colliding_after_coercion_rejected(self):
        with pytest.raises(InvalidLayerData, match="Duplicate"):
            PrecomputedCounts(DEFAULT_LAYER_SPECS[NC_LAYER], {"1": {}, 1: {}})

    def test_table_is_read_only(self):
        table = PrecomputedCounts(DEFAULT_LAYER_SPECS[NC_LAYER], {1: {"pothole": 3}})
        with pytest.raises(TypeError):
            table.lookup(1)["pothole"] = 4


class TestHelpers:

    def test_project(self):
        assert project({"a": 1, "b": 2}, ["b", "c"]) == {"b": 2, "c": 0}

    def test_tabulate(self, requests):
        assert tabulate(requests) == {"pothole": 4, "graffiti": 2, "bulky": 2}
