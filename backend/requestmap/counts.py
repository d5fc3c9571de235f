"""
counts.py — Per-category request counts for the active selection.

count_by_category picks between two paths that must give identical results:

    1. Precomputed: the selector names a district that has an entry in the
       layer's PrecomputedCounts table. The stored all-category counts are
       projected onto the allow-list. Cost is O(|allow-list|).
    2. Scan: filter the snapshot by category, then by the selector's polygon
       (free-form or the district's own boundary), then tally. Cost is O(n).

The result always has exactly the allow-listed categories as keys; absent
categories count 0.
"""

from __future__ import annotations

import logging
from collections import Counter
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from requestmap.districts import DistrictIndex, LayerSpec
from requestmap.errors import InvalidLayerData, LayerNotLoaded
from requestmap.filters import filter_by_category, filter_within
from requestmap.models import (
    DistrictId,
    DistrictSelector,
    NoSelector,
    PolygonSelector,
    RequestFeature,
    Selector,
)

logger = logging.getLogger(__name__)

CountTable = dict[str, int]


class PrecomputedCounts:
    """
    Read-only table of district id → {category: count} for one layer.

    Counts cover every category (they are not pre-filtered by any
    allow-list) and are validated as non-negative integers on construction.
    """

    def __init__(self, spec: LayerSpec, table: Mapping[object, Mapping[str, int]]) -> None:
        frozen: dict[DistrictId, Mapping[str, int]] = {}
        for raw_id, counts in table.items():
            district_id = spec.coerce_id(raw_id)
            if district_id in frozen:
                raise InvalidLayerData(f"Duplicate {spec.layer} count entry for {district_id!r}")
            frozen[district_id] = MappingProxyType(_validate_counts(district_id, counts))

        self.spec = spec
        self._table = MappingProxyType(frozen)
        logger.info("Loaded precomputed counts for %d %s districts", len(frozen), spec.layer)

    @property
    def layer(self) -> str:
        return self.spec.layer

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, district_id: object) -> bool:
        return self.lookup(district_id) is not None

    def lookup(self, district_id: object) -> Optional[Mapping[str, int]]:
        """Return the full category counts for a district, or None."""
        try:
            key = self.spec.coerce_id(district_id)
        except InvalidLayerData:
            return None
        return self._table.get(key)

    def as_dict(self) -> dict[DistrictId, CountTable]:
        return {district_id: dict(counts) for district_id, counts in self._table.items()}


# ── Public API ────────────────────────────────────────────────────────────────

def count_by_category(
    features: Iterable[RequestFeature],
    selector: Selector,
    allow_list: Iterable[str],
    *,
    districts: Mapping[str, DistrictIndex],
    precomputed: Mapping[str, PrecomputedCounts],
) -> CountTable:
    """
    Count requests per allow-listed category inside the selected region.

    Args:
        features:    The current request snapshot.
        selector:    NoSelector, DistrictSelector or PolygonSelector.
        allow_list:  Categories to count. Empty means count nothing.
        districts:   Loaded district indexes keyed by layer id.
        precomputed: Precomputed count tables keyed by layer id.

    Returns:
        A fresh dict with one key per allow-listed category.

    Raises:
        LayerNotLoaded:  A district selector names a layer with no index and
                         no precomputed entry for the id.
        UnknownDistrict: A district selector names an id the layer lacks.
        InvalidGeometry: A polygon selector is degenerate.
    """
    allowed = list(dict.fromkeys(allow_list))
    if not allowed:
        return {}

    if isinstance(selector, DistrictSelector):
        table = precomputed.get(selector.layer)
        counts = table.lookup(selector.district_id) if table is not None else None
        if counts is not None:
            logger.debug("Using precomputed counts for %s district %r",
                         selector.layer, selector.district_id)
            return project(counts, allowed)

        index = districts.get(selector.layer)
        if index is None:
            raise LayerNotLoaded(selector.layer)
        geometry = index.get(selector.district_id).geometry
    elif isinstance(selector, PolygonSelector):
        geometry = selector.geometry
    elif isinstance(selector, NoSelector):
        geometry = None
    else:
        raise TypeError(f"Unsupported selector: {selector!r}")

    subset = filter_by_category(features, allowed)
    if geometry is not None:
        subset = filter_within(subset, geometry)

    logger.debug("Counted %d requests by scan for %r", len(subset), selector)
    return _tally(subset, allowed)


def project(counts: Mapping[str, int], allow_list: Iterable[str]) -> CountTable:
    """Restrict an all-category count table to `allow_list`, zero-filling."""
    return {category: counts.get(category, 0) for category in dict.fromkeys(allow_list)}


def tabulate(features: Iterable[RequestFeature]) -> CountTable:
    """Count every category present in `features`."""
    return dict(Counter(feature.category for feature in features))


def tabulate_districts(
    index: DistrictIndex,
    features: Iterable[RequestFeature],
) -> PrecomputedCounts:
    """
    Build a PrecomputedCounts table for every district of `index`.

    Each district counts the requests its own polygon contains, which is the
    same filter the scan path applies, so both paths agree for any
    allow-list. A request on a shared boundary counts toward both districts.
    """
    snapshot = tuple(features)
    table = {
        district.district_id: tabulate(filter_within(snapshot, district.geometry))
        for district in index
    }
    return PrecomputedCounts(index.spec, table)


def district_selector(index: DistrictIndex, district_id: object) -> DistrictSelector:
    """Build a selector for a district, validating the id against the index."""
    district = index.get(district_id)
    return DistrictSelector(layer=index.layer, district_id=district.district_id)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _tally(features: Iterable[RequestFeature], allowed: list[str]) -> CountTable:
    counts: CountTable = dict.fromkeys(allowed, 0)
    for feature in features:
        counts[feature.category] += 1
    return counts


def _validate_counts(district_id: DistrictId, counts: Mapping[str, int]) -> CountTable:
    if not isinstance(counts, Mapping):
        raise InvalidLayerData(f"Counts for district {district_id!r} must be a mapping")

    out: CountTable = {}
    for category, value in counts.items():
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidLayerData(
                f"Count for {category!r} in district {district_id!r} must be a "
                f"non-negative integer, got {value!r}"
            )
        out[str(category)] = value
    return out
