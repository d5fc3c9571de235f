"""
filters.py — Order-preserving filters over request snapshots.

Both functions are pure: they return a new list and never touch the input.
"""

from __future__ import annotations

from typing import Any, Iterable

from requestmap.models import RequestFeature
from requestmap.raycast import as_geometry


def filter_within(features: Iterable[RequestFeature], geometry: Any) -> list[RequestFeature]:
    """
    Return the requests enclosed by `geometry`, in their original order.

    Args:
        features: Request records (any iterable; it is read once).
        geometry: A Polygon, MultiPolygon, or GeoJSON geometry/feature dict.

    Raises:
        InvalidGeometry: If `geometry` cannot be converted.
    """
    selector = as_geometry(geometry)
    bbox = selector.bbox
    return [
        feature
        for feature in features
        if bbox.contains_point(feature.point.lon, feature.point.lat)
        and selector.contains_point(feature.point.lon, feature.point.lat)
    ]


def filter_by_category(
    features: Iterable[RequestFeature],
    allow_list: Iterable[str],
) -> list[RequestFeature]:
    """Keep only requests whose category is in `allow_list`, preserving order."""
    allowed = frozenset(allow_list)
    return [feature for feature in features if feature.category in allowed]
