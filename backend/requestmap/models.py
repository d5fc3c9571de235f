"""
models.py — Value types shared by the filter, count and store modules.

Request records are immutable; a snapshot of them is a tuple. Selectors are
small frozen dataclasses, exactly one of which is active per query.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from requestmap.raycast import Geometry, Point

DistrictId = Union[int, str]


@dataclass(frozen=True)
class RequestFeature:
    """A single 311 service request: an id, a request type and a location."""

    request_id: str
    category: str
    point: Point


@dataclass(frozen=True)
class NoSelector:
    """No geographic filter: every request is counted."""


@dataclass(frozen=True)
class DistrictSelector:
    """Filter to a known district of a loaded layer."""

    layer: str
    district_id: DistrictId


@dataclass(frozen=True)
class PolygonSelector:
    """Filter to an arbitrary polygon, e.g. an address-search radius."""

    geometry: Geometry


Selector = Union[NoSelector, DistrictSelector, PolygonSelector]

NO_SELECTOR = NoSelector()
