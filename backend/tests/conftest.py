"""
conftest.py — Shared pytest fixtures for the request map test suite.

Provides:
    - Small hand-checkable polygons (a 10×10 square, two adjacent districts).
    - Request snapshots placed inside, outside and on those boundaries.
    - DataStore instances built in memory, so no test touches the filesystem.
    - GeoJSON FeatureCollections shaped like the real boundary and request feeds.
"""

from __future__ import annotations

import pytest

from requestmap.constants import CC_LAYER, NC_LAYER
from requestmap.districts import DEFAULT_LAYER_SPECS, District, DistrictIndex
from requestmap.models import RequestFeature
from requestmap.raycast import Point, Polygon
from requestmap.store import DataStore


def make_request(request_id: str, category: str, lon: float, lat: float) -> RequestFeature:
    return RequestFeature(request_id=request_id, category=category, point=Point(lon, lat))


# ── Geometry fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def square() -> Polygon:
    """Square with corners (0,0), (0,10), (10,10), (10,0)."""
    return Polygon(((0, 0), (0, 10), (10, 10), (10, 0)))


@pytest.fixture
def district_a() -> District:
    return District(district_id=1, name="Alpha", geometry=Polygon(((0, 0), (0, 5), (5, 5), (5, 0))))


@pytest.fixture
def district_b() -> District:
    return District(district_id=2, name="Bravo", geometry=Polygon(((5, 5), (5, 10), (10, 10), (10, 5))))


@pytest.fixture
def nc_index(district_a, district_b) -> DistrictIndex:
    return DistrictIndex(DEFAULT_LAYER_SPECS[NC_LAYER], [district_a, district_b])


@pytest.fixture
def cc_district() -> District:
    """A council district covering both neighborhood councils."""
    return District(
        district_id="CD 1",
        name="Council District 1",
        geometry=Polygon(((0, 0), (0, 10), (10, 10), (10, 0))),
    )


# ── Request fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def requests() -> list[RequestFeature]:
    """
    Requests spread over districts A and B, including boundary cases:
    (5, 5) is the shared corner, (5, 2) lies on A's east edge, (20, 20) is
    outside everything.
    """
    return [
        make_request("r1", "pothole", 2, 2),
        make_request("r2", "graffiti", 3, 1),
        make_request("r3", "pothole", 7, 7),
        make_request("r4", "bulky", 8, 6),
        make_request("r5", "graffiti", 5, 5),
        make_request("r6", "pothole", 5, 2),
        make_request("r7", "pothole", 20, 20),
        make_request("r8", "bulky", 1, 4),
    ]


# ── DataStore fixture ─────────────────────────────────────────────────────────

@pytest.fixture
def store(district_a, district_b, cc_district, requests) -> DataStore:
    """DataStore with both layers and the request snapshot, no count tables."""
    data = DataStore()
    data.load_district_layer(NC_LAYER, [district_a, district_b])
    data.load_district_layer(CC_LAYER, [cc_district])
    data.load_requests(requests)
    return data


# ── GeoJSON fixtures ──────────────────────────────────────────────────────────

@pytest.fixture
def nc_geojson() -> dict:
    """Neighborhood council boundaries as served by the boundary feed."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"nc_id": "1", "council_name": "Alpha"},
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[0, 0], [0, 5], [5, 5], [5, 0], [0, 0]]],
                },
            },
            {
                "type": "Feature",
                "properties": {"nc_id": 2, "council_name": "Bravo"},
                "geometry": {
                    "type": "MultiPolygon",
                    "coordinates": [
                        [[[5, 5], [5, 10], [10, 10], [10, 5], [5, 5]]],
                        [[[20, 20], [20, 21], [21, 21], [21, 20], [20, 20]]],
                    ],
                },
            },
        ],
    }


@pytest.fixture
def requests_geojson() -> dict:
    """Request pins as served by the request feed."""
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "properties": {"requestId": 101, "type": "Graffiti Removal"},
                "geometry": {"type": "Point", "coordinates": [2, 2]},
            },
            {
                "type": "Feature",
                "properties": {"requestId": 102, "type": "Bulky Items"},
                "geometry": {"type": "Point", "coordinates": [7, 7]},
            },
            {
                "type": "Feature",
                "id": "srn-103",
                "properties": {"type": "Bulky Items"},
                "geometry": {"type": "Point", "coordinates": [15, 15]},
            },
        ],
    }
