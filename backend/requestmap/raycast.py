"""
raycast.py — Point-in-polygon geometry for district and selector containment.

Uses the ray-casting method: cast a horizontal ray from the test point
eastward to infinity, counting boundary crossings. An odd count means the
point is inside the ring. Every test is preceded by a bounding-box check,
which rejects most candidates before the per-vertex loop runs.

All coordinates are (longitude, latitude) degrees; nothing is projected.

Boundary policy:
    A point lying exactly on an edge or vertex of any ring (exterior or
    hole) is classified as inside. Only exact float comparisons are used,
    so the same point against the same polygon always gives the same answer.

Reference:
    W. Randolph Franklin, "PNPOLY – Point Inclusion in Polygon Test"
    https://wrfranklin.org/Research/Short_Notes/pnpoly.html
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence, Union

from requestmap.errors import InvalidGeometry

Coord = tuple[float, float]
Ring = tuple[Coord, ...]

_OUTSIDE, _INSIDE, _BOUNDARY = 0, 1, 2

# Statute miles per degree of latitude (mean).
_MILES_PER_DEGREE = 69.0


@dataclass(frozen=True)
class Point:
    """A WGS84 position in degrees."""

    lon: float
    lat: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.lon) and math.isfinite(self.lat)):
            raise InvalidGeometry(f"Non-finite point ({self.lon!r}, {self.lat!r})")


@dataclass(frozen=True)
class BBox:
    """
    Bounding box in lon/lat degrees.

    Convention: min_lon, min_lat, max_lon, max_lat. Edges are inclusive so
    that boundary points are never rejected before the exact test.
    """

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float

    def contains_point(self, lon: float, lat: float) -> bool:
        return self.min_lon <= lon <= self.max_lon and self.min_lat <= lat <= self.max_lat

    def union(self, other: "BBox") -> "BBox":
        return BBox(
            min_lon=min(self.min_lon, other.min_lon),
            min_lat=min(self.min_lat, other.min_lat),
            max_lon=max(self.max_lon, other.max_lon),
            max_lat=max(self.max_lat, other.max_lat),
        )

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.min_lon, self.min_lat, self.max_lon, self.max_lat)


@dataclass(frozen=True)
class Polygon:
    """
    One exterior ring plus zero or more hole rings.

    Rings are stored without the repeated closing vertex; the closing edge is
    implied. Construction validates every ring, so a Polygon that exists is
    always usable for containment tests.
    """

    exterior: Ring
    holes: tuple[Ring, ...] = ()
    bbox: BBox = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        exterior = _normalise_ring(self.exterior)
        holes = tuple(_normalise_ring(hole) for hole in self.holes)
        object.__setattr__(self, "exterior", exterior)
        object.__setattr__(self, "holes", holes)
        object.__setattr__(self, "bbox", _ring_bbox(exterior))

    def contains_point(self, lon: float, lat: float) -> bool:
        if not self.bbox.contains_point(lon, lat):
            return False

        position = _ring_position(lon, lat, self.exterior)
        if position == _OUTSIDE:
            return False
        if position == _BOUNDARY:
            return True

        # Inside the exterior; a point strictly inside any hole is excluded.
        for hole in self.holes:
            if _ring_position(lon, lat, hole) == _INSIDE:
                return False
        return True


@dataclass(frozen=True)
class MultiPolygon:
    """A union of polygons: a point is inside if any member contains it."""

    polygons: tuple[Polygon, ...]
    bbox: BBox = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        polygons = tuple(self.polygons)
        if not polygons:
            raise InvalidGeometry("MultiPolygon has no polygons")
        object.__setattr__(self, "polygons", polygons)

        bbox = polygons[0].bbox
        for polygon in polygons[1:]:
            bbox = bbox.union(polygon.bbox)
        object.__setattr__(self, "bbox", bbox)

    def contains_point(self, lon: float, lat: float) -> bool:
        if not self.bbox.contains_point(lon, lat):
            return False
        return any(polygon.contains_point(lon, lat) for polygon in self.polygons)


Geometry = Union[Polygon, MultiPolygon]


# ── Public API ────────────────────────────────────────────────────────────────

def contains(geometry: Geometry, point: Point) -> bool:
    """Return True when `point` is inside or on the boundary of `geometry`."""
    return geometry.contains_point(point.lon, point.lat)


def bounding_box(geometry: Geometry) -> BBox:
    """Return the (precomputed) bounding box of a polygon or multipolygon."""
    return geometry.bbox


def as_geometry(value: Any) -> Geometry:
    """
    Coerce a typed geometry or a GeoJSON mapping into a typed geometry.

    Accepts Polygon and MultiPolygon instances unchanged, GeoJSON geometry
    dicts of type "Polygon" or "MultiPolygon", and GeoJSON Feature dicts
    wrapping one of those.

    Raises:
        InvalidGeometry: If the type is unsupported or any ring is degenerate.
    """
    if isinstance(value, (Polygon, MultiPolygon)):
        return value
    if not isinstance(value, Mapping):
        raise InvalidGeometry(f"Unsupported geometry value: {type(value).__name__}")

    geo_type = value.get("type")
    if geo_type == "Feature":
        geometry = value.get("geometry")
        if geometry is None:
            raise InvalidGeometry("Feature has no geometry")
        return as_geometry(geometry)

    coordinates = value.get("coordinates")
    if geo_type == "Polygon":
        return _polygon_from_rings(coordinates)
    if geo_type == "MultiPolygon":
        if not coordinates:
            raise InvalidGeometry("MultiPolygon has no polygons")
        return MultiPolygon(tuple(_polygon_from_rings(rings) for rings in coordinates))

    raise InvalidGeometry(f"Unsupported geometry type: {geo_type!r}")


def to_geojson(geometry: Geometry) -> dict:
    """Serialise a typed geometry as a GeoJSON geometry dict with closed rings."""
    if isinstance(geometry, MultiPolygon):
        return {
            "type": "MultiPolygon",
            "coordinates": [_polygon_coordinates(polygon) for polygon in geometry.polygons],
        }
    return {"type": "Polygon", "coordinates": _polygon_coordinates(geometry)}


def circle(center: Point, radius_miles: float, segments: int = 64) -> Polygon:
    """
    Approximate a circle of `radius_miles` around `center` as a polygon.

    Longitude spacing is scaled by cos(latitude), which is accurate enough at
    city scale. Used for address-search radius selections.
    """
    if not (radius_miles > 0 and math.isfinite(radius_miles)):
        raise InvalidGeometry(f"Radius must be a positive number, got {radius_miles!r}")
    if segments < 3:
        raise InvalidGeometry(f"A circle needs at least 3 segments, got {segments}")

    dlat = radius_miles / _MILES_PER_DEGREE
    cos_lat = math.cos(math.radians(center.lat))
    if cos_lat <= 1e-12:
        raise InvalidGeometry("Cannot build a radius polygon at a pole")
    dlon = dlat / cos_lat

    ring = tuple(
        (
            center.lon + dlon * math.cos(2 * math.pi * i / segments),
            center.lat + dlat * math.sin(2 * math.pi * i / segments),
        )
        for i in range(segments)
    )
    return Polygon(ring)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _polygon_from_rings(rings: Sequence[Sequence[Sequence[float]]] | None) -> Polygon:
    if not rings:
        raise InvalidGeometry("Polygon has no rings")
    return Polygon(exterior=rings[0], holes=tuple(rings[1:]))


def _polygon_coordinates(polygon: Polygon) -> list[list[list[float]]]:
    return [
        [[lon, lat] for lon, lat in (*ring, ring[0])]
        for ring in (polygon.exterior, *polygon.holes)
    ]


def _normalise_ring(ring: Sequence[Sequence[float]]) -> Ring:
    """
    Convert a ring to a tuple of float pairs without its closing vertex.

    Raises:
        InvalidGeometry: If the ring has fewer than 3 distinct positions or a
            coordinate is malformed or non-finite.
    """
    coords: list[Coord] = []
    for position in ring:
        try:
            lon, lat = float(position[0]), float(position[1])
        except (TypeError, ValueError, IndexError) as exc:
            raise InvalidGeometry(f"Malformed ring position {position!r}") from exc
        if not (math.isfinite(lon) and math.isfinite(lat)):
            raise InvalidGeometry(f"Non-finite ring position {position!r}")
        coords.append((lon, lat))

    if len(coords) > 1 and coords[0] == coords[-1]:
        coords.pop()

    if len(set(coords)) < 3:
        raise InvalidGeometry(f"Ring needs at least 3 distinct points, got {len(set(coords))}")
    return tuple(coords)


def _ring_bbox(ring: Ring) -> BBox:
    lons = [lon for lon, _ in ring]
    lats = [lat for _, lat in ring]
    return BBox(min(lons), min(lats), max(lons), max(lats))


def _on_segment(lon: float, lat: float, xi: float, yi: float, xj: float, yj: float) -> bool:
    cross = (xj - xi) * (lat - yi) - (yj - yi) * (lon - xi)
    if cross != 0:
        return False
    return min(xi, xj) <= lon <= max(xi, xj) and min(yi, yj) <= lat <= max(yi, yj)


def _ring_position(lon: float, lat: float, ring: Ring) -> int:
    """
    Classify a point against a single ring as outside, inside or on boundary.

    Args:
        lon:  Longitude (x-axis) of the test point.
        lat:  Latitude  (y-axis) of the test point.
        ring: Normalised ring (no closing vertex).
    """
    inside = False
    n = len(ring)

    # Iterate over each edge (ring[j], ring[i])
    j = n - 1
    for i in range(n):
        xi, yi = ring[i]
        xj, yj = ring[j]

        if _on_segment(lon, lat, xi, yi, xj, yj):
            return _BOUNDARY

        # Check whether the ray crosses this edge
        if ((yi > lat) != (yj > lat)) and (lon < (xj - xi) * (lat - yi) / (yj - yi) + xi):
            inside = not inside

        j = i

    return _INSIDE if inside else _OUTSIDE
