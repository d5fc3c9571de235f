"""
loader.py — Conversion of already-parsed GeoJSON into typed records.

Responsible for:
    - Turning boundary FeatureCollections into District lists, with ids
      coerced to the layer's id type.
    - Turning request FeatureCollections into RequestFeature lists, with
      request types checked against the known categories.

Nothing here touches the filesystem or network; callers hand in dicts.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional

from requestmap.constants import REQUEST_TYPES
from requestmap.districts import District, LayerSpec
from requestmap.errors import InvalidGeometry, InvalidLayerData, UnknownCategory
from requestmap.models import RequestFeature
from requestmap.raycast import Point, as_geometry

logger = logging.getLogger(__name__)

# Request id properties, in lookup order.
_REQUEST_ID_PROPERTIES = ("requestId", "request_id", "srnumber")
_REQUEST_TYPE_PROPERTY = "type"


def districts_from_geojson(collection: Any, spec: LayerSpec) -> list[District]:
    """
    Build the districts of one layer from a GeoJSON FeatureCollection.

    Args:
        collection: FeatureCollection dict, or a plain list of Feature dicts.
        spec:       Property names and id type for the layer.

    Returns:
        Districts in the collection's order.

    Raises:
        InvalidLayerData: A feature lacks its id property.
        InvalidGeometry:  A feature's geometry is missing or degenerate.
    """
    districts: list[District] = []
    for feature in _features_of(collection):
        properties = feature.get("properties") or {}
        raw_id = properties.get(spec.id_property)
        if raw_id is None:
            raise InvalidLayerData(
                f"{spec.layer} feature is missing its {spec.id_property!r} property"
            )
        district_id = spec.coerce_id(raw_id)
        name = properties.get(spec.name_property)
        districts.append(
            District(
                district_id=district_id,
                name=str(name) if name is not None else str(district_id),
                geometry=as_geometry(feature.get("geometry")),
            )
        )

    logger.info("Parsed %d %s districts", len(districts), spec.layer)
    return districts


def requests_from_geojson(
    collection: Any,
    categories: Optional[Iterable[str]] = REQUEST_TYPES,
) -> list[RequestFeature]:
    """
    Build request records from a GeoJSON FeatureCollection of points.

    Args:
        collection: FeatureCollection dict, or a plain list of Feature dicts.
        categories: Known request types. Pass None to accept any label.

    Raises:
        UnknownCategory:  A request type is not in `categories`.
        InvalidGeometry:  A feature is not a valid Point.
        InvalidLayerData: A feature has no request type.
    """
    known = frozenset(categories) if categories is not None else None
    requests: list[RequestFeature] = []
    for position, feature in enumerate(_features_of(collection)):
        properties = feature.get("properties") or {}
        category = properties.get(_REQUEST_TYPE_PROPERTY)
        if category is None:
            raise InvalidLayerData(f"Request feature #{position} has no request type")
        category = str(category)
        if known is not None and category not in known:
            raise UnknownCategory(f"Unknown request type {category!r}")

        requests.append(
            RequestFeature(
                request_id=_request_id(feature, properties, position),
                category=category,
                point=_point_of(feature.get("geometry")),
            )
        )

    logger.info("Parsed %d request features", len(requests))
    return requests


# ── Helpers ───────────────────────────────────────────────────────────────────

def _features_of(collection: Any) -> list[Mapping[str, Any]]:
    if isinstance(collection, Mapping):
        if collection.get("type") != "FeatureCollection":
            raise InvalidLayerData(f"Expected a FeatureCollection, got {collection.get('type')!r}")
        features = collection.get("features") or []
    else:
        features = collection

    out = list(features)
    for feature in out:
        if not isinstance(feature, Mapping):
            raise InvalidLayerData(f"Expected a GeoJSON Feature, got {type(feature).__name__}")
    return out


def _point_of(geometry: Any) -> Point:
    if not isinstance(geometry, Mapping) or geometry.get("type") != "Point":
        raise InvalidGeometry(f"Expected a Point geometry, got {geometry!r}")
    coordinates = geometry.get("coordinates") or []
    try:
        return Point(lon=float(coordinates[0]), lat=float(coordinates[1]))
    except (TypeError, ValueError, IndexError) as exc:
        raise InvalidGeometry(f"Malformed Point coordinates {coordinates!r}") from exc


def _request_id(feature: Mapping[str, Any], properties: Mapping[str, Any], position: int) -> str:
    for key in _REQUEST_ID_PROPERTIES:
        value = properties.get(key)
        if value is not None:
            return str(value)
    if feature.get("id") is not None:
        return str(feature["id"])
    return str(position)
