"""
services.py — Address-search selection for the request map.

The geocoder itself is outside this package; it hands us a point and a
label. This module decides what geographic filter that result implies:

    1. Resolve the point against the address layer (neighborhood councils
       by default).
    2. If a district contains it, select that district.
    3. Otherwise select a radius around the point when one is requested,
       or nothing at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from requestmap.constants import NC_LAYER
from requestmap.districts import DistrictRef
from requestmap.models import NO_SELECTOR, DistrictSelector, PolygonSelector, Selector
from requestmap.raycast import Point, circle
from requestmap.store import DataStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddressSelection:
    """The outcome of an address search: where it is and what to filter on."""

    label: str
    point: Point
    district: Optional[DistrictRef]
    selector: Selector


def select_address(
    store: DataStore,
    point: Point,
    label: str,
    *,
    layer: str = NC_LAYER,
    radius_miles: Optional[float] = None,
) -> AddressSelection:
    """
    Turn a geocoder result into a selection.

    Args:
        store:        Populated DataStore.
        point:        Geocoded location.
        label:        Display label for the address (e.g. street address).
        layer:        Layer the address is resolved against.
        radius_miles: Radius used when no district contains the point.

    Returns:
        AddressSelection with the matched district (if any) and the selector.

    Raises:
        LayerNotLoaded: If `layer` has no loaded index.
    """
    district = store.resolve(layer, point)
    if district is not None:
        logger.info("Address %r is in %s district %r", label, layer, district.name)
        selector: Selector = DistrictSelector(layer=layer, district_id=district.district_id)
    elif radius_miles is not None:
        logger.info("Address %r is outside every %s district; using %.2f mi radius",
                    label, layer, radius_miles)
        selector = PolygonSelector(circle(point, radius_miles))
    else:
        logger.info("Address %r is outside every %s district", label, layer)
        selector = NO_SELECTOR

    return AddressSelection(label=label, point=point, district=district, selector=selector)


def address_label(place_name: str) -> str:
    """
    Shorten a geocoder place name by dropping its trailing region and
    country parts, e.g. "200 N Spring St, Los Angeles, California 90012,
    United States" → "200 N Spring St, Los Angeles".
    """
    parts = [part.strip() for part in place_name.split(",")]
    if len(parts) <= 2:
        return ", ".join(parts)
    return ", ".join(parts[:-2])
