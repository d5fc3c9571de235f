"""
districts.py — District layers and point-to-district resolution.

A DistrictIndex holds one layer (neighborhood councils or council districts)
as an ordered, id-keyed collection of polygons. Resolution walks the
districts in declared order, skips those whose bounding box excludes the
point, and returns the first exact match. Districts are expected not to
overlap; where real boundary data does overlap, first match wins.

An index is immutable once built. Reloading a layer builds a new index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, Optional

from requestmap.constants import CC_LAYER, NC_LAYER
from requestmap.errors import InvalidLayerData, UnknownDistrict
from requestmap.models import DistrictId
from requestmap.raycast import BBox, Geometry, Point, as_geometry, bounding_box

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerSpec:
    """
    How a layer's GeoJSON properties map onto district ids and names.

    Attributes:
        layer:         Layer id ("nc" or "cc").
        id_property:   Feature property holding the district id.
        name_property: Feature property holding the display name.
        id_type:       int or str; ids are coerced to this type at load time.
    """

    layer: str
    id_property: str
    name_property: str
    id_type: type = str

    def coerce_id(self, value: object) -> DistrictId:
        """
        Convert a raw id (from GeoJSON, a query string or a count table) to
        the layer's id type.

        Raises:
            InvalidLayerData: If the value cannot represent an id of this layer.
        """
        if value is None or isinstance(value, bool):
            raise InvalidLayerData(f"Invalid {self.layer} district id: {value!r}")
        if self.id_type is int:
            if isinstance(value, float) and not value.is_integer():
                raise InvalidLayerData(f"Invalid {self.layer} district id: {value!r}")
            try:
                return int(value)  # type: ignore[call-overload]
            except (TypeError, ValueError) as exc:
                raise InvalidLayerData(f"Invalid {self.layer} district id: {value!r}") from exc
        text = str(value).strip()
        if not text:
            raise InvalidLayerData(f"Empty {self.layer} district id")
        return text


DEFAULT_LAYER_SPECS: dict[str, LayerSpec] = {
    NC_LAYER: LayerSpec(NC_LAYER, id_property="nc_id", name_property="council_name", id_type=int),
    CC_LAYER: LayerSpec(CC_LAYER, id_property="name", name_property="name", id_type=str),
}


@dataclass(frozen=True)
class DistrictRef:
    """What a resolution returns: the layer, the district id and its name."""

    layer: str
    district_id: DistrictId
    name: str


@dataclass(frozen=True)
class District:
    district_id: DistrictId
    name: str
    geometry: Geometry

    def __post_init__(self) -> None:
        object.__setattr__(self, "geometry", as_geometry(self.geometry))

    @property
    def bbox(self) -> BBox:
        return bounding_box(self.geometry)


class DistrictIndex:
    """
    Ordered, id-keyed collection of district polygons for one layer.

    Candidate selection is a linear bounding-box scan, which is fast enough
    for a few hundred districts. `_candidates` is the only place that knows
    this, so a grid or tree can replace it without changing `resolve`.
    """

    def __init__(self, spec: LayerSpec, districts: Iterable[District]) -> None:
        ordered = tuple(districts)
        by_id: dict[DistrictId, District] = {}
        for district in ordered:
            district_id = spec.coerce_id(district.district_id)
            if district_id != district.district_id:
                raise InvalidLayerData(
                    f"District id {district.district_id!r} is not a {spec.id_type.__name__}"
                )
            if district_id in by_id:
                raise InvalidLayerData(f"Duplicate {spec.layer} district id {district_id!r}")
            by_id[district_id] = district

        self.spec = spec
        self._districts = ordered
        self._by_id = MappingProxyType(by_id)
        logger.info("Indexed %d districts for layer %r", len(ordered), spec.layer)

    @property
    def layer(self) -> str:
        return self.spec.layer

    def __len__(self) -> int:
        return len(self._districts)

    def __iter__(self) -> Iterator[District]:
        return iter(self._districts)

    def __contains__(self, district_id: object) -> bool:
        try:
            return self.spec.coerce_id(district_id) in self._by_id
        except InvalidLayerData:
            return False

    def resolve(self, point: Point) -> Optional[DistrictRef]:
        """
        Return the first district (in declared order) containing `point`,
        or None when the point is outside every district.
        """
        for district in self._candidates(point):
            if district.geometry.contains_point(point.lon, point.lat):
                logger.debug("Point (%.6f, %.6f) in %s district %r",
                             point.lon, point.lat, self.layer, district.district_id)
                return self._ref(district)

        logger.debug("Point (%.6f, %.6f) matched no %s district.", point.lon, point.lat, self.layer)
        return None

    def get(self, district_id: object) -> District:
        """
        Look up a district by id, coercing the id to the layer's id type.

        Raises:
            UnknownDistrict: If no district of this layer has that id.
        """
        try:
            key = self.spec.coerce_id(district_id)
        except InvalidLayerData as exc:
            raise UnknownDistrict(self.layer, district_id) from exc

        district = self._by_id.get(key)
        if district is None:
            raise UnknownDistrict(self.layer, district_id)
        return district

    def name_for(self, district_id: object) -> str:
        return self.get(district_id).name

    def ref_for(self, district_id: object) -> DistrictRef:
        return self._ref(self.get(district_id))

    def refs(self) -> list[DistrictRef]:
        return [self._ref(district) for district in self._districts]

    def _ref(self, district: District) -> DistrictRef:
        return DistrictRef(layer=self.layer, district_id=district.district_id, name=district.name)

    def _candidates(self, point: Point) -> Iterator[District]:
        for district in self._districts:
            if district.bbox.contains_point(point.lon, point.lat):
                yield district
