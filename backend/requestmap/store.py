"""
store.py — The loaded district layers, count tables and request snapshot.

DataStore is the single place that changes over time. Each load builds its
new object completely and then publishes a fresh immutable StoreState that
replaces the previous one in a single assignment. A query reads the state
once, so its index, count table and snapshot always come from the same
publication even while a reload is running. Loads are serialised by a lock;
reads take no lock.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Iterable, Mapping, NamedTuple, Optional, Sequence

from requestmap import counts as count_ops
from requestmap.districts import DEFAULT_LAYER_SPECS, District, DistrictIndex, DistrictRef, LayerSpec
from requestmap.errors import InvalidLayerData, LayerNotLoaded
from requestmap.models import DistrictSelector, RequestFeature, Selector
from requestmap.raycast import Point

logger = logging.getLogger(__name__)


class StoreState(NamedTuple):
    """One consistent publication of everything the queries read."""

    districts: Mapping[str, DistrictIndex]
    precomputed: Mapping[str, count_ops.PrecomputedCounts]
    requests: tuple[RequestFeature, ...]


_EMPTY_STATE = StoreState(MappingProxyType({}), MappingProxyType({}), ())


class DataStore:
    """
    Holds everything the request map queries run against.

    Attributes (read-only views of the current state, swapped wholesale on load):
        districts:   layer id → DistrictIndex
        precomputed: layer id → PrecomputedCounts
        requests:    current request snapshot (tuple)
    """

    def __init__(self, layer_specs: Optional[Mapping[str, LayerSpec]] = None) -> None:
        self.layer_specs: Mapping[str, LayerSpec] = MappingProxyType(
            dict(layer_specs if layer_specs is not None else DEFAULT_LAYER_SPECS)
        )
        self._lock = threading.Lock()
        self._state = _EMPTY_STATE

    def snapshot(self) -> StoreState:
        """Return the current state; later loads never modify it."""
        return self._state

    @property
    def districts(self) -> Mapping[str, DistrictIndex]:
        return self._state.districts

    @property
    def precomputed(self) -> Mapping[str, count_ops.PrecomputedCounts]:
        return self._state.precomputed

    @property
    def requests(self) -> tuple[RequestFeature, ...]:
        return self._state.requests

    # ── Loads ─────────────────────────────────────────────────────────────────

    def spec_for(self, layer: str) -> LayerSpec:
        spec = self.layer_specs.get(layer)
        if spec is None:
            raise InvalidLayerData(f"Unknown layer id {layer!r}")
        return spec

    def load_district_layer(self, layer: str, districts: Iterable[District]) -> DistrictIndex:
        """Build an index for `layer` and replace any previous one."""
        index = DistrictIndex(self.spec_for(layer), districts)
        with self._lock:
            state = self._state
            self._state = state._replace(districts=_replaced(state.districts, layer, index))
        logger.info("Published %s layer with %d districts", layer, len(index))
        return index

    def load_precomputed_counts(
        self,
        layer: str,
        table: Mapping[object, Mapping[str, int]],
    ) -> count_ops.PrecomputedCounts:
        """Validate a per-district count table and replace any previous one."""
        counts = count_ops.PrecomputedCounts(self.spec_for(layer), table)
        with self._lock:
            state = self._state
            self._state = state._replace(precomputed=_replaced(state.precomputed, layer, counts))
        return counts

    def load_requests(self, features: Iterable[RequestFeature]) -> tuple[RequestFeature, ...]:
        """Replace the request snapshot."""
        snapshot = tuple(features)
        with self._lock:
            self._state = self._state._replace(requests=snapshot)
        logger.info("Published request snapshot with %d features", len(snapshot))
        return snapshot

    # ── Queries ───────────────────────────────────────────────────────────────

    def index_for(self, layer: str) -> DistrictIndex:
        index = self._state.districts.get(layer)
        if index is None:
            raise LayerNotLoaded(layer)
        return index

    def resolve(self, layer: str, point: Point) -> Optional[DistrictRef]:
        """Return the district of `layer` containing `point`, or None."""
        return self.index_for(layer).resolve(point)

    def resolve_all(self, point: Point) -> dict[str, Optional[DistrictRef]]:
        """Resolve `point` against every loaded layer."""
        districts = self._state.districts
        return {layer: index.resolve(point) for layer, index in districts.items()}

    def district_selector(self, layer: str, district_id: object) -> DistrictSelector:
        return count_ops.district_selector(self.index_for(layer), district_id)

    def count_by_category(
        self,
        selector: Selector,
        allow_list: Iterable[str],
        features: Optional[Sequence[RequestFeature]] = None,
    ) -> count_ops.CountTable:
        """
        Count requests per category for the selection.

        Uses the current snapshot unless `features` is given.
        """
        state = self._state
        return count_ops.count_by_category(
            state.requests if features is None else features,
            selector,
            allow_list,
            districts=state.districts,
            precomputed=state.precomputed,
        )


def _replaced(mapping: Mapping, key: str, value: object) -> Mapping:
    updated = dict(mapping)
    updated[key] = value
    return MappingProxyType(updated)
