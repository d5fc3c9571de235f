"""
main.py — FastAPI application entry point for the 311 request map core.

Exposes:
    GET  /                                      — health check (root)
    GET  /health                                — loaded layers and snapshot size
    GET  /api/v1/resolve                        — districts containing lat/lon
    GET  /api/v1/layers/{layer}/districts       — list districts of a layer
    GET  /api/v1/layers/{layer}/districts/{id}  — one district by id
    PUT  /api/v1/layers/{layer}                 — replace a boundary layer
    PUT  /api/v1/layers/{layer}/counts          — replace precomputed counts
    PUT  /api/v1/requests                       — replace the request snapshot
    POST /api/v1/counts                         — per-category counts
    POST /api/v1/address                        — selection for a geocoder result

All loads take already-parsed JSON bodies; the service never reads files.

Run:
    uvicorn requestmap.main:app --reload
    # or
    requestmap-api
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any, Literal, NoReturn, Optional, Union

import uvicorn
from fastapi import Body, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from requestmap.config import get_settings
from requestmap.constants import REQUEST_TYPES
from requestmap.errors import (
    InvalidGeometry,
    InvalidLayerData,
    LayerNotLoaded,
    RequestMapError,
    UnknownCategory,
    UnknownDistrict,
)
from requestmap.loader import districts_from_geojson, requests_from_geojson
from requestmap.models import NO_SELECTOR, DistrictSelector, PolygonSelector, Selector
from requestmap.raycast import Point, as_geometry, to_geojson
from requestmap.services import address_label, select_address
from requestmap.store import DataStore

settings = get_settings()

# ── Logging ──────────────────────────────────────────────────────────────────
logging.basicConfig(level=settings.log_level, format="%(levelname)s: %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ── Application-level data store (created at startup, filled by PUT routes) ──
data_store: DataStore | None = None


def create_store() -> DataStore:
    return DataStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create an empty DataStore before accepting requests."""
    global data_store
    data_store = create_store()
    logger.info("Data store ready; layers loaded: %s", sorted(data_store.districts) or "none")
    yield
    logger.info("Shutting down — releasing data store.")


# ── FastAPI app ───────────────────────────────────────────────────────────────
app = FastAPI(
    title="311 Request Map API",
    description=(
        "Resolve points to neighborhood council and council districts, and count "
        "311 service requests by type for a selected region."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


# ── Schemas ───────────────────────────────────────────────────────────────────

class SelectorBody(BaseModel):
    kind: Literal["none", "district", "polygon"] = "none"
    layer: Optional[str] = None
    district_id: Optional[Union[int, str]] = None
    geometry: Optional[dict[str, Any]] = None


class CountQuery(BaseModel):
    selector: SelectorBody = Field(default_factory=SelectorBody)
    allow_list: list[str]


class AddressQuery(BaseModel):
    lon: float = Field(..., ge=-180, le=180)
    lat: float = Field(..., ge=-90, le=90)
    place_name: str = ""
    layer: Optional[str] = None
    radius_miles: Optional[float] = Field(default=None, gt=0)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _require_store() -> DataStore:
    if data_store is None:
        raise HTTPException(status_code=503, detail="Data store not initialised.")
    return data_store


def _raise_http(exc: RequestMapError) -> NoReturn:
    """Translate a core error into the matching HTTP status."""
    if isinstance(exc, LayerNotLoaded):
        status = 409
    elif isinstance(exc, UnknownDistrict):
        status = 404
    elif isinstance(exc, (InvalidGeometry, InvalidLayerData, UnknownCategory)):
        status = 422
    else:
        status = 400
    logger.warning("Request failed (%d): %s", status, exc)
    raise HTTPException(status_code=status, detail=str(exc)) from exc


def _selector_from_body(body: SelectorBody, store: DataStore) -> Selector:
    if body.kind == "district":
        if body.layer is None or body.district_id is None:
            raise HTTPException(status_code=422, detail="District selector needs layer and district_id.")
        if body.layer not in store.layer_specs:
            raise LayerNotLoaded(body.layer)
        spec = store.spec_for(body.layer)
        try:
            district_id = spec.coerce_id(body.district_id)
        except InvalidLayerData as exc:
            raise UnknownDistrict(body.layer, body.district_id) from exc
        return DistrictSelector(layer=body.layer, district_id=district_id)
    if body.kind == "polygon":
        if body.geometry is None:
            raise HTTPException(status_code=422, detail="Polygon selector needs a geometry.")
        return PolygonSelector(as_geometry(body.geometry))
    return NO_SELECTOR


def _selector_to_json(selector: Selector) -> dict[str, Any]:
    if isinstance(selector, DistrictSelector):
        return {"kind": "district", "layer": selector.layer, "district_id": selector.district_id}
    if isinstance(selector, PolygonSelector):
        return {"kind": "polygon", "geometry": to_geojson(selector.geometry)}
    return {"kind": "none"}


# ── Routes ────────────────────────────────────────────────────────────────────

@app.get("/", tags=["health"])
def root():
    """Root health-check endpoint."""
    return {"status": "ok", "message": "311 Request Map API is running."}


@app.get("/health", tags=["health"])
def health():
    """Detailed health check: loaded layers, count tables and snapshot size."""
    store = _require_store()
    return {
        "status": "ok",
        "layers": {layer: len(index) for layer, index in store.districts.items()},
        "precomputed_counts": {layer: len(table) for layer, table in store.precomputed.items()},
        "requests_loaded": len(store.requests),
    }


@app.get("/api/v1/resolve", tags=["lookup"])
def resolve(
    lat: float = Query(..., ge=-90, le=90, description="Latitude"),
    lon: float = Query(..., ge=-180, le=180, description="Longitude"),
    layer: Optional[str] = Query(None, description="Restrict to one layer (nc or cc)"),
):
    """
    Return the district containing the point for one layer, or for every
    loaded layer. A point outside all districts yields null, not an error.
    """
    store = _require_store()
    point = Point(lon=lon, lat=lat)
    try:
        if layer is not None:
            matches = {layer: store.resolve(layer, point)}
        else:
            matches = store.resolve_all(point)
    except RequestMapError as exc:
        _raise_http(exc)

    return {
        "latitude": lat,
        "longitude": lon,
        "districts": {name: asdict(ref) if ref else None for name, ref in matches.items()},
    }


@app.get("/api/v1/layers/{layer}/districts", tags=["metadata"])
def list_districts(layer: str):
    """Return every district of a layer, in declared order."""
    store = _require_store()
    try:
        index = store.index_for(layer)
    except RequestMapError as exc:
        _raise_http(exc)
    return {"layer": layer, "districts": [asdict(ref) for ref in index.refs()]}


@app.get("/api/v1/layers/{layer}/districts/{district_id}", tags=["metadata"])
def get_district(layer: str, district_id: str):
    """Return a single district's reference and boundary."""
    store = _require_store()
    try:
        index = store.index_for(layer)
        district = index.get(district_id)
    except RequestMapError as exc:
        _raise_http(exc)
    return {
        **asdict(index.ref_for(district.district_id)),
        "geometry": to_geojson(district.geometry),
    }


@app.put("/api/v1/layers/{layer}", tags=["load"])
def load_layer(layer: str, collection: dict[str, Any] = Body(...)):
    """Replace a boundary layer from a GeoJSON FeatureCollection."""
    store = _require_store()
    try:
        spec = store.spec_for(layer)
        index = store.load_district_layer(layer, districts_from_geojson(collection, spec))
    except RequestMapError as exc:
        _raise_http(exc)
    return {"layer": layer, "districts_loaded": len(index)}


@app.put("/api/v1/layers/{layer}/counts", tags=["load"])
def load_counts(layer: str, table: dict[str, dict[str, Any]] = Body(...)):
    """Replace the precomputed per-district counts for a layer."""
    store = _require_store()
    try:
        counts = store.load_precomputed_counts(layer, table)
    except RequestMapError as exc:
        _raise_http(exc)
    return {"layer": layer, "districts_counted": len(counts)}


@app.put("/api/v1/requests", tags=["load"])
def load_requests(collection: dict[str, Any] = Body(...)):
    """Replace the request snapshot from a GeoJSON FeatureCollection of points."""
    store = _require_store()
    categories = REQUEST_TYPES if settings.validate_request_types else None
    try:
        snapshot = store.load_requests(requests_from_geojson(collection, categories))
    except RequestMapError as exc:
        _raise_http(exc)
    return {"requests_loaded": len(snapshot)}


@app.post("/api/v1/counts", tags=["counts"])
def counts(query: CountQuery):
    """Count requests per allow-listed type inside the selected region."""
    store = _require_store()
    try:
        selector = _selector_from_body(query.selector, store)
        result = store.count_by_category(selector, query.allow_list)
    except RequestMapError as exc:
        _raise_http(exc)
    return {"selector": _selector_to_json(selector), "counts": result}


@app.post("/api/v1/address", tags=["lookup"])
def address(query: AddressQuery):
    """Return the selection implied by a geocoded address."""
    store = _require_store()
    try:
        selection = select_address(
            store,
            Point(lon=query.lon, lat=query.lat),
            address_label(query.place_name),
            layer=query.layer or settings.address_layer,
            radius_miles=query.radius_miles,
        )
    except RequestMapError as exc:
        _raise_http(exc)

    return {
        "label": selection.label,
        "longitude": selection.point.lon,
        "latitude": selection.point.lat,
        "district": asdict(selection.district) if selection.district else None,
        "selector": _selector_to_json(selection.selector),
    }


def run():
    """Entry point for the requestmap-api console script."""
    uvicorn.run("requestmap.main:app", host=settings.host, port=settings.port)
